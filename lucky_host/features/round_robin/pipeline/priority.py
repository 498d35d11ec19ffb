"""Priority filter: keep the hosts in the highest priority tier."""

from collections.abc import Sequence

from lucky_host.features.round_robin.domain import Host


def filter_by_highest_priority(candidates: Sequence[Host]) -> list[Host]:
    # Hosts without a priority sit in the default tier (2).
    if not candidates:
        return []

    highest = max(host.effective_priority for host in candidates)
    return [host for host in candidates if host.effective_priority == highest]
