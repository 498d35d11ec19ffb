"""
AuditLogger - audit trail for round-robin host assignments.

Every assignment decision is recorded so that fairness complaints
("why did this host get three bookings in a row?") can be investigated after
the fact.

Usage:
    from lucky_host.infrastructure.audit import audit_logger

    await audit_logger.log_host_assignment(
        event_type_id=42,
        chosen_user_id=7,
        algorithm="MAXIMIZE_AVAILABILITY",
        stages={"available": [7, 9], "priority": [7]},
    )

Design Principles:
- Write to structured logs always, and to the audit_logs table when the
  database pool is up
- Never fail the assignment if audit logging fails
"""

import json
from datetime import datetime, timezone
from typing import Any

from lucky_host.db.helpers import execute_query
from lucky_host.db.pool import db_pool
from lucky_host.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class AuditLogger:
    """
    Centralized audit logging service.

    Logs assignment decisions to:
    1. Structured logs (stdout) - real-time monitoring
    2. Database (audit_logs table) - immutable, queryable
    """

    @staticmethod
    async def log(
        action: str,
        resource_type: str | None = None,
        resource_id: str | None = None,
        user_id: int | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> bool:
        """
        Log an audit event to structured logs and the database.

        Args:
            action: Action name (e.g., "round_robin_host_assigned")
            resource_type: Type of resource (e.g., "event_type")
            resource_id: Specific resource ID
            user_id: User the action concerns (the assigned host)
            metadata: Additional context (JSON-serializable dict)

        Returns:
            True if persisted, False if only logged or persistence failed (never raises)
        """
        logger.info(
            "Audit event",
            audit_action=action,
            user_id=user_id,
            resource_type=resource_type,
            resource_id=resource_id,
        )

        if not db_pool.is_initialized:
            return False

        try:
            await execute_query(
                """
                INSERT INTO audit_logs (
                    user_id, action, resource_type, resource_id, metadata, created_at
                ) VALUES (%s, %s, %s, %s, %s, %s)
                """,
                (
                    user_id,
                    action,
                    resource_type,
                    resource_id,
                    json.dumps(metadata) if metadata is not None else None,
                    datetime.now(timezone.utc),
                ),
            )
            return True

        except Exception as e:
            # Never fail the assignment due to audit logging failure
            logger.error(
                "CRITICAL: Failed to write audit log to database",
                error=str(e),
                error_type=type(e).__name__,
                action=action,
                user_id=user_id,
                fallback_data={
                    "user_id": user_id,
                    "action": action,
                    "resource_type": resource_type,
                    "resource_id": resource_id,
                    "metadata": metadata,
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                },
            )
            return False

    @staticmethod
    async def log_host_assignment(
        event_type_id: int,
        chosen_user_id: int,
        algorithm: str,
        stages: dict[str, list[int]],
        last_booked_at: datetime | None = None,
        history_size: int = 0,
    ) -> bool:
        """Record which host a round-robin event type assigned, and why."""
        return await AuditLogger.log(
            action="round_robin_host_assigned",
            resource_type="event_type",
            resource_id=str(event_type_id),
            user_id=chosen_user_id,
            metadata={
                "algorithm": algorithm,
                "stages": stages,
                "last_booked_at": last_booked_at.isoformat() if last_booked_at else None,
                "history_size": history_size,
            },
        )


audit_logger = AuditLogger()
