"""
Audit logging for moderation events.

One JSON line per admin decision or denied admin action, on a separate
logger so it can be shipped apart from the application log.
"""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

# Separate logger for audit events (can be shipped to centralized logging)
audit_logger = logging.getLogger("audit")


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class AuditLog:
    """Central audit logging for moderation events."""

    @staticmethod
    def log_action(
        action: str,  # "approve", "reject", "block", "unblock"
        resource_type: str,  # "confession", "user"
        resource_id: Any,
        admin_id: int,
        changes: Optional[Dict[str, Any]] = None,
    ):
        """
        Log a moderation decision.

        Usage:
            AuditLog.log_action("approve", "confession", "confess_1_2", admin_id=42)
            AuditLog.log_action("reject", "confession", "confess_1_2", 42, changes={"reason": "spam"})
        """
        log_entry = {
            "timestamp": _timestamp(),
            "event_type": f"{resource_type}.{action}",
            "admin_id": admin_id,
            "resource_id": resource_id,
        }

        if changes:
            log_entry["changes"] = changes

        audit_logger.info(json.dumps(log_entry, default=str))

    @staticmethod
    def log_access_denied(
        action: str,
        resource_type: str,
        resource_id: Any,
        user_id: int,
        reason: str,
    ):
        """
        Log a denied admin-only action.

        Usage:
            AuditLog.log_access_denied("approve", "confession", "confess_1_2", 7, "Not an admin")
        """
        log_entry = {
            "timestamp": _timestamp(),
            "event_severity": "WARNING",
            "event_type": "access_denied",
            "action": action,
            "resource_type": resource_type,
            "resource_id": resource_id,
            "user_id": user_id,
            "reason": reason,
        }

        audit_logger.warning(json.dumps(log_entry, default=str))
