"""Audit trail for administrative actions, stored in the admin_logs table."""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from postgrest.exceptions import APIError

logger = logging.getLogger(__name__)

AUDIT_TABLE = "admin_logs"

async def log_event(
    client,
    action: str,
    resource_type: str,
    user_id: Optional[str] = None,
    resource_id: Optional[str] = None,
    old_values: Optional[Dict[str, Any]] = None,
    new_values: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None
) -> None:
    """Insert an audit log entry.

    Auditing never fails the action being audited: errors are logged and dropped.
    """
    entry = {
        "user_id": user_id,
        "action": action,
        "resource_type": resource_type,
        "resource_id": resource_id,
        "old_values": old_values,
        "new_values": new_values,
        "ip_address": ip_address,
        "user_agent": user_agent,
        "metadata": metadata,
        "created_at": datetime.now(timezone.utc).isoformat(),
    }

    try:
        await client.table(AUDIT_TABLE).insert(
            {key: value for key, value in entry.items() if value is not None}
        ).execute()
    except APIError as e:
        logger.error(f"Failed to log audit event {action}: {e}")

async def get_events(client, limit: int = 50, resource_type: Optional[str] = None) -> List[Dict[str, Any]]:
    """Fetch the most recent audit entries, newest first."""
    query = client.table(AUDIT_TABLE).select("*")
    if resource_type:
        query = query.eq("resource_type", resource_type)
    response = await query.order("created_at", desc=True).limit(limit).execute()
    return response.data or []

__all__ = ['log_event', 'get_events', 'AUDIT_TABLE']
