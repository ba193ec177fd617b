# ledger/audit.py
from typing import Any, Dict, Optional

from models import OperationLog


def record_operation(session, operator_id: int, action: str, target_id: Optional[int] = None,
                     details: Optional[Dict[str, Any]] = None, ip_address: Optional[str] = None,
                     target_type: str = "user") -> OperationLog:
    """Add one OperationLog row to the caller's transaction (no commit here)."""
    log = OperationLog(
        operator_id=operator_id,
        action=action,
        target_type=target_type,
        target_id=target_id,
        details=details or {},
        ip_address=ip_address or "unknown",
    )
    session.add(log)
    return log
