from typing import Optional

from fastapi import Header

from .audit import AuditContext


def get_audit_context(x_user_id: Optional[int] = Header(default=None)):
    """
    Audit context for the request. The caller's identity is resolved by the
    authentication layer in front of this service and forwarded as X-User-Id.
    """
    return AuditContext(user_id=x_user_id)
