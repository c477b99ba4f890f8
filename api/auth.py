import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException

logger = logging.getLogger(__name__)

# roles allowed to scrape and manage saved records
FULL_ACCESS_ROLES = frozenset({"superadmin", "hr_admin", "hr", "admin"})


@dataclass(frozen=True)
class Principal:
    id: str
    role: str


def get_current_user(
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
) -> Optional[Principal]:
    """
    Identity as asserted by the upstream auth gateway.
    Session handling lives outside this service; it forwards the principal in headers.
    """
    if not x_user_id:
        return None
    return Principal(id=x_user_id, role=(x_user_role or "").strip().lower())


def require_full_access(user: Optional[Principal] = Depends(get_current_user)) -> Principal:
    if user is None:
        raise HTTPException(status_code=401, detail="Authentication required")
    if user.role not in FULL_ACCESS_ROLES:
        logger.warning("User %s with role %r denied access", user.id, user.role)
        raise HTTPException(status_code=403, detail="Insufficient role permissions")
    return user
