"""
Access policy.

``authorize`` is a pure decision over the principal, the principal's user
record as freshly read from the store, the action and (optionally) the
resource being touched. ``AccessPolicy`` performs the fresh read and turns a
denial into ``Forbidden``. Role checks always run before any resource is
looked up, so a denial never reveals whether the target exists.
"""

import logging
from typing import NamedTuple, Optional, Dict

from auth import Principal
from database import USERS
from errors import Forbidden

logger = logging.getLogger(__name__)

# HR-only actions
ASSET_CREATE = "asset:create"
ASSET_UPDATE = "asset:update"
ASSET_DELETE = "asset:delete"
ASSET_LIST = "asset:list"
REQUEST_LIST_ALL = "request:list_all"
REQUEST_DECIDE = "request:decide"
TEAM_LIST_UNAFFILIATED = "team:list_unaffiliated"
TEAM_COUNT = "team:count"
TEAM_ADD = "team:add"
TEAM_LIST = "team:list"
TEAM_REMOVE = "team:remove"
STATS_HR = "stats:hr"

# Self-scoped actions
USER_READ = "user:read"
USER_UPDATE = "user:update"
REQUEST_CREATE = "request:create"
REQUEST_LIST_OWN = "request:list_own"
REQUEST_CANCEL = "request:cancel"
REQUEST_RETURN = "request:return"
TEAM_VIEW_OWN = "team:view_own"
STATS_EMPLOYEE = "stats:employee"

# HR of the scope, or an employee affiliated with it
ASSET_LIST_AVAILABLE = "asset:list_available"

HR_ACTIONS = frozenset([
    ASSET_CREATE, ASSET_UPDATE, ASSET_DELETE, ASSET_LIST,
    REQUEST_LIST_ALL, REQUEST_DECIDE,
    TEAM_LIST_UNAFFILIATED, TEAM_COUNT, TEAM_ADD, TEAM_LIST, TEAM_REMOVE,
    STATS_HR,
])
SELF_ACTIONS = frozenset([
    USER_READ, USER_UPDATE,
    REQUEST_CREATE, REQUEST_LIST_OWN, REQUEST_CANCEL, REQUEST_RETURN,
    TEAM_VIEW_OWN, STATS_EMPLOYEE,
])


class Decision(NamedTuple):
    allowed: bool
    reason: str = ""


ALLOW = Decision(True)


def deny(reason: str) -> Decision:
    return Decision(False, reason)


def authorize(principal: Principal, account: Optional[Dict], action: str, resource: Optional[Dict] = None) -> Decision:
    """Decide whether ``principal`` may perform ``action``.

    ``account`` is the principal's stored user record, read for this call.
    ``resource`` may carry ``owner`` (the email a self-scoped action targets)
    and/or ``hrEmail`` (the HR scope the action targets).
    """
    if account is None:
        return deny("principal is not registered")
    resource = resource or {}
    role = account.get("role")
    scope = resource.get("hrEmail")

    if action in HR_ACTIONS:
        if role != "hr":
            return deny(f"{action} requires hr role")
        if scope is not None and scope != principal.email:
            return deny(f"{action} outside own scope")
        return ALLOW

    if action in SELF_ACTIONS:
        owner = resource.get("owner")
        if owner is not None and owner != principal.email:
            return deny(f"{action} on another user's data")
        if action == REQUEST_CREATE and role != "employee":
            return deny("only employees request assets")
        return ALLOW

    if action == ASSET_LIST_AVAILABLE:
        if role == "hr" and scope == principal.email:
            return ALLOW
        if role == "employee" and scope is not None and scope == account.get("hrEmail"):
            return ALLOW
        return deny("not a member of this team")

    return deny(f"unknown action {action}")


class AccessPolicy:
    def __init__(self, store):
        self.store = store

    def require(self, principal: Principal, action: str, resource: Optional[Dict] = None) -> Dict:
        """Authorize against a fresh read of the principal's role; return the user record."""
        account = self.store.find_one(USERS, {"email": principal.email})
        decision = authorize(principal, account, action, resource)
        if not decision.allowed:
            logger.info("denied %s for %s: %s", action, principal.email, decision.reason)
            raise Forbidden()
        return account
