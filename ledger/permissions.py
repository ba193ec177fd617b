# ledger/permissions.py
from functools import wraps
from typing import Optional

from flask_login import current_user

from models import User
from ledger.downline import DownlineAggregator
from ledger.exceptions import AuthenticationError, ForbiddenError, NotFoundError


class PermissionGuard:
    """
    Two scopes:

    * view scope     - the requester itself, anything in its subtree, or admin
    * mutation scope - admin, or the target's *direct* parent

    A grandparent can read a grandchild's numbers but has to go through the
    intermediate agent to change anything.
    """

    def __init__(self, downline: Optional[DownlineAggregator] = None):
        self.downline = downline or DownlineAggregator()

    def can_view(self, requester: User, target: User) -> bool:
        if requester.is_admin or requester.id == target.id:
            return True
        return self.downline.is_in_subtree(requester.id, target.id)

    @staticmethod
    def can_mutate(requester: User, target: User) -> bool:
        if requester.is_admin:
            return True
        return target.parent_id is not None and target.parent_id == requester.id

    def ensure_view(self, requester: User, target: Optional[User]) -> User:
        if target is None:
            raise NotFoundError("User not found")
        if not self.can_view(requester, target):
            raise ForbiddenError("Target is outside your downline")
        return target

    def ensure_mutation(self, requester: User, target: Optional[User]) -> User:
        if target is None:
            raise NotFoundError("User not found")
        if not self.can_mutate(requester, target):
            raise ForbiddenError("Can only manage direct downline")
        return target


def agent_required(f):
    """
    Decorator for back-office routes.
    - Requires a logged-in, active session user.
    - Aborts with 403 unless the user is an admin or an agent.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_user.is_authenticated:
            raise AuthenticationError()
        if not (current_user.is_admin or current_user.is_agent):
            raise ForbiddenError()
        return f(*args, **kwargs)

    return decorated_function
