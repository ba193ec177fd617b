# ledger/nodes.py
from typing import Optional
import logging

from sqlalchemy import or_

from extensions import db
from models import User, UserRole, AgentShareSetting, MAX_AGENT_LEVEL
from ledger.audit import record_operation
from ledger.commands import CreateNodeCommand, ProfileUpdate, StatusUpdate, TransferDirection
from ledger.exceptions import ForbiddenError, InvalidInputError
from ledger.downline import DownlineAggregator
from ledger.permissions import PermissionGuard
from ledger.transfer import TransferService
from utils import generate_invite_code, like_pattern

logger = logging.getLogger(__name__)


class NodeService:
    """Creation and direct-parent edits of tree nodes. Nodes are never deleted."""

    def __init__(self, session=None, guard: Optional[PermissionGuard] = None):
        self.session = session or db.session
        self.guard = guard or PermissionGuard(DownlineAggregator(self.session))

    # -------------------------
    # Reads
    # -------------------------
    def get(self, user_id: int) -> Optional[User]:
        return self.session.get(User, user_id)

    def children_query(self, parent_id: int, role: UserRole, search: Optional[str] = None,
                       status: Optional[str] = None):
        query = self.session.query(User).filter(
            User.parent_id == parent_id,
            User.role == role.value,
        )
        if search:
            pattern = like_pattern(search)
            query = query.filter(or_(
                User.username.ilike(pattern, escape="\\"),
                User.nickname.ilike(pattern, escape="\\"),
            ))
        if status and status != "all":
            query = query.filter(User.status == status)
        return query

    # -------------------------
    # Creation
    # -------------------------
    @staticmethod
    def child_level(creator: User, role: UserRole) -> int:
        if role == UserRole.MEMBER:
            return MAX_AGENT_LEVEL
        return min((creator.agent_level or 1) + 1, MAX_AGENT_LEVEL)

    def invite_code_taken(self, code: str) -> bool:
        return self.session.query(User.id).filter_by(invite_code=code).first() is not None

    def create_node(self, creator_id: int, command: CreateNodeCommand,
                    ip_address: Optional[str] = None) -> User:
        """
        Create an agent or member directly under `creator_id`.
        A non-zero initial balance is funded by the creator through a normal
        ledger transfer inside the same transaction.
        """
        transfers = TransferService(self.session, self.guard)
        try:
            creator = transfers.lock_users(creator_id).get(creator_id)
            if creator is None:
                raise ForbiddenError()
            if creator.is_member:
                raise ForbiddenError("Members cannot create downline accounts")

            if self.session.query(User.id).filter_by(username=command.username).first():
                raise InvalidInputError("Username already exists")

            node = User(
                username=command.username,
                nickname=command.nickname,
                role=command.role.value,
                parent_id=creator.id,
                agent_level=self.child_level(creator, command.role),
                share_percent=command.share_percent,
                rebate_percent=command.rebate_percent,
                invite_code=generate_invite_code(self.invite_code_taken),
            )
            node.set_password(command.password)
            self.session.add(node)
            self.session.flush()

            for setting in command.settings:
                self.session.add(AgentShareSetting(
                    agent_id=node.id,
                    game_category=setting.game_category,
                    platform=setting.platform,
                    share_percent=setting.share_percent,
                    rebate_percent=setting.rebate_percent,
                    enabled=setting.enabled,
                ))

            if command.initial_balance > 0:
                transfers.apply_transfer(
                    creator, node, TransferDirection.DEPOSIT, command.initial_balance,
                    note="Initial balance",
                )

            record_operation(
                self.session,
                operator_id=creator.id,
                action=f"create_{command.role.value}",
                target_id=node.id,
                details={
                    "username": node.username,
                    "nickname": node.nickname,
                    "agentLevel": node.agent_level,
                    "initialBalance": str(command.initial_balance),
                },
                ip_address=ip_address,
            )
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        logger.info(f"Created {node.role} {node.username} (id={node.id}) under {creator_id}")
        return node

    # -------------------------
    # Direct-parent edits
    # -------------------------
    def update_profile(self, requester: User, target_id: int, command: ProfileUpdate,
                       ip_address: Optional[str] = None) -> User:
        target = self.guard.ensure_mutation(requester, self.get(target_id))
        try:
            if command.nickname is not None:
                target.nickname = command.nickname
            if command.password:
                target.set_password(command.password)

            record_operation(
                self.session,
                operator_id=requester.id,
                action="update_agent",
                target_id=target.id,
                details={"nickname": command.nickname, "passwordChanged": bool(command.password)},
                ip_address=ip_address,
            )
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        return target

    def update_status(self, requester: User, target_id: int, command: StatusUpdate,
                      ip_address: Optional[str] = None) -> User:
        target = self.guard.ensure_mutation(requester, self.get(target_id))
        changes = command.changes()
        try:
            for column, value in changes.items():
                setattr(target, column, value)

            record_operation(
                self.session,
                operator_id=requester.id,
                action="update_user_status",
                target_id=target.id,
                details=changes,
                ip_address=ip_address,
            )
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        logger.info(f"User {requester.id} changed status of {target.id}: {changes}")
        return target
