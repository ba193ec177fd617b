# models.py - Flask-SQLAlchemy models for the agent ledger
from datetime import datetime
from decimal import Decimal
from enum import Enum
from sqlalchemy import UniqueConstraint, Index, CheckConstraint, text
from extensions import db
from werkzeug.security import check_password_hash, generate_password_hash

# ===========================================================
# ENUM DEFINITIONS
# ===========================================================

class UserRole(Enum):
    ADMIN = "admin"
    AGENT = "agent"
    MEMBER = "member"


class UserStatus(Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"
    BANNED = "banned"


class TransactionType(Enum):
    DEPOSIT = "deposit"
    WITHDRAW = "withdraw"
    BET = "bet"
    WIN = "win"
    REFUND = "refund"
    ADJUSTMENT = "adjustment"


class BetStatus(Enum):
    PENDING = "pending"
    WON = "won"
    LOST = "lost"


class ChangeType(Enum):
    SHARE = "share"
    REBATE = "rebate"


MAX_AGENT_LEVEL = 5

# Sign applied to a stored (non-negative) amount for each ledger entry type.
# Adjustments carry their own sign.
TRANSACTION_SIGN = {
    TransactionType.DEPOSIT.value: 1,
    TransactionType.WIN.value: 1,
    TransactionType.REFUND.value: 1,
    TransactionType.WITHDRAW.value: -1,
    TransactionType.BET.value: -1,
    TransactionType.ADJUSTMENT.value: 1,
}


# ===========================================================
# BASE MIXIN FOR COMMON FIELDS
# ===========================================================

class BaseMixin:
    """Provides created_at and updated_at timestamps to inheriting models."""
    created_at = db.Column(db.DateTime, default=datetime.now, nullable=False, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.now, onupdate=datetime.now)


# ===========================================================
# USER (TREE NODE)
# ===========================================================

class User(db.Model, BaseMixin):
    """One node of the agent tree: the admin root, an agent, or a member."""
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False)
    nickname = db.Column(db.String(80), nullable=True)
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(20), nullable=False, default=UserRole.MEMBER.value, index=True)

    parent_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True, index=True)
    agent_level = db.Column(db.Integer, nullable=False, default=1)

    balance = db.Column(db.Numeric(18, 2), nullable=False, default=Decimal("0.00"), server_default=text("0.00"))
    share_percent = db.Column(db.Numeric(5, 2), nullable=False, default=Decimal("0.00"), server_default=text("0.00"))
    rebate_percent = db.Column(db.Numeric(5, 2), nullable=False, default=Decimal("0.00"), server_default=text("0.00"))

    status = db.Column(db.String(20), nullable=False, default=UserStatus.ACTIVE.value)
    is_locked = db.Column(db.Boolean, nullable=False, default=False)
    is_full_disabled = db.Column(db.Boolean, nullable=False, default=False)
    is_readonly = db.Column(db.Boolean, nullable=False, default=False)

    invite_code = db.Column(db.String(20), unique=True, nullable=False)
    last_login_at = db.Column(db.DateTime, nullable=True)
    last_login_ip = db.Column(db.String(45), nullable=True)

    parent = db.relationship('User', remote_side=[id], backref=db.backref('children', lazy='dynamic'))

    __table_args__ = (
        Index('idx_user_parent_role', 'parent_id', 'role'),
        CheckConstraint('balance >= 0', name='chk_user_balance_non_negative'),
        CheckConstraint('agent_level >= 1 AND agent_level <= 5', name='chk_user_agent_level'),
        CheckConstraint('share_percent >= 0 AND share_percent <= 100', name='chk_user_share_range'),
        CheckConstraint('rebate_percent >= 0 AND rebate_percent <= 100', name='chk_user_rebate_range'),
    )

    # Flask-Login interface
    @property
    def is_authenticated(self):
        return True

    @property
    def is_active(self):
        return self.status == UserStatus.ACTIVE.value and not self.is_full_disabled

    @property
    def is_anonymous(self):
        return False

    def get_id(self):
        return str(self.id)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value

    @property
    def is_agent(self) -> bool:
        return self.role == UserRole.AGENT.value

    @property
    def is_member(self) -> bool:
        return self.role == UserRole.MEMBER.value

    def set_password(self, password: str):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    def to_crumb(self):
        return {"id": self.id, "username": self.username, "nickname": self.nickname}

    def to_dict(self):
        """Serialize node for JSON responses."""
        return {
            "id": self.id,
            "username": self.username,
            "nickname": self.nickname,
            "role": self.role,
            "parentId": self.parent_id,
            "agentLevel": self.agent_level,
            "balance": float(self.balance or 0),
            "status": self.status,
            "inviteCode": self.invite_code,
            "sharePercent": float(self.share_percent or 0),
            "rebatePercent": float(self.rebate_percent or 0),
            "isLocked": self.is_locked,
            "isFullDisabled": self.is_full_disabled,
            "isReadonly": self.is_readonly,
            "lastLoginIp": self.last_login_ip,
            "lastLoginAt": self.last_login_at.isoformat() if self.last_login_at else None,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f'<User {self.id} {self.username} {self.role}>'


# ===========================================================
# LEDGER ENTRIES
# ===========================================================

class Transaction(db.Model):
    """Append-only ledger entry. `amount` is a magnitude; sign comes from `type`."""
    __tablename__ = 'transactions'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    operator_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True, index=True)
    type = db.Column(db.String(20), nullable=False)
    amount = db.Column(db.Numeric(18, 2), nullable=False)
    balance_before = db.Column(db.Numeric(18, 2), nullable=False)
    balance_after = db.Column(db.Numeric(18, 2), nullable=False)
    note = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.now, nullable=False)

    user = db.relationship('User', foreign_keys=[user_id])
    operator = db.relationship('User', foreign_keys=[operator_id])

    __table_args__ = (
        Index('idx_transaction_user_created', 'user_id', 'created_at'),
    )

    @property
    def signed_amount(self) -> Decimal:
        return Decimal(self.amount) * TRANSACTION_SIGN[self.type]

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "operatorId": self.operator_id,
            "type": self.type,
            "amount": float(self.amount),
            "balanceBefore": float(self.balance_before),
            "balanceAfter": float(self.balance_after),
            "note": self.note,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


# ===========================================================
# BETS (written by the game engine, read here)
# ===========================================================

class Bet(db.Model):
    __tablename__ = 'bets'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    amount = db.Column(db.Numeric(18, 2), nullable=False)
    status = db.Column(db.String(20), nullable=False, default=BetStatus.PENDING.value)
    payout = db.Column(db.Numeric(18, 2), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.now, nullable=False)

    __table_args__ = (
        Index('idx_bet_user_created', 'user_id', 'created_at'),
    )


# ===========================================================
# COMMISSION SETTINGS
# ===========================================================

class AgentShareSetting(db.Model, BaseMixin):
    """Per game category / platform share and rebate for one agent."""
    __tablename__ = 'agent_share_settings'

    id = db.Column(db.Integer, primary_key=True)
    agent_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    game_category = db.Column(db.String(50), nullable=False)
    platform = db.Column(db.String(50), nullable=False)
    share_percent = db.Column(db.Numeric(5, 2), nullable=False, default=Decimal("0.00"))
    rebate_percent = db.Column(db.Numeric(5, 2), nullable=False, default=Decimal("0.00"))
    enabled = db.Column(db.Boolean, nullable=False, default=True)

    __table_args__ = (
        UniqueConstraint('agent_id', 'game_category', 'platform', name='uq_share_setting_scope'),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "agentId": self.agent_id,
            "gameCategory": self.game_category,
            "platform": self.platform,
            "sharePercent": float(self.share_percent),
            "rebatePercent": float(self.rebate_percent),
            "enabled": self.enabled,
        }


class ShareSettingHistory(db.Model):
    """Append-only audit trail of share / rebate changes."""
    __tablename__ = 'share_setting_history'

    id = db.Column(db.Integer, primary_key=True)
    agent_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    operator_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    change_type = db.Column(db.String(20), nullable=False)
    old_value = db.Column(db.Numeric(5, 2), nullable=False)
    new_value = db.Column(db.Numeric(5, 2), nullable=False)
    game_category = db.Column(db.String(50), nullable=True)
    platform = db.Column(db.String(50), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.now, nullable=False)

    operator = db.relationship('User', foreign_keys=[operator_id])

    def to_dict(self):
        return {
            "id": self.id,
            "agentId": self.agent_id,
            "operatorId": self.operator_id,
            "operatorUsername": self.operator.username if self.operator else None,
            "operatorNickname": self.operator.nickname if self.operator else None,
            "changeType": self.change_type,
            "oldValue": float(self.old_value),
            "newValue": float(self.new_value),
            "gameCategory": self.game_category,
            "platform": self.platform,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


# ===========================================================
# AUDITING
# ===========================================================

class OperationLog(db.Model):
    __tablename__ = 'operation_logs'

    id = db.Column(db.Integer, primary_key=True)
    operator_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    action = db.Column(db.String(50), nullable=False)
    target_type = db.Column(db.String(20), nullable=False, default='user')
    target_id = db.Column(db.Integer, nullable=True, index=True)
    details = db.Column(db.JSON)
    ip_address = db.Column(db.String(45))
    created_at = db.Column(db.DateTime, default=datetime.now, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "operatorId": self.operator_id,
            "action": self.action,
            "targetType": self.target_type,
            "targetId": self.target_id,
            "details": self.details,
            "ipAddress": self.ip_address,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
