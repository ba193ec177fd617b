# ledger/commands.py
"""
Request bodies are parsed into these commands before they reach the ledger.
Each `from_payload` raises InvalidInputError on anything malformed, so the
services only ever see validated, typed values.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from models import UserRole, UserStatus
from ledger.exceptions import InvalidInputError
from utils import quantize_money, to_money, to_percent, validate_username

PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 16


class TransferDirection(Enum):
    DEPOSIT = "deposit"    # operator -> target
    WITHDRAW = "withdraw"  # target -> operator


def _require_dict(payload) -> dict:
    if not isinstance(payload, dict):
        raise InvalidInputError("Invalid or missing JSON body")
    return payload


def _optional_bool(payload: dict, key: str) -> Optional[bool]:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, bool):
        raise InvalidInputError(f"{key} must be a boolean")
    return value


def _validate_password(password) -> str:
    if not isinstance(password, str) or not (PASSWORD_MIN_LENGTH <= len(password) <= PASSWORD_MAX_LENGTH):
        raise InvalidInputError(f"Password must be {PASSWORD_MIN_LENGTH}-{PASSWORD_MAX_LENGTH} characters")
    return password


def positive_amount(value) -> Decimal:
    amount = to_money(value, "amount")
    if amount <= 0:
        raise InvalidInputError("Amount must be positive")
    if amount != quantize_money(amount):
        raise InvalidInputError("Amount supports at most two decimal places")
    return quantize_money(amount)


@dataclass(frozen=True)
class BalanceCommand:
    direction: TransferDirection
    amount: Decimal
    note: Optional[str] = None

    @classmethod
    def from_payload(cls, payload) -> "BalanceCommand":
        payload = _require_dict(payload)
        try:
            direction = TransferDirection(payload.get("type"))
        except ValueError:
            raise InvalidInputError("Type must be deposit or withdraw")
        note = payload.get("note")
        if note is not None and not isinstance(note, str):
            raise InvalidInputError("note must be a string")
        return cls(direction=direction, amount=positive_amount(payload.get("amount")), note=note or None)


@dataclass(frozen=True)
class StatusUpdate:
    is_locked: Optional[bool] = None
    is_full_disabled: Optional[bool] = None
    is_readonly: Optional[bool] = None
    status: Optional[str] = None

    @classmethod
    def from_payload(cls, payload) -> "StatusUpdate":
        payload = _require_dict(payload)
        status = payload.get("status")
        if status is not None and status not in {s.value for s in UserStatus}:
            raise InvalidInputError("status must be active, suspended or banned")
        command = cls(
            is_locked=_optional_bool(payload, "isLocked"),
            is_full_disabled=_optional_bool(payload, "isFullDisabled"),
            is_readonly=_optional_bool(payload, "isReadonly"),
            status=status,
        )
        if not command.changes():
            raise InvalidInputError("No fields to update")
        return command

    def changes(self) -> dict:
        """Only the fields the caller actually sent, keyed by column name."""
        fields = {
            "is_locked": self.is_locked,
            "is_full_disabled": self.is_full_disabled,
            "is_readonly": self.is_readonly,
            "status": self.status,
        }
        return {key: value for key, value in fields.items() if value is not None}


@dataclass(frozen=True)
class ProfileUpdate:
    nickname: Optional[str] = None
    password: Optional[str] = None

    @classmethod
    def from_payload(cls, payload) -> "ProfileUpdate":
        payload = _require_dict(payload)
        nickname = payload.get("nickname")
        if nickname is not None and (not isinstance(nickname, str) or len(nickname) > 80):
            raise InvalidInputError("nickname must be a string of at most 80 characters")
        password = payload.get("password") or None
        if password is not None:
            _validate_password(password)
        if nickname is None and password is None:
            raise InvalidInputError("No fields to update")
        return cls(nickname=nickname, password=password)


@dataclass(frozen=True)
class PlatformShareSetting:
    game_category: str
    platform: str
    share_percent: Decimal
    rebate_percent: Decimal
    enabled: bool = True

    @classmethod
    def from_payload(cls, payload) -> "PlatformShareSetting":
        payload = _require_dict(payload)
        game_category = payload.get("gameCategory")
        platform = payload.get("platform")
        if not isinstance(game_category, str) or not game_category:
            raise InvalidInputError("gameCategory is required")
        if not isinstance(platform, str) or not platform:
            raise InvalidInputError("platform is required")
        return cls(
            game_category=game_category,
            platform=platform,
            share_percent=to_percent(payload.get("sharePercent", 0), "sharePercent"),
            rebate_percent=to_percent(payload.get("rebatePercent", 0), "rebatePercent"),
            enabled=payload.get("enabled") is not False,
        )


@dataclass(frozen=True)
class ShareSettingsUpdate:
    share_percent: Optional[Decimal] = None
    rebate_percent: Optional[Decimal] = None
    settings: List[PlatformShareSetting] = field(default_factory=list)

    @classmethod
    def from_payload(cls, payload) -> "ShareSettingsUpdate":
        payload = _require_dict(payload)
        share = payload.get("sharePercent")
        rebate = payload.get("rebatePercent")
        raw_settings = payload.get("settings") or []
        if not isinstance(raw_settings, list):
            raise InvalidInputError("settings must be a list")
        command = cls(
            share_percent=to_percent(share, "sharePercent") if share is not None else None,
            rebate_percent=to_percent(rebate, "rebatePercent") if rebate is not None else None,
            settings=[PlatformShareSetting.from_payload(item) for item in raw_settings],
        )
        if command.share_percent is None and command.rebate_percent is None and not command.settings:
            raise InvalidInputError("No fields to update")
        return command


@dataclass(frozen=True)
class CreateNodeCommand:
    role: UserRole
    username: str
    password: str
    nickname: Optional[str] = None
    initial_balance: Decimal = Decimal("0.00")
    share_percent: Decimal = Decimal("0.00")
    rebate_percent: Decimal = Decimal("0.00")
    settings: List[PlatformShareSetting] = field(default_factory=list)

    @classmethod
    def from_payload(cls, payload, role: UserRole) -> "CreateNodeCommand":
        payload = _require_dict(payload)
        username = payload.get("username")
        password = payload.get("password")
        if not username or not password:
            raise InvalidInputError("Username and password are required")
        if not validate_username(username):
            raise InvalidInputError("Username must be 3-80 letters, digits, '_', '.' or '-'")
        _validate_password(password)

        initial_balance = payload.get("initialBalance") or 0
        initial_balance = to_money(initial_balance, "initialBalance")
        if initial_balance < 0:
            raise InvalidInputError("initialBalance cannot be negative")

        share = Decimal("0.00")
        rebate = Decimal("0.00")
        settings = []
        if role == UserRole.AGENT:
            share = to_percent(payload.get("sharePercent", 0), "sharePercent")
            rebate = to_percent(payload.get("rebatePercent", 0), "rebatePercent")
            raw_settings = payload.get("shareSettings") or []
            if not isinstance(raw_settings, list):
                raise InvalidInputError("shareSettings must be a list")
            settings = [PlatformShareSetting.from_payload(item) for item in raw_settings]

        nickname = payload.get("nickname")
        if nickname is not None and not isinstance(nickname, str):
            raise InvalidInputError("nickname must be a string")

        return cls(
            role=role,
            username=username,
            password=password,
            nickname=nickname or username,
            initial_balance=quantize_money(initial_balance),
            share_percent=share,
            rebate_percent=rebate,
            settings=settings,
        )
