import re
import secrets
import string
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from flask import current_app, request

from ledger.exceptions import InvalidInputError

TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0.00")
# Numeric(18, 2) leaves 16 integer digits.
MAX_MONEY = Decimal("1E16")

INVITE_CODE_CHARS = string.ascii_uppercase + string.digits
INVITE_CODE_LENGTH = 6


def quantize_money(value) -> Decimal:
    """Round to two places. ROUND_HALF_UP is the only rounding rule used for money."""
    try:
        return Decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise InvalidInputError("Amount out of range")


def to_decimal(value, field_name: str = "amount") -> Decimal:
    """Secure decimal conversion with validation"""
    if value is None or isinstance(value, bool):
        raise InvalidInputError(f"{field_name} is required")
    try:
        if isinstance(value, float):
            value = str(value)
        result = Decimal(value)
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidInputError(f"Invalid {field_name} format")
    if not result.is_finite():
        raise InvalidInputError(f"Invalid {field_name} format")
    return result


def to_money(value, field_name: str = "amount") -> Decimal:
    amount = to_decimal(value, field_name)
    if abs(amount) >= MAX_MONEY:
        raise InvalidInputError(f"{field_name} is too large")
    return amount


def to_percent(value, field_name: str) -> Decimal:
    percent = to_decimal(value, field_name)
    if percent < 0 or percent > 100:
        raise InvalidInputError(f"{field_name} must be between 0 and 100")
    return quantize_money(percent)


def parse_iso_datetime(value: str, field_name: str) -> datetime:
    """Parse an ISO 8601 timestamp into a naive local datetime."""
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except (ValueError, AttributeError):
        raise InvalidInputError(f"{field_name} must be an ISO 8601 date")
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def like_pattern(search: str) -> str:
    """Substring pattern for ilike(..., escape="\\"); wildcards in the input match literally."""
    escaped = search.strip().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def validate_username(username) -> bool:
    return isinstance(username, str) and re.match(r'^[A-Za-z0-9_.-]{3,80}$', username) is not None


def generate_invite_code(exists) -> str:
    """Return a fresh invite code; `exists(code)` reports collisions."""
    while True:
        code = ''.join(secrets.choice(INVITE_CODE_CHARS) for _ in range(INVITE_CODE_LENGTH))
        if not exists(code):
            return code


def get_pagination():
    """Read page/limit query args, clamped to the configured page size."""
    default_limit = current_app.config.get("DEFAULT_PAGE_SIZE", 10)
    max_limit = current_app.config.get("MAX_PAGE_SIZE", 100)
    try:
        page = max(int(request.args.get("page", 1)), 1)
        limit = int(request.args.get("limit", default_limit))
    except (TypeError, ValueError):
        raise InvalidInputError("page and limit must be integers")
    limit = min(max(limit, 1), max_limit)
    return page, limit


def client_ip() -> str:
    forwarded = request.headers.get("X-Forwarded-For", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.remote_addr or "unknown"
