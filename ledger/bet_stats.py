# ledger/bet_stats.py
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Dict, Iterable, Optional, Tuple
import logging

from sqlalchemy import and_, case, func

from extensions import db
from models import Bet, BetStatus
from ledger.downline import chunked
from ledger.exceptions import InvalidInputError
from utils import ZERO, quantize_money, parse_iso_datetime

logger = logging.getLogger(__name__)

QUICK_FILTERS = ("today", "yesterday", "thisWeek", "lastWeek", "thisMonth", "lastMonth")

# Day boundaries sit at noon local time, not midnight.
DAY_ANCHOR_HOUR = 12


@dataclass(frozen=True)
class BetStats:
    bet_count: int = 0
    bet_amount: Decimal = ZERO
    # Equal to bet_amount today; reports expose both names.
    valid_bet: Decimal = ZERO
    win_loss: Decimal = ZERO

    def __add__(self, other: "BetStats") -> "BetStats":
        return BetStats(
            bet_count=self.bet_count + other.bet_count,
            bet_amount=self.bet_amount + other.bet_amount,
            valid_bet=self.valid_bet + other.valid_bet,
            win_loss=self.win_loss + other.win_loss,
        )

    def to_dict(self):
        return {
            "betCount": self.bet_count,
            "betAmount": float(self.bet_amount),
            "validBet": float(self.valid_bet),
            "memberWinLoss": float(self.win_loss),
        }


def sum_stats(stats: Iterable[BetStats]) -> BetStats:
    total = BetStats()
    for item in stats:
        total = total + item
    return total


# ==========================================================
#                  DATE RANGES
# ==========================================================

def _anchor(moment: datetime) -> datetime:
    return moment.replace(hour=DAY_ANCHOR_HOUR, minute=0, second=0, microsecond=0)


def _first_of_month(year: int, month: int) -> datetime:
    while month < 1:
        month += 12
        year -= 1
    return datetime(year, month, 1, DAY_ANCHOR_HOUR, 0, 0)


def resolve_date_range(quick_filter: Optional[str], now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """
    Map a quick filter to a half-open [start, end) range of naive local times.
    Weeks start on Sunday. Unknown filters fall back to today.
    """
    now = now or datetime.now()
    today = _anchor(now)
    tomorrow = today + timedelta(days=1)
    # Python weekday(): Monday=0 ... Sunday=6
    days_since_sunday = (today.weekday() + 1) % 7

    if quick_filter == "yesterday":
        return today - timedelta(days=1), today
    if quick_filter == "thisWeek":
        return today - timedelta(days=days_since_sunday), tomorrow
    if quick_filter == "lastWeek":
        start = today - timedelta(days=days_since_sunday + 7)
        return start, start + timedelta(days=7)
    if quick_filter == "thisMonth":
        return _first_of_month(now.year, now.month), tomorrow
    if quick_filter == "lastMonth":
        return _first_of_month(now.year, now.month - 1), _first_of_month(now.year, now.month)
    return today, tomorrow


def date_range_from_args(args, now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """Explicit startDate/endDate win over quickFilter."""
    start_raw = args.get("startDate")
    end_raw = args.get("endDate")

    if start_raw and end_raw:
        start = parse_iso_datetime(start_raw, "startDate")
        end = parse_iso_datetime(end_raw, "endDate")
        if end <= start:
            raise InvalidInputError("endDate must be after startDate")
        return start, end
    if start_raw or end_raw:
        raise InvalidInputError("startDate and endDate must be given together")

    quick_filter = args.get("quickFilter", "today")
    if quick_filter not in QUICK_FILTERS:
        logger.info(f"Unknown quickFilter {quick_filter!r}, using today")
    return resolve_date_range(quick_filter, now)


# ==========================================================
#                  AGGREGATION
# ==========================================================

class BetStatsAggregator:
    """Turns Bet rows into count / amount / valid bet / member win-loss."""

    def __init__(self, session=None):
        self.session = session or db.session

    def stats_for(self, user_id: int, start: datetime, end: datetime) -> BetStats:
        return self.stats_for_users([user_id], start, end).get(user_id, BetStats())

    def stats_for_users(self, user_ids: Iterable[int], start: datetime, end: datetime) -> Dict[int, BetStats]:
        """One GROUP BY query per chunk of users instead of one query per user."""
        user_ids = sorted(set(user_ids))
        results: Dict[int, BetStats] = {user_id: BetStats() for user_id in user_ids}
        if not user_ids:
            return results

        win_loss_expr = case(
            (and_(Bet.status == BetStatus.WON.value, Bet.payout.isnot(None)), Bet.payout - Bet.amount),
            (Bet.status == BetStatus.LOST.value, -Bet.amount),
            else_=0,
        )

        for chunk in chunked(user_ids):
            rows = self.session.query(
                Bet.user_id,
                func.count(Bet.id).label("bet_count"),
                func.coalesce(func.sum(Bet.amount), 0).label("bet_amount"),
                func.coalesce(func.sum(win_loss_expr), 0).label("win_loss"),
            ).filter(
                Bet.user_id.in_(chunk),
                Bet.created_at >= start,
                Bet.created_at < end,
            ).group_by(Bet.user_id).all()

            for row in rows:
                bet_amount = quantize_money(str(row.bet_amount))
                results[row.user_id] = BetStats(
                    bet_count=int(row.bet_count),
                    bet_amount=bet_amount,
                    valid_bet=bet_amount,
                    win_loss=quantize_money(str(row.win_loss)),
                )

        return results

    def total_for_users(self, user_ids: Iterable[int], start: datetime, end: datetime) -> BetStats:
        return sum_stats(self.stats_for_users(user_ids, start, end).values())
