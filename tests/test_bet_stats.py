"""Integration tests for bet aggregation."""

from datetime import datetime
from decimal import Decimal

from conftest import BET_DAY, add_bet

from extensions import db
from ledger.bet_stats import BetStats, BetStatsAggregator
from models import BetStatus

START = datetime(2026, 1, 15)
END = datetime(2026, 1, 16)


class TestBetStats:

    def test_per_member_stats(self, session, bets):
        stats = BetStatsAggregator(session).stats_for_users([bets.member_a1, bets.member_b1], START, END)

        assert stats[bets.member_a1] == BetStats(2, Decimal("1000.00"), Decimal("1000.00"), Decimal("-200.00"))
        assert stats[bets.member_b1] == BetStats(2, Decimal("600.00"), Decimal("600.00"), Decimal("-500.00"))

    def test_members_without_bets_get_zero_stats(self, session, bets):
        stats = BetStatsAggregator(session).stats_for_users([bets.agent_c], START, END)

        assert stats == {bets.agent_c: BetStats()}

    def test_range_is_half_open(self, session, bets):
        add_bet(bets.member_c1, 10, BetStatus.LOST, created_at=END)
        add_bet(bets.member_c1, 20, BetStatus.LOST, created_at=START)
        db.session.commit()

        stats = BetStatsAggregator(session).stats_for(bets.member_c1, START, END)

        assert stats.bet_count == 2
        assert stats.win_loss == Decimal("-270.00")

    def test_won_without_payout_counts_as_zero(self, session, tree):
        add_bet(tree.member_c1, 40, BetStatus.WON, payout=None, created_at=BET_DAY)
        db.session.commit()

        stats = BetStatsAggregator(session).stats_for(tree.member_c1, START, END)

        assert stats.bet_count == 1
        assert stats.bet_amount == Decimal("40.00")
        assert stats.win_loss == Decimal("0.00")

    def test_total_over_users(self, session, bets):
        total = BetStatsAggregator(session).total_for_users([bets.member_a1, bets.member_b1], START, END)

        assert total.bet_count == 4
        assert total.valid_bet == Decimal("1600.00")
        assert total.win_loss == Decimal("-700.00")

    def test_empty_user_list(self, session, tree):
        assert BetStatsAggregator(session).total_for_users([], START, END) == BetStats()
