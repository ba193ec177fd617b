# ledger/reports.py
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional
import logging

from sqlalchemy import or_

from extensions import db
from models import User, UserRole
from ledger.bet_stats import BetStats, BetStatsAggregator, resolve_date_range, sum_stats
from ledger.commission import CommissionBreakdown, commission
from ledger.downline import DownlineAggregator
from ledger.exceptions import ForbiddenError, NotFoundError
from ledger.permissions import PermissionGuard
from utils import like_pattern

logger = logging.getLogger(__name__)

# Sentinel agentLevel values for the two summary rows of an agent report.
DIRECT_MEMBERS_LEVEL = -1
SUB_AGENTS_LEVEL = -2


@dataclass(frozen=True)
class ReportLine:
    stats: BetStats
    commission: CommissionBreakdown
    share_percent: float
    rebate_percent: float

    def to_dict(self):
        data = {"sharePercent": self.share_percent, "rebatePercent": self.rebate_percent}
        data.update(self.stats.to_dict())
        data.update(self.commission.to_dict())
        return data


def build_line(stats: BetStats, node: User) -> ReportLine:
    """Apply the node's own share / rebate to an aggregated set of bets."""
    return ReportLine(
        stats=stats,
        commission=commission(stats.win_loss, stats.valid_bet, node.share_percent, node.rebate_percent),
        share_percent=float(node.share_percent or 0),
        rebate_percent=float(node.rebate_percent or 0),
    )


def date_range_dict(start: datetime, end: datetime):
    return {"startDate": start.isoformat(), "endDate": end.isoformat()}


class ReportComposer:
    """
    Read-only commission reports over a node's downline.

    Report sets for a target node:
      total        - every member anywhere below the target
      direct       - the target's own members           (agentLevel -1)
      sub-agents   - every member below each sub-agent  (agentLevel -2)
    All three use the target's own percentages.
    """

    def __init__(self, session=None, downline: Optional[DownlineAggregator] = None,
                 bets: Optional[BetStatsAggregator] = None, guard: Optional[PermissionGuard] = None):
        self.session = session or db.session
        self.downline = downline or DownlineAggregator(self.session)
        self.bets = bets or BetStatsAggregator(self.session)
        self.guard = guard or PermissionGuard(self.downline)

    # ==========================================================
    #                  TARGET + BREADCRUMB
    # ==========================================================
    def resolve_target(self, requester: User, view_agent_id: Optional[int] = None) -> User:
        if not (requester.is_admin or requester.is_agent):
            raise ForbiddenError()
        if view_agent_id is None or view_agent_id == requester.id:
            return requester
        target = self.session.get(User, view_agent_id)
        if target is None:
            raise NotFoundError("Agent not found")
        if target.is_member:
            raise ForbiddenError("Reports are only available for agents")
        return self.guard.ensure_view(requester, target)

    def breadcrumb(self, requester: User, target: User) -> List[Dict]:
        """Root -> target path, starting at the requester."""
        chain = self.downline.upline(target.id, stop_at=requester.id)
        return [node.to_crumb() for node in reversed(chain)]

    # ==========================================================
    #                  REPORT SETS
    # ==========================================================
    def _member_stats(self, member_ids: Iterable[int], start: datetime, end: datetime) -> Dict[int, BetStats]:
        return self.bets.stats_for_users(member_ids, start, end)

    def total_report(self, node: User, start: datetime, end: datetime) -> ReportLine:
        member_ids = self.downline.all_members(node.id)
        return build_line(sum_stats(self._member_stats(member_ids, start, end).values()), node)

    def direct_members_report(self, node: User, start: datetime, end: datetime) -> ReportLine:
        member_ids = self.downline.direct_members(node.id)
        return build_line(sum_stats(self._member_stats(member_ids, start, end).values()), node)

    def sub_agents_report(self, node: User, start: datetime, end: datetime) -> ReportLine:
        _, branches = self.downline.members_by_branch(node.id)
        member_ids = set().union(*branches.values())
        return build_line(sum_stats(self._member_stats(member_ids, start, end).values()), node)

    # ==========================================================
    #                  RESPONSES
    # ==========================================================
    @staticmethod
    def _node_header(node: User) -> Dict:
        return {
            "id": node.id,
            "username": node.username,
            "nickname": node.nickname,
            "agentLevel": node.agent_level,
        }

    def _search_children(self, parent_id: int, role: UserRole, search: Optional[str]) -> List[User]:
        query = self.session.query(User).filter(User.parent_id == parent_id, User.role == role.value)
        if search:
            pattern = like_pattern(search)
            query = query.filter(or_(
                User.username.ilike(pattern, escape="\\"),
                User.nickname.ilike(pattern, escape="\\"),
            ))
        return query.order_by(User.created_at.asc(), User.id.asc()).all()

    def agent_report(self, requester: User, start: datetime, end: datetime,
                     view_agent_id: Optional[int] = None, search: Optional[str] = None) -> Dict:
        target = self.resolve_target(requester, view_agent_id)

        # One walk and one stats query for the whole subtree; the three sets are sums over it.
        direct_members, members_by_agent = self.downline.members_by_branch(target.id)
        sub_agent_members = set().union(*members_by_agent.values())
        stats = self._member_stats(direct_members | sub_agent_members, start, end)

        def line_for(member_ids, node):
            return build_line(sum_stats(stats.get(i, BetStats()) for i in member_ids), node)

        current = self._node_header(target)
        current.update(line_for(stats.keys(), target).to_dict())

        direct = {"agentLevel": DIRECT_MEMBERS_LEVEL}
        direct.update(line_for(direct_members, target).to_dict())

        sub_agents = {"agentLevel": SUB_AGENTS_LEVEL}
        sub_agents.update(line_for(sub_agent_members, target).to_dict())

        agent_rows = []
        for agent in self._search_children(target.id, UserRole.AGENT, search):
            row = self._node_header(agent)
            row.update(line_for(members_by_agent.get(agent.id, set()), agent).to_dict())
            agent_rows.append(row)

        return {
            "currentUser": current,
            "directMembers": direct,
            "subAgents": sub_agents,
            "agents": agent_rows,
            "breadcrumb": self.breadcrumb(requester, target),
            "dateRange": date_range_dict(start, end),
        }

    def member_report(self, requester: User, start: datetime, end: datetime,
                      view_agent_id: Optional[int] = None, search: Optional[str] = None) -> Dict:
        target = self.resolve_target(requester, view_agent_id)

        current = self._node_header(target)
        current.update(self.total_report(target, start, end).to_dict())

        members = self._search_children(target.id, UserRole.MEMBER, search)
        stats = self._member_stats([m.id for m in members], start, end)
        member_rows = []
        for member in members:
            row = {"id": member.id, "username": member.username, "nickname": member.nickname}
            row.update(stats.get(member.id, BetStats()).to_dict())
            member_rows.append(row)

        return {
            "currentUser": current,
            "members": member_rows,
            "breadcrumb": self.breadcrumb(requester, target),
            "dateRange": date_range_dict(start, end),
        }

    def dashboard(self, requester: User, now: Optional[datetime] = None) -> Dict:
        """Requester summary plus today's commission snapshot."""
        if not (requester.is_admin or requester.is_agent):
            raise ForbiddenError()
        start, end = resolve_date_range("today", now)
        report = self.total_report(requester, start, end)
        parent = requester.parent

        user = requester.to_dict()
        user["parentAgent"] = {
            "username": parent.username,
            "nickname": parent.nickname,
            "sharePercent": float(parent.share_percent or 0),
        } if parent else None
        user.update(self.downline.downline_summary(requester.id))

        return {
            "user": user,
            "today": {
                "earnedRebate": float(report.commission.personal_rebate),
                "receivable": float(report.commission.receivable),
                "payable": float(report.commission.payable),
                "memberWinLoss": float(report.stats.win_loss),
                "validBet": float(report.stats.valid_bet),
                "betCount": report.stats.bet_count,
                "profit": float(report.commission.profit),
            },
            "dateRange": date_range_dict(start, end),
        }
