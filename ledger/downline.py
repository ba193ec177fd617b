from enum import Enum
from typing import Dict, Iterable, List, Optional, Set, Tuple
import logging

from extensions import db
from models import User, UserRole, MAX_AGENT_LEVEL

logger = logging.getLogger(__name__)

# SQLite caps bound parameters at 999; keep IN lists well under that.
IN_CLAUSE_CHUNK = 500


class DownlineMode(Enum):
    ALL_MEMBERS = "allMembers"
    DIRECT_MEMBERS = "directMembers"
    DIRECT_SUB_AGENTS = "directSubAgents"


def chunked(ids: List[int], size: int = IN_CLAUSE_CHUNK):
    for start in range(0, len(ids), size):
        yield ids[start:start + size]


class DownlineAggregator:
    """
    Walks the agent tree stored as `users.parent_id`.
    Descent is batched per tree level (`parent_id IN (...)`), so the number of
    round trips follows tree depth, not the number of nodes.
    """

    def __init__(self, session=None):
        self.session = session or db.session

    # -------------------------
    # Downward traversal
    # -------------------------
    def collect_descendants(self, node_id: int, mode: DownlineMode) -> Set[int]:
        if mode == DownlineMode.DIRECT_MEMBERS:
            return self._direct_children(node_id, UserRole.MEMBER)
        if mode == DownlineMode.DIRECT_SUB_AGENTS:
            return self._direct_children(node_id, UserRole.AGENT)
        if mode == DownlineMode.ALL_MEMBERS:
            return self._all_members(node_id)
        raise ValueError(f"Unknown downline mode: {mode}")

    def all_members(self, node_id: int) -> Set[int]:
        return self.collect_descendants(node_id, DownlineMode.ALL_MEMBERS)

    def direct_members(self, node_id: int) -> Set[int]:
        return self.collect_descendants(node_id, DownlineMode.DIRECT_MEMBERS)

    def direct_sub_agents(self, node_id: int) -> Set[int]:
        return self.collect_descendants(node_id, DownlineMode.DIRECT_SUB_AGENTS)

    def _direct_children(self, node_id: int, role: UserRole) -> Set[int]:
        rows = self.session.query(User.id).filter(
            User.parent_id == node_id,
            User.role == role.value,
        ).all()
        return {row.id for row in rows}

    def _children_of(self, parent_ids: List[int]) -> List:
        rows = []
        for chunk in chunked(parent_ids):
            rows.extend(
                self.session.query(User.id, User.parent_id, User.role)
                .filter(User.parent_id.in_(chunk))
                .order_by(User.id)
                .all()
            )
        return rows

    def _all_members(self, node_id: int) -> Set[int]:
        direct, branches = self.members_by_branch(node_id)
        return direct.union(*branches.values())

    def members_by_branch(self, node_id: int) -> Tuple[Set[int], Dict[int, Set[int]]]:
        """
        One level-batched walk below `node_id`.
        Returns its direct members and, per direct sub-agent, every member
        anywhere under that sub-agent.
        """
        direct: Set[int] = set()
        branches: Dict[int, Set[int]] = {}
        # node -> direct sub-agent it hangs under; None for the walk root
        branch_of: Dict[int, Optional[int]] = {node_id: None}
        # The schema forbids cycles; the guard keeps corrupted data from looping forever.
        visited: Set[int] = {node_id}
        frontier = [node_id]

        while frontier:
            next_frontier = []
            for row in self._children_of(frontier):
                if row.id in visited:
                    logger.warning(f"Cycle in agent tree: node {row.id} reached twice under {node_id}")
                    continue
                visited.add(row.id)
                branch = branch_of[row.parent_id]
                if row.role == UserRole.AGENT.value:
                    if branch is None:
                        branch = row.id
                        branches[branch] = set()
                    branch_of[row.id] = branch
                    next_frontier.append(row.id)
                elif row.role == UserRole.MEMBER.value:
                    if branch is None:
                        direct.add(row.id)
                    else:
                        branches[branch].add(row.id)
            frontier = next_frontier

        return direct, branches

    # -------------------------
    # Upward traversal
    # -------------------------
    def upline(self, node_id: int, stop_at: Optional[int] = None) -> List[User]:
        """
        Parent chain starting at `node_id` itself, ending at the root or at
        `stop_at` (inclusive). Ordered target -> root.
        """
        chain: List[User] = []
        seen: Set[int] = set()
        current = self.session.get(User, node_id)

        while current is not None and current.id not in seen:
            chain.append(current)
            seen.add(current.id)
            if current.id == stop_at or current.parent_id is None:
                break
            # Depth is capped, anything longer is corrupted data.
            if len(chain) > MAX_AGENT_LEVEL + 1:
                logger.warning(f"Upline of node {node_id} exceeds max depth, stopping walk")
                break
            current = self.session.get(User, current.parent_id)

        return chain

    def is_in_subtree(self, ancestor_id: int, node_id: int) -> bool:
        """True when `node_id` is `ancestor_id` or any node below it."""
        return any(node.id == ancestor_id for node in self.upline(node_id, stop_at=ancestor_id))

    # -------------------------
    # Counts for list views
    # -------------------------
    def downline_summary(self, node_id: int) -> Dict[str, int]:
        return self.downline_summaries([node_id])[node_id]

    def downline_summaries(self, node_ids: Iterable[int]) -> Dict[int, Dict[str, int]]:
        """
        Direct agent count, direct member count and the members one level
        further down (members of direct sub-agents) for each node.
        """
        node_ids = list(node_ids)
        summaries = {
            node_id: {"agentCount": 0, "directMemberCount": 0, "totalMemberCount": 0}
            for node_id in node_ids
        }
        if not node_ids:
            return summaries

        sub_agent_owner = {}
        for chunk in chunked(node_ids):
            rows = self.session.query(User.id, User.parent_id, User.role).filter(
                User.parent_id.in_(chunk)
            ).all()
            for row in rows:
                summary = summaries[row.parent_id]
                if row.role == UserRole.AGENT.value:
                    summary["agentCount"] += 1
                    sub_agent_owner[row.id] = row.parent_id
                elif row.role == UserRole.MEMBER.value:
                    summary["directMemberCount"] += 1
                    summary["totalMemberCount"] += 1

        sub_agent_ids = list(sub_agent_owner)
        for chunk in chunked(sub_agent_ids):
            rows = self.session.query(User.parent_id, db.func.count(User.id)).filter(
                User.parent_id.in_(chunk),
                User.role == UserRole.MEMBER.value,
            ).group_by(User.parent_id).all()
            for parent_id, count in rows:
                summaries[sub_agent_owner[parent_id]]["totalMemberCount"] += count

        return summaries
