"""Integration tests for node creation and direct-parent edits."""

from decimal import Decimal

import pytest

from ledger.commands import CreateNodeCommand, ProfileUpdate, StatusUpdate
from ledger.exceptions import ForbiddenError, InsufficientFundsError, InvalidInputError
from ledger.nodes import NodeService
from models import AgentShareSetting, OperationLog, Transaction, User, UserRole


def agent_command(**overrides):
    payload = {"username": "fresh_agent", "password": "password123", "sharePercent": 8, "rebatePercent": 1}
    payload.update(overrides)
    return CreateNodeCommand.from_payload(payload, UserRole.AGENT)


class TestCreateNode:

    def test_agent_is_one_level_below_creator(self, session, tree):
        node = NodeService(session).create_node(tree.agent_a, agent_command())

        assert node.parent_id == tree.agent_a
        assert node.agent_level == 3
        assert node.share_percent == Decimal("8.00")
        assert node.check_password("password123")
        assert len(node.invite_code) == 6

    def test_member_sits_at_leaf_level(self, session, tree):
        command = CreateNodeCommand.from_payload({"username": "fresh_member", "password": "password123"}, UserRole.MEMBER)

        node = NodeService(session).create_node(tree.admin, command)

        assert node.role == UserRole.MEMBER.value
        assert node.agent_level == 5

    def test_level_is_capped(self, session, tree):
        deep = session.get(User, tree.agent_b)
        deep.agent_level = 5
        session.commit()

        node = NodeService(session).create_node(tree.agent_b, agent_command())

        assert node.agent_level == 5

    def test_initial_balance_comes_from_creator(self, session, tree):
        node = NodeService(session).create_node(tree.agent_a, agent_command(initialBalance="200"))

        assert node.balance == Decimal("200.00")
        assert session.get(User, tree.agent_a).balance == Decimal("800.00")
        entries = session.query(Transaction).filter_by(user_id=node.id).all()
        assert [entry.note for entry in entries] == ["Initial balance"]

    def test_initial_balance_above_creator_balance_rolls_back(self, session, tree):
        with pytest.raises(InsufficientFundsError):
            NodeService(session).create_node(tree.agent_c, agent_command(initialBalance="300.01"))

        assert session.query(User).filter_by(username="fresh_agent").count() == 0

    def test_share_settings_and_log_are_written(self, session, tree):
        command = agent_command(shareSettings=[
            {"gameCategory": "slots", "platform": "pg", "sharePercent": 30, "rebatePercent": 1.5},
        ])

        node = NodeService(session).create_node(tree.agent_a, command)

        setting = session.query(AgentShareSetting).filter_by(agent_id=node.id).one()
        assert setting.rebate_percent == Decimal("1.50")
        log = session.query(OperationLog).one()
        assert log.action == "create_agent"
        assert log.details["username"] == "fresh_agent"

    def test_duplicate_username(self, session, tree):
        with pytest.raises(InvalidInputError):
            NodeService(session).create_node(tree.agent_a, agent_command(username="agent_b"))

    def test_members_cannot_create(self, session, tree):
        with pytest.raises(ForbiddenError):
            NodeService(session).create_node(tree.member_a1, agent_command())


class TestDirectParentEdits:

    def test_parent_updates_profile(self, session, tree):
        requester = session.get(User, tree.agent_a)

        updated = NodeService(session).update_profile(
            requester, tree.agent_b, ProfileUpdate(nickname="Bee", password="newpass123"),
        )

        assert updated.nickname == "Bee"
        assert updated.check_password("newpass123")
        assert session.query(OperationLog).one().action == "update_agent"

    def test_parent_updates_status(self, session, tree):
        requester = session.get(User, tree.agent_b)

        updated = NodeService(session).update_status(requester, tree.member_b1, StatusUpdate(is_locked=True))

        assert updated.is_locked is True
        assert updated.is_full_disabled is False
        assert session.query(OperationLog).one().details == {"is_locked": True}

    def test_grandparent_cannot_edit(self, session, tree):
        requester = session.get(User, tree.agent_a)

        with pytest.raises(ForbiddenError):
            NodeService(session).update_status(requester, tree.member_b1, StatusUpdate(is_locked=True))

        assert session.get(User, tree.member_b1).is_locked is False

    def test_full_disable_deactivates_login(self, session, tree):
        requester = session.get(User, tree.admin)

        updated = NodeService(session).update_status(requester, tree.agent_c, StatusUpdate(is_full_disabled=True))

        assert updated.is_active is False


class TestChildSearch:

    def test_wildcards_in_search_match_literally(self, session, tree):
        nodes = NodeService(session)

        assert nodes.children_query(tree.admin, UserRole.AGENT, search="%").all() == []
        assert nodes.children_query(tree.admin, UserRole.AGENT, search="agent_").count() == 2
        assert nodes.children_query(tree.admin, UserRole.AGENT, search="agent_c").one().id == tree.agent_c

    def test_guard_walks_the_service_session(self, session, tree):
        assert NodeService(session).guard.downline.session is session
