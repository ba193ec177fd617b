"""Pytest configuration and shared fixtures for all tests."""

import os
import sys
import tempfile
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from types import SimpleNamespace

# Config and logger read the environment at import time
os.environ.setdefault("SECRET_KEY", "test_secret_key_for_testing_only")
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["FLASK_ENV"] = "testing"
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="agent-ledger-logs-"))

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import pytest
from werkzeug.security import generate_password_hash

from app import create_app
from config import Config
from extensions import db
from models import Bet, BetStatus, User, UserRole

PASSWORD = "secret-pass1"
# Hashing is slow; every seeded user shares one hash.
PASSWORD_HASH = generate_password_hash(PASSWORD)

BET_DAY = datetime(2026, 1, 15, 14, 0, 0)
REPORT_ARGS = {"startDate": "2026-01-15T00:00:00", "endDate": "2026-01-16T00:00:00"}


class TestConfig(Config):
    __test__ = False
    TESTING = True
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    SESSION_COOKIE_SECURE = False


def make_user(username, role, parent=None, level=1, balance="0", share="0", rebate="0"):
    user = User(
        username=username,
        nickname=username.title(),
        password_hash=PASSWORD_HASH,
        role=role.value,
        parent_id=parent.id if parent else None,
        agent_level=level,
        balance=Decimal(balance),
        share_percent=Decimal(share),
        rebate_percent=Decimal(rebate),
        invite_code=f"INV{username.upper()}"[:20],
    )
    db.session.add(user)
    db.session.flush()
    return user


def add_bet(user_id, amount, status, payout=None, created_at=BET_DAY):
    bet = Bet(
        user_id=user_id,
        amount=Decimal(str(amount)),
        status=status.value,
        payout=Decimal(str(payout)) if payout is not None else None,
        created_at=created_at,
    )
    db.session.add(bet)
    return bet


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def tree(app):
    """
    admin (10000)
    ├── agent_a (1000, share 10, rebate 5)
    │   ├── agent_b (500, share 20, rebate 2)
    │   │   └── member_b1 (100)
    │   └── member_a1 (50)
    └── agent_c (300)
        └── member_c1 (0)
    """
    with app.app_context():
        admin = make_user("admin", UserRole.ADMIN, balance="10000")
        agent_a = make_user("agent_a", UserRole.AGENT, admin, level=2, balance="1000", share="10", rebate="5")
        agent_b = make_user("agent_b", UserRole.AGENT, agent_a, level=3, balance="500", share="20", rebate="2")
        member_b1 = make_user("member_b1", UserRole.MEMBER, agent_b, level=5, balance="100")
        member_a1 = make_user("member_a1", UserRole.MEMBER, agent_a, level=5, balance="50")
        agent_c = make_user("agent_c", UserRole.AGENT, admin, level=2, balance="300")
        member_c1 = make_user("member_c1", UserRole.MEMBER, agent_c, level=5)
        db.session.commit()

        return SimpleNamespace(
            admin=admin.id,
            agent_a=agent_a.id,
            agent_b=agent_b.id,
            member_b1=member_b1.id,
            member_a1=member_a1.id,
            agent_c=agent_c.id,
            member_c1=member_c1.id,
        )


@pytest.fixture
def bets(app, tree):
    """
    In range for agent_a: member_a1 wins 200 and loses 400, member_b1 loses 500
    and has one pending bet. Out of range or outside agent_a: ignored.
    """
    with app.app_context():
        add_bet(tree.member_a1, 600, BetStatus.WON, payout=800)
        add_bet(tree.member_a1, 400, BetStatus.LOST)
        add_bet(tree.member_b1, 500, BetStatus.LOST)
        add_bet(tree.member_b1, 100, BetStatus.PENDING)
        add_bet(tree.member_a1, 999, BetStatus.LOST, created_at=datetime(2026, 1, 10, 14, 0, 0))
        add_bet(tree.member_c1, 250, BetStatus.LOST)
        db.session.commit()
    return tree


@pytest.fixture
def session(app, tree):
    """App context for service-level tests; yields the scoped session."""
    with app.app_context():
        yield db.session


def login_as(client, user_id):
    with client.session_transaction() as sess:
        sess["_user_id"] = str(user_id)
        sess["_fresh"] = True
    return client
