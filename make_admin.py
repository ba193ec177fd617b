# make_admin.py
# Usage: ADMIN_USERNAME=root ADMIN_PASSWORD=... python make_admin.py
#
# Creates the admin root of the agent tree, or promotes an existing user to admin.
import os

from sqlalchemy.exc import IntegrityError

from app import create_app
from extensions import db
from models import User, UserRole
from utils import generate_invite_code, validate_username

USERNAME = os.getenv("ADMIN_USERNAME", "admin")
PASSWORD = os.getenv("ADMIN_PASSWORD")


def invite_code_taken(code):
    return db.session.query(User.id).filter_by(invite_code=code).first() is not None


def make_admin(username=USERNAME, password=PASSWORD):
    if not validate_username(username):
        raise ValueError(f"Invalid admin username: {username!r}")

    app = create_app()
    with app.app_context():
        user = User.query.filter_by(username=username).first()

        if user:
            print(f"Found user id={user.id}, username={user.username}. Promoting to admin...")
            user.role = UserRole.ADMIN.value
            user.parent_id = None
            user.agent_level = 1
        else:
            if not password or not 8 <= len(password) <= 16:
                raise ValueError("ADMIN_PASSWORD must be 8-16 characters to create a new admin")
            print(f"No user {username!r} found, creating the admin root.")
            user = User(
                username=username,
                nickname=username,
                role=UserRole.ADMIN.value,
                agent_level=1,
                invite_code=generate_invite_code(invite_code_taken),
            )
            user.set_password(password)
            db.session.add(user)

        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise

        app.logger.info(f"User {user.id} ({user.username}) is now admin")
        print(f"User (id={user.id}, username={user.username}) is now admin.")


if __name__ == "__main__":
    make_admin()
