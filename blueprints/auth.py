from datetime import datetime
import logging

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required, login_user, logout_user

from extensions import db
from models import User
from ledger.exceptions import AuthenticationError, ForbiddenError, InvalidInputError
from utils import client_ip

logger = logging.getLogger(__name__)
#==================================================================================================================

bp = Blueprint("auth", __name__, url_prefix="/api/auth")


#===========================================================================
#      LOGIN ROUTE.
#==============================================================================
@bp.route("/login", methods=["POST"])
def login():
    data = request.get_json(silent=True)
    if not data:
        raise InvalidInputError("Invalid or missing JSON body")

    username = (data.get("username") or "").strip()
    password = data.get("password") or ""
    if not username or not password:
        raise InvalidInputError("Username and password are required")

    user = User.query.filter_by(username=username).first()
    if not user or not user.check_password(password):
        logger.warning(f"Failed login for {username!r} from {client_ip()}")
        raise AuthenticationError("Invalid username or password")

    if user.is_locked or not user.is_active:
        raise ForbiddenError("Account is disabled")

    login_user(user)
    user.last_login_at = datetime.now()
    user.last_login_ip = client_ip()
    db.session.commit()

    logger.info(f"User {user.id} logged in")
    return jsonify(user.to_dict()), 200


@bp.route("/logout", methods=["POST"])
@login_required
def logout():
    logout_user()
    return jsonify({"success": True}), 200


@bp.route("/me", methods=["GET"])
@login_required
def me():
    return jsonify(current_user.to_dict()), 200
