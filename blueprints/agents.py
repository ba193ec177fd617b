#======================================================================================
#
# AGENT MANAGEMENT API - downline lists, node creation, direct-parent edits, balance
#
#=======================================================================================
import math

from flask import Blueprint, jsonify, request
from flask_login import current_user

from models import User, UserRole, Transaction, OperationLog
from ledger.commands import (
    BalanceCommand,
    CreateNodeCommand,
    ProfileUpdate,
    ShareSettingsUpdate,
    StatusUpdate,
)
from ledger.downline import DownlineAggregator
from ledger.nodes import NodeService
from ledger.permissions import PermissionGuard, agent_required
from ledger.reports import ReportComposer
from ledger.share_settings import ShareSettingsService
from ledger.transfer import TransferService
from utils import client_ip, get_pagination

bp = Blueprint("agents", __name__, url_prefix="/api/agent-management")


def paginated(query, page, limit, serialize):
    total = query.order_by(None).count()
    items = query.offset((page - 1) * limit).limit(limit).all()
    return {
        "items": [serialize(item) for item in items],
        "total": total,
        "page": page,
        "limit": limit,
        "totalPages": math.ceil(total / limit) if total else 0,
    }


# ----------------------------------------------------------------------------------
# DASHBOARD
# ----------------------------------------------------------------------------------
@bp.route("/dashboard", methods=["GET"])
@agent_required
def dashboard():
    return jsonify(ReportComposer().dashboard(current_user)), 200


# ----------------------------------------------------------------------------------
# DOWNLINE LISTS
# ----------------------------------------------------------------------------------
@bp.route("/agents", methods=["GET"])
@agent_required
def list_agents():
    page, limit = get_pagination()
    query = NodeService().children_query(
        current_user.id, UserRole.AGENT,
        search=request.args.get("search"), status=request.args.get("status"),
    ).order_by(User.created_at.desc(), User.id.desc())

    result = paginated(query, page, limit, lambda agent: agent.to_dict())
    summaries = DownlineAggregator().downline_summaries(item["id"] for item in result["items"])
    for item in result["items"]:
        item.update(summaries[item["id"]])

    result["agents"] = result.pop("items")
    return jsonify(result), 200


@bp.route("/members", methods=["GET"])
@agent_required
def list_members():
    page, limit = get_pagination()
    query = NodeService().children_query(
        current_user.id, UserRole.MEMBER,
        search=request.args.get("search"), status=request.args.get("status"),
    ).order_by(User.created_at.desc(), User.id.desc())

    result = paginated(query, page, limit, lambda member: member.to_dict())
    result["members"] = result.pop("items")
    return jsonify(result), 200


# ----------------------------------------------------------------------------------
# NODE CREATION
# ----------------------------------------------------------------------------------
@bp.route("/agents", methods=["POST"])
@agent_required
def create_agent():
    command = CreateNodeCommand.from_payload(request.get_json(silent=True), UserRole.AGENT)
    agent = NodeService().create_node(current_user.id, command, ip_address=client_ip())
    return jsonify({
        "id": agent.id,
        "username": agent.username,
        "nickname": agent.nickname,
        "agentLevel": agent.agent_level,
        "inviteCode": agent.invite_code,
        "balance": float(agent.balance),
    }), 201


@bp.route("/members", methods=["POST"])
@agent_required
def create_member():
    command = CreateNodeCommand.from_payload(request.get_json(silent=True), UserRole.MEMBER)
    member = NodeService().create_node(current_user.id, command, ip_address=client_ip())
    return jsonify({
        "id": member.id,
        "username": member.username,
        "nickname": member.nickname,
        "agentLevel": member.agent_level,
        "balance": float(member.balance),
    }), 201


# ----------------------------------------------------------------------------------
# DIRECT-PARENT EDITS
# ----------------------------------------------------------------------------------
@bp.route("/agents/<int:user_id>", methods=["PUT"])
@agent_required
def update_agent(user_id):
    command = ProfileUpdate.from_payload(request.get_json(silent=True))
    updated = NodeService().update_profile(current_user, user_id, command, ip_address=client_ip())
    return jsonify({"id": updated.id, "username": updated.username, "nickname": updated.nickname}), 200


@bp.route("/users/<int:user_id>/status", methods=["PUT"])
@agent_required
def update_status(user_id):
    command = StatusUpdate.from_payload(request.get_json(silent=True))
    updated = NodeService().update_status(current_user, user_id, command, ip_address=client_ip())
    return jsonify({
        "id": updated.id,
        "isLocked": updated.is_locked,
        "isFullDisabled": updated.is_full_disabled,
        "isReadonly": updated.is_readonly,
        "status": updated.status,
    }), 200


# ----------------------------------------------------------------------------------
# SHARE / REBATE SETTINGS
# ----------------------------------------------------------------------------------
@bp.route("/users/<int:user_id>/share-settings", methods=["GET"])
@agent_required
def get_share_settings(user_id):
    target, settings = ShareSettingsService().get_settings(current_user, user_id)
    return jsonify({
        "sharePercent": float(target.share_percent),
        "rebatePercent": float(target.rebate_percent),
        "settings": [setting.to_dict() for setting in settings],
    }), 200


@bp.route("/users/<int:user_id>/share-settings", methods=["PUT"])
@agent_required
def update_share_settings(user_id):
    command = ShareSettingsUpdate.from_payload(request.get_json(silent=True))
    changes = ShareSettingsService().update(current_user, user_id, command, ip_address=client_ip())
    return jsonify({"success": True, "changesRecorded": changes}), 200


@bp.route("/users/<int:user_id>/share-history", methods=["GET"])
@agent_required
def get_share_history(user_id):
    page, limit = get_pagination()
    query = ShareSettingsService().history_query(current_user, user_id)
    result = paginated(query, page, limit, lambda row: row.to_dict())
    result["history"] = result.pop("items")
    return jsonify(result), 200


# ----------------------------------------------------------------------------------
# BALANCE
# ----------------------------------------------------------------------------------
@bp.route("/users/<int:user_id>/balance", methods=["POST"])
@agent_required
def adjust_balance(user_id):
    command = BalanceCommand.from_payload(request.get_json(silent=True))
    result = TransferService().transfer(
        current_user.id, user_id, command.direction, command.amount,
        note=command.note, ip_address=client_ip(),
    )
    return jsonify(result.to_dict()), 200


@bp.route("/users/<int:user_id>/withdraw-all", methods=["POST"])
@agent_required
def withdraw_all(user_id):
    result = TransferService().withdraw_all(current_user.id, user_id, ip_address=client_ip())
    payload = result.to_dict()
    payload["amountWithdrawn"] = payload["amount"]
    return jsonify(payload), 200


@bp.route("/users/<int:user_id>/transactions", methods=["GET"])
@agent_required
def list_transactions(user_id):
    page, limit = get_pagination()
    target = PermissionGuard().ensure_view(current_user, NodeService().get(user_id))
    query = Transaction.query.filter_by(user_id=target.id).order_by(
        Transaction.created_at.desc(), Transaction.id.desc()
    )
    result = paginated(query, page, limit, lambda entry: entry.to_dict())
    result["transactions"] = result.pop("items")
    return jsonify(result), 200


# ----------------------------------------------------------------------------------
# OPERATION LOG
# ----------------------------------------------------------------------------------
@bp.route("/operation-logs", methods=["GET"])
@agent_required
def list_operation_logs():
    page, limit = get_pagination()
    query = OperationLog.query.filter_by(operator_id=current_user.id)
    action = request.args.get("action")
    if action:
        query = query.filter_by(action=action)
    query = query.order_by(OperationLog.created_at.desc(), OperationLog.id.desc())
    result = paginated(query, page, limit, lambda log: log.to_dict())
    result["logs"] = result.pop("items")
    return jsonify(result), 200
