#======================================================================================
#
# AGENT REPORT API - commission reports over the requester's downline
#
#=======================================================================================
from flask import Blueprint, jsonify, request
from flask_login import current_user

from ledger.bet_stats import date_range_from_args
from ledger.exceptions import InvalidInputError
from ledger.permissions import agent_required
from ledger.reports import ReportComposer

bp = Blueprint("reports", __name__, url_prefix="/api/agent-report")


def _view_agent_id():
    raw = request.args.get("viewAgentId")
    if raw in (None, ""):
        return None
    try:
        return int(raw)
    except ValueError:
        raise InvalidInputError("viewAgentId must be an integer")


@bp.route("/agent", methods=["GET"])
@agent_required
def agent_report():
    """Game agent report: totals, direct members, sub-agents and one row per sub-agent."""
    start, end = date_range_from_args(request.args)
    report = ReportComposer().agent_report(
        current_user, start, end,
        view_agent_id=_view_agent_id(),
        search=request.args.get("search") or request.args.get("agentId"),
    )
    return jsonify(report), 200


@bp.route("/member", methods=["GET"])
@agent_required
def member_report():
    """Game member report: totals plus one row per direct member."""
    start, end = date_range_from_args(request.args)
    report = ReportComposer().member_report(
        current_user, start, end,
        view_agent_id=_view_agent_id(),
        search=request.args.get("search") or request.args.get("memberId"),
    )
    return jsonify(report), 200


@bp.route("/dashboard", methods=["GET"])
@agent_required
def dashboard():
    return jsonify(ReportComposer().dashboard(current_user)), 200
