"""
Tester registry endpoints.

Blueprint: testers_bp
Prefix: /api/v1/testers

Endpoints:
    POST   /testers                    -- Register a tester
    GET    /testers                    -- List (search, status, device_type, os, sort, order)
    GET    /testers/top                -- Rating leaderboard
    GET    /testers/statistics         -- Counts by status / device type
    GET    /testers/rating-statistics  -- Rated count, average/max rating, distribution
    GET    /testers/<id>               -- Single tester
    PATCH  /testers/<id>               -- Profile update
    PATCH  /testers/<id>/status        -- Status change (identity required)
    GET    /testers/<id>/bugs          -- Bugs reported by the tester
    GET    /testers/<id>/activity      -- Activity history (event_type, since, until, order, limit)
"""

import logging

from flask import Blueprint, jsonify, request

from testerhub.blueprints import datetime_arg, int_arg, json_body
from testerhub.core.exceptions import ValidationError
from testerhub.middleware.identity import require_identity
from testerhub.services import activity_service, bug_service, rating_service, tester_service
from testerhub.utils.helpers import pagination_args

logger = logging.getLogger(__name__)

testers_bp = Blueprint("testers", __name__, url_prefix="/api/v1/testers")


@testers_bp.route("", methods=["POST"])
def register_tester():
    tester = tester_service.register_tester(json_body())
    return jsonify({"tester": tester.to_dict()}), 201


@testers_bp.route("", methods=["GET"])
def list_testers():
    limit, offset = pagination_args()
    testers, total = tester_service.list_testers(
        search=request.args.get("search") or None,
        status=request.args.get("status") or None,
        device_type=request.args.get("device_type") or None,
        os=request.args.get("os") or None,
        sort=request.args.get("sort", "registration_date"),
        order=request.args.get("order", "desc"),
        limit=limit,
        offset=offset,
    )
    return jsonify({
        "testers": [t.to_dict() for t in testers],
        "total": total,
        "limit": limit,
        "offset": offset,
    }), 200


@testers_bp.route("/top", methods=["GET"])
def top_testers():
    testers = rating_service.top_testers(int_arg("limit"))
    return jsonify({"testers": [t.to_dict() for t in testers]}), 200


@testers_bp.route("/statistics", methods=["GET"])
def tester_statistics():
    return jsonify(tester_service.tester_statistics()), 200


@testers_bp.route("/rating-statistics", methods=["GET"])
def rating_statistics():
    return jsonify(rating_service.rating_statistics()), 200


@testers_bp.route("/<int:tester_id>", methods=["GET"])
def get_tester(tester_id):
    tester = tester_service.get_tester(tester_id)
    data = tester.to_dict()
    data["rating_breakdown"] = rating_service.calculate_rating(tester_id)["by_priority"]
    return jsonify({"tester": data}), 200


@testers_bp.route("/<int:tester_id>", methods=["PATCH"])
def update_tester(tester_id):
    tester = tester_service.update_tester(tester_id, json_body())
    return jsonify({"tester": tester.to_dict()}), 200


@testers_bp.route("/<int:tester_id>/status", methods=["PATCH"])
@require_identity
def update_tester_status(tester_id):
    status = json_body().get("status")
    if not status:
        raise ValidationError("status is required", details={"status": "required"})
    tester = tester_service.update_tester_status(tester_id, status)
    return jsonify({"tester": tester.to_dict()}), 200


@testers_bp.route("/<int:tester_id>/bugs", methods=["GET"])
def tester_bugs(tester_id):
    tester_service.get_tester(tester_id)
    limit, offset = pagination_args()
    bugs, total = bug_service.list_bugs(
        status=request.args.get("status") or None,
        tester_id=tester_id,
        limit=limit,
        offset=offset,
    )
    return jsonify({"bugs": [b.to_dict() for b in bugs], "total": total}), 200


@testers_bp.route("/<int:tester_id>/activity", methods=["GET"])
def tester_activity(tester_id):
    """Activity history of one tester.

    Query params:
        event_type: registration | status_changed | bug_found | bug_fixed | comment_added
        since / until: ISO 8601 bounds, inclusive
        order: asc (default, oldest first) | desc
        limit: max events
    """
    order = (request.args.get("order") or "asc").lower()
    if order not in ("asc", "desc"):
        raise ValidationError("order must be 'asc' or 'desc'", details={"order": "invalid"})

    events = activity_service.query_activity(
        tester_id,
        event_type=request.args.get("event_type") or None,
        since=datetime_arg("since"),
        until=datetime_arg("until"),
        newest_first=order == "desc",
        limit=int_arg("limit"),
    )
    return jsonify({
        "tester_id": tester_id,
        "events": [e.to_dict() for e in events],
        "total": len(events),
    }), 200
