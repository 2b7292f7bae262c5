"""
Activity feed endpoints (read-only; events are written by the services).

Blueprint: activity_bp
Prefix: /api/v1/activity

Endpoints:
    GET /activity                -- Feed across testers (tester_id, event_type, since, until)
    GET /activity/statistics     -- Totals, per-type counts, last 24h
    GET /activity/<id>           -- Single event
"""

import logging

from flask import Blueprint, jsonify, request

from testerhub.blueprints import datetime_arg, int_arg
from testerhub.services import activity_service
from testerhub.utils.helpers import pagination_args

logger = logging.getLogger(__name__)

activity_bp = Blueprint("activity", __name__, url_prefix="/api/v1/activity")


@activity_bp.route("", methods=["GET"])
def list_activity():
    limit, offset = pagination_args()
    events, total = activity_service.list_activity(
        tester_id=int_arg("tester_id"),
        event_type=request.args.get("event_type") or None,
        since=datetime_arg("since"),
        until=datetime_arg("until"),
        limit=limit,
        offset=offset,
    )
    return jsonify({"events": events, "total": total, "limit": limit, "offset": offset}), 200


@activity_bp.route("/statistics", methods=["GET"])
def activity_statistics():
    return jsonify(activity_service.activity_statistics()), 200


@activity_bp.route("/<int:event_id>", methods=["GET"])
def get_event(event_id):
    event = activity_service.get_event(event_id)
    return jsonify({"event": event.to_dict()}), 200
