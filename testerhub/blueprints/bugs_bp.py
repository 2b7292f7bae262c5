"""
Bug and comment endpoints.

Blueprint: bugs_bp
Prefix: /api/v1/bugs

Endpoints:
  Bugs:
    POST       /bugs                          -- Report a bug
    GET        /bugs                          -- List (status, priority, type, tester_id, search)
    GET        /bugs/statistics               -- Counts by status / priority / type
    GET/PUT/DELETE /bugs/<id>                 -- Single bug CRUD
    PATCH      /bugs/<id>/status              -- Status change (identity required)
    PATCH      /bugs/<id>/priority            -- Priority change (identity required)

  Comments:
    GET/POST   /bugs/<id>/comments            -- List / add (add needs identity)
    PUT/DELETE /bugs/<id>/comments/<cid>      -- Edit / delete (author only)
    GET        /bugs/<id>/comments/<cid>/can-edit
"""

import logging

from flask import Blueprint, g, jsonify, request

from testerhub.blueprints import int_arg, json_body
from testerhub.core.exceptions import ValidationError
from testerhub.middleware.identity import current_identity, require_identity
from testerhub.services import bug_service, comment_service
from testerhub.utils.helpers import pagination_args

logger = logging.getLogger(__name__)

bugs_bp = Blueprint("bugs", __name__, url_prefix="/api/v1/bugs")


# ═════════════════════════════════════════════════════════════════════════
# Bugs
# ═════════════════════════════════════════════════════════════════════════

@bugs_bp.route("", methods=["POST"])
def create_bug():
    bug = bug_service.create_bug(json_body())
    return jsonify({"bug": bug.to_dict()}), 201


@bugs_bp.route("", methods=["GET"])
def list_bugs():
    limit, offset = pagination_args()
    bugs, total = bug_service.list_bugs(
        status=request.args.get("status") or None,
        priority=request.args.get("priority") or None,
        bug_type=request.args.get("type") or None,
        tester_id=int_arg("tester_id"),
        search=request.args.get("search") or None,
        limit=limit,
        offset=offset,
    )
    return jsonify({
        "bugs": [b.to_dict() for b in bugs],
        "total": total,
        "limit": limit,
        "offset": offset,
    }), 200


@bugs_bp.route("/statistics", methods=["GET"])
def bug_statistics():
    return jsonify(bug_service.bug_statistics()), 200


@bugs_bp.route("/<int:bug_id>", methods=["GET"])
def get_bug(bug_id):
    bug = bug_service.get_bug(bug_id)
    return jsonify({"bug": bug.to_dict(include_comments=True)}), 200


@bugs_bp.route("/<int:bug_id>", methods=["PUT"])
def update_bug(bug_id):
    bug = bug_service.update_bug(bug_id, json_body())
    return jsonify({"bug": bug.to_dict()}), 200


@bugs_bp.route("/<int:bug_id>", methods=["DELETE"])
def delete_bug(bug_id):
    bug_service.delete_bug(bug_id)
    return jsonify({"deleted": True}), 200


@bugs_bp.route("/<int:bug_id>/status", methods=["PATCH"])
@require_identity
def update_bug_status(bug_id):
    status = json_body().get("status")
    if not status:
        raise ValidationError("status is required", details={"status": "required"})
    bug = bug_service.update_status(bug_id, status, acting_admin_id=g.user_id)
    return jsonify({"bug": bug.to_dict()}), 200


@bugs_bp.route("/<int:bug_id>/priority", methods=["PATCH"])
@require_identity
def update_bug_priority(bug_id):
    bug = bug_service.update_priority(bug_id, json_body().get("priority"))
    return jsonify({"bug": bug.to_dict()}), 200


# ═════════════════════════════════════════════════════════════════════════
# Comments
# ═════════════════════════════════════════════════════════════════════════

@bugs_bp.route("/<int:bug_id>/comments", methods=["GET"])
def list_comments(bug_id):
    comments = comment_service.list_comments(bug_id)
    return jsonify({
        "comments": [c.to_dict() for c in comments],
        "total": len(comments),
    }), 200


@bugs_bp.route("/<int:bug_id>/comments", methods=["POST"])
@require_identity
def add_comment(bug_id):
    data = json_body()
    user_id, user_name = current_identity()
    comment = comment_service.add_comment(
        bug_id,
        author_id=user_id,
        author_name=data.get("author_name") or user_name,
        content=data.get("content"),
    )
    return jsonify({"comment": comment.to_dict()}), 201


@bugs_bp.route("/<int:bug_id>/comments/<int:comment_id>", methods=["PUT"])
@require_identity
def edit_comment(bug_id, comment_id):
    comment = comment_service.edit_comment(
        bug_id, comment_id, g.user_id, json_body().get("content"),
    )
    return jsonify({"comment": comment.to_dict()}), 200


@bugs_bp.route("/<int:bug_id>/comments/<int:comment_id>", methods=["DELETE"])
@require_identity
def delete_comment(bug_id, comment_id):
    comment_service.delete_comment(bug_id, comment_id, g.user_id)
    return jsonify({"deleted": True}), 200


@bugs_bp.route("/<int:bug_id>/comments/<int:comment_id>/can-edit", methods=["GET"])
def can_edit_comment(bug_id, comment_id):
    """Whether the caller could edit the comment right now, and for how long."""
    comment = comment_service.get_comment(bug_id, comment_id)
    user_id, _ = current_identity()
    remaining = comment_service.edit_window_remaining(comment)
    return jsonify({
        "comment_id": comment.id,
        "can_edit": user_id is not None and comment_service.can_edit(comment, author_id=user_id),
        "seconds_remaining": int(remaining.total_seconds()),
    }), 200
