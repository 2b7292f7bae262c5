"""
Report export endpoints.

    GET /api/v1/export/testers.csv   status, device_type, os filters
    GET /api/v1/export/bugs.csv      status, priority, type, tester_id filters
    GET /api/v1/export/bugs.xlsx     same filters as bugs.csv

Content is built in memory; no temp files.  PDF is not offered.
"""

import logging
from datetime import datetime, timezone

from flask import Blueprint, Response, request

from testerhub.blueprints import int_arg
from testerhub.services.export_service import bugs_csv, bugs_xlsx, testers_csv

logger = logging.getLogger(__name__)

export_bp = Blueprint("export", __name__, url_prefix="/api/v1/export")

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _bug_filters() -> dict:
    return {
        "status": request.args.get("status") or None,
        "priority": request.args.get("priority") or None,
        "type": request.args.get("type") or None,
        "tester_id": int_arg("tester_id"),
    }


def _attachment(body, mimetype: str, stem: str, ext: str) -> Response:
    date_str = datetime.now(timezone.utc).strftime("%Y%m%d")
    return Response(
        body,
        mimetype=mimetype,
        headers={"Content-Disposition": f'attachment; filename="{stem}_{date_str}.{ext}"'},
    )


@export_bp.route("/testers.csv", methods=["GET"])
def export_testers_csv():
    content = testers_csv({
        "status": request.args.get("status") or None,
        "device_type": request.args.get("device_type") or None,
        "os": request.args.get("os") or None,
    })
    return _attachment(content, "text/csv; charset=utf-8", "testers", "csv")


@export_bp.route("/bugs.csv", methods=["GET"])
def export_bugs_csv():
    return _attachment(bugs_csv(_bug_filters()), "text/csv; charset=utf-8", "bugs", "csv")


@export_bp.route("/bugs.xlsx", methods=["GET"])
def export_bugs_xlsx():
    return _attachment(bugs_xlsx(_bug_filters()), XLSX_MIMETYPE, "bugs", "xlsx")
