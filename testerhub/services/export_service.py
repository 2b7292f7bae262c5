import csv
import io
import logging
from datetime import datetime, timezone

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from testerhub.models.bug import (
    BUG_PRIORITY_LABELS,
    BUG_STATUS_LABELS,
    BUG_TYPE_LABELS,
    Bug,
)
from testerhub.models.tester import Tester

logger = logging.getLogger(__name__)

HEADER_FILL = PatternFill(start_color="354A5F", end_color="354A5F", fill_type="solid")
HEADER_FONT = Font(color="FFFFFF", bold=True, size=11)
THIN_BORDER = Border(
    left=Side(style="thin"),
    right=Side(style="thin"),
    top=Side(style="thin"),
    bottom=Side(style="thin"),
)
PRIORITY_FILLS = {
    "critical": PatternFill(start_color="E74C3C", end_color="E74C3C", fill_type="solid"),
    "high": PatternFill(start_color="F39C12", end_color="F39C12", fill_type="solid"),
}

TESTER_COLUMNS = [
    "id", "name", "email", "nickname", "telegram", "device_type", "os",
    "os_version", "status", "rating", "bugs_count", "registration_date",
    "last_activity_date",
]

BUG_COLUMNS = [
    "id", "title", "tester_id", "tester_name", "status", "priority", "type",
    "comment_count", "created_at", "updated_at", "fixed_at", "description",
]

# Hard cap on any single column width in the workbook
_MAX_COLUMN_WIDTH = 60


def _fmt_dt(value):
    return value.strftime("%Y-%m-%d %H:%M:%S") if value else ""


def _filtered_testers(filters: dict | None):
    filters = filters or {}
    q = Tester.query
    if filters.get("status"):
        q = q.filter(Tester.status == filters["status"])
    if filters.get("device_type"):
        q = q.filter(Tester.device_type == filters["device_type"])
    if filters.get("os"):
        q = q.filter(Tester.os == filters["os"])
    return q.order_by(Tester.id).all()


def _filtered_bugs(filters: dict | None):
    filters = filters or {}
    q = Bug.query
    if filters.get("status"):
        q = q.filter(Bug.status == filters["status"])
    if filters.get("priority"):
        q = q.filter(Bug.priority == filters["priority"])
    if filters.get("type"):
        q = q.filter(Bug.type == filters["type"])
    if filters.get("tester_id") is not None:
        q = q.filter(Bug.tester_id == filters["tester_id"])
    return q.order_by(Bug.created_at.desc(), Bug.id.desc()).all()


def _tester_row(t: Tester) -> list:
    return [
        t.id, t.name, t.email, t.nickname or "", t.telegram or "",
        t.device_type, t.os, t.os_version or "", t.status, t.rating,
        t.bugs_count, _fmt_dt(t.registration_date), _fmt_dt(t.last_activity_date),
    ]


def _bug_row(b: Bug) -> list:
    return [
        b.id,
        b.title,
        b.tester_id,
        b.tester.name if b.tester else "",
        b.status,
        b.priority,
        b.type,
        b.comments.count(),
        _fmt_dt(b.created_at),
        _fmt_dt(b.updated_at),
        _fmt_dt(b.fixed_at),
        b.description or "",
    ]


# ── CSV ──────────────────────────────────────────────────────────────────────

def testers_csv(filters: dict | None = None) -> str:
    """Testers as CSV text, one row per tester ordered by id.

    Args:
        filters: Optional status / device_type / os exact-match filters.
    """
    testers = _filtered_testers(filters)
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(TESTER_COLUMNS)
    for t in testers:
        writer.writerow(_tester_row(t))
    logger.info("Testers CSV exported rows=%s", len(testers))
    return buf.getvalue()


def bugs_csv(filters: dict | None = None) -> str:
    """Bugs as CSV text, newest first. Multi-line descriptions stay quoted."""
    bugs = _filtered_bugs(filters)
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(BUG_COLUMNS)
    for b in bugs:
        writer.writerow(_bug_row(b))
    logger.info("Bugs CSV exported rows=%s", len(bugs))
    return buf.getvalue()


# ── Excel ────────────────────────────────────────────────────────────────────

def bugs_xlsx(filters: dict | None = None) -> bytes:
    """
    Generate a styled Excel workbook of bugs.
    Sheet 1 lists bugs; sheet 2 summarises them by status and priority.
    Returns the workbook bytes ready for a Flask Response.
    """
    bugs = _filtered_bugs(filters)
    wb = Workbook()

    # ── Sheet 1: Bugs ─────────────────────────────────────────────────
    ws = wb.active
    ws.title = "Bugs"
    for col, header in enumerate(BUG_COLUMNS, 1):
        cell = ws.cell(row=1, column=col, value=header)
        cell.fill = HEADER_FILL
        cell.font = HEADER_FONT
        cell.border = THIN_BORDER
        cell.alignment = Alignment(horizontal="center")
    ws.freeze_panes = "A2"

    priority_col = BUG_COLUMNS.index("priority") + 1
    for row, bug in enumerate(bugs, 2):
        for col, value in enumerate(_bug_row(bug), 1):
            ws.cell(row=row, column=col, value=value).border = THIN_BORDER
        fill = PRIORITY_FILLS.get(bug.priority)
        if fill is not None:
            cell = ws.cell(row=row, column=priority_col)
            cell.fill = fill
            cell.font = Font(color="FFFFFF", bold=True)

    _autosize_columns(ws)

    # ── Sheet 2: Summary ──────────────────────────────────────────────
    ws2 = wb.create_sheet("Summary")
    ws2["A1"] = "Bug report"
    ws2["A1"].font = Font(size=14, bold=True)
    ws2["A2"] = f"Generated: {datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M UTC')}"
    ws2["A2"].font = Font(size=10, italic=True, color="666666")

    row = 4
    for title, attr, labels in (
        ("Status", "status", BUG_STATUS_LABELS),
        ("Priority", "priority", BUG_PRIORITY_LABELS),
        ("Type", "type", BUG_TYPE_LABELS),
    ):
        for col, header in enumerate((title, "Count"), 1):
            cell = ws2.cell(row=row, column=col, value=header)
            cell.fill = HEADER_FILL
            cell.font = HEADER_FONT
            cell.border = THIN_BORDER
        for key, label in labels.items():
            row += 1
            ws2.cell(row=row, column=1, value=label).border = THIN_BORDER
            count = sum(1 for b in bugs if getattr(b, attr) == key)
            ws2.cell(row=row, column=2, value=count).border = THIN_BORDER
        row += 2

    _autosize_columns(ws2)

    buf = io.BytesIO()
    wb.save(buf)
    buf.seek(0)
    logger.info("Bugs XLSX exported rows=%s", len(bugs))
    return buf.getvalue()


def _autosize_columns(ws) -> None:
    widths: dict[int, int] = {}
    for row in ws.iter_rows():
        for cell in row:
            if cell.value is None:
                continue
            length = max(len(line) for line in str(cell.value).splitlines() or [""])
            widths[cell.column] = max(widths.get(cell.column, 0), length)
    for col, width in widths.items():
        ws.column_dimensions[get_column_letter(col)].width = min(width + 2, _MAX_COLUMN_WIDTH)
