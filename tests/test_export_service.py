"""
Exports: testers/bugs CSV and bugs XLSX.

Covers:
  - CSV header row and one row per record
  - quoting of commas, quotes and newlines
  - filters narrow the rows
  - XLSX has a Bugs sheet with a styled header and a Summary sheet
  - export endpoints return attachments with the right content type
"""

import csv
import io

from openpyxl import load_workbook

from testerhub.services import bug_service
from testerhub.services.export_service import (
    BUG_COLUMNS,
    TESTER_COLUMNS,
    bugs_csv,
    bugs_xlsx,
    testers_csv,
)


def _rows(text):
    return list(csv.reader(io.StringIO(text)))


class TestCsv:
    def test_testers_csv(self, make_tester):
        make_tester(name="Ann")
        make_tester(name="Ben")
        rows = _rows(testers_csv())
        assert rows[0] == TESTER_COLUMNS
        assert [r[1] for r in rows[1:]] == ["Ann", "Ben"]

    def test_testers_csv_filter(self, make_tester):
        make_tester(os="Android")
        make_tester(os="iOS")
        rows = _rows(testers_csv({"os": "iOS"}))
        assert len(rows) == 2

    def test_bugs_csv_quotes_special_characters(self, tester, make_bug):
        make_bug(
            tester.id,
            title='Crash, then "freeze"',
            description="line one\nline two",
        )
        text = bugs_csv()
        rows = _rows(text)
        assert rows[0] == BUG_COLUMNS
        assert rows[1][BUG_COLUMNS.index("title")] == 'Crash, then "freeze"'
        assert rows[1][BUG_COLUMNS.index("description")] == "line one\nline two"
        assert '"Crash, then ""freeze"""' in text

    def test_bugs_csv_filter_by_status(self, tester, make_bug):
        b = make_bug(tester.id)
        make_bug(tester.id)
        bug_service.update_status(b.id, "fixed", acting_admin_id=1)
        rows = _rows(bugs_csv({"status": "fixed"}))
        assert len(rows) == 2
        assert rows[1][BUG_COLUMNS.index("status")] == "fixed"
        assert rows[1][BUG_COLUMNS.index("fixed_at")] != ""


class TestXlsx:
    def test_workbook_structure(self, tester, make_bug):
        make_bug(tester.id, priority="critical")
        make_bug(tester.id, priority="low")

        wb = load_workbook(io.BytesIO(bugs_xlsx()))
        assert wb.sheetnames == ["Bugs", "Summary"]

        ws = wb["Bugs"]
        header = [c.value for c in ws[1]]
        assert header == BUG_COLUMNS
        assert ws["A1"].font.bold is True
        assert ws.max_row == 3

        summary = wb["Summary"]
        values = [row[0].value for row in summary.iter_rows()]
        assert "Critical" in values

    def test_empty_workbook_has_header(self):
        wb = load_workbook(io.BytesIO(bugs_xlsx()))
        assert wb["Bugs"].max_row == 1


class TestExportEndpoints:
    def test_bugs_xlsx_endpoint(self, client, tester, make_bug):
        make_bug(tester.id)
        res = client.get("/api/v1/export/bugs.xlsx")
        assert res.status_code == 200
        assert "spreadsheetml" in res.content_type
        assert res.headers["Content-Disposition"].startswith('attachment; filename="bugs_')

    def test_testers_csv_endpoint(self, client, tester):
        res = client.get("/api/v1/export/testers.csv")
        assert res.status_code == 200
        assert res.content_type.startswith("text/csv")
        rows = _rows(res.get_data(as_text=True))
        assert rows[1][TESTER_COLUMNS.index("email")] == tester.email
