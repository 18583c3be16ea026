"""Tests for export.py — sheet lookup, next-row computation, section writes."""

from unittest.mock import MagicMock, patch

import gspread
import pytest

from config import COMMITS, GOOGLE_SCOPES, PULL_REQUESTS, WORK_ITEMS, Section
from exceptions import ConfigError, PartialSectionError, SectionNotFound
from export import (
    get_section_sheet,
    get_sheets_client,
    header_requests,
    next_free_row,
    write_section,
)
from tests.fakes import FakeSpreadsheet, FakeWorksheet


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _api_error(status: int = 500, message: str = "backend error") -> gspread.exceptions.APIError:
    response = MagicMock()
    response.json.return_value = {
        "error": {"code": status, "message": message, "status": "INTERNAL"}
    }
    response.status_code = status
    return gspread.exceptions.APIError(response)


def _rows(count: int, width: int = 5) -> list[list]:
    return [[f"r{n}c{c}" for c in range(width)] for n in range(count)]


# ---------------------------------------------------------------------------
# get_sheets_client
# ---------------------------------------------------------------------------

class TestGetSheetsClient:
    """Tests for service-account authentication."""

    @patch("export.gspread.service_account")
    def test_uses_spreadsheets_scope_only(self, mock_sa: MagicMock, tmp_path) -> None:
        key = tmp_path / "credentials.json"
        key.write_text("{}")

        client = get_sheets_client(key)

        mock_sa.assert_called_once_with(filename=str(key), scopes=GOOGLE_SCOPES)
        assert client is mock_sa.return_value

    @patch("export.gspread.service_account")
    def test_missing_key_file_is_config_error(self, mock_sa: MagicMock, tmp_path) -> None:
        with pytest.raises(ConfigError, match="Service account key not found"):
            get_sheets_client(tmp_path / "missing.json")
        mock_sa.assert_not_called()


# ---------------------------------------------------------------------------
# get_section_sheet
# ---------------------------------------------------------------------------

class TestGetSectionSheet:
    """Tests for exact-title worksheet lookup."""

    def test_exact_match(self, spreadsheet: FakeSpreadsheet) -> None:
        assert get_section_sheet(spreadsheet, "PullRequests").id == 1

    def test_match_is_case_sensitive(self, spreadsheet: FakeSpreadsheet) -> None:
        with pytest.raises(SectionNotFound) as excinfo:
            get_section_sheet(spreadsheet, "commits")
        assert excinfo.value.section == "commits"
        assert excinfo.value.available == ["Commits", "PullRequests", "WorkItems"]

    def test_sheet_id_zero_is_found(self) -> None:
        spreadsheet = FakeSpreadsheet(["Commits"])

        assert get_section_sheet(spreadsheet, "Commits").id == 0

    def test_missing_sheet_is_not_created(self) -> None:
        spreadsheet = FakeSpreadsheet(["Commits"])

        with pytest.raises(SectionNotFound, match="Sheet 'WorkItems' not found"):
            get_section_sheet(spreadsheet, "WorkItems")
        assert [ws.title for ws in spreadsheet.worksheets()] == ["Commits"]


# ---------------------------------------------------------------------------
# next_free_row
# ---------------------------------------------------------------------------

class TestNextFreeRow:
    """Tests for next-row computation from column A."""

    def test_empty_sheet_starts_at_row_one(self) -> None:
        assert next_free_row(FakeWorksheet("Commits", 0)) == 1

    def test_row_after_last_value(self) -> None:
        worksheet = FakeWorksheet("Commits", 0, [["h"], ["a"], ["b"]])

        assert next_free_row(worksheet) == 4

    def test_gaps_in_column_a_are_ignored(self) -> None:
        worksheet = FakeWorksheet("Commits", 0, [["h"], [""], ["b"]])

        assert next_free_row(worksheet) == 4

    def test_other_columns_do_not_count(self) -> None:
        worksheet = FakeWorksheet("Commits", 0, [["h"], ["", "x"], ["", "y"]])

        assert next_free_row(worksheet) == 2

    def test_trailing_blank_strings_are_trimmed(self) -> None:
        worksheet = MagicMock()
        worksheet.col_values.return_value = ["h", "a", "", ""]

        assert next_free_row(worksheet) == 3
        worksheet.col_values.assert_called_once_with(1)


# ---------------------------------------------------------------------------
# header_requests
# ---------------------------------------------------------------------------

class TestHeaderRequests:
    """Tests for the merge + style request bodies."""

    def test_merge_spans_width_on_header_row(self) -> None:
        merge, _update = header_requests(7, 12, 8, "Work Items Data for 2026-10-19")

        assert merge == {
            "mergeCells": {
                "range": {
                    "sheetId": 7,
                    "startRowIndex": 11,
                    "endRowIndex": 12,
                    "startColumnIndex": 0,
                    "endColumnIndex": 8,
                },
                "mergeType": "MERGE_ALL",
            }
        }

    def test_update_sets_bold_centered_label(self) -> None:
        _merge, update = header_requests(0, 1, 5, "Commits Data for 2026-10-19")

        body = update["updateCells"]
        cell = body["rows"][0]["values"][0]
        assert body["range"]["startRowIndex"] == 0
        assert body["range"]["endRowIndex"] == 1
        assert cell["userEnteredValue"] == {"stringValue": "Commits Data for 2026-10-19"}
        assert cell["userEnteredFormat"] == {
            "horizontalAlignment": "CENTER",
            "textFormat": {"bold": True},
        }
        assert body["fields"] == "userEnteredValue,userEnteredFormat"


# ---------------------------------------------------------------------------
# write_section
# ---------------------------------------------------------------------------

class TestWriteSection:
    """Tests for the header-plus-rows section write."""

    def test_first_write_on_empty_sheet(self, spreadsheet: FakeSpreadsheet) -> None:
        rows = _rows(2)

        header_row = write_section(spreadsheet, COMMITS, "Commits Data for 2026-10-19", rows)

        worksheet = spreadsheet.sheet("Commits")
        assert header_row == 1
        assert worksheet.rows == [["Commits Data for 2026-10-19"], *rows]
        assert worksheet.merges[0]["startRowIndex"] == 0
        assert worksheet.merges[0]["endColumnIndex"] == 5

    def test_single_append_with_insert_rows(self, spreadsheet: FakeSpreadsheet) -> None:
        write_section(spreadsheet, COMMITS, "label", _rows(1))

        call = spreadsheet.sheet("Commits").append_calls[0]
        assert call["value_input_option"] == "USER_ENTERED"
        assert call["insert_data_option"] == "INSERT_ROWS"
        assert call["table_range"] == "A1"
        assert call["values"][0] == ["label"]

    def test_appends_below_previous_runs_without_touching_them(
        self, spreadsheet: FakeSpreadsheet
    ) -> None:
        worksheet = spreadsheet.sheet("PullRequests")
        before = [["Pull Requests Data for 2026-10-18"], [1, "t", "u", "d", "7"]]
        worksheet.rows = [list(row) for row in before]

        header_row = write_section(
            spreadsheet, PULL_REQUESTS, "Pull Requests Data for 2026-10-19", _rows(3)
        )

        assert header_row == 3
        assert worksheet.rows[:2] == before
        assert worksheet.rows[2] == ["Pull Requests Data for 2026-10-19"]
        assert len(worksheet.rows) == 6
        assert worksheet.formats[3]["textFormat"] == {"bold": True}

    def test_row_with_missing_id_is_not_overwritten(
        self, spreadsheet: FakeSpreadsheet, caplog
    ) -> None:
        worksheet = spreadsheet.sheet("Commits")
        before = [["Commits Data for 2026-10-18"], [None, "Ada", "msg", "d", "u"]]
        worksheet.rows = [list(row) for row in before]

        with caplog.at_level("WARNING", logger="export"):
            header_row = write_section(
                spreadsheet, COMMITS, "Commits Data for 2026-10-19", _rows(1)
            )

        assert next_free_row(FakeWorksheet("Commits", 0, before)) == 2
        assert header_row == 3
        assert worksheet.rows[:2] == before
        assert worksheet.rows[2] == ["Commits Data for 2026-10-19"]
        assert worksheet.merges[0]["startRowIndex"] == 2
        assert "landed on row 3" in caplog.text

    def test_merge_width_follows_section_not_rows(self, spreadsheet: FakeSpreadsheet) -> None:
        write_section(spreadsheet, WORK_ITEMS, "Work Items Data for 2026-10-19", _rows(1, width=3))

        assert spreadsheet.sheet("WorkItems").merges[0]["endColumnIndex"] == 8

    def test_zero_rows_still_writes_header(self, spreadsheet: FakeSpreadsheet) -> None:
        header_row = write_section(spreadsheet, COMMITS, "Commits Data for 2026-10-19", [])

        worksheet = spreadsheet.sheet("Commits")
        assert header_row == 1
        assert worksheet.rows == [["Commits Data for 2026-10-19"]]
        assert len(worksheet.merges) == 1

    def test_header_follows_backend_position_when_sheet_moved(
        self, spreadsheet: FakeSpreadsheet
    ) -> None:
        worksheet = spreadsheet.sheet("Commits")
        worksheet.rows = [["old header"], ["old row"]]
        real_append = worksheet.append_rows

        def racing_append(*args, **kwargs):
            # Another run lands a block at the anchor first.
            worksheet.rows.extend([["other header"], ["other row"]])
            return real_append(*args, **kwargs)

        worksheet.append_rows = racing_append

        header_row = write_section(spreadsheet, COMMITS, "mine", _rows(1))

        assert header_row == 5
        assert worksheet.rows[2] == ["other header"]
        assert worksheet.rows[4] == ["mine"]
        assert worksheet.merges[0]["startRowIndex"] == 4

    def test_missing_sheet_writes_nothing(self) -> None:
        spreadsheet = FakeSpreadsheet(["Commits"])

        with pytest.raises(SectionNotFound):
            write_section(spreadsheet, PULL_REQUESTS, "label", _rows(1))
        assert spreadsheet.sheet("Commits").rows == []
        assert spreadsheet.batch_bodies == []

    def test_append_failure_propagates_unchanged(self, spreadsheet: FakeSpreadsheet) -> None:
        worksheet = spreadsheet.sheet("Commits")
        worksheet.append_rows = MagicMock(side_effect=_api_error())

        with pytest.raises(gspread.exceptions.APIError):
            write_section(spreadsheet, COMMITS, "label", _rows(1))
        assert spreadsheet.batch_bodies == []

    def test_header_failure_after_append_is_partial(self, spreadsheet: FakeSpreadsheet) -> None:
        spreadsheet.batch_error = _api_error(message="merge rejected")

        with pytest.raises(PartialSectionError) as excinfo:
            write_section(spreadsheet, COMMITS, "label", _rows(2))

        assert excinfo.value.section == "Commits"
        assert excinfo.value.header_row == 1
        assert excinfo.value.exit_code == 5
        # Rows stay committed; nothing is rolled back.
        assert len(spreadsheet.sheet("Commits").rows) == 3

    def test_updated_range_with_quoted_title(self) -> None:
        worksheet = MagicMock()
        worksheet.title = "Pull Requests"
        worksheet.id = 9
        worksheet.col_values.return_value = ["a", "b"]
        worksheet.append_rows.return_value = {
            "updates": {"updatedRange": "'Pull Requests'!A3:E4"}
        }
        spreadsheet = MagicMock()
        spreadsheet.worksheets.return_value = [worksheet]
        section = Section(
            name="Pull Requests", header_prefix="PR", columns=PULL_REQUESTS.columns
        )

        assert write_section(spreadsheet, section, "label", _rows(1)) == 3
        requests = spreadsheet.batch_update.call_args[0][0]["requests"]
        assert requests[0]["mergeCells"]["range"]["sheetId"] == 9
