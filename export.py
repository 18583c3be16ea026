"""Google Sheets export logic via gspread.

Handles service-account authentication, worksheet lookup, next-row
computation, and the header-plus-rows append for one section. All writes use
``value_input_option="USER_ENTERED"`` so values are interpreted exactly as if
typed into the sheet, and ``insert_data_option="INSERT_ROWS"`` so existing
cells are never overwritten.

One section write is two requests: a single append carrying the header label
and every data row, then a batch update that merges and styles the header
cell. The append anchors at the first free row of column A and the backend
picks the final position atomically; the merge targets the row the backend
reports back.
"""

import logging
from pathlib import Path
from typing import Any

import gspread
from gspread.utils import a1_to_rowcol

from config import GOOGLE_SCOPES, INSERT_DATA_OPTION, VALUE_INPUT_OPTION, Section
from exceptions import ConfigError, PartialSectionError, SectionNotFound

logger = logging.getLogger(__name__)


def get_sheets_client(credentials_path: Path) -> gspread.Client:
    """Authenticate with Google Sheets using the service account key.

    The client is limited to ``config.GOOGLE_SCOPES`` (spreadsheets only).

    Args:
        credentials_path: Path to the service account JSON key file.

    Returns:
        An authorized ``gspread.Client``.

    Raises:
        ConfigError: If the service account key file does not exist.
        google.auth.exceptions.DefaultCredentialsError: If the key is invalid.
    """
    if not credentials_path.is_file():
        raise ConfigError(
            [], f"Service account key not found: {credentials_path}"
        )
    return gspread.service_account(
        filename=str(credentials_path),
        scopes=GOOGLE_SCOPES,
    )


def get_section_sheet(
    spreadsheet: gspread.Spreadsheet,
    section_name: str,
) -> gspread.Worksheet:
    """Look up a section's worksheet by exact title match.

    Args:
        spreadsheet: The gspread Spreadsheet object.
        section_name: The worksheet title (case-sensitive).

    Returns:
        The matching ``gspread.Worksheet``.

    Raises:
        SectionNotFound: If no worksheet titled *section_name* exists.
            Worksheets are never created implicitly.
    """
    worksheets = spreadsheet.worksheets()
    for worksheet in worksheets:
        if worksheet.title == section_name:
            return worksheet
    raise SectionNotFound(section_name, [ws.title for ws in worksheets])


def next_free_row(worksheet: gspread.Worksheet) -> int:
    """Return the 1-indexed row below the last non-empty cell of column A.

    Gaps inside column A and data in other columns are ignored; only the
    position of the last populated column-A cell matters.
    """
    values = worksheet.col_values(1)
    last = len(values)
    while last and values[last - 1] in ("", None):
        last -= 1
    return last + 1


def _first_updated_row(response: dict[str, Any]) -> int:
    """Parse the first row of ``updates.updatedRange`` from an append response."""
    updated_range = response["updates"]["updatedRange"]
    cells = updated_range.rsplit("!", 1)[-1]
    row, _col = a1_to_rowcol(cells.split(":", 1)[0])
    return row


def header_requests(
    sheet_id: int,
    header_row: int,
    width: int,
    label: str,
) -> list[dict[str, Any]]:
    """Build the merge + bold/centered value requests for one header row.

    Args:
        sheet_id: The worksheet's numeric ``sheetId``.
        header_row: 1-indexed row to merge.
        width: Number of columns to merge, starting at column A.
        label: Header text.
    """
    row_range = {
        "sheetId": sheet_id,
        "startRowIndex": header_row - 1,
        "endRowIndex": header_row,
        "startColumnIndex": 0,
    }
    return [
        {
            "mergeCells": {
                "range": {**row_range, "endColumnIndex": width},
                "mergeType": "MERGE_ALL",
            }
        },
        {
            "updateCells": {
                "range": row_range,
                "rows": [
                    {
                        "values": [
                            {
                                "userEnteredValue": {"stringValue": label},
                                "userEnteredFormat": {
                                    "horizontalAlignment": "CENTER",
                                    "textFormat": {"bold": True},
                                },
                            }
                        ]
                    }
                ],
                "fields": "userEnteredValue,userEnteredFormat",
            }
        },
    ]


def write_section(
    spreadsheet: gspread.Spreadsheet,
    section: Section,
    header_label: str,
    rows: list[list[Any]],
) -> int:
    """Append one dated header row plus *rows* to a section's worksheet.

    Args:
        spreadsheet: The gspread Spreadsheet object.
        section: The target section; its width sets the header merge span.
        header_label: Text for the merged header cell.
        rows: Projected rows, each aligned left-to-right from column A.
            May be empty, in which case only the header is written.

    Returns:
        The 1-indexed row the header was written to.

    Raises:
        SectionNotFound: If the section's worksheet does not exist.
        gspread.exceptions.APIError: If the column read or the append fails.
            Nothing has been written to this section in that case.
        PartialSectionError: If the append succeeded but merging/styling
            the header failed.
    """
    worksheet = get_section_sheet(spreadsheet, section.name)
    anchor_row = next_free_row(worksheet)

    response = worksheet.append_rows(
        [[header_label], *rows],
        value_input_option=VALUE_INPUT_OPTION,
        insert_data_option=INSERT_DATA_OPTION,
        table_range=f"A{anchor_row}",
    )
    header_row = _first_updated_row(response)
    if header_row != anchor_row:
        logger.warning(
            "%s: header expected at row %d but landed on row %d "
            "(sheet changed between read and append)",
            section.name,
            anchor_row,
            header_row,
        )

    try:
        spreadsheet.batch_update(
            {"requests": header_requests(worksheet.id, header_row, section.width, header_label)}
        )
    except gspread.exceptions.APIError as error:
        raise PartialSectionError(section.name, header_row, str(error)) from error

    logger.info(
        "%s: header at row %d, %d data row(s) appended",
        section.name,
        header_row,
        len(rows),
    )
    return header_row
