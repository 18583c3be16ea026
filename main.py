"""Entry point and pipeline orchestration for the activity sheet report.

Executes the full run sequence:
1. Startup — load and validate configuration, compute the report window.
2. Fetch — commits, pull requests, then work items (all data in memory).
3. Project — map every record to its section's fixed-width row.
4. Export — one dated header plus the rows per section, in section order.

A failure at any step aborts the remaining steps. Sections already written
stay as they are. The process exit status identifies the failure class
(see ``exceptions.py``).
"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Callable, Optional

import gspread

from config import (
    COMMITS,
    PULL_REQUESTS,
    SECTIONS,
    WORK_ITEMS,
    Section,
    Settings,
    load_settings,
)
from exceptions import ReportError, SheetsError
from export import get_sheets_client, write_section
from fetch import AzureDevOpsSource, ReportWindow
from projection import project_records

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def fetch_activity(
    source: AzureDevOpsSource,
    window: ReportWindow,
) -> dict[str, list[dict[str, Any]]]:
    """Fetch every section's records for *window*, keyed by section name."""
    fetchers: list[tuple[Section, Callable[[], list[dict[str, Any]]]]] = [
        (COMMITS, lambda: source.fetch_commits(window)),
        (PULL_REQUESTS, lambda: source.fetch_pull_requests(window)),
        (WORK_ITEMS, source.fetch_work_items),
    ]
    records: dict[str, list[dict[str, Any]]] = {}
    for section, fetcher in fetchers:
        logger.info("Fetching %s...", section.name)
        records[section.name] = fetcher()
        logger.info("Retrieved %s: %d", section.name, len(records[section.name]))
    return records


def write_report(
    spreadsheet: gspread.Spreadsheet,
    records: dict[str, list[dict[str, Any]]],
    window: ReportWindow,
) -> dict[str, int]:
    """Project and write every section in order.

    Returns:
        Header row index per section name.

    Raises:
        SectionNotFound: If a section's worksheet is missing.
        PartialSectionError: If a section's header could not be styled.
        SheetsError: If any other Google Sheets call failed.
    """
    header_rows: dict[str, int] = {}
    for section in SECTIONS:
        rows = project_records(section, records.get(section.name, []))
        logger.info("Adding %s to Google Sheet...", section.name)
        try:
            header_rows[section.name] = write_section(
                spreadsheet,
                section,
                section.header_label(window.run_date),
                rows,
            )
        except gspread.exceptions.APIError as error:
            raise SheetsError(section.name, str(error)) from error
    return header_rows


def run(settings: Settings, now: Optional[datetime] = None) -> dict[str, int]:
    """Run one report pass: fetch, project, write.

    Args:
        settings: Validated configuration.
        now: Run start time. Defaults to the current UTC time.

    Returns:
        Header row index per section name.
    """
    window = ReportWindow.ending_at(
        now or datetime.now(timezone.utc), settings.lookback_days
    )
    logger.info(
        "Report window: since %s (run date %s)",
        window.since.isoformat(),
        window.run_date,
    )

    # A missing key file is a configuration error: fail before any request.
    client = get_sheets_client(settings.credentials_path)

    source = AzureDevOpsSource(settings)
    records = fetch_activity(source, window)

    try:
        spreadsheet = client.open_by_key(settings.sheet_id)
    except (
        gspread.exceptions.APIError,
        gspread.exceptions.SpreadsheetNotFound,
        PermissionError,
    ) as error:
        raise SheetsError("open", str(error)) from error
    header_rows = write_report(spreadsheet, records, window)
    logger.info("Google Sheet updated successfully with merged date rows!")
    return header_rows


def main() -> None:
    """Run the report and exit with a status identifying the outcome.

    Raises:
        SystemExit: With ``0`` on success, the failing ``ReportError``'s
            ``exit_code`` on a known failure, or ``1`` on anything else.
    """
    try:
        settings = load_settings()
    except ReportError as error:
        logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
        logger.error("%s", error)
        sys.exit(error.exit_code)

    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)
    try:
        run(settings)
    except ReportError as error:
        logger.exception("Report failed: %s", error)
        sys.exit(error.exit_code)
    except Exception:
        logger.exception("Report failed with an unexpected error")
        sys.exit(1)


if __name__ == "__main__":
    main()
