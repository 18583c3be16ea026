"""Custom exception classes for the activity sheet report.

Every exception defined here is fatal for the run. Each class carries an
``exit_code`` so ``main()`` can tell schedulers which failure class ended the
run without them having to parse log text.
"""


class ReportError(Exception):
    """Base class for all report failures with a distinct exit status."""

    exit_code: int = 1


class ConfigError(ReportError):
    """Raised when required environment configuration is absent or malformed.

    Raised by ``config.load_settings()``, or by
    ``export.get_sheets_client()`` for a missing key file, before any network
    call is made.

    Args:
        missing: Names of the required environment variables that are unset
            or empty.
        reason: Extra explanation for malformed values, if any.
    """

    exit_code = 2

    def __init__(self, missing: list[str], reason: str = "") -> None:
        self.missing = missing
        self.reason = reason
        message = ""
        if missing:
            message = (
                "Missing required environment variable(s): "
                f"{', '.join(missing)}."
            )
        if reason:
            message = f"{message} {reason}".strip()
        super().__init__(message)


class FetchError(ReportError):
    """Raised when an Azure DevOps request fails.

    Covers HTTP error statuses, transport failures and undecodable bodies.
    Not retried; the remaining sections are aborted.

    Args:
        context: Short description of the call (e.g. ``"commits FE-REPO"``).
        detail: The underlying error text.
    """

    exit_code = 3

    def __init__(self, context: str, detail: str) -> None:
        self.context = context
        self.detail = detail
        super().__init__(f"Azure DevOps request failed ({context}): {detail}")


class SectionNotFound(ReportError):
    """Raised when no worksheet title matches the section name exactly.

    The report never creates worksheets — this is fatal.

    Args:
        section: The section (worksheet title) that was looked up.
        available: The worksheet titles present in the spreadsheet.
    """

    exit_code = 4

    def __init__(self, section: str, available: list[str]) -> None:
        self.section = section
        self.available = available
        super().__init__(
            f"Sheet '{section}' not found. "
            f"Available sheets: {', '.join(available) or '(none)'}"
        )


class PartialSectionError(ReportError):
    """Raised when rows were appended but the header merge/format failed.

    The header label and data rows are already committed; the header cell is
    left unmerged and unstyled. Nothing is rolled back.

    Args:
        section: The section being written.
        header_row: The 1-indexed row the header label landed on.
        detail: The underlying error text.
    """

    exit_code = 5

    def __init__(self, section: str, header_row: int, detail: str) -> None:
        self.section = section
        self.header_row = header_row
        self.detail = detail
        super().__init__(
            f"Section '{section}' partially written: rows appended below "
            f"row {header_row} but header formatting failed: {detail}"
        )


class SheetsError(ReportError):
    """Raised when a Google Sheets call fails outside the partial window.

    Args:
        section: The section being written when the call failed.
        detail: The underlying error text.
    """

    exit_code = 6

    def __init__(self, section: str, detail: str) -> None:
        self.section = section
        self.detail = detail
        super().__init__(f"Google Sheets request failed ({section}): {detail}")
