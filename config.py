"""Central configuration for the activity sheet report.

This module is the single source of truth for all magic values — API
versions, page sizes, timeouts, sheet layout and column order. Never
hardcode these values elsewhere.

Deployment-specific values (organization, token, spreadsheet ID, ...) come
from the environment, optionally via a ``.env`` file, and are read once by
``load_settings()``.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final, Optional

from dotenv import load_dotenv

from exceptions import ConfigError

# ---------------------------------------------------------------------------
# Project paths
# ---------------------------------------------------------------------------

PROJECT_ROOT: Final[Path] = Path(__file__).resolve().parent

# ---------------------------------------------------------------------------
# Google Sheets — service account
# ---------------------------------------------------------------------------

# Path to the service account JSON key file. Never commit this file.
DEFAULT_CREDENTIALS_PATH: Final[Path] = PROJECT_ROOT / "credentials.json"

# Read/write access to spreadsheets only, no Drive scope.
GOOGLE_SCOPES: Final[list[str]] = [
    "https://www.googleapis.com/auth/spreadsheets",
]

# Values are parsed as if typed into the UI ("=" starts a formula).
VALUE_INPUT_OPTION: Final[str] = "USER_ENTERED"
INSERT_DATA_OPTION: Final[str] = "INSERT_ROWS"

# ---------------------------------------------------------------------------
# Azure DevOps
# ---------------------------------------------------------------------------

AZURE_BASE_URL: Final[str] = "https://dev.azure.com"
AZURE_API_VERSION: Final[str] = "7.1"

# Seconds before an Azure DevOps request is abandoned.
REQUEST_TIMEOUT: Final[float] = 30.0

# List endpoints are paged with $top/$skip.
PAGE_SIZE: Final[int] = 100

# The workitemsbatch endpoint accepts at most 200 ids per call.
WORK_ITEM_BATCH_SIZE: Final[int] = 200

WORK_ITEM_FIELDS: Final[list[str]] = [
    "System.Id",
    "System.Title",
    "System.WorkItemType",
    "System.Reason",
    "System.AssignedTo",
    "System.ChangedDate",
    "System.ChangedBy",
    "System.State",
]

DEFAULT_LOOKBACK_DAYS: Final[int] = 1

# ---------------------------------------------------------------------------
# Section schemas (worksheet title, header prefix, strictly ordered columns)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Column:
    """One output column: a label and the key path into the source record.

    When *join_ids* is set the value at *path* is a list of objects and the
    cell holds their ``id`` values joined with ``", "``.
    """

    label: str
    path: tuple[str, ...]
    join_ids: bool = False


@dataclass(frozen=True)
class Section:
    """A named, fixed-width target sheet."""

    name: str
    header_prefix: str
    columns: tuple[Column, ...]

    @property
    def width(self) -> int:
        return len(self.columns)

    def header_label(self, run_date: str) -> str:
        return f"{self.header_prefix} Data for {run_date}"


COMMITS: Final[Section] = Section(
    name="Commits",
    header_prefix="Commits",
    columns=(
        Column("ID", ("commitId",)),
        Column("Author", ("author", "name")),
        Column("Message", ("comment",)),
        Column("Author Date", ("author", "date")),
        Column("Link", ("remoteUrl",)),
    ),
)

PULL_REQUESTS: Final[Section] = Section(
    name="PullRequests",
    header_prefix="Pull Requests",
    columns=(
        Column("ID", ("pullRequestId",)),
        Column("Title", ("title",)),
        Column("Created By", ("createdBy", "displayName")),
        Column("Creation Date", ("creationDate",)),
        Column("Work Items", ("workItemRefs",), join_ids=True),
    ),
)

WORK_ITEMS: Final[Section] = Section(
    name="WorkItems",
    header_prefix="Work Items",
    columns=(
        Column("ID", ("id",)),
        Column("Title", ("fields", "System.Title")),
        Column("Type", ("fields", "System.WorkItemType")),
        Column("Reason", ("fields", "System.Reason")),
        Column("Assigned To", ("fields", "System.AssignedTo", "displayName")),
        Column("Changed Date", ("fields", "System.ChangedDate")),
        Column("Changed By", ("fields", "System.ChangedBy", "displayName")),
        Column("State", ("fields", "System.State")),
    ),
)

# Written in this order on every run.
SECTIONS: Final[tuple[Section, ...]] = (COMMITS, PULL_REQUESTS, WORK_ITEMS)

# ---------------------------------------------------------------------------
# Environment
# ---------------------------------------------------------------------------

LOG_LEVELS: Final[tuple[str, ...]] = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

REQUIRED_ENV_VARS: Final[list[str]] = [
    "AZURE_ORG",
    "AZURE_PROJECT",
    "AZURE_PERSONAL_ACCESS_TOKEN",
    "REPOSITORY_ID_FE",
    "REPOSITORY_ID_BE",
    "SHEET_ID",
    "QUERY_ID",
]


@dataclass(frozen=True)
class Settings:
    """Deployment values read from the environment at startup."""

    azure_org: str
    azure_project: str
    azure_token: str
    repository_ids: tuple[str, ...]
    sheet_id: str
    query_id: str
    credentials_path: Path
    lookback_days: int
    log_level: str

    @property
    def azure_org_url(self) -> str:
        return f"{AZURE_BASE_URL}/{self.azure_org}"


def load_settings(
    environ: Optional[dict[str, str]] = None,
    dotenv: bool = True,
) -> Settings:
    """Read and validate the report configuration.

    Args:
        environ: Mapping to read from. Defaults to ``os.environ``.
        dotenv: Load a ``.env`` file into ``os.environ`` first. Only applies
            when *environ* is not given.

    Returns:
        The validated ``Settings``.

    Raises:
        ConfigError: If any required variable is unset or empty, or
            ``REPORT_LOOKBACK_DAYS`` is not a positive integer. All missing
            variables are reported together.
    """
    if environ is None:
        if dotenv:
            load_dotenv()
        environ = dict(os.environ)

    missing = [name for name in REQUIRED_ENV_VARS if not environ.get(name)]
    if missing:
        raise ConfigError(missing)

    raw_lookback = environ.get("REPORT_LOOKBACK_DAYS") or str(DEFAULT_LOOKBACK_DAYS)
    try:
        lookback_days = int(raw_lookback)
    except ValueError:
        lookback_days = 0
    if lookback_days < 1:
        raise ConfigError(
            [],
            f"REPORT_LOOKBACK_DAYS must be a positive integer, got '{raw_lookback}'.",
        )

    log_level = (environ.get("LOG_LEVEL") or "INFO").upper()
    if log_level not in LOG_LEVELS:
        raise ConfigError(
            [],
            f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}, got '{log_level}'.",
        )

    credentials = environ.get("GOOGLE_CREDENTIALS_PATH")
    return Settings(
        azure_org=environ["AZURE_ORG"],
        azure_project=environ["AZURE_PROJECT"],
        azure_token=environ["AZURE_PERSONAL_ACCESS_TOKEN"],
        repository_ids=(environ["REPOSITORY_ID_FE"], environ["REPOSITORY_ID_BE"]),
        sheet_id=environ["SHEET_ID"],
        query_id=environ["QUERY_ID"],
        credentials_path=Path(credentials) if credentials else DEFAULT_CREDENTIALS_PATH,
        lookback_days=lookback_days,
        log_level=log_level,
    )
