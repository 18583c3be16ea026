"""Shared test configuration and fixtures."""

import pytest

from config import Settings
from tests.fakes import FakeSpreadsheet


@pytest.fixture
def spreadsheet() -> FakeSpreadsheet:
    """A spreadsheet with all three section sheets, each empty."""
    return FakeSpreadsheet(["Commits", "PullRequests", "WorkItems"])


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        azure_org="contoso",
        azure_project="Fabrikam",
        azure_token="pat-token",
        repository_ids=("repo-fe", "repo-be"),
        sheet_id="sheet-123",
        query_id="query-456",
        credentials_path=tmp_path / "credentials.json",
        lookback_days=1,
        log_level="INFO",
    )
