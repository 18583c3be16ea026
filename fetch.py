"""Azure DevOps activity source.

Fetches commits, pull requests and work items over the Azure DevOps REST API
with ``requests``. Records are returned as the decoded JSON dicts; shaping
them into rows is ``projection.py``'s job. All HTTP goes through
``AzureDevOpsSource._request`` so every call shares auth, timeout and error
wrapping.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional
from urllib.parse import quote

import requests

from config import (
    AZURE_API_VERSION,
    PAGE_SIZE,
    REQUEST_TIMEOUT,
    WORK_ITEM_BATCH_SIZE,
    WORK_ITEM_FIELDS,
    Settings,
)
from exceptions import FetchError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReportWindow:
    """The time window shared by every fetch of one run.

    Attributes:
        since: Start of the window (timezone-aware UTC).
        run_date: Run date as ``YYYY-MM-DD``, used in section headers.
    """

    since: datetime
    run_date: str

    @classmethod
    def ending_at(cls, now: datetime, lookback_days: int) -> "ReportWindow":
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        now = now.astimezone(timezone.utc)
        return cls(
            since=now - timedelta(days=lookback_days),
            run_date=now.date().isoformat(),
        )


def numeric_ids(raw_ids: list[Any]) -> list[int]:
    """Keep only integer ids, preserving their relative order.

    Booleans are rejected even though ``bool`` subclasses ``int``.
    """
    return [
        item for item in raw_ids
        if isinstance(item, int) and not isinstance(item, bool)
    ]


def _chunks(items: list[int], size: int) -> list[list[int]]:
    return [items[i:i + size] for i in range(0, len(items), size)]


class AzureDevOpsSource:
    """Read-only client for one Azure DevOps project."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.project_url = (
            f"{settings.azure_org_url}/{quote(settings.azure_project)}"
        )
        self.auth = ("", settings.azure_token)

    def _request(
        self,
        method: str,
        path: str,
        context: str,
        params: Optional[dict[str, Any]] = None,
        body: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        """Send one API request and return the decoded JSON body.

        Raises:
            FetchError: On transport failure, an HTTP error status, or a
                body that is not a JSON object.
        """
        query = {"api-version": AZURE_API_VERSION}
        if params:
            query.update(params)
        url = f"{self.project_url}/_apis/{path}"
        logger.debug("%s %s params=%s", method, url, query)
        try:
            response = requests.request(
                method,
                url,
                params=query,
                json=body,
                auth=self.auth,
                timeout=REQUEST_TIMEOUT,
            )
            response.raise_for_status()
            payload = response.json()
        except requests.exceptions.RequestException as error:
            raise FetchError(context, str(error)) from error
        except ValueError as error:
            raise FetchError(context, f"invalid JSON response: {error}") from error
        if not isinstance(payload, dict):
            raise FetchError(context, "expected a JSON object response")
        return payload

    def _paged(
        self,
        path: str,
        context: str,
        params: dict[str, Any],
        top_key: str,
        skip_key: str,
    ) -> list[dict[str, Any]]:
        """Follow ``$top``/``$skip`` paging until a short page is returned."""
        records: list[dict[str, Any]] = []
        skip = 0
        while True:
            page_params = dict(params)
            page_params[top_key] = PAGE_SIZE
            page_params[skip_key] = skip
            page = self._request("GET", path, context, params=page_params)
            values = page.get("value") or []
            records.extend(values)
            if len(values) < PAGE_SIZE:
                return records
            skip += len(values)

    # -----------------------------------------------------------------------
    # Commits
    # -----------------------------------------------------------------------

    def fetch_commits(self, window: ReportWindow) -> list[dict[str, Any]]:
        """Commits authored since ``window.since``, repository by repository."""
        commits: list[dict[str, Any]] = []
        for repository_id in self.settings.repository_ids:
            commits.extend(
                self._paged(
                    f"git/repositories/{quote(repository_id)}/commits",
                    f"commits {repository_id}",
                    {"searchCriteria.fromDate": window.since.isoformat()},
                    top_key="searchCriteria.$top",
                    skip_key="searchCriteria.$skip",
                )
            )
        return commits

    # -----------------------------------------------------------------------
    # Pull requests
    # -----------------------------------------------------------------------

    def fetch_pull_requests(self, window: ReportWindow) -> list[dict[str, Any]]:
        """Pull requests created since ``window.since`` with linked work items.

        The list endpoint does not return ``workItemRefs``; each pull request
        without them gets one extra call to its ``workitems`` endpoint.
        """
        pull_requests: list[dict[str, Any]] = []
        for repository_id in self.settings.repository_ids:
            listed = self._paged(
                "git/pullrequests",
                f"pull requests {repository_id}",
                {
                    "searchCriteria.repositoryId": repository_id,
                    "searchCriteria.minTime": window.since.isoformat(),
                    "searchCriteria.queryTimeRangeType": "created",
                },
                top_key="$top",
                skip_key="$skip",
            )
            for pull_request in listed:
                if "workItemRefs" not in pull_request:
                    pull_request["workItemRefs"] = self._fetch_work_item_refs(
                        repository_id, pull_request
                    )
            pull_requests.extend(listed)
        return pull_requests

    def _fetch_work_item_refs(
        self, repository_id: str, pull_request: dict[str, Any]
    ) -> list[dict[str, Any]]:
        pull_request_id = pull_request.get("pullRequestId")
        if pull_request_id is None:
            return []
        repository = pull_request.get("repository") or {}
        repository_id = repository.get("id") or repository_id
        payload = self._request(
            "GET",
            f"git/repositories/{quote(repository_id)}"
            f"/pullRequests/{pull_request_id}/workitems",
            f"pull request {pull_request_id} work items",
        )
        return payload.get("value") or []

    # -----------------------------------------------------------------------
    # Work items
    # -----------------------------------------------------------------------

    def fetch_work_items(self) -> list[dict[str, Any]]:
        """Run the saved query, then batch-fetch the allowlisted fields.

        Ids that are not integers are dropped before the batch call. An empty
        id set returns ``[]`` without calling the batch endpoint.
        """
        query_id = self.settings.query_id
        result = self._request(
            "GET",
            f"wit/wiql/{quote(query_id)}",
            f"saved query {query_id}",
        )
        references = result.get("workItems") or []
        raw_ids = [
            reference.get("id")
            for reference in references
            if isinstance(reference, dict)
        ]
        ids = numeric_ids(raw_ids)
        if len(ids) != len(raw_ids):
            logger.warning(
                "Dropped %d non-numeric work item id(s) from query %s",
                len(raw_ids) - len(ids),
                query_id,
            )
        if not ids:
            return []

        work_items: list[dict[str, Any]] = []
        for chunk in _chunks(ids, WORK_ITEM_BATCH_SIZE):
            payload = self._request(
                "POST",
                "wit/workitemsbatch",
                f"work items batch ({len(chunk)} ids)",
                body={"ids": chunk, "fields": WORK_ITEM_FIELDS},
            )
            work_items.extend(payload.get("value") or [])
        return work_items
