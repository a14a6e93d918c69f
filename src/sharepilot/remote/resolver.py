"""HTTP client that resolves the identifiers the application form needs.

All calls fail fast: one request, the client timeout, no retry. Callers decide
whether and how to retry.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, TypeVar, Union

import httpx

from ..core.exceptions import (
    AmbiguousSelectionError,
    NoMatchError,
    NoResultsError,
    NotFoundError,
    RemoteServiceError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SelectionPolicy(str, Enum):
    """How to choose when a lookup returns several applicable candidates."""
    FIRST = "first"
    SINGLE = "single"


@dataclass(frozen=True)
class Subject:
    """An open issue the account can apply for."""
    share_id: Union[int, str]
    scrip: str
    company_name: str = ""


@dataclass(frozen=True)
class ApplicantForm:
    """A previously submitted application, as listed by the remote side."""
    form_id: Union[int, str]
    scrip: str
    company_name: str = ""


@dataclass(frozen=True)
class ApplicationStatus:
    status_name: Optional[str]
    remark: Optional[str]


APPLICABLE_ISSUE_FILTERS = [
    {"key": "companyIssue.companyISIN.script", "alias": "Scrip"},
    {"key": "companyIssue.companyISIN.company.name", "alias": "Company Name"},
    {"key": "companyIssue.assignedToClient.name", "value": "", "alias": "Issue Manager"},
]

APPLICANT_FORM_FILTERS = [
    {"key": "companyShare.companyIssue.companyISIN.script", "alias": "Scrip"},
    {"key": "companyShare.companyIssue.companyISIN.company.name", "alias": "Company Name"},
]


def select(candidates: Sequence[T], policy: SelectionPolicy, what: str) -> T:
    """Pick one candidate according to ``policy``.

    Raises:
        NoResultsError: If there are no candidates
        AmbiguousSelectionError: If the policy is SINGLE and there are several
    """
    if not candidates:
        raise NoResultsError(f"No {what} found")
    if policy == SelectionPolicy.SINGLE and len(candidates) > 1:
        raise AmbiguousSelectionError(f"{len(candidates)} {what} candidates found; expected exactly one")
    if len(candidates) > 1:
        logger.debug(f"[resolver] {len(candidates)} {what} candidates, using the first")
    return candidates[0]


class Resolver:
    """Client for the remote platform's lookup API."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        policy: SelectionPolicy = SelectionPolicy.FIRST,
        client: Optional[httpx.Client] = None,
        referer: Optional[str] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self.policy = SelectionPolicy(policy)
        self._client = client
        self._owns_client = client is None
        self._referer = referer

    def _get_client(self) -> httpx.Client:
        if self._client is None:
            headers = {
                "Accept": "application/json, text/plain, */*",
                "Content-Type": "application/json",
            }
            if self._referer:
                headers["Referer"] = self._referer
            self._client = httpx.Client(base_url=self._base_url, timeout=self._timeout, headers=headers)
        return self._client

    def close(self) -> None:
        if self._client is not None and self._owns_client:
            self._client.close()
            self._client = None

    def __enter__(self) -> "Resolver":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _request(
        self,
        method: str,
        path: str,
        token: Optional[str] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        headers = {"Authorization": token} if token else {}
        try:
            response = self._get_client().request(
                method, self._base_url + path, json=payload, headers=headers, timeout=self._timeout
            )
        except httpx.TimeoutException as e:
            raise RemoteServiceError(f"{method} {path} timed out after {self._timeout}s") from e
        except httpx.HTTPError as e:
            raise RemoteServiceError(f"{method} {path} failed: {e}") from e
        if response.status_code == 404:
            raise NotFoundError(f"{method} {path} returned 404")
        if response.is_error:
            raise RemoteServiceError(
                f"{method} {path} returned HTTP {response.status_code}", status_code=response.status_code
            )
        return response

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise RemoteServiceError(f"Invalid JSON from {response.request.url}: {e}") from e

    def _search_applicable_issues(self, token: str) -> List[Dict[str, Any]]:
        payload = {
            "filterFieldParams": APPLICABLE_ISSUE_FILTERS,
            "page": 1,
            "size": 10,
            "searchRoleViewConstants": "VIEW_APPLICABLE_SHARE",
            "filterDateParams": [
                {"key": "minIssueOpenDate", "condition": "", "alias": "", "value": ""},
                {"key": "maxIssueCloseDate", "condition": "", "alias": "", "value": ""},
            ],
        }
        data = self._json(self._request("POST", "/companyShare/applicableIssue/", token, payload))
        items = (data or {}).get("object") or []
        logger.debug(f"[resolver] {len(items)} applicable issues on page 1")
        return items

    @staticmethod
    def _subject(item: Dict[str, Any]) -> Subject:
        return Subject(
            share_id=item.get("companyShareId"),
            scrip=item.get("scrip") or "",
            company_name=item.get("companyName") or "",
        )

    def resolve_participant_name(self, participant_id: Union[int, str]) -> str:
        """Look up a depository participant's display name by its code."""
        data = self._json(self._request("GET", "/capital/"))
        if data and not isinstance(data, list):
            raise RemoteServiceError(f"Unexpected participant list: {type(data).__name__}")
        wanted = str(participant_id).strip().lower()
        for item in data or []:
            if not isinstance(item, dict):
                continue
            if str(item.get("code", "")).strip().lower() == wanted:
                name = item.get("name")
                if not name:
                    raise RemoteServiceError(f"DP with ID {participant_id} has no name")
                logger.info(f"Found DP: {name}")
                return name
        raise NotFoundError(f"DP with ID {participant_id} not found")

    def resolve_first_applicable_subject(self, token: str) -> Subject:
        """Pick an applicable issue from the first page of the search."""
        items = self._search_applicable_issues(token)
        if not items:
            raise NoResultsError("No applicable shares found")
        return self._subject(select(items, self.policy, "applicable share"))

    def resolve_subject_by_name(self, token: str, target_name: str) -> Subject:
        """Pick the applicable issue whose scrip equals ``target_name`` (case-insensitive)."""
        wanted = target_name.strip().upper()
        items = self._search_applicable_issues(token)
        matches = [item for item in items if (item.get("scrip") or "").upper() == wanted]
        if not matches:
            raise NoMatchError(f"No matching share found for script: {target_name}")
        return self._subject(select(matches, self.policy, f"'{target_name}' share"))

    def resolve_first_destination_account(self, token: str) -> Union[int, str]:
        """Pick a bank linked to the account."""
        data = self._json(self._request("GET", "/bank/", token))
        if not data:
            raise NoResultsError("No banks found")
        if not isinstance(data, list):
            raise RemoteServiceError(f"Unexpected bank list: {type(data).__name__}")
        bank = select(data, self.policy, "bank")
        bank_id = bank.get("id") if isinstance(bank, dict) else None
        if bank_id is None:
            raise RemoteServiceError(f"Bank entry has no id: {bank!r}")
        return bank_id

    def list_applicant_forms(self, token: str) -> List[ApplicantForm]:
        """List the account's submitted application forms."""
        payload = {
            "filterFieldParams": APPLICANT_FORM_FILTERS,
            "page": 1,
            "size": 200,
            "searchRoleViewConstants": "VIEW_APPLICANT_FORM_COMPLETE",
            "filterDateParams": [],
        }
        data = self._json(self._request("POST", "/applicantForm/active/search/", token, payload))
        return [
            ApplicantForm(
                form_id=item.get("applicantFormId"),
                scrip=item.get("scrip") or "",
                company_name=item.get("companyName") or "",
            )
            for item in (data or {}).get("object") or []
        ]

    def resolve_application_status(self, token: str, form_id: Union[int, str]) -> ApplicationStatus:
        """Fetch status detail for one submitted form.

        Raises:
            NotFoundError: If the form id no longer resolves remotely
        """
        data = self._json(self._request("GET", f"/applicantForm/report/detail/{form_id}", token))
        if not data:
            raise NotFoundError(f"Applicant form {form_id} not found")
        return ApplicationStatus(status_name=data.get("statusName"), remark=data.get("meroshareRemark"))
