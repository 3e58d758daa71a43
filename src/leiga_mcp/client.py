"""
Async client for the Leiga OpenAPI.

Every call goes through ``LeigaClient.send``, which attaches the access token,
checks the HTTP status and unwraps the ``{code, data, msg}`` envelope. The token
is fetched lazily from the on-disk cache, or from the authorization endpoint on
a cache miss.
"""

import logging
import re
from typing import Any

import httpx
from pydantic import ValidationError as PydanticValidationError

from .config import LeigaSettings
from .errors import ConfigurationError, DomainError, TransportError, ValidationError
from .models import (
    AccessToken,
    CreateIssueRequest,
    Envelope,
    OptionField,
    SearchIssuesRequest,
)
from .token_store import Credential, TokenStore

logger = logging.getLogger(__name__)

AUTHORIZE_PATH = "/authorize/access-permanent-token"
CURRENT_USER = "currentAuthedUser"

# Issue reference shapes
REF_ID = "id"
REF_NUMBER = "number"
REF_INVALID = "other"

_ID_PATTERN = re.compile(r"\d+", re.ASCII)
_NUMBER_PATTERN = re.compile(r"[A-Z]+-\d+", re.ASCII)

DEFAULT_PAGE_NUMBER = 1
DEFAULT_COMMENT_PAGE_SIZE = 20
DEFAULT_MEMBER_PAGE_SIZE = 20


def classify_issue_ref(ref: str) -> str:
    """Classify an issue reference: "id" (12345), "number" (ABC-678) or "other"."""
    if _ID_PATTERN.fullmatch(ref):
        return REF_ID
    if _NUMBER_PATTERN.fullmatch(ref):
        return REF_NUMBER
    return REF_INVALID


class LeigaClient:
    """Leiga OpenAPI client bound to one client identity."""

    def __init__(
        self,
        settings: LeigaSettings,
        http_client: httpx.AsyncClient | None = None,
        token_store: TokenStore | None = None,
    ) -> None:
        if not settings.client_id or not settings.secret:
            raise ConfigurationError(
                "clientId and secret is required to initialize LeigaClient"
            )
        self.settings = settings
        self._http = http_client or httpx.AsyncClient()
        self._token_store = token_store or TokenStore(settings.config_dir)

    async def __aenter__(self) -> "LeigaClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    # ============================================
    # Gateway
    # ============================================

    async def get_access_permanent_token(self) -> AccessToken:
        """Exchange the client ID and secret for an access token."""
        body = await self.send(
            AUTHORIZE_PATH,
            method="POST",
            body={"clientId": self.settings.client_id, "secretKey": self.settings.secret},
        )
        data = body.get("data")
        try:
            return AccessToken.model_validate(data if data is not None else body)
        except PydanticValidationError as e:
            raise DomainError("", f"Malformed access token response: {e}") from e

    async def get_token(self) -> Credential:
        """Return the cached credential, fetching and caching a new one on miss."""
        cached = self._token_store.load(self.settings.client_id)
        if cached:
            return cached

        logger.info("Requesting new access token for client %s", self.settings.client_id)
        token = await self.get_access_permanent_token()
        return self._token_store.save(
            self.settings.client_id,
            Credential(
                access_token=token.access_token,
                expire_in=token.expire_in,
                created_at=0,
            ),
        )

    async def send(
        self,
        path: str,
        method: str = "GET",
        body: dict[str, Any] | None = None,
        query_params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """Issue an authenticated request and return the decoded envelope.

        Raises:
            TransportError: Non-2xx HTTP status.
            DomainError: Envelope code present and not "0".
        """
        url = self.settings.api_url + "/" + path.lstrip("/")
        params = {
            key: value for key, value in (query_params or {}).items() if value is not None
        }

        if path == AUTHORIZE_PATH:
            access_token = self.settings.secret
        else:
            access_token = (await self.get_token()).access_token

        request_headers = {
            "accessToken": access_token,
            "Content-Type": "application/json",
            **(headers or {}),
        }

        logger.debug("%s %s", method, path)
        response = await self._http.request(
            method,
            url,
            params=params,
            json=body,
            headers=request_headers,
        )

        if not response.is_success:
            raise TransportError(response.status_code, response.reason_phrase, response.text)

        try:
            payload = response.json()
            envelope = Envelope.model_validate(payload)
        except (ValueError, PydanticValidationError) as e:
            raise DomainError("", f"Malformed response from {path}: {e}") from e
        if not envelope.ok:
            raise DomainError(
                str(envelope.code),
                envelope.msg or f"API error with code: {envelope.code}",
            )
        return payload

    async def _data(self, path: str, **kwargs: Any) -> Any:
        return (await self.send(path, **kwargs)).get("data")

    # ============================================
    # Issues
    # ============================================

    async def get_issue(self, issue_ref: str) -> dict[str, Any]:
        """Fetch an issue by numeric ID or issue number (e.g. "ABC-678").

        Raises:
            ValidationError: ``issue_ref`` is neither shape; no request is made.
            DomainError: The API returned no issue.
        """
        kind = classify_issue_ref(issue_ref)
        if kind == REF_ID:
            issue = await self._data("/issue/get", query_params={"id": issue_ref})
        elif kind == REF_NUMBER:
            issue = await self._data(
                "/issue/get-by-issue-number", query_params={"issueNumber": issue_ref}
            )
        else:
            raise ValidationError(f"Invalid issueId format: {issue_ref!r}")
        if not issue:
            raise DomainError("", f"Issue {issue_ref} not found")
        return issue

    async def resolve_issue_id(self, issue_ref: str) -> int:
        """Return the numeric ID for an issue reference.

        Numeric references are used as-is; issue numbers cost one lookup.
        """
        kind = classify_issue_ref(issue_ref)
        if kind == REF_ID:
            return int(issue_ref)
        if kind == REF_NUMBER:
            issue = await self.get_issue(issue_ref)
            return int(issue["id"])
        raise ValidationError(f"Invalid issueId format: {issue_ref!r}")

    async def search_issues(self, request: SearchIssuesRequest) -> list[dict[str, Any]]:
        return await self._data(
            "/issue/mcp-search-issues", method="POST", body=request.to_body()
        )

    async def my_issues(self, request: SearchIssuesRequest) -> list[dict[str, Any]]:
        """Search restricted to issues assigned to the authenticated user."""
        mine = request.model_copy(update={"assignee": CURRENT_USER})
        return await self.search_issues(mine)

    async def create_issue(self, request: CreateIssueRequest) -> dict[str, Any]:
        return await self._data(
            "/issue/mcp-create-issue", method="POST", body=request.to_body()
        )

    async def get_option_fields(self, issue_id: int) -> list[OptionField]:
        """Fetch the settable fields and their named options for one issue."""
        data = await self._data("/issue/option-fields", query_params={"issueId": issue_id})
        return [OptionField.model_validate(item) for item in data or []]

    async def update_issue(self, issue_id: int, fields: dict[str, Any]) -> Any:
        """Apply an already-resolved sparse update payload."""
        return await self._data(
            "/issue/update", method="POST", body={"issueId": issue_id, **fields}
        )

    def issue_url(self, issue_id: int, project_id: int) -> str:
        return f"{self.settings.base_url.rstrip('/')}/work/list?pid={project_id}&issueid={issue_id}"

    # ============================================
    # Comments
    # ============================================

    async def list_comments(
        self,
        issue_id: int,
        page_number: int = DEFAULT_PAGE_NUMBER,
        page_size: int = DEFAULT_COMMENT_PAGE_SIZE,
    ) -> Any:
        return await self._data(
            "/issue/comment/list",
            query_params={
                "issueId": issue_id,
                "pageNumber": page_number,
                "pageSize": page_size,
            },
        )

    async def create_comment(self, issue_id: int, content: str) -> Any:
        return await self._data(
            "/issue/comment/create",
            method="POST",
            body={"issueId": issue_id, "content": content},
        )

    # ============================================
    # Projects and members
    # ============================================

    async def list_projects(self) -> list[dict[str, Any]]:
        return await self._data("/project/list")

    async def list_members(
        self,
        project_id: int | None = None,
        page_number: int = DEFAULT_PAGE_NUMBER,
        page_size: int = DEFAULT_MEMBER_PAGE_SIZE,
    ) -> Any:
        """List project members, or organization members when no project is given."""
        query = {"pageNumber": page_number, "pageSize": page_size}
        if project_id is None:
            return await self._data("/org/member/list", query_params=query)
        return await self._data(
            "/project/member/list", query_params={"projectId": project_id, **query}
        )
