"""Tests for leiga_mcp.fields module."""

import pytest

from leiga_mcp import fields
from leiga_mcp.client import LeigaClient
from leiga_mcp.errors import ValidationError
from leiga_mcp.fields import compose_update, parse_date_millis, resolve_option
from leiga_mcp.models import OptionField

from .conftest import FakeLeiga, request_json

OPTION_FIELDS_JSON = [
    {
        "fieldCode": "status",
        "displayName": "Status",
        "required": True,
        "options": [{"name": "To Do", "value": 2}, {"name": "Done", "value": 7}],
    },
    {
        "fieldCode": "priority",
        "displayName": "Priority",
        "options": [{"name": "High", "value": 3}],
    },
    {
        "fieldCode": "label",
        "displayName": "Labels",
        "options": [{"name": "Bug", "value": 11}, {"name": "UI", "value": 12}],
    },
    {
        "fieldCode": "follows",
        "displayName": "Followers",
        "options": [{"name": "alice", "value": 101}],
    },
]


@pytest.fixture
def option_fields() -> list[OptionField]:
    return [OptionField.model_validate(f) for f in OPTION_FIELDS_JSON]


class TestResolveOption:
    """Tests for resolve_option."""

    def test_case_insensitive(self, option_fields: list[OptionField]) -> None:
        """Names match regardless of case."""
        by_code = fields.index_fields(option_fields)
        assert resolve_option(by_code, "status", "done") == 7
        assert resolve_option(by_code, "status", "DONE") == 7

    def test_idempotent(self, option_fields: list[OptionField]) -> None:
        """Resolving the same name twice gives the same value."""
        by_code = fields.index_fields(option_fields)
        assert resolve_option(by_code, "status", "To Do") == resolve_option(
            by_code, "status", "To Do"
        )

    def test_unknown_field(self, option_fields: list[OptionField]) -> None:
        """A field code the issue doesn't have resolves to None."""
        assert resolve_option(fields.index_fields(option_fields), "assignee", "bob") is None


class TestParseDateMillis:
    """Tests for parse_date_millis."""

    def test_iso_date(self) -> None:
        """Plain dates are midnight UTC."""
        assert parse_date_millis("2024-01-02") == 1_704_153_600_000

    def test_iso_datetime_with_zone(self) -> None:
        """Datetimes honour their offset, including Z."""
        assert parse_date_millis("2024-01-02T01:00:00+01:00") == 1_704_153_600_000
        assert parse_date_millis("2024-01-02T00:00:00Z") == 1_704_153_600_000

    def test_numeric(self) -> None:
        """Millisecond timestamps pass through."""
        assert parse_date_millis(1_704_153_600_000) == 1_704_153_600_000
        assert parse_date_millis("1704153600000") == 1_704_153_600_000

    @pytest.mark.parametrize(
        "value", ["next tuesday", "2024-13-01", "", "\u00b2", "\u0661\u0662", "9" * 5000]
    )
    def test_unparsable(self, value: str) -> None:
        """Garbage returns None."""
        assert parse_date_millis(value) is None

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite(self, value: float) -> None:
        """NaN and infinities are not timestamps."""
        assert parse_date_millis(value) is None


class TestComposeUpdate:
    """Tests for compose_update."""

    def test_status_resolves(self, option_fields: list[OptionField]) -> None:
        """A known status name becomes its option value."""
        result = compose_update(option_fields, status_name="Done")
        assert result.payload == {"status": 7}
        assert result.unresolved == []

    def test_unknown_status_dropped(self, option_fields: list[OptionField]) -> None:
        """An unknown name leaves no key and raises nothing."""
        result = compose_update(option_fields, status_name="NoSuchStatus")
        assert "status" not in result.payload
        assert result.payload == {}
        assert result.unresolved == ["status:NoSuchStatus"]

    def test_partial_labels(self, option_fields: list[OptionField]) -> None:
        """Only resolved labels are sent."""
        result = compose_update(option_fields, labels=["Bug", "Urgent"])
        assert result.payload == {"label": [11]}
        assert result.unresolved == ["label:Urgent"]

    def test_no_labels_resolve(self, option_fields: list[OptionField]) -> None:
        """If no label resolves, the field is omitted."""
        result = compose_update(option_fields, labels=["Urgent"])
        assert "label" not in result.payload

    def test_follows(self, option_fields: list[OptionField]) -> None:
        """Followers resolve like labels."""
        result = compose_update(option_fields, follows=["Alice", "bob"])
        assert result.payload == {"follows": [101]}

    def test_missing_field_code(self, option_fields: list[OptionField]) -> None:
        """Fields the issue doesn't offer are dropped."""
        result = compose_update(option_fields, assignee="bob", release_version="1.0")
        assert result.payload == {}
        assert result.unresolved == ["assignee:bob", "releaseVersion:1.0"]

    def test_dates(self, option_fields: list[OptionField]) -> None:
        """Dates become epoch millis; bad dates are dropped."""
        result = compose_update(option_fields, start_date="2024-01-02", due_date="soon")
        assert result.payload == {"startDate": 1_704_153_600_000}
        assert result.unresolved == ["dueDate:soon"]

    def test_only_given_fields(self, option_fields: list[OptionField]) -> None:
        """Nothing given, nothing sent."""
        assert compose_update(option_fields).payload == {}

    def test_text_fields_pass_through(self, option_fields: list[OptionField]) -> None:
        """Summary and description need no resolution."""
        result = compose_update(
            option_fields, summary="New title", description="", priority="high"
        )
        assert result.payload == {"summary": "New title", "description": "", "priority": 3}


class TestUpdateIssue:
    """Tests for the two-step update_issue."""

    @pytest.mark.asyncio
    async def test_resolves_then_updates(self, client: LeigaClient, fake_api: FakeLeiga) -> None:
        """Option fields are fetched, then the resolved payload is posted."""
        fake_api.ok("/issue/option-fields", OPTION_FIELDS_JSON)
        fake_api.ok("/issue/update", {"success": True})

        outcome = await fields.update_issue(
            client, "42", status_name="Done", labels=["Bug", "Urgent"]
        )

        assert [r.url.path.rsplit("/api", 1)[1] for r in fake_api.api_requests()] == [
            "/issue/option-fields",
            "/issue/update",
        ]
        assert request_json(fake_api.api_requests()[1]) == {
            "issueId": 42,
            "status": 7,
            "label": [11],
        }
        assert outcome["payload"] == {"status": 7, "label": [11]}
        assert outcome["unresolved"] == ["label:Urgent"]
        assert outcome["result"] == {"success": True}

    @pytest.mark.asyncio
    async def test_empty_payload_still_updates(
        self, client: LeigaClient, fake_api: FakeLeiga
    ) -> None:
        """The update is sent even when nothing resolved."""
        fake_api.ok("/issue/option-fields", OPTION_FIELDS_JSON)
        fake_api.ok("/issue/update", {"success": True})

        outcome = await fields.update_issue(client, "42", status_name="NoSuchStatus")

        assert request_json(fake_api.api_requests()[-1]) == {"issueId": 42}
        assert outcome["payload"] == {}

    @pytest.mark.asyncio
    async def test_bad_dates_still_update(
        self, client: LeigaClient, fake_api: FakeLeiga
    ) -> None:
        """Dates that don't parse are dropped and the update still goes out."""
        fake_api.ok("/issue/option-fields", OPTION_FIELDS_JSON)
        fake_api.ok("/issue/update", {"success": True})

        outcome = await fields.update_issue(
            client, "42", status_name="Done", start_date="²", due_date="9" * 5000
        )

        assert fake_api.paths()[-1] == "/issue/update"
        assert request_json(fake_api.api_requests()[-1]) == {"issueId": 42, "status": 7}
        assert outcome["unresolved"][0] == "startDate:²"
        assert len(outcome["unresolved"]) == 2

    @pytest.mark.asyncio
    async def test_issue_number_is_looked_up(
        self, client: LeigaClient, fake_api: FakeLeiga
    ) -> None:
        """Issue numbers are resolved to their ID first."""
        fake_api.ok("/issue/get-by-issue-number", {"id": 99})
        fake_api.ok("/issue/option-fields", OPTION_FIELDS_JSON)
        fake_api.ok("/issue/update", {"success": True})

        outcome = await fields.update_issue(client, "ABC-5", priority="High")

        assert outcome["issue_id"] == 99
        assert fake_api.api_requests()[1].url.params["issueId"] == "99"
        assert request_json(fake_api.api_requests()[2]) == {"issueId": 99, "priority": 3}

    @pytest.mark.asyncio
    async def test_invalid_ref(self, client: LeigaClient, fake_api: FakeLeiga) -> None:
        """Malformed references fail without any request."""
        with pytest.raises(ValidationError):
            await fields.update_issue(client, "not an issue", status_name="Done")

        assert fake_api.requests == []
