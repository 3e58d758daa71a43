"""
Issue updates by display name.

Leiga's update endpoint wants internal option values (status 7, priority 3,
...), while callers know names ("Done", "High"). ``update_issue`` fetches the
option fields of the issue, resolves every supplied name against them and sends
only what resolved. Names that match no option are dropped from the payload and
reported back in ``unresolved``; they never fail the update.

The option fields and the update are two separate requests with no transaction
between them: if the issue's schema changes in between, stale values may be
sent.
"""

import logging
import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from .client import LeigaClient
from .models import OptionField

logger = logging.getLogger(__name__)

# Payload field codes
STATUS = "status"
PRIORITY = "priority"
ASSIGNEE = "assignee"
LABEL = "label"
FOLLOWS = "follows"
RELEASE_VERSION = "releaseVersion"
START_DATE = "startDate"
DUE_DATE = "dueDate"

# epoch millis fit in a signed 64-bit integer
_MAX_TIMESTAMP_DIGITS = 19


@dataclass
class ResolutionResult:
    """Sparse update payload plus the entries that could not be resolved."""

    payload: dict[str, Any] = field(default_factory=dict)
    unresolved: list[str] = field(default_factory=list)


def index_fields(option_fields: Iterable[OptionField]) -> dict[str, OptionField]:
    return {f.field_code: f for f in option_fields}


def resolve_option(
    fields_by_code: dict[str, OptionField], field_code: str, name: str
) -> Any | None:
    """Look up ``name`` in the options of ``field_code``; None if absent."""
    option_field = fields_by_code.get(field_code)
    if option_field is None:
        return None
    return option_field.lookup(name)


def parse_date_millis(value: str | int | float) -> int | None:
    """Convert an ISO date/datetime or a millisecond timestamp to epoch millis.

    Naive dates are taken as UTC. Returns None when the value can't be parsed.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    text = value.strip()
    if text.isascii() and text.isdigit():
        if len(text) > _MAX_TIMESTAMP_DIGITS:
            return None
        return int(text)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp() * 1000)


def compose_update(
    option_fields: Iterable[OptionField],
    *,
    summary: str | None = None,
    description: str | None = None,
    status_name: str | None = None,
    priority: str | None = None,
    assignee: str | None = None,
    labels: Sequence[str] | None = None,
    follows: Sequence[str] | None = None,
    release_version: str | None = None,
    start_date: str | int | None = None,
    due_date: str | int | None = None,
) -> ResolutionResult:
    """Build the update payload for the fields given by display name."""
    fields_by_code = index_fields(option_fields)
    result = ResolutionResult()

    if summary is not None:
        result.payload["summary"] = summary
    if description is not None:
        result.payload["description"] = description

    single_valued = (
        (STATUS, status_name),
        (PRIORITY, priority),
        (ASSIGNEE, assignee),
        (RELEASE_VERSION, release_version),
    )
    for code, name in single_valued:
        if name is None:
            continue
        value = resolve_option(fields_by_code, code, name)
        if value is None:
            result.unresolved.append(f"{code}:{name}")
        else:
            result.payload[code] = value

    for code, names in ((LABEL, labels), (FOLLOWS, follows)):
        if names is None:
            continue
        values = []
        for name in names:
            value = resolve_option(fields_by_code, code, name)
            if value is None:
                result.unresolved.append(f"{code}:{name}")
            else:
                values.append(value)
        if values:
            result.payload[code] = values

    for code, raw in ((START_DATE, start_date), (DUE_DATE, due_date)):
        if raw is None:
            continue
        millis = parse_date_millis(raw)
        if millis is None:
            result.unresolved.append(f"{code}:{raw}")
        else:
            result.payload[code] = millis

    if result.unresolved:
        logger.info("Dropped unresolved update fields: %s", ", ".join(result.unresolved))
    return result


async def update_issue(client: LeigaClient, issue_ref: str, **changes: Any) -> dict[str, Any]:
    """Resolve ``changes`` by name and apply them to the issue.

    ``changes`` are the keyword arguments of ``compose_update``. The update
    request is sent even when nothing resolved.

    Returns:
        ``{"issue_id", "payload", "unresolved", "result"}``
    """
    issue_id = await client.resolve_issue_id(issue_ref)
    option_fields = await client.get_option_fields(issue_id)
    resolution = compose_update(option_fields, **changes)
    result = await client.update_issue(issue_id, resolution.payload)
    return {
        "issue_id": issue_id,
        "payload": resolution.payload,
        "unresolved": resolution.unresolved,
        "result": result,
    }
