"""
Leiga MCP Server - Leiga project management tools for AI agents

Wraps the Leiga OpenAPI (https://app.leiga.com/openapi/api) as MCP tools.

Tools:
- search_all_issues: Search issues with flexible filters
- my_assigned_issues: Search issues assigned to the authenticated user
- get_issue_detail: Get one issue by ID or issue number
- create_issue: Create a new issue
- update_issue: Update issue fields by display name
- get_issue_option_fields: Show settable fields and their options
- list_issue_comments / add_issue_comment: Issue comments
- list_projects: Non-archived projects
- list_members: Project or organization members
- current_date: Today's local date

Credentials: LEIGA_CLIENT_ID, LEIGA_SECRET
Token cache: ~/.leiga/<client_id>-leiga-token.json
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import date
from typing import Any

from mcp.server.fastmcp import FastMCP

from . import fields
from .client import LeigaClient
from .config import LeigaSettings
from .models import CreateIssueRequest, SearchIssuesRequest

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

_client: LeigaClient | None = None


@asynccontextmanager
async def _lifespan(server: FastMCP) -> AsyncIterator[None]:
    """Close the shared Leiga client when the server shuts down."""
    global _client
    try:
        yield
    finally:
        if _client is not None:
            await _client.aclose()
            _client = None


# Initialize FastMCP server
mcp = FastMCP(
    "leiga",
    instructions="""Access to Leiga, a project management tool. Use it to manage issues.

Issues are referenced by numeric ID (e.g. 12345) or issue number (e.g. ABC-678).
Field values (status, priority, assignee, labels, ...) are given by NAME; use
get_issue_option_fields() to see the valid names for an issue.""",
    lifespan=_lifespan,
)


def _configure(settings: LeigaSettings) -> LeigaClient:
    """Apply the log level and install a shared client for ``settings``."""
    global _client
    if settings.debug:
        logging.getLogger("leiga_mcp").setLevel(logging.DEBUG)
    _client = LeigaClient(settings)
    return _client


def _get_client() -> LeigaClient:
    """Get the shared Leiga client, creating it from the environment if needed."""
    if _client is None:
        return _configure(LeigaSettings.from_env())
    return _client


def _issue_summary(client: LeigaClient, issue: dict[str, Any]) -> dict[str, Any]:
    """Project an issue detail response onto the fields agents care about."""
    detail = issue.get("data") or {}
    project_id = detail.get("projectId", issue.get("projectId"))
    return {
        "id": issue.get("id"),
        "issue_number": detail.get("issueNumber"),
        "summary": detail.get("summary"),
        "description": detail.get("description"),
        "priority": (detail.get("priorityVO") or {}).get("name"),
        "status": (detail.get("statusVO") or {}).get("name"),
        "assignee": (detail.get("assigneeVO") or {}).get("name"),
        "project_id": project_id,
        "url": client.issue_url(issue.get("id"), project_id),
    }


# ============================================
# Issue Tools
# ============================================


@mcp.tool()
async def search_all_issues(
    query: str | None = None,
    project_name: str | None = None,
    status: str | None = None,
    assignee: str | None = None,
    label: str | None = None,
    priority: str | None = None,
    sprint: str | None = None,
    work_type: str | None = None,
    start_after_date: str | None = None,
    start_before_date: str | None = None,
    due_after_date: str | None = None,
    due_before_date: str | None = None,
    created_after_date: str | None = None,
    created_before_date: str | None = None,
    page_size: int = 10,
    page_number: int = 1,
) -> dict[str, Any]:
    """
    Search Leiga issues by any combination of filters.

    Args:
        query: Text to search in title
        project_name: Filter by project name
        status: Filter by status (2=ToDo, 3=In Progress, 4=Done)
        assignee: Filter by assignee's user name
        label: Filter by label name
        priority: Filter by priority name (e.g., "Low", "Medium", "High")
        sprint: Filter by sprint name
        work_type: Filter by work type name
        start_after_date: Issues starting on or after this date (YYYY-MM-DD)
        start_before_date: Issues starting on or before this date (YYYY-MM-DD)
        due_after_date: Issues due on or after this date (YYYY-MM-DD)
        due_before_date: Issues due on or before this date (YYYY-MM-DD)
        created_after_date: Issues created on or after this date (YYYY-MM-DD)
        created_before_date: Issues created on or before this date (YYYY-MM-DD)
        page_size: Maximum results (default 10)
        page_number: Page to return (default 1)

    Returns:
        Matching issues and their count
    """
    try:
        request = SearchIssuesRequest(
            query=query,
            project_name=project_name,
            status=status,
            assignee=assignee,
            label=label,
            priority=priority,
            sprint=sprint,
            work_type=work_type,
            start_after_date=start_after_date,
            start_before_date=start_before_date,
            due_after_date=due_after_date,
            due_before_date=due_before_date,
            created_after_date=created_after_date,
            created_before_date=created_before_date,
            page_size=page_size,
            page_number=page_number,
        )
        issues = await _get_client().search_issues(request) or []
        return {"issues": issues, "count": len(issues)}
    except Exception as e:
        return {"error": str(e)}


@mcp.tool()
async def my_assigned_issues(
    query: str | None = None,
    project_name: str | None = None,
    status: str | None = None,
    label: str | None = None,
    priority: str | None = None,
    sprint: str | None = None,
    work_type: str | None = None,
    start_after_date: str | None = None,
    start_before_date: str | None = None,
    due_after_date: str | None = None,
    due_before_date: str | None = None,
    created_after_date: str | None = None,
    created_before_date: str | None = None,
    page_size: int = 10,
    page_number: int = 1,
) -> dict[str, Any]:
    """
    Get MY issues - those assigned to the authenticated user.

    Use only when the request says me, my, mine or myself.

    Args:
        query: Text to search in title
        project_name: Filter by project name
        status: Filter by status (2=ToDo, 3=In Progress, 4=Done)
        label: Filter by label name
        priority: Filter by priority name
        sprint: Filter by sprint name
        work_type: Filter by work type name
        start_after_date: Issues starting on or after this date (YYYY-MM-DD)
        start_before_date: Issues starting on or before this date (YYYY-MM-DD)
        due_after_date: Issues due on or after this date (YYYY-MM-DD)
        due_before_date: Issues due on or before this date (YYYY-MM-DD)
        created_after_date: Issues created on or after this date (YYYY-MM-DD)
        created_before_date: Issues created on or before this date (YYYY-MM-DD)
        page_size: Maximum results (default 10)
        page_number: Page to return (default 1)

    Returns:
        My issues and their count
    """
    try:
        request = SearchIssuesRequest(
            query=query,
            project_name=project_name,
            status=status,
            label=label,
            priority=priority,
            sprint=sprint,
            work_type=work_type,
            start_after_date=start_after_date,
            start_before_date=start_before_date,
            due_after_date=due_after_date,
            due_before_date=due_before_date,
            created_after_date=created_after_date,
            created_before_date=created_before_date,
            page_size=page_size,
            page_number=page_number,
        )
        issues = await _get_client().my_issues(request) or []
        return {"issues": issues, "count": len(issues)}
    except Exception as e:
        return {"error": str(e)}


@mcp.tool()
async def get_issue_detail(issue_id: str) -> dict[str, Any]:
    """
    Get issue detail.

    Args:
        issue_id: Issue ID (e.g., "12345") or issue number (e.g., "ABC-678")

    Returns:
        Issue summary, status, priority, assignee, description and URL
    """
    try:
        client = _get_client()
        issue = await client.get_issue(issue_id)
        return {"found": True, "issue": _issue_summary(client, issue)}
    except Exception as e:
        return {"error": str(e)}


@mcp.tool()
async def create_issue(
    summary: str,
    project_name: str,
    description: str | None = None,
    priority: str | None = None,
    status_name: str | None = None,
    sprint: str | None = None,
    work_type: str | None = None,
) -> dict[str, Any]:
    """
    Create a new Leiga issue.

    Args:
        summary: Issue title
        project_name: Project name
        description: Issue details in markdown
        priority: Priority name (e.g., "Low", "Medium", "High")
        status_name: Workflow state name (e.g., "Not Started", "In Progress", "Done")
        sprint: Sprint name
        work_type: Work type name (e.g., "Story", "Chore", "Bug")

    Returns:
        Created issue number, title and URL
    """
    try:
        request = CreateIssueRequest(
            summary=summary,
            project_name=project_name,
            description=description,
            priority=priority,
            status_name=status_name,
            sprint=sprint,
            work_type=work_type,
        )
        issue = await _get_client().create_issue(request)
        return {"created": True, "issue": issue}
    except Exception as e:
        return {"error": str(e)}


@mcp.tool()
async def update_issue(
    issue_id: str,
    summary: str | None = None,
    description: str | None = None,
    status_name: str | None = None,
    priority: str | None = None,
    assignee: str | None = None,
    labels: list[str] | None = None,
    follows: list[str] | None = None,
    release_version: str | None = None,
    start_date: str | None = None,
    due_date: str | None = None,
) -> dict[str, Any]:
    """
    Update an issue using display names instead of internal IDs.

    Only the given fields change. Names that match no option are skipped
    and listed under "unresolved".

    Args:
        issue_id: Issue ID or issue number
        summary: New title
        description: New description
        status_name: Status name (e.g., "Done")
        priority: Priority name
        assignee: Assignee user name
        labels: Label names
        follows: Follower user names
        release_version: Release version name
        start_date: Start date (YYYY-MM-DD)
        due_date: Due date (YYYY-MM-DD)

    Returns:
        Sent payload, unresolved names and the API result
    """
    try:
        outcome = await fields.update_issue(
            _get_client(),
            issue_id,
            summary=summary,
            description=description,
            status_name=status_name,
            priority=priority,
            assignee=assignee,
            labels=labels,
            follows=follows,
            release_version=release_version,
            start_date=start_date,
            due_date=due_date,
        )
        return {"updated": True, **outcome}
    except Exception as e:
        return {"error": str(e)}


@mcp.tool()
async def get_issue_option_fields(issue_id: str) -> dict[str, Any]:
    """
    List the settable fields of an issue and their valid option names.

    Args:
        issue_id: Issue ID or issue number

    Returns:
        Fields with code, name, required flag and option names
    """
    try:
        client = _get_client()
        option_fields = await client.get_option_fields(await client.resolve_issue_id(issue_id))
        return {
            "fields": [
                {
                    "code": f.field_code,
                    "name": f.display_name,
                    "required": f.required,
                    "options": [o.name for o in f.options],
                }
                for f in option_fields
            ],
        }
    except Exception as e:
        return {"error": str(e)}


# ============================================
# Comment Tools
# ============================================


@mcp.tool()
async def list_issue_comments(
    issue_id: str,
    page_number: int = 1,
    page_size: int = 20,
) -> dict[str, Any]:
    """
    List comments on an issue.

    Args:
        issue_id: Issue ID or issue number
        page_number: Page to return (default 1)
        page_size: Comments per page (default 20)

    Returns:
        Comments page as returned by Leiga
    """
    try:
        client = _get_client()
        comments = await client.list_comments(
            await client.resolve_issue_id(issue_id), page_number, page_size
        )
        return {"comments": comments}
    except Exception as e:
        return {"error": str(e)}


@mcp.tool()
async def add_issue_comment(issue_id: str, content: str) -> dict[str, Any]:
    """
    Add a comment to an issue.

    Args:
        issue_id: Issue ID or issue number
        content: Comment text

    Returns:
        Creation confirmation
    """
    try:
        client = _get_client()
        result = await client.create_comment(await client.resolve_issue_id(issue_id), content)
        return {"created": True, "result": result}
    except Exception as e:
        return {"error": str(e)}


# ============================================
# Project Tools
# ============================================


@mcp.tool()
async def list_projects() -> dict[str, Any]:
    """
    List non-archived projects.

    Returns:
        Projects with ID, name and key
    """
    try:
        projects = await _get_client().list_projects() or []
        active = [
            {"id": p.get("id"), "name": p.get("pname"), "key": p.get("pkey")}
            for p in projects
            if p.get("archived") != 1
        ]
        return {"projects": active, "count": len(active)}
    except Exception as e:
        return {"error": str(e)}


@mcp.tool()
async def list_members(
    project_id: int | None = None,
    page_number: int = 1,
    page_size: int = 20,
) -> dict[str, Any]:
    """
    List members of a project, or of the organization if no project is given.

    Args:
        project_id: Project ID (from list_projects)
        page_number: Page to return (default 1)
        page_size: Members per page (default 20)

    Returns:
        Members page as returned by Leiga
    """
    try:
        members = await _get_client().list_members(project_id, page_number, page_size)
        return {"members": members}
    except Exception as e:
        return {"error": str(e)}


@mcp.tool()
def current_date() -> dict[str, Any]:
    """
    Get the current local date.

    Returns:
        Today's date as YYYY-MM-DD
    """
    return {"date": date.today().isoformat()}


@mcp.prompt(name="leiga-server-prompt")
def leiga_server_prompt() -> str:
    """Instructions for using the Leiga MCP server effectively."""
    return """This server provides access to Leiga, a project management tool. Use it to manage issues.

Tool usage:
- search_all_issues: combine filters for precise results; query searches titles; returns 10 results by default
- my_assigned_issues: use when me, my, mine or myself appear in the request
- get_issue_detail: look up an issue by ID (e.g. 12345) or issue number (e.g. ABC-678)
- create_issue: status_name must match a Leiga workflow state name exactly
- update_issue: give values by name; check "unresolved" in the result and use
  get_issue_option_fields to find the valid names

Best practices:
- Use specific, targeted search queries and apply filters you can infer
- Write clear, actionable summaries and markdown descriptions with acceptance criteria
- Always specify the correct project name

All operations use the authenticated client's permissions."""


def main() -> None:
    """Entry point for the Leiga MCP server."""
    settings = LeigaSettings.from_env()
    _configure(settings)
    logger.info("Starting Leiga MCP server, token cache: %s", settings.config_dir)
    mcp.run()


if __name__ == "__main__":
    main()
