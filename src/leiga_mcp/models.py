"""Response schemas for the Leiga OpenAPI endpoints."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class _LeigaModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class Envelope(_LeigaModel):
    """Wrapper every Leiga response uses. ``code == "0"`` means success."""

    code: str | int | None = None
    data: Any = None
    msg: str | None = None

    @property
    def ok(self) -> bool:
        return not self.code or str(self.code) == "0"


class AccessToken(_LeigaModel):
    """Payload of /authorize/access-permanent-token."""

    access_token: str = Field(alias="accessToken")
    expire_in: int = Field(default=-1, alias="expireIn")


class Option(_LeigaModel):
    name: str
    value: Any


class OptionField(_LeigaModel):
    """A settable issue attribute and its named choices."""

    field_code: str = Field(alias="fieldCode")
    display_name: str = Field(default="", alias="displayName")
    required: bool = False
    options: list[Option] = Field(default_factory=list)

    def lookup(self, name: str) -> Any | None:
        """Return the value of the option named ``name`` (case-insensitive)."""
        wanted = name.lower()
        for option in self.options:
            if option.name.lower() == wanted:
                return option.value
        return None


class SearchIssuesRequest(_LeigaModel):
    """Filters for /issue/mcp-search-issues. Unset filters are not sent."""

    query: str | None = None
    project_name: str | None = Field(default=None, alias="projectName")
    status: str | None = None
    assignee: str | None = None
    label: str | None = None
    priority: str | None = None
    sprint: str | None = None
    work_type: str | None = Field(default=None, alias="workType")
    start_after_date: str | None = Field(default=None, alias="startAfterDate")
    start_before_date: str | None = Field(default=None, alias="startBeforeDate")
    due_after_date: str | None = Field(default=None, alias="dueAfterDate")
    due_before_date: str | None = Field(default=None, alias="dueBeforeDate")
    created_after_date: str | None = Field(default=None, alias="createdAfterDate")
    created_before_date: str | None = Field(default=None, alias="createdBeforeDate")
    page_size: int = Field(default=10, alias="pageSize")
    page_number: int = Field(default=1, alias="pageNumber")

    def to_body(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class CreateIssueRequest(_LeigaModel):
    """Body for /issue/mcp-create-issue."""

    project_name: str = Field(alias="projectName")
    summary: str
    description: str | None = None
    status_name: str | None = Field(default=None, alias="statusName")
    priority: str | None = None
    sprint: str | None = None
    work_type: str | None = Field(default=None, alias="workType")

    def to_body(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)
