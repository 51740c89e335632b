"""MCP tools for Jira issue operations."""

from __future__ import annotations

from typing import Any

from fastmcp import FastMCP

from mcp_jira.client import JiraAPIError, JiraForbiddenError, JiraNotFoundError
from mcp_jira.fields import UnknownFieldError
from mcp_jira.jira import JiraService

MAX_COMMENTS = 25


def register_tools(mcp: FastMCP, jira: JiraService) -> None:
    """Register all Jira tools on the FastMCP server."""

    @mcp.tool()
    async def get_issue_details(issue_key: str) -> str:
        """Fetch a Jira issue with all of its fields (custom fields by display
        name), description and comments.
        """
        try:
            issue = await jira.get_issue(issue_key)
        except JiraForbiddenError:
            return f"Error: you do not have permission to view issue {issue_key}."
        except JiraNotFoundError:
            return f"Error: issue {issue_key} not found in Jira."

        return _format_issue(issue)

    @mcp.tool()
    async def search_issues(jql: str, start_at: int = 0, max_results: int = 25) -> str:
        """Search Jira issues with a JQL query.

        Args:
            jql: JQL query, e.g. ``project = ABC AND status = "In Progress"``.
            start_at: Number of results to skip (for pagination).
            max_results: Maximum number of results to return (default 25).
        """
        try:
            data = await jira.run_jql(jql, start_at=start_at, max_results=max_results)
        except JiraForbiddenError:
            return "Error: you do not have permission to run this search."
        except JiraNotFoundError:
            return "Error: the search resource was not found in Jira."
        except JiraAPIError as e:
            if e.status_code != 400:
                raise
            return f"Error: Jira rejected the query: {e.body}"
        return _format_search_results(data)

    @mcp.tool()
    async def create_issue(
        project_key: str,
        issue_type: str,
        fields: dict[str, Any],
        component: str | None = None,
    ) -> str:
        """Create a Jira issue.

        Args:
            project_key: Key of the target project.
            issue_type: Issue type name (Bug, Story, Task...).
            fields: Field values keyed by display name or field id,
                e.g. ``{"summary": "...", "Story Points": 3}``.
            component: Optional component name or id.
        """
        try:
            key = await jira.create_issue(project_key, issue_type, fields, component=component)
        except JiraForbiddenError:
            return f"Error: you do not have permission to create issues in {project_key}."
        except JiraNotFoundError:
            return f"Error: project '{project_key}' not found in Jira."
        return f"Created issue {key}."

    @mcp.tool()
    async def update_issue(issue_key: str, fields: dict[str, Any]) -> str:
        """Update fields of a Jira issue. Fields may be keyed by display name or id."""
        try:
            await jira.update_issue(issue_key, fields)
        except JiraForbiddenError:
            return f"Error: you do not have permission to edit issue {issue_key}."
        except JiraNotFoundError:
            return f"Error: issue {issue_key} not found in Jira."
        return f"Updated issue {issue_key}."

    @mcp.tool()
    async def list_transitions(issue_key: str) -> str:
        """List the workflow transitions currently available on an issue."""
        try:
            transitions = await jira.get_transitions(issue_key)
        except JiraNotFoundError:
            return f"Error: issue {issue_key} not found in Jira."
        return _format_transitions(issue_key, transitions)

    @mcp.tool()
    async def transition_issue(
        issue_key: str,
        transition: str,
        fields: dict[str, Any] | None = None,
        comment: str | None = None,
    ) -> str:
        """Move an issue through a workflow transition.

        Args:
            issue_key: Issue to transition.
            transition: Transition name (e.g. "Done") or id.
            fields: Optional field values to set during the transition.
            comment: Optional comment to add with the transition.
        """
        try:
            await jira.do_transition(issue_key, transition, fields=fields, comment=comment)
        except JiraForbiddenError:
            return f"Error: you do not have permission to transition issue {issue_key}."
        except JiraNotFoundError:
            return f"Error: issue {issue_key} not found in Jira."
        return f"Issue {issue_key} transitioned via '{transition}'."

    @mcp.tool()
    async def add_comment(issue_key: str, comment: str) -> str:
        """Add a comment to a Jira issue."""
        try:
            await jira.add_comment(issue_key, comment)
        except JiraForbiddenError:
            return f"Error: you do not have permission to comment on issue {issue_key}."
        except JiraNotFoundError:
            return f"Error: issue {issue_key} not found in Jira."
        return f"Comment added to {issue_key}."

    @mcp.tool()
    async def assign_issue(issue_key: str, assignee: str) -> str:
        """Assign a Jira issue to a user (by username)."""
        try:
            await jira.assign_issue(issue_key, assignee)
        except JiraForbiddenError:
            return f"Error: you do not have permission to assign issue {issue_key}."
        except JiraNotFoundError:
            return f"Error: issue {issue_key} not found in Jira."
        return f"Issue {issue_key} assigned to {assignee}."

    @mcp.tool()
    async def add_watcher(issue_key: str, username: str) -> str:
        """Add a watcher to a Jira issue."""
        try:
            await jira.add_watcher(issue_key, username)
        except JiraNotFoundError:
            return f"Error: issue {issue_key} or user {username} not found in Jira."
        return f"{username} is now watching {issue_key}."

    @mcp.tool()
    async def remove_watcher(issue_key: str, username: str) -> str:
        """Remove a watcher from a Jira issue."""
        try:
            await jira.remove_watcher(issue_key, username)
        except JiraNotFoundError:
            return f"Error: issue {issue_key} or user {username} not found in Jira."
        return f"{username} no longer watches {issue_key}."

    @mcp.tool()
    async def update_labels(issue_key: str, action: str, labels: list[str]) -> str:
        """Add or remove labels on a Jira issue.

        Args:
            issue_key: Issue to update.
            action: Either "add" or "remove".
            labels: Labels to add or remove.
        """
        try:
            await jira.update_labels(issue_key, action, labels)  # type: ignore[arg-type]
        except ValueError as e:
            return f"Error: {e}."
        except JiraNotFoundError:
            return f"Error: issue {issue_key} not found in Jira."
        return f"Labels on {issue_key} updated ({action}: {', '.join(labels)})."

    @mcp.tool()
    async def get_allowed_values(project_key: str, issue_type: str, field_name: str) -> str:
        """List the values a field accepts when creating an issue of a given type."""
        try:
            values = await jira.get_allowed_field_values(project_key, issue_type, field_name)
        except UnknownFieldError:
            return f"Error: field '{field_name}' does not exist in Jira."
        except JiraForbiddenError:
            return f"Error: you do not have permission to create issues in {project_key}."
        except JiraNotFoundError:
            return f"Error: project '{project_key}' not found in Jira."
        except JiraAPIError as e:
            if e.status_code != 400:
                raise
            return f"Error: Jira rejected the request: {e.body}"
        return _format_allowed_values(field_name, values)


def _name(value: Any, default: str = "N/A") -> str:
    """Display name of a Jira object field (user, status, priority...)."""
    if isinstance(value, dict):
        return value.get("displayName") or value.get("name") or default
    return default if value is None else str(value)


def _format_search_results(data: dict) -> str:
    """Format a Jira search response into readable text."""
    issues = data.get("issues", [])
    total = data.get("total", 0)
    start_at = data.get("startAt", 0)
    max_results = data.get("maxResults", 25)

    if not issues:
        return "No issues found matching the query."

    lines = [f"Found {total} issue(s). Showing {start_at + 1}–{start_at + len(issues)}:", ""]

    for i, issue in enumerate(issues, start=start_at + 1):
        fields = issue.get("fields", {})
        lines.append(f"{i}. **{issue.get('key')}**: {fields.get('summary', 'No summary')}")
        status = fields.get("status")
        if status:
            lines.append(f"   Status: {_name(status)}")
        assignee = fields.get("assignee")
        if assignee:
            lines.append(f"   Assignee: {_name(assignee)}")
        lines.append("")

    if start_at + len(issues) < total:
        lines.append(
            f"_More results available. Use start_at={start_at + max_results} to see the next page._"
        )

    return "\n".join(lines)


# Standard fields under their Jira display names; shown in the header
_STANDARD_FIELDS = {
    "id": "id",
    "key": "key",
    "summary": "Summary",
    "description": "Description",
    "comment": "Comment",
    "project": "Project",
    "issuetype": "Issue Type",
    "status": "Status",
    "priority": "Priority",
    "reporter": "Reporter",
    "assignee": "Assignee",
    "created": "Created",
    "updated": "Updated",
}


def _field(issue: dict, field_id: str) -> Any:
    """Value of a standard field, whether keyed by display name or by id."""
    value = issue.get(_STANDARD_FIELDS[field_id])
    return value if value is not None else issue.get(field_id)


def _format_issue(issue: dict) -> str:
    """Format a name-keyed Jira issue dict into readable text for the LLM."""
    lines = [
        f"# {issue.get('key') or issue.get('id')} — {_field(issue, 'summary') or 'No summary'}",
        "",
        f"**Project:** {_name(_field(issue, 'project'))}",
        f"**Type:** {_name(_field(issue, 'issuetype'))}",
        f"**Status:** {_name(_field(issue, 'status'))}",
        f"**Priority:** {_name(_field(issue, 'priority'))}",
        f"**Reporter:** {_name(_field(issue, 'reporter'))}",
        f"**Assignee:** {_name(_field(issue, 'assignee'), 'Unassigned')}",
        f"**Created:** {_field(issue, 'created') or 'N/A'}",
        f"**Updated:** {_field(issue, 'updated') or 'N/A'}",
        "",
    ]

    standard = set(_STANDARD_FIELDS) | set(_STANDARD_FIELDS.values())
    other = {
        name: value
        for name, value in issue.items()
        if name not in standard and value not in (None, "", [], {})
    }
    if other:
        lines.append("## Fields")
        for name, value in sorted(other.items()):
            lines.append(f"- **{name}:** {_format_value(value)}")
        lines.append("")

    description = _field(issue, "description")
    if description:
        lines.append("## Description")
        lines.append(description)
        lines.append("")

    comment = _field(issue, "comment")
    comments = comment.get("comments", []) if isinstance(comment, dict) else []
    if comments:
        lines.append("## Comments")
        for entry in comments[:MAX_COMMENTS]:
            author = _name(entry.get("author"), "Unknown")
            lines.append(f"### {author} — {entry.get('created', '')}")
            lines.append(entry.get("body", ""))
            lines.append("")

        if len(comments) > MAX_COMMENTS:
            lines.append(f"_... and {len(comments) - MAX_COMMENTS} more comments (truncated)._")

    return "\n".join(lines)


def _format_value(value: Any) -> str:
    if isinstance(value, list):
        return ", ".join(_format_value(v) for v in value)
    if isinstance(value, dict):
        return str(value.get("value") or _name(value))
    return str(value)


def _format_transitions(issue_key: str, transitions: dict[str, str]) -> str:
    if not transitions:
        return f"No transitions available for {issue_key}."

    lines = [f"# Transitions for {issue_key} ({len(transitions)})", ""]
    for name, tid in transitions.items():
        lines.append(f"- **{name}** (id={tid})")
    return "\n".join(lines)


def _format_allowed_values(field_name: str, values: list[str]) -> str:
    if not values:
        return f"No allowed values listed for '{field_name}'."

    lines = [f"# Allowed values for {field_name} ({len(values)})", ""]
    lines.extend(f"- {v}" for v in values)
    return "\n".join(lines)
