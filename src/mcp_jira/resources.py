"""MCP resources exposing Jira reference data."""

from __future__ import annotations

from fastmcp import FastMCP

from mcp_jira.fields import FieldDirectory
from mcp_jira.jira import JiraService


def register_resources(mcp: FastMCP, jira: JiraService) -> None:
    """Register all Jira resources on the FastMCP server."""

    @mcp.resource("jira://fields")
    async def fields() -> str:
        """All Jira fields with their ids and schema types. Refreshes the cache."""
        directory = await jira.get_field_dict(update=True)
        return _format_fields(directory)

    @mcp.resource("jira://projects")
    async def projects() -> str:
        """Jira projects visible to the configured user, with their leads."""
        data = await jira.get_projects()
        return _format_projects(data)

    @mcp.resource("jira://projects/{project_key}/components")
    async def components(project_key: str) -> str:
        """Components of a Jira project with their ids."""
        data = await jira.get_components(project_key, update=True)
        return _format_components(project_key, data)


def _format_fields(directory: FieldDirectory) -> str:
    if not len(directory):
        return "No fields found."

    lines = [f"# Fields ({len(directory)})", ""]
    for name, field in sorted(directory.by_name.items()):
        kind = field.type
        if field.type == "array":
            kind = f"array of {field.item_type}"
        lines.append(f"- **{name}** (`{field.id}`, {kind})")
    return "\n".join(lines)


def _format_projects(projects: list[dict]) -> str:
    if not projects:
        return "No projects found."

    lines = [f"# Projects ({len(projects)})", ""]
    for p in projects:
        lead = (p.get("lead") or {}).get("displayName", "N/A")
        category = (p.get("projectCategory") or {}).get("name")
        line = f"- **{p.get('name', 'Unnamed')}** (`{p.get('key', '')}`, id={p.get('id')}, lead: {lead})"
        if category:
            line += f" [{category}]"
        lines.append(line)
    return "\n".join(lines)


def _format_components(project_key: str, components: dict[str, str]) -> str:
    if not components:
        return f"No components found in {project_key}."

    lines = [f"# Components of {project_key} ({len(components)})", ""]
    for name, cid in components.items():
        lines.append(f"- **{name}** (id={cid})")
    return "\n".join(lines)
