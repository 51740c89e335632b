"""Field-aware Jira operations built on top of JiraClient.

Every call that sends or receives issue fields goes through the
instance's FieldDirectory, so callers can use display names
("Story Points") where Jira expects ids ("customfield_10042").
"""

from __future__ import annotations

from typing import Any, Literal

from fastmcp.utilities.logging import get_logger

from mcp_jira.client import JiraClient
from mcp_jira.fields import FieldDirectory, resolve

logger = get_logger(__name__)

API = "/rest/api/2"
FIELD_PATH = f"{API}/field"
PROJECT_PATH = f"{API}/project"
ISSUE_PATH = f"{API}/issue"
CREATEMETA_PATH = f"{API}/issue/createmeta"
SEARCH_PATH = f"{API}/search"
USER_PATH = f"{API}/user"

SCRIPTRUNNER_OWNERSHIP_PATH = (
    "/rest/scriptrunner/latest/canned/"
    "com.onresolve.scriptrunner.canned.jira.admin.ChangeSharedEntityOwnership"
)


class JiraService:
    """Jira operations with field-name translation.

    Owns the field directory and the per-project components cache;
    neither is shared with other instances.
    """

    def __init__(self, client: JiraClient):
        self.client = client
        self.fields = FieldDirectory(lambda: client.get(FIELD_PATH))
        self._components: dict[str, dict[str, str]] = {}

    # --- fields ---

    async def get_field_dict(self, update: bool = False) -> FieldDirectory:
        return await self.fields.populate(force=update)

    async def get_allowed_field_values(
        self, project_key: str, issue_type: str, field_name: str
    ) -> list[str]:
        """Allowed values of a field on the create screen of an issue type.

        Raises UnknownFieldError if ``field_name`` is not a known field.
        """
        data = await self.client.get(
            CREATEMETA_PATH,
            params={
                "expand": "projects.issuetypes.fields",
                "projectKeys": project_key,
                "issuetypeNames": issue_type,
            },
        )
        field = await self.fields.require(field_name)

        projects = (data or {}).get("projects") or []
        if not projects or not projects[0].get("issuetypes"):
            return []

        meta = projects[0]["issuetypes"][0].get("fields", {}).get(field.id)
        if meta is None or meta.get("allowedValues") is None:
            return []
        return [v.get("value") for v in meta["allowedValues"]]

    # --- projects ---

    async def get_components(self, project_key: str, update: bool = False) -> dict[str, str]:
        """Component name -> id for a project, cached per project key."""
        if project_key in self._components and not update:
            return self._components[project_key]

        data = await self.client.get(f"{PROJECT_PATH}/{project_key}/components")
        components = {c["name"]: c["id"] for c in data or []}
        self._components[project_key] = components
        return components

    async def get_projects(self, category: str | None = None) -> list[dict[str, Any]]:
        projects = await self.client.get(PROJECT_PATH, params={"expand": "lead"}) or []
        if category is not None:
            return [
                p for p in projects
                if (p.get("projectCategory") or {}).get("name") == category
            ]
        return projects

    async def update_project(self, project_key: str, data: dict[str, Any]) -> None:
        await self.client.put(f"{PROJECT_PATH}/{project_key}", json=data)

    async def update_project_lead(self, project_key: str, lead: str) -> None:
        await self.update_project(project_key, {"lead": lead})

    # --- issues ---

    async def create_issue(
        self,
        project_key: str,
        issue_type: str,
        fields: dict[str, Any],
        component: str | None = None,
    ) -> str:
        """Create an issue and return its key.

        ``component`` may be a component name or id; ``fields`` may be
        keyed by display name or by field id.
        """
        payload: dict[str, Any] = {
            "project": {"key": project_key},
            "issuetype": {"name": issue_type},
        }
        if component is not None:
            components = await self.get_components(project_key)
            payload["components"] = [{"id": resolve(components, component).value}]

        payload.update(await self.fields.to_ids(fields))
        issue = {"fields": payload}

        logger.debug("create_issue: issue (%s)", issue)
        data = await self.client.post(ISSUE_PATH, json=issue)
        return data["key"]

    async def update_issue(self, key: str, fields: dict[str, Any]) -> None:
        issue = {"fields": await self.fields.to_ids(fields)}
        await self.client.put(f"{ISSUE_PATH}/{key}", json=issue)

    async def get_issue(self, id_or_key: str) -> dict[str, Any]:
        """Fetch an issue with its fields keyed by display name.

        Fields without a known name keep their id, so nothing is dropped.
        """
        data = await self.client.get(f"{ISSUE_PATH}/{id_or_key}")
        issue = await self.fields.to_names(data.get("fields") or {})
        issue["id"] = data.get("id")
        issue["key"] = data.get("key")
        return issue

    async def set_issue_reporter(self, key: str, reporter: str) -> None:
        await self.update_issue(key, {"reporter": {"name": reporter}})

    async def assign_issue(self, id_or_key: str, assignee: str) -> None:
        await self.client.put(f"{ISSUE_PATH}/{id_or_key}/assignee", json={"name": assignee})

    async def update_labels(
        self, key: str, action: Literal["add", "remove"], labels: list[str]
    ) -> None:
        if action not in ("add", "remove"):
            raise ValueError(f"Label action must be 'add' or 'remove', not {action!r}")

        issue = {"update": {"labels": [{action: label} for label in labels]}}
        await self.client.put(f"{ISSUE_PATH}/{key}", json=issue)

    async def add_comment(self, id_or_key: str, comment: str) -> None:
        await self.client.post(f"{ISSUE_PATH}/{id_or_key}/comment", json={"body": comment})

    async def add_watcher(self, id_or_key: str, watcher: str) -> None:
        # Jira expects the bare username as a JSON string
        await self.client.post(f"{ISSUE_PATH}/{id_or_key}/watchers", json=watcher)

    async def remove_watcher(self, id_or_key: str, watcher: str) -> None:
        await self.client.delete(
            f"{ISSUE_PATH}/{id_or_key}/watchers", params={"username": watcher}
        )

    # --- transitions ---

    async def get_transitions(self, id_or_key: str) -> dict[str, str]:
        """Transitions currently available on the issue, name -> id."""
        data = await self.client.get(f"{ISSUE_PATH}/{id_or_key}/transitions")
        return {t["name"]: t["id"] for t in (data or {}).get("transitions", [])}

    async def do_transition(
        self,
        id_or_key: str,
        transition: str,
        fields: dict[str, Any] | None = None,
        comment: str | None = None,
    ) -> None:
        """Move an issue through a transition given by name or id.

        ``update`` and ``fields`` are left out of the request entirely
        when ``comment`` or ``fields`` is None. An explicit empty ``fields``
        mapping is sent as an empty object.
        """
        available = await self.get_transitions(id_or_key)
        data: dict[str, Any] = {"transition": {"id": resolve(available, transition).value}}

        if fields is not None:
            data["fields"] = await self.fields.to_ids(fields, wrap=lambda v: {"name": v})
        if comment is not None:
            data["update"] = {"comment": [{"add": {"body": comment}}]}

        await self.client.post(f"{ISSUE_PATH}/{id_or_key}/transitions", json=data)

    # --- search & users ---

    async def run_jql(self, jql: str, start_at: int = 0, max_results: int = 50) -> dict[str, Any]:
        data = await self.client.get(
            SEARCH_PATH,
            params={"jql": jql, "startAt": start_at, "maxResults": max_results},
        )
        return data or {}

    async def get_user(
        self, user: str, by_key: bool = False, include_groups: bool = False
    ) -> dict[str, Any]:
        params = {"key": user} if by_key else {"username": user}
        if include_groups:
            params["expand"] = "groups"
        return await self.client.get(USER_PATH, params=params)

    # --- ScriptRunner shared entity ownership ---

    async def _owned_entity_ids(self, user_id: str, field: str) -> list[int]:
        data = await self.client.post(
            f"{SCRIPTRUNNER_OWNERSHIP_PATH}/params",
            json={"FIELD_FROM_USER_ID": user_id},
        )
        return [
            value[0]
            for obj in data or []
            if obj.get("name") == field
            for value in obj.get("values", [])
        ]

    async def get_user_dashboard_ids(self, user_id: str) -> list[int]:
        return await self._owned_entity_ids(user_id, "FIELD_DASHBOARD_IDS")

    async def get_user_filter_ids(self, user_id: str) -> list[int]:
        return await self._owned_entity_ids(user_id, "FIELD_FILTER_IDS")

    async def _change_ownership(
        self,
        from_user_id: str,
        to_user_id: str,
        dashboard_ids: list[int],
        filter_ids: list[int],
    ) -> None:
        data = await self.client.post(
            f"{SCRIPTRUNNER_OWNERSHIP_PATH}/preview",
            json={
                "FIELD_FROM_USER_ID": from_user_id,
                "FIELD_TO_USER_ID": to_user_id,
                "FIELD_DASHBOARD_IDS": dashboard_ids,
                "FIELD_FILTER_IDS": filter_ids,
            },
        )
        logger.info("%s", data)

    async def migrate_dashboards(
        self, from_user_id: str, to_user_id: str, dashboard_ids: list[int]
    ) -> None:
        await self._change_ownership(from_user_id, to_user_id, dashboard_ids, [])

    async def migrate_filters(
        self, from_user_id: str, to_user_id: str, filter_ids: list[int]
    ) -> None:
        await self._change_ownership(from_user_id, to_user_id, [], filter_ids)
