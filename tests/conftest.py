"""Shared fixtures: an in-memory Jira behind httpx.MockTransport."""

from __future__ import annotations

import json
from typing import Any

import httpx
import pytest

from mcp_jira.client import JiraClient
from mcp_jira.jira import JiraService

BASE_URL = "https://jira.example.com"

FIELD_LISTING = [
    {"id": "summary", "name": "Summary", "schema": {"type": "string", "system": "summary"}},
    {"id": "customfield_111", "name": "Story Points", "schema": {"type": "number"}},
    {
        "id": "customfield_333",
        "name": "Teams",
        "schema": {"type": "array", "items": "option"},
    },
    {"id": "resolution", "name": "Resolution", "schema": {"type": "resolution"}},
]


class FakeJira:
    """Routes (method, path) to canned responses and records every request.

    A route value is either a JSON-serialisable body (served with 200),
    an int status code (served with an empty body), or an httpx.Response.
    """

    def __init__(self, routes: dict[tuple[str, str], Any] | None = None):
        self.routes: dict[tuple[str, str], Any] = dict(routes or {})
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.path)
        if key not in self.routes:
            return httpx.Response(404, text=f"no route for {key}")

        route = self.routes[key]
        if isinstance(route, httpx.Response):
            return route
        if isinstance(route, int):
            return httpx.Response(route)
        return httpx.Response(200, json=route)

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    def body(self, method: str, path: str, index: int = -1) -> Any:
        return json.loads(self.calls(method, path)[index].content)


@pytest.fixture
def fake_jira() -> FakeJira:
    return FakeJira({("GET", "/rest/api/2/field"): FIELD_LISTING})


@pytest.fixture
def client(fake_jira: FakeJira) -> JiraClient:
    return JiraClient(
        base_url=BASE_URL,
        username="alice",
        password="secret",
        session_refresh_period=0,
        transport=httpx.MockTransport(fake_jira),
    )


@pytest.fixture
def service(client: JiraClient) -> JiraService:
    return JiraService(client)
