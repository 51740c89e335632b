"""Async HTTP client for the Jira Server REST API."""

from __future__ import annotations

import asyncio
from typing import Any

import httpx
from fastmcp.utilities.logging import get_logger

logger = get_logger(__name__)

SESSION_PATH = "/rest/auth/1/session"


class JiraAPIError(Exception):
    """Base error for Jira API failures.

    Carries the HTTP status (``None`` when no response was received)
    and the raw response body.
    """

    def __init__(self, status_code: int | None, message: str, body: str = ""):
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class JiraAuthError(JiraAPIError):
    """401 Unauthorized: session expired or credentials rejected."""


class JiraForbiddenError(JiraAPIError):
    """403 Forbidden: user lacks permission for this action."""


class JiraNotFoundError(JiraAPIError):
    """404 Not Found: resource does not exist."""


class JiraConnectionError(JiraAPIError):
    """The request never produced a response (DNS, refused, timeout...)."""


class JiraClient:
    """Thin async wrapper around Jira's REST API.

    Requests carry the ``JSESSIONID`` cookie once ``login()`` succeeded,
    and fall back to basic auth with the configured credentials otherwise.
    """

    def __init__(
        self,
        base_url: str,
        username: str | None = None,
        password: str | None = None,
        timeout: float = 30.0,
        session_refresh_period: float = 3600.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.username = username
        self.password = password
        self.timeout = timeout
        self.session_refresh_period = session_refresh_period
        self._transport = transport
        self._session_id: str | None = None
        self._refresh_task: asyncio.Task | None = None

    @property
    def session_id(self) -> str | None:
        return self._session_id

    # --- session ---

    async def login(self, username: str | None = None, password: str | None = None) -> None:
        """Open a Jira session and schedule its periodic renewal."""
        data = await self.post(
            SESSION_PATH,
            json={
                "username": username if username is not None else self.username,
                "password": password if password is not None else self.password,
            },
        )
        self._session_id = data["session"]["value"]
        self._schedule_refresh()

    async def logout(self) -> None:
        if self._session_id is None:
            return

        self._cancel_refresh()
        try:
            await self.delete(SESSION_PATH)
        finally:
            # A rejected DELETE still leaves the session unusable
            self._session_id = None

    def _schedule_refresh(self) -> None:
        self._cancel_refresh()
        if self.session_refresh_period > 0:
            self._refresh_task = asyncio.create_task(self._refresh_session())

    def _cancel_refresh(self) -> None:
        task = self._refresh_task
        self._refresh_task = None
        # login() is also called from inside the refresh task itself
        if task is not None and task is not asyncio.current_task():
            task.cancel()

    async def _refresh_session(self) -> None:
        await asyncio.sleep(self.session_refresh_period)
        logger.info("Refreshing Jira session ID")
        try:
            await self.login()
        except JiraAPIError as e:
            logger.warning(
                "Jira session refresh failed, retrying in %ss: %s",
                self.session_refresh_period,
                e,
            )
            self._schedule_refresh()

    # --- requests ---

    def _auth(self) -> tuple[dict[str, str], httpx.Auth | None]:
        if self._session_id is not None:
            return {"Cookie": f"JSESSIONID={self._session_id}"}, None
        if self.username is not None and self.password is not None:
            return {}, httpx.BasicAuth(self.username, self.password)
        return {}, None

    async def request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        headers, auth = self._auth()
        headers["Accept"] = "application/json"
        kwargs: dict[str, Any] = {"params": params, "headers": headers}
        if json is not None:
            kwargs["json"] = json
        if auth is not None:
            kwargs["auth"] = auth

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.request(method, f"{self.base_url}{path}", **kwargs)
        except httpx.RequestError as e:
            raise JiraConnectionError(
                None, f"Could not reach Jira at {self.base_url}: {e}"
            ) from e

        self._raise_for_status(response)
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(
        self, path: str, json: Any = None, params: dict[str, Any] | None = None
    ) -> Any:
        return await self.request("POST", path, params=params, json=json)

    async def put(self, path: str, json: Any = None) -> Any:
        return await self.request("PUT", path, json=json)

    async def delete(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return await self.request("DELETE", path, params=params)

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        status = response.status_code
        if status < 400:
            return
        body = response.text
        if status == 401:
            raise JiraAuthError(401, "Authentication failed, session may be expired.", body)
        if status == 403:
            raise JiraForbiddenError(403, "Permission denied.", body)
        if status == 404:
            raise JiraNotFoundError(404, "Resource not found in Jira.", body)
        if status >= 500:
            raise JiraAPIError(status, f"Jira server error ({status}).", body)
        raise JiraAPIError(status, f"Jira rejected the request ({status}).", body)
