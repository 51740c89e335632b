"""FastMCP server entry point for the Jira MCP server."""

from __future__ import annotations

import asyncio
import os
from importlib.metadata import version

from dotenv import load_dotenv
from fastmcp import FastMCP
from fastmcp.utilities.logging import get_logger
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware

from mcp_jira.client import JiraClient
from mcp_jira.jira import JiraService
from mcp_jira.resources import register_resources
from mcp_jira.tools import register_tools

load_dotenv()

logger = get_logger(__name__)

# Required configuration
JIRA_SERVER = os.environ["JIRA_SERVER"]

# Optional configuration
JIRA_USER = os.environ.get("JIRA_USER")
JIRA_PASSWORD = os.environ.get("JIRA_PASSWORD")
SESSION_REFRESH_PERIOD = int(os.environ.get("SESSION_REFRESH_PERIOD", "60"))  # minutes
JIRA_SESSION_LOGIN = os.environ.get("JIRA_SESSION_LOGIN", "true").lower() in ("1", "true", "yes")
MCP_HOST = os.environ.get("MCP_HOST", "0.0.0.0")
MCP_PORT = int(os.environ.get("MCP_PORT", "8000"))

mcp = FastMCP(
    name="Jira FastMCP Server",
    version=version("mcp-jira"),
    instructions=(
        "MCP server for Jira issue tracking. Issue fields may be given by "
        "display name (e.g. 'Story Points') or by field id."
    ),
)

# Jira REST client and the field-aware layer on top of it
client = JiraClient(
    base_url=JIRA_SERVER,
    username=JIRA_USER,
    password=JIRA_PASSWORD,
    session_refresh_period=SESSION_REFRESH_PERIOD * 60,
)
jira = JiraService(client)

register_tools(mcp, jira)
register_resources(mcp, jira)


async def serve() -> None:
    # Without a session every request falls back to basic auth
    if JIRA_SESSION_LOGIN and JIRA_USER:
        await client.login()
        logger.info("Logged in to %s as %s", JIRA_SERVER, JIRA_USER)

    try:
        await mcp.run_http_async(
            host=MCP_HOST,
            port=MCP_PORT,
            transport="streamable-http",
            middleware=[
                Middleware(
                    CORSMiddleware,
                    allow_origins=["*"],
                    allow_methods=["*"],
                    allow_headers=["*"],
                    expose_headers=["Mcp-Session-Id"],
                ),
            ],
        )
    finally:
        await client.logout()


def main() -> None:
    asyncio.run(serve())


if __name__ == "__main__":
    main()
