"""
Minimal MCP-style tool server: exposes the caller's capabilities as a standardized
tool interface, so external agents can discover and call store operations directly.

The tool list is the caller's own registry: privileged-only tools are not listed for
regular users, and calling one returns 403.
"""

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException

from storeagent.agent.llm import Planner, get_planner
from storeagent.agent.tools import CapabilityNotFound, CapabilityRegistry, build_capabilities
from storeagent.api.handlers import get_caller
from storeagent.core.errors import CapabilityError, StoreFailure
from storeagent.core.identity import Caller
from storeagent.core.store import EntityStore, get_store
from storeagent.services.draft_service import DraftSaga

logger = logging.getLogger(__name__)

mcp_router = APIRouter(tags=["mcp"])


def get_registry(
    caller: Caller = Depends(get_caller),
    store: EntityStore = Depends(get_store),
    planner: Planner = Depends(get_planner),
) -> CapabilityRegistry:
    return build_capabilities(store, DraftSaga(store), caller, planner)


@mcp_router.get(
    "/tools",
    summary="MCP tool discovery",
    description="List the tools available to the caller: name, description and JSON-schema parameters.",
)
def mcp_list_tools(registry: CapabilityRegistry = Depends(get_registry)) -> dict[str, list[dict[str, Any]]]:
    return {"tools": registry.describe()}


@mcp_router.post(
    "/tools/{name}",
    summary="MCP tool call",
    description="This endpoint acts as an MCP tool server, allowing external agents to call store operations through a standardized interface.",
)
def mcp_call_tool(
    name: str,
    arguments: dict[str, Any] | None = Body(None),
    registry: CapabilityRegistry = Depends(get_registry),
) -> dict[str, Any]:
    """Run one tool with the body as its arguments. 403 not authorized, 404 unknown, 422 invalid arguments."""
    logger.info("MCP tool called: %s", name)
    found = registry.lookup(name)
    if isinstance(found, CapabilityNotFound):
        status = 403 if found.reason == "not_authorized" else 404
        raise HTTPException(status_code=status, detail=found.message)
    try:
        return found.invoke(arguments or {})
    except CapabilityError as e:
        raise HTTPException(status_code=422, detail=e.message) from e
    except StoreFailure as e:
        logger.exception("MCP tool %s failed", name)
        raise HTTPException(status_code=500, detail="The store could not complete this operation.") from e
