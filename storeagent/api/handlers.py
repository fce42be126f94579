"""
API handlers: read caller identity from headers, call services, map results/errors to HTTP.

Responsibility: Bridge HTTP types and services. Marshalling and exception-to-HTTP mapping.
Lives in the API layer so services stay free of FastAPI/HTTP types.

Caller identity (X-User-Id, X-User-Role, X-User-Name) is trusted as given: these headers
must be set only by the upstream auth layer, which strips any client-supplied values.
"""

import logging
from typing import Any

from fastapi import Header, HTTPException

from storeagent.agent.graph import Orchestrator
from storeagent.agent.llm import Planner
from storeagent.core.config import ORDERS
from storeagent.core.errors import StoreFailure, TurnFailedError, TurnValidationError
from storeagent.core.identity import Caller
from storeagent.core.store import EntityStore
from storeagent.schemas.query import PageResponse, QueryResponse

logger = logging.getLogger(__name__)


def get_caller(
    x_user_id: str | None = Header(None, description="Caller id, set by the auth layer."),
    x_user_role: str | None = Header(None, description="Caller role: admin or user (default user)."),
    x_user_name: str | None = Header(None, description="Caller display name."),
) -> Caller:
    """FastAPI dependency: build the Caller from the auth layer's headers. 401 without an id."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Missing caller identity (X-User-Id).")
    try:
        return Caller(
            id=x_user_id.strip(),
            role=(x_user_role or "user").strip().lower(),
            name=(x_user_name or "").strip(),
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


def handle_query(
    store: EntityStore,
    planner: Planner,
    caller: Caller,
    query: str,
    session_id: str | None,
) -> QueryResponse:
    """Run one turn; 400 on empty input, 500 with a generic message when the turn aborts."""
    try:
        result = Orchestrator(store, planner, caller).run_turn(query, session_id)
    except TurnValidationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except TurnFailedError as e:
        raise HTTPException(status_code=500, detail=e.message) from e
    return QueryResponse(
        operations_performed=result["operations_performed"],
        message=result["message"],
        session_id=result["session_id"],
        timestamp=result["timestamp"],
    )


def handle_listing(
    store: EntityStore,
    caller: Caller,
    collection: str,
    page: int,
    limit: int,
    sort_field: str,
    sort_order: str,
) -> PageResponse:
    """Paginated listing. Non-privileged callers only see their own orders."""
    query: dict[str, Any] = {}
    if collection == ORDERS and not caller.is_privileged:
        query = {"user_id": caller.id}
    offset = (page - 1) * limit
    try:
        result = store.find_paginated(
            collection,
            query,
            None,
            sort={sort_field: 1 if sort_order == "asc" else -1},
            offset=offset,
            limit=limit,
        )
    except StoreFailure as e:
        logger.exception("[api:listing] %s failed", collection)
        raise HTTPException(status_code=500, detail=f"Failed to fetch {collection}.") from e
    return PageResponse(
        data=result["items"],
        page=page,
        page_size=limit,
        total=result["total"],
        has_more=offset + len(result["items"]) < result["total"],
    )
