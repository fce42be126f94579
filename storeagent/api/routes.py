"""
API route aggregator: register endpoints; no logic, only delegate to handlers.
"""

import logging
from typing import Literal

from fastapi import APIRouter, Depends, Query

from storeagent.agent.llm import Planner, get_planner
from storeagent.api.handlers import get_caller, handle_listing, handle_query
from storeagent.core.config import CATEGORIES, DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, ORDERS, PRODUCTS
from storeagent.core.identity import Caller
from storeagent.core.session_store import SessionMemory
from storeagent.core.store import EntityStore, get_store
from storeagent.schemas.query import (
    ClearHistoryResponse,
    HistoryResponse,
    PageResponse,
    QueryRequest,
    QueryResponse,
)

logger = logging.getLogger(__name__)
router = APIRouter()


# --- System ---

@router.get("/", tags=["system"])
def root():
    return {"status": "Store assistant backend running"}


@router.get("/health", tags=["system"])
def health():
    return {"ok": True}


# --- Query (HTTP) ---

@router.post(
    "/query",
    response_model=QueryResponse,
    tags=["query"],
    summary="Run one assistant turn",
    description="Send a request; receive the assistant message and whether data operations ran. 400 on empty query, 500 when the turn aborts.",
)
def post_query(
    body: QueryRequest,
    caller: Caller = Depends(get_caller),
    store: EntityStore = Depends(get_store),
    planner: Planner = Depends(get_planner),
) -> QueryResponse:
    logger.info("[api:post_query] IN  caller=%s role=%s session_id=%s", caller.id, caller.role, body.session_id)
    response = handle_query(store, planner, caller, body.query, body.session_id)
    logger.info("[api:post_query] OUT operations_performed=%s message_len=%d", response.operations_performed, len(response.message))
    return response


# --- History ---

@router.get("/history", response_model=HistoryResponse, tags=["history"], summary="Read a session transcript")
def get_history(
    session_id: str | None = Query(None, description="Session to read; defaults to the caller id."),
    caller: Caller = Depends(get_caller),
    store: EntityStore = Depends(get_store),
) -> HistoryResponse:
    sid = (session_id or "").strip() or caller.id
    return HistoryResponse(session_id=sid, messages=SessionMemory(store, sid).list())


@router.delete("/history", response_model=ClearHistoryResponse, tags=["history"], summary="Reset a session transcript")
def delete_history(
    session_id: str | None = Query(None, description="Session to reset; defaults to the caller id."),
    caller: Caller = Depends(get_caller),
    store: EntityStore = Depends(get_store),
) -> ClearHistoryResponse:
    sid = (session_id or "").strip() or caller.id
    SessionMemory(store, sid).clear()
    return ClearHistoryResponse(session_id=sid, cleared=True)


# --- Listings ---

def _listing(collection: str):
    def endpoint(
        page: int = Query(1, ge=1, description="1-based page number."),
        limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE, description="Page size."),
        sort_field: str = Query("created_at", min_length=1, description="Field to sort by."),
        sort_order: Literal["asc", "desc"] = Query("desc", description="Sort direction."),
        caller: Caller = Depends(get_caller),
        store: EntityStore = Depends(get_store),
    ) -> PageResponse:
        logger.info("[api:list_%s] IN  page=%d limit=%d sort=%s %s", collection, page, limit, sort_field, sort_order)
        return handle_listing(store, caller, collection, page, limit, sort_field, sort_order)
    return endpoint


router.add_api_route(
    "/products", _listing(PRODUCTS), methods=["GET"], response_model=PageResponse, tags=["listings"],
    summary="List products",
)
router.add_api_route(
    "/categories", _listing(CATEGORIES), methods=["GET"], response_model=PageResponse, tags=["listings"],
    summary="List categories",
)
router.add_api_route(
    "/orders", _listing(ORDERS), methods=["GET"], response_model=PageResponse, tags=["listings"],
    summary="List orders (non-admin callers only see their own)",
)
