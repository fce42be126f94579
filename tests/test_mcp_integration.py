"""
Integration tests for MCP tool endpoints.

Uses mongomock and a scripted planner through dependency_overrides, so tests do
not require MongoDB or an OpenAI key.
"""

import pytest
from fastapi.testclient import TestClient

from storeagent.agent.llm import get_planner
from storeagent.agent.tools import ADMIN_CAPABILITIES, USER_CAPABILITIES
from storeagent.core.store import get_store
from storeagent.main import app

ADMIN = {"X-User-Id": "admin-1", "X-User-Role": "admin"}
USER = {"X-User-Id": "user-1"}


@pytest.fixture
def client(store, make_planner) -> TestClient:
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_planner] = lambda: make_planner()
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_mcp_list_tools_is_role_scoped(client: TestClient) -> None:
    """GET /mcp/tools returns only the caller's tools, in stable order."""
    user_tools = client.get("/mcp/tools", headers=USER).json()["tools"]
    admin_tools = client.get("/mcp/tools", headers=ADMIN).json()["tools"]
    assert [t["name"] for t in user_tools] == list(USER_CAPABILITIES)
    assert [t["name"] for t in admin_tools] == list(ADMIN_CAPABILITIES)
    assert set(user_tools[0]) == {"name", "description", "parameters"}


def test_mcp_requires_identity(client: TestClient) -> None:
    assert client.get("/mcp/tools").status_code == 401


def test_mcp_privileged_tool_is_403_for_users(client: TestClient, store) -> None:
    """POST a privileged-only tool as a regular user returns 403 and changes nothing."""
    response = client.post("/mcp/tools/insert_category", json={"name": "Toys"}, headers=USER)
    assert response.status_code == 403
    assert store.count("categories") == 0


def test_mcp_unknown_tool_is_404(client: TestClient) -> None:
    assert client.post("/mcp/tools/frobnicate", json={}, headers=ADMIN).status_code == 404


def test_mcp_invalid_arguments_is_422(client: TestClient) -> None:
    response = client.post("/mcp/tools/insert_product", json={"price": 10}, headers=ADMIN)
    assert response.status_code == 422


def test_mcp_admin_insert_category(client: TestClient, store) -> None:
    response = client.post("/mcp/tools/insert_category", json={"name": "Toys"}, headers=ADMIN)
    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert store.find_one("categories", {"_id": data["data"]["inserted_id"]})["name"] == "Toys"


def test_mcp_user_selection_flow(client: TestClient, store) -> None:
    """A user selects a product by name, views the selection, and finalizes it."""
    client.post("/mcp/tools/sample_data", json={}, headers=ADMIN)
    selected = client.post(
        "/mcp/tools/select_product", json={"product_name": "Garden Hose", "quantity": 2}, headers=USER
    ).json()
    assert selected["success"] is True

    view = client.post("/mcp/tools/view_selection", headers=USER).json()
    assert view["data"]["total_price"] == 1600

    placed = client.post("/mcp/tools/finalize_selection", json={}, headers=USER).json()
    assert placed["success"] is True
    assert store.count("orders", {"user_id": "user-1"}) == 1
