"""
Orchestrator tests driven by a scripted planner over mongomock.

Covers sequential visibility between dependent calls, per-step failures that do
not abort the turn, and what is recorded in the transcript when a turn aborts.
"""

from unittest.mock import patch

import pytest

from storeagent.agent.graph import Orchestrator
from storeagent.agent.llm import Invocation
from storeagent.core.config import CATEGORIES, PRODUCTS
from storeagent.core.errors import (
    PlannerFailure,
    StoreFailure,
    SynthesisFailure,
    TurnFailedError,
    TurnValidationError,
)
from storeagent.core.session_store import SessionMemory


def test_dependent_calls_see_earlier_results(store, admin, make_planner, call) -> None:
    planner = make_planner(
        [call("insert_category", name="Books")],
        lambda steps: [call("insert_product", name="Novel", price=300, category_id=steps[0]["result"]["data"]["inserted_id"])],
    )

    result = Orchestrator(store, planner, admin).run_turn("Add category Books, then add product Novel to it")

    category = store.find_one(CATEGORIES, {"name": "Books"})
    product = store.find_one(PRODUCTS, {"name": "Novel"})
    assert product["category_id"] == category["_id"]
    assert len(planner.plan_calls[1]["steps"]) == 1
    assert planner.plan_calls[1]["steps"][0]["result"]["success"] is True
    assert [s["name"] for s in planner.synth_calls[0]] == ["insert_category", "insert_product"]
    assert result["operations_performed"] is True
    assert result["message"] == "All done."


def test_unknown_and_unauthorized_calls_become_failed_steps(store, user, make_planner, call) -> None:
    planner = make_planner([call("delete_user", query={}), call("frobnicate"), call("find_categories")])

    result = Orchestrator(store, planner, user).run_turn("delete everyone")

    steps = planner.synth_calls[0]
    assert [s["result"].get("error") for s in steps[:2]] == ["not_authorized", "unknown"]
    assert [s["executed"] for s in steps] == [False, False, True]
    assert steps[2]["result"]["success"] is True
    assert result["message"] == "All done."


def test_only_denied_calls_perform_no_operations(store, user, make_planner, call) -> None:
    planner = make_planner([call("insert_product", name="x")])
    result = Orchestrator(store, planner, user).run_turn("add a product")
    assert result["operations_performed"] is False
    assert store.count(PRODUCTS) == 0
    assert len(planner.synth_calls) == 1


def test_user_planner_sees_only_user_tools(store, user, make_planner) -> None:
    planner = make_planner("Hi!")
    Orchestrator(store, planner, user).run_turn("hello")
    assert "delete_user" not in planner.plan_calls[0]["tools"]
    assert "select_product" in planner.plan_calls[0]["tools"]
    assert "role user" in planner.plan_calls[0]["instructions"]


def test_invalid_arguments_do_not_stop_siblings(store, admin, make_planner, call) -> None:
    planner = make_planner([call("insert_product", price=5), call("insert_category", name="Toys")])
    Orchestrator(store, planner, admin).run_turn("add stuff")
    steps = planner.synth_calls[0]
    assert steps[0]["result"]["error"] == "invalid_request"
    assert steps[1]["result"]["success"] is True
    assert store.count(CATEGORIES) == 1


def test_store_failure_is_per_step(store, admin, make_planner, call) -> None:
    planner = make_planner([call("delete_product", query={"name": "Pen"}), call("insert_category", name="Toys")])
    with patch.object(store, "delete_many", side_effect=StoreFailure("delete_many", PRODUCTS)):
        result = Orchestrator(store, planner, admin).run_turn("delete Pen and add Toys")
    steps = planner.synth_calls[0]
    assert steps[0]["result"]["error"] == "store_failure"
    assert "delete_many" not in steps[0]["result"]["message"]
    assert steps[1]["result"]["success"] is True
    assert result["operations_performed"] is True


def test_no_op_turn_records_two_entries(store, admin, make_planner) -> None:
    planner = make_planner("Hello! How can I help with the store?")
    result = Orchestrator(store, planner, admin).run_turn("hi")
    assert result["operations_performed"] is False
    assert result["message"] == "Hello! How can I help with the store?"
    assert SessionMemory(store, admin.id).list() == [
        {"role": "user", "content": "hi"},
        {"role": "assistant", "content": "Hello! How can I help with the store?"},
    ]
    assert planner.synth_calls == []


def test_planner_fault_records_only_the_utterance(store, admin, make_planner) -> None:
    planner = make_planner(PlannerFailure("down"))
    with pytest.raises(TurnFailedError):
        Orchestrator(store, planner, admin).run_turn("list products")
    assert SessionMemory(store, admin.id).list() == [{"role": "user", "content": "list products"}]


def test_synthesis_fault_aborts_turn(store, admin, make_planner, call) -> None:
    planner = make_planner([call("find_products")], synth_error=SynthesisFailure("empty"))
    with pytest.raises(TurnFailedError):
        Orchestrator(store, planner, admin).run_turn("list products")
    assert SessionMemory(store, admin.id).list() == [{"role": "user", "content": "list products"}]


def test_empty_utterance_is_rejected_before_any_call(store, admin, make_planner) -> None:
    planner = make_planner("unused")
    with pytest.raises(TurnValidationError):
        Orchestrator(store, planner, admin).run_turn("   ")
    assert planner.plan_calls == []
    assert SessionMemory(store, admin.id).list() == []


def test_prior_transcript_is_replayed(store, admin, make_planner) -> None:
    planner = make_planner("first answer", "second answer")
    orchestrator = Orchestrator(store, planner, admin)
    orchestrator.run_turn("first")
    result = orchestrator.run_turn("second", session_id=admin.id)
    assert result["message"] == "second answer"
    assert planner.plan_calls[1]["transcript"] == [
        {"role": "user", "content": "first"},
        {"role": "assistant", "content": "first answer"},
    ]


def test_explicit_session_id_is_separate(store, admin, make_planner) -> None:
    planner = make_planner("ok")
    result = Orchestrator(store, planner, admin).run_turn("hi", session_id="kiosk-7")
    assert result["session_id"] == "kiosk-7"
    assert len(SessionMemory(store, "kiosk-7").list()) == 2
    assert SessionMemory(store, admin.id).list() == []


def test_rounds_are_bounded(store, admin, make_planner) -> None:
    planner = make_planner(*[[Invocation("find_categories", {})] for _ in range(10)])
    Orchestrator(store, planner, admin, max_rounds=3).run_turn("loop")
    assert len(planner.plan_calls) == 3
    assert len(planner.synth_calls[0]) == 3


def test_missing_call_ids_are_filled(store, admin, make_planner, call) -> None:
    planner = make_planner([call("find_categories"), call("find_products")])
    Orchestrator(store, planner, admin).run_turn("show everything")
    assert [s["call_id"] for s in planner.synth_calls[0]] == ["call_0", "call_1"]


def test_malformed_update_fails_only_its_step(store, admin, make_planner, call) -> None:
    planner = make_planner([call("update_category", query={}, update={"$set": "oops"}), call("insert_category", name="Toys")])

    result = Orchestrator(store, planner, admin).run_turn("rename and add")

    steps = planner.synth_calls[0]
    assert steps[0]["result"]["error"] == "invalid_request"
    assert steps[1]["result"]["success"] is True
    assert result["message"] == "All done."
    assert len(SessionMemory(store, admin.id).list()) == 2


def test_unexpected_executor_error_is_contained(store, admin, make_planner, call) -> None:
    planner = make_planner([call("get_collection_info"), call("insert_category", name="Toys")])
    with patch.object(store, "list_collection_names", side_effect=KeyError("boom")):
        Orchestrator(store, planner, admin).run_turn("show collections and add Toys")
    steps = planner.synth_calls[0]
    assert steps[0]["result"] == {
        "success": False,
        "error": "invalid_request",
        "message": "This operation could not be run with the given details.",
    }
    assert store.count(CATEGORIES) == 1
