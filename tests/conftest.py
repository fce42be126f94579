"""
Shared fixtures. mongomock stands in for MongoDB; ScriptedPlanner replays fixed
plan rounds so orchestrator runs are deterministic and need no OpenAI key.
"""

from typing import Any, Callable

import mongomock
import pytest

from storeagent.agent.llm import Invocation, Plan, Planner
from storeagent.core.identity import Caller
from storeagent.core.store import EntityStore
from storeagent.services.draft_service import DraftSaga


class ScriptedPlanner(Planner):
    """
    Each round is a list of Invocations, a callable(steps) -> list of Invocations,
    a str (direct answer, no tools) or an Exception to raise. Once the script runs
    out, plan() proposes nothing.
    """

    def __init__(self, *rounds: Any, message: str = "All done.", synth_error: Exception | None = None, completion: str = "") -> None:
        self.rounds = list(rounds)
        self.message = message
        self.synth_error = synth_error
        self.completion = completion
        self.plan_calls: list[dict[str, Any]] = []
        self.synth_calls: list[list[dict[str, Any]]] = []

    def plan(self, instructions, transcript, utterance, tools, steps) -> Plan:
        self.plan_calls.append({
            "instructions": instructions,
            "transcript": list(transcript),
            "utterance": utterance,
            "tools": [t["function"]["name"] for t in tools],
            "steps": [dict(s) for s in steps],
        })
        if not self.rounds:
            return Plan()
        nxt = self.rounds.pop(0)
        if isinstance(nxt, Exception):
            raise nxt
        if callable(nxt):
            nxt = nxt(steps)
        if isinstance(nxt, str):
            return Plan(text=nxt)
        return Plan(invocations=list(nxt))

    def synthesize(self, utterance, steps) -> str:
        if self.synth_error is not None:
            raise self.synth_error
        self.synth_calls.append([dict(s) for s in steps])
        return self.message

    def complete(self, system, prompt, max_tokens=256) -> str:
        return self.completion


@pytest.fixture
def store() -> EntityStore:
    return EntityStore(mongomock.MongoClient().db)


@pytest.fixture
def drafts(store: EntityStore) -> DraftSaga:
    return DraftSaga(store)


@pytest.fixture
def admin() -> Caller:
    return Caller(id="admin-1", role="admin", name="Asha")


@pytest.fixture
def user() -> Caller:
    return Caller(id="user-1", role="user", name="Ravi")


@pytest.fixture
def make_planner() -> Callable[..., ScriptedPlanner]:
    return ScriptedPlanner


@pytest.fixture
def call() -> Callable[..., Invocation]:
    """call("find_products", query={}) -> Invocation."""

    def _call(name: str, /, **arguments: Any) -> Invocation:
        return Invocation(name=name, arguments=arguments)

    return _call
