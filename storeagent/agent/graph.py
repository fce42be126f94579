"""
LangGraph orchestrator: receive → build_context → plan → execute → (plan again | synthesize) → persist → respond.

One turn per invocation. Proposed invocations run strictly in order; after each
execute round the planner is asked again with every earlier result visible, so a
later call can use an id produced by an earlier one. Inferring those dependencies
is the planner's job; the graph only guarantees the ordering and visibility.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Literal, TypedDict

from langgraph.graph import END, StateGraph

from storeagent.agent.llm import Planner
from storeagent.agent.prompt import build_instructions
from storeagent.agent.tools import CapabilityNotFound, build_capabilities
from storeagent.core.config import HISTORY_MAX_MESSAGES, MAX_AGENTIC_ROUNDS
from storeagent.core.errors import (
    CapabilityError,
    PlannerFailure,
    StoreFailure,
    SynthesisFailure,
    TurnFailedError,
    TurnValidationError,
)
from storeagent.core.identity import Caller
from storeagent.core.session_store import SessionMemory
from storeagent.core.store import EntityStore
from storeagent.services.draft_service import DraftSaga

logger = logging.getLogger(__name__)

NO_ANSWER = "I couldn't complete the request."
STORE_FAILURE_MESSAGE = "The store could not complete this operation. Please try again later."
INVALID_REQUEST_MESSAGE = "This operation could not be run with the given details."


class TurnState(TypedDict):
    utterance: str
    session_id: str
    transcript: list  # prior turns, {"role": "user"|"assistant", "content": str}
    instructions: str
    pending: list  # invocations proposed by the last plan round
    steps: list  # {"call_id", "name", "arguments", "result", "executed"}
    planner_text: str
    rounds: int
    message: str
    operations_performed: bool
    timestamp: str


class Orchestrator:
    """Runs turns for one caller. Built per request; holds no state across turns."""

    def __init__(
        self,
        store: EntityStore,
        planner: Planner,
        caller: Caller,
        drafts: DraftSaga | None = None,
        max_rounds: int = MAX_AGENTIC_ROUNDS,
    ) -> None:
        self.store = store
        self.planner = planner
        self.caller = caller
        self.max_rounds = max(1, max_rounds)
        self.registry = build_capabilities(store, drafts or DraftSaga(store), caller, planner)
        self._graph = self._build_graph()

    # --- nodes ---

    def _receive(self, state: TurnState) -> dict:
        utterance = state["utterance"].strip()
        session_id = state.get("session_id") or self.caller.id
        logger.info("[graph:receive] IN  caller=%s role=%s session_id=%s", self.caller.id, self.caller.role, session_id[:16])
        return {"utterance": utterance, "session_id": session_id, "steps": [], "pending": [], "rounds": 0}

    def _build_context(self, state: TurnState) -> dict:
        memory = SessionMemory(self.store, state["session_id"])
        history = memory.list()
        transcript = history[-HISTORY_MAX_MESSAGES:] if HISTORY_MAX_MESSAGES > 0 else []
        memory.append("user", state["utterance"])
        instructions = build_instructions(self.caller, self.registry)
        logger.info("[graph:build_context] OUT history_len=%d replayed=%d tools=%d", len(history), len(transcript), len(self.registry))
        return {"transcript": transcript, "instructions": instructions}

    def _plan(self, state: TurnState) -> dict:
        rounds = state.get("rounds", 0) + 1
        steps = state.get("steps") or []
        logger.info("[graph:plan] IN  round=%d prior_steps=%d", rounds, len(steps))
        plan = self.planner.plan(
            state["instructions"],
            state.get("transcript") or [],
            state["utterance"],
            self.registry.to_openai_tools(),
            steps,
        )
        pending = [
            {"call_id": inv.call_id, "name": inv.name, "arguments": inv.arguments}
            for inv in plan.invocations
        ]
        logger.info("[graph:plan] OUT round=%d invocations=%s", rounds, [p["name"] for p in pending])
        return {"pending": pending, "planner_text": (plan.text or "").strip(), "rounds": rounds}

    def _run_step(self, invocation: dict[str, Any], index: int) -> dict[str, Any]:
        name = invocation.get("name") or ""
        arguments = invocation.get("arguments")
        step = {
            "call_id": invocation.get("call_id") or f"call_{index}",
            "name": name,
            "arguments": arguments if isinstance(arguments, dict) else {},
            "executed": False,
        }
        found = self.registry.lookup(name)
        if isinstance(found, CapabilityNotFound):
            logger.info("[graph:execute] %s -> %s", name, found.reason)
            step["result"] = {"success": False, "error": found.reason, "message": found.message}
            return step
        step["executed"] = True
        try:
            step["result"] = found.invoke(arguments)
        except CapabilityError as e:
            logger.info("[graph:execute] %s rejected: %s", name, e.message)
            step["result"] = {"success": False, "error": "invalid_request", "message": e.message}
        except StoreFailure:
            logger.exception("[graph:execute] %s store failure", name)
            step["result"] = {"success": False, "error": "store_failure", "message": STORE_FAILURE_MESSAGE}
        except Exception:
            logger.exception("[graph:execute] %s failed on malformed arguments", name)
            step["result"] = {"success": False, "error": "invalid_request", "message": INVALID_REQUEST_MESSAGE}
        return step

    def _execute(self, state: TurnState) -> dict:
        steps = list(state.get("steps") or [])
        for invocation in state.get("pending") or []:
            step = self._run_step(invocation, len(steps))
            steps.append(step)
            logger.info(
                "[graph:execute] step=%d name=%s executed=%s success=%s",
                len(steps), step["name"], step["executed"], step["result"].get("success"),
            )
        return {"steps": steps, "pending": []}

    def _synthesize(self, state: TurnState) -> dict:
        steps = state.get("steps") or []
        performed = any(s["executed"] for s in steps)
        if steps:
            message = self.planner.synthesize(state["utterance"], steps)
        else:
            message = state.get("planner_text") or NO_ANSWER
        logger.info("[graph:synthesize] OUT steps=%d operations_performed=%s message_len=%d", len(steps), performed, len(message))
        return {"message": message, "operations_performed": performed}

    def _persist(self, state: TurnState) -> dict:
        SessionMemory(self.store, state["session_id"]).append("assistant", state["message"])
        return {"message": state["message"]}

    def _respond(self, state: TurnState) -> dict:
        return {"timestamp": datetime.now(timezone.utc).isoformat()}

    # --- routing ---

    def _route_after_plan(self, state: TurnState) -> Literal["execute", "synthesize"]:
        return "execute" if state.get("pending") else "synthesize"

    def _route_after_execute(self, state: TurnState) -> Literal["plan", "synthesize"]:
        rounds = state.get("rounds", 0)
        next_node = "plan" if rounds < self.max_rounds else "synthesize"
        logger.info("[graph:route_after_execute] round=%d max_rounds=%d -> %s", rounds, self.max_rounds, next_node)
        return next_node

    def _build_graph(self):
        graph = StateGraph(TurnState)

        graph.add_node("receive", self._receive)
        graph.add_node("build_context", self._build_context)
        graph.add_node("plan", self._plan)
        graph.add_node("execute", self._execute)
        graph.add_node("synthesize", self._synthesize)
        graph.add_node("persist", self._persist)
        graph.add_node("respond", self._respond)

        graph.set_entry_point("receive")
        graph.add_edge("receive", "build_context")
        graph.add_edge("build_context", "plan")
        graph.add_conditional_edges("plan", self._route_after_plan, ["execute", "synthesize"])
        graph.add_conditional_edges("execute", self._route_after_execute, ["plan", "synthesize"])
        graph.add_edge("synthesize", "persist")
        graph.add_edge("persist", "respond")
        graph.add_edge("respond", END)

        return graph.compile()

    # --- entry point ---

    def run_turn(self, utterance: str, session_id: str | None = None) -> dict[str, Any]:
        """
        Run one turn. Returns operations_performed, message, session_id, timestamp.

        Raises TurnValidationError for an empty utterance (nothing is read or recorded)
        and TurnFailedError when planning, synthesis or the transcript store fails; in
        that case the user utterance may already be recorded but no assistant turn is.
        """
        if not utterance or not str(utterance).strip():
            raise TurnValidationError("query is required")
        initial: TurnState = {
            "utterance": str(utterance),
            "session_id": (session_id or "").strip() or self.caller.id,
            "transcript": [],
            "instructions": "",
            "pending": [],
            "steps": [],
            "planner_text": "",
            "rounds": 0,
            "message": "",
            "operations_performed": False,
            "timestamp": "",
        }
        logger.info("[run_turn] START caller=%s utterance=%r", self.caller.id, initial["utterance"][:120])
        try:
            final = self._graph.invoke(initial, {"recursion_limit": 2 * self.max_rounds + 10})
        except (PlannerFailure, SynthesisFailure, StoreFailure) as e:
            logger.exception("[run_turn] turn aborted: %s", type(e).__name__)
            raise TurnFailedError() from e
        logger.info("[run_turn] END steps=%d operations_performed=%s", len(final.get("steps") or []), final["operations_performed"])
        return {
            "operations_performed": final["operations_performed"],
            "message": final["message"],
            "session_id": final["session_id"],
            "timestamp": final["timestamp"],
            "steps": final.get("steps") or [],
        }
