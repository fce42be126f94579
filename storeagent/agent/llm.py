"""
Planner adapter: the reasoning engine behind a turn.

OpenAI chat completions with tool calling propose invocations; plain completions
compose the final message and generate store queries. When OPENAI_API_KEY is not
set, plain text falls back to the Hugging Face router (tool calling needs OpenAI).
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import httpx
from openai import OpenAI, OpenAIError

from storeagent.core.config import (
    AGENT_MAX_TOKENS,
    HF_API_KEY,
    HF_CHAT_URL,
    HF_LLM_MODEL,
    LLM_API_TIMEOUT,
    OPENAI_API_KEY,
    OPENAI_LLM_MODEL,
    SYNTHESIS_MAX_TOKENS,
)
from storeagent.core.errors import PlannerFailure, SynthesisFailure

logger = logging.getLogger(__name__)

SYNTHESIS_SYSTEM = (
    "You are a summarizer for an e-commerce assistant. Explain to the user, in plain and friendly "
    "language, what was done and what was found. Mention every step that failed or was not "
    "authorized. Never show internal ids unless the user needs them to refer to something, and "
    "never mention tools, JSON or databases."
)


@dataclass
class Invocation:
    """One proposed capability call."""

    name: str
    arguments: dict[str, Any] = field(default_factory=dict)
    call_id: str = ""


@dataclass
class Plan:
    """Planner output: proposed invocations, or direct text when nothing needs to run."""

    invocations: list[Invocation] = field(default_factory=list)
    text: str | None = None


class Planner(ABC):
    """Reasoning engine seen by the orchestrator."""

    @abstractmethod
    def plan(
        self,
        instructions: str,
        transcript: list[dict[str, str]],
        utterance: str,
        tools: list[dict[str, Any]],
        steps: list[dict[str, Any]],
    ) -> Plan:
        """Propose the next invocations given everything executed so far this turn."""
        ...

    @abstractmethod
    def synthesize(self, utterance: str, steps: list[dict[str, Any]]) -> str:
        """Compose one user-facing message from the recorded steps."""
        ...

    @abstractmethod
    def complete(self, system: str, prompt: str, max_tokens: int = 256) -> str:
        """Plain text completion."""
        ...


def _call_openai(client: OpenAI, messages: list[dict[str, Any]], max_tokens: int) -> str:
    """Call OpenAI chat completions. Returns generated text."""
    response = client.chat.completions.create(
        model=OPENAI_LLM_MODEL,
        messages=messages,
        max_tokens=max_tokens,
    )
    msg = response.choices[0].message if response.choices else None
    if not msg or not getattr(msg, "content", None):
        return ""
    out = (msg.content or "").strip()
    logger.info("[llm:openai] OUT response_len=%d", len(out))
    return out


def _call_hf(messages: list[dict[str, Any]], max_tokens: int) -> str:
    """Call Hugging Face router chat completions. Returns generated text, empty on failure."""
    if not HF_API_KEY:
        logger.warning("[llm:hf] no HF_API_KEY")
        return ""
    headers = {"Authorization": f"Bearer {HF_API_KEY}", "Content-Type": "application/json"}
    payload = {"model": HF_LLM_MODEL, "messages": messages, "max_tokens": max_tokens}
    try:
        with httpx.Client(timeout=LLM_API_TIMEOUT) as client:
            response = client.post(HF_CHAT_URL, json=payload, headers=headers)
        if response.status_code != 200:
            logger.warning("[llm:hf] HF LLM error %s: %s", response.status_code, response.text[:200])
            return ""
        data = response.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.warning("[llm:hf] request failed: %s", e)
        return ""
    choices = data.get("choices") or []
    if choices and isinstance(choices[0], dict):
        msg = choices[0].get("message") or {}
        out = (msg.get("content") or "").strip()
        logger.info("[llm:hf] OUT response_len=%d", len(out))
        return out
    return ""


def chat_with_tools(
    client: OpenAI,
    messages: list[dict[str, Any]],
    tools: list[dict[str, Any]],
    max_tokens: int = 512,
) -> tuple[str | None, list[dict[str, Any]]]:
    """
    Call OpenAI chat with tools. Returns (content, tool_calls); tool_calls is a list of
    {"id", "name", "arguments"} with arguments already decoded (undecodable → {}).
    """
    kwargs: dict[str, Any] = {"model": OPENAI_LLM_MODEL, "messages": messages, "max_tokens": max_tokens}
    if tools:
        kwargs["tools"] = tools
    response = client.chat.completions.create(**kwargs)
    msg = response.choices[0].message if response.choices else None
    if not msg:
        return None, []
    content = (getattr(msg, "content", None) or "").strip() or None
    tool_calls = []
    for tc in getattr(msg, "tool_calls", None) or []:
        fn = getattr(tc, "function", None)
        if not fn:
            continue
        fargs = getattr(fn, "arguments", None) or "{}"
        try:
            args = json.loads(fargs) if isinstance(fargs, str) else fargs
        except json.JSONDecodeError:
            args = {}
        tool_calls.append({"id": getattr(tc, "id", None) or "", "name": getattr(fn, "name", None) or "", "arguments": args})
    if tool_calls:
        logger.info("[llm:chat_with_tools] OUT tool_calls=%s", [t["name"] for t in tool_calls])
    if content:
        logger.info("[llm:chat_with_tools] OUT content_len=%d", len(content))
    return content, tool_calls


def steps_to_messages(steps: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Replay executed steps as assistant tool_calls followed by their tool results."""
    messages: list[dict[str, Any]] = []
    for step in steps:
        call_id = step.get("call_id") or ""
        messages.append({
            "role": "assistant",
            "content": "",
            "tool_calls": [{
                "id": call_id,
                "type": "function",
                "function": {"name": step["name"], "arguments": json.dumps(step.get("arguments") or {}, default=str)},
            }],
        })
        messages.append({"role": "tool", "tool_call_id": call_id, "content": json.dumps(step.get("result"), default=str)})
    return messages


class OpenAIPlanner(Planner):
    """Planner backed by OpenAI tool calling, with Hugging Face as the plain-text fallback."""

    def __init__(self, api_key: str = OPENAI_API_KEY, client: OpenAI | None = None) -> None:
        self._api_key = api_key
        self._client = client

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            self._client = OpenAI(api_key=self._api_key, timeout=LLM_API_TIMEOUT)
        return self._client

    def plan(self, instructions, transcript, utterance, tools, steps) -> Plan:
        if not self._api_key and self._client is None:
            raise PlannerFailure("tool calling requires OPENAI_API_KEY")
        messages: list[dict[str, Any]] = [{"role": "system", "content": instructions}]
        for m in transcript:
            if m.get("role") in ("user", "assistant") and (m.get("content") or "").strip():
                messages.append({"role": m["role"], "content": m["content"]})
        messages.append({"role": "user", "content": utterance})
        messages.extend(steps_to_messages(steps))
        logger.info("[llm:plan] IN  messages=%d tools=%d prior_steps=%d", len(messages), len(tools), len(steps))
        try:
            content, tool_calls = chat_with_tools(self.client, messages, tools, max_tokens=AGENT_MAX_TOKENS)
        except OpenAIError as e:
            raise PlannerFailure(str(e)) from e
        invocations = [Invocation(name=tc["name"], arguments=tc["arguments"] or {}, call_id=tc["id"]) for tc in tool_calls]
        return Plan(invocations=invocations, text=content)

    def synthesize(self, utterance: str, steps: list[dict[str, Any]]) -> str:
        results = [
            {"tool": s["name"], "args": s.get("arguments") or {}, "result": s.get("result")}
            for s in steps
        ]
        prompt = (
            f"User request: {utterance}\n\n"
            "Summarize the following tool execution results for the user clearly:\n"
            f"{json.dumps(results, indent=2, default=str)}"
        )
        try:
            out = self.complete(SYNTHESIS_SYSTEM, prompt, max_tokens=SYNTHESIS_MAX_TOKENS)
        except PlannerFailure as e:
            raise SynthesisFailure(str(e)) from e
        if not out:
            raise SynthesisFailure("empty synthesis")
        return out

    def complete(self, system: str, prompt: str, max_tokens: int = 256) -> str:
        messages = [{"role": "system", "content": system}, {"role": "user", "content": prompt}]
        logger.info("[llm:complete] IN  prompt_len=%d max_tokens=%d", len(prompt), max_tokens)
        if self._api_key or self._client is not None:
            try:
                out = _call_openai(self.client, messages, max_tokens)
            except OpenAIError as e:
                raise PlannerFailure(str(e)) from e
            if out:
                return out
            logger.info("[llm] OpenAI returned empty; falling back to Hugging Face")
        return _call_hf(messages, max_tokens)


_planner: Planner | None = None


def get_planner() -> Planner:
    global _planner
    if _planner is None:
        _planner = OpenAIPlanner()
    return _planner
