"""domainsmith/advisor.py

Domain-name advisor workflow.

Pipeline:
  1. Suggest: orchestration run with search_domains + get_domain_status;
             the model answers with a JSON list of suggestions.
  2. Extract: recover the suggestions from the free-text answer.
  3. Decide: short run offering only make_decision; falls back to the
             injected chooser if the model never calls the tool.
  4. Score: rank_domains or check_trademarks on the suggested names,
             merged back into the suggestion dicts.
"""

from __future__ import annotations

# Standard Library
import dataclasses
import logging
from collections.abc import Sequence
from typing import Any

# Local Modules
from domainsmith import extractor
from domainsmith.conversation import ConversationState, Role, Turn
from domainsmith.executor import Chooser, ToolExecutor
from domainsmith.loop import EventCallback, OrchestrationLoop
from domainsmith.prompts import (
    DECISION_PROMPT,
    DOMAIN_SYSTEM_PROMPT,
    SUGGESTION_FORMAT_INSTRUCTION,
    SUGGESTIONS_MARKER,
)
from domainsmith.registry import ToolRegistry
from domainsmith.tools import DECISION_OPTIONS, DECISION_TOOLS, SUGGESTION_TOOLS

logger = logging.getLogger(__name__)

# make_decision call, then the model's closing reply.
_DECISION_MAX_STEPS: int = 2


@dataclasses.dataclass(slots=True)
class AdvisorResult:
    """Outcome of one advisor request."""

    query: str
    decision: str | None
    suggestions: list[dict[str, Any]]
    result: dict[str, Any]
    truncated: bool = False
    tool_calls: list[dict[str, Any]] = dataclasses.field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "query": self.query,
            "decision": self.decision,
            "result": self.result,
            "suggestions": self.suggestions,
            "truncated": self.truncated,
            "tool_calls": self.tool_calls,
        }


def normalize_suggestions(value: Any) -> list[dict[str, Any]]:
    """Pull suggestion dicts out of the shapes models actually produce.

    Accepts ``{"SUGGESTIONS": {"suggestions": [...]}}``, ``{"SUGGESTIONS": [...]}``,
    ``{"suggestions": [...]}``, a bare list, or a single suggestion dict.
    Entries without a ``domain`` are dropped.
    """
    candidates: Any = []
    if isinstance(value, list):
        candidates = value
    elif isinstance(value, dict):
        nested = value.get("SUGGESTIONS")
        options = [
            nested.get("suggestions") if isinstance(nested, dict) else None,
            nested,
            value.get("suggestions"),
        ]
        candidates = next((c for c in options if isinstance(c, list)), None)
        if candidates is None:
            candidates = [value] if value.get("domain") else []

    suggestions: list[dict[str, Any]] = []
    for item in candidates:
        if isinstance(item, dict) and isinstance(item.get("domain"), str) and item["domain"]:
            suggestions.append(dict(item))
    return suggestions


def merge_ranking(
    suggestions: Sequence[dict[str, Any]], ranking: dict[str, Any]
) -> dict[str, Any]:
    """Attach ``rank`` scores to suggestions, best first."""
    scores = {entry["domain"]: entry["score"] for entry in ranking.get("ranked", [])}
    merged = [{**s, "rank": scores.get(s["domain"])} for s in suggestions]
    merged.sort(key=lambda s: s["rank"] or 0, reverse=True)
    return {"ranked": merged, "top": merged[0] if merged else None}


def merge_trademarks(
    suggestions: Sequence[dict[str, Any]], screening: dict[str, Any]
) -> dict[str, Any]:
    """Attach ``trademark_status`` to suggestions, clear names first."""
    statuses = {entry["domain"]: entry["status"] for entry in screening.get("results", [])}
    merged = [{**s, "trademark_status": statuses.get(s["domain"], "Unknown")} for s in suggestions]
    merged.sort(key=lambda s: 0 if "Clear" in s["trademark_status"] else 1)
    return {"trademarks": merged, "top": merged[0] if merged else None}


class DomainAdvisor:
    """Runs the suggest → decide → score workflow over the orchestration loop."""

    def __init__(
        self,
        loop: OrchestrationLoop,
        registry: ToolRegistry,
        executor: ToolExecutor,
        chooser: Chooser | None = None,
    ) -> None:
        self.loop = loop
        self.registry = registry
        self.executor = executor
        self.chooser = chooser or executor.env.chooser

    @staticmethod
    def build_conversation(turns: Sequence[Turn]) -> ConversationState:
        """Prefix the caller's turns with the advisor's system prompts."""
        prefix = [Turn.system(SUGGESTION_FORMAT_INSTRUCTION)]
        if not any(t.role is Role.SYSTEM for t in turns):
            prefix.insert(0, Turn.system(DOMAIN_SYSTEM_PROMPT))
        return ConversationState([*prefix, *turns])

    async def decide(
        self, *, model: str | None = None, on_event: EventCallback | None = None
    ) -> str:
        """Let the model pick the scoring step through make_decision."""
        conversation = ConversationState([Turn.user(DECISION_PROMPT)])
        run = await self.loop.run(
            conversation,
            tool_names=DECISION_TOOLS,
            model=model,
            max_steps=_DECISION_MAX_STEPS,
            on_event=on_event,
        )
        for record in run.tool_call_log:
            if record.request.name == "make_decision" and record.result.ok:
                decision = (record.result.payload or {}).get("decision")
                if decision in DECISION_OPTIONS:
                    logger.info("[advisor] model decision: %s", decision)
                    return decision

        decision = self.chooser(DECISION_OPTIONS)
        logger.info("[advisor] model skipped make_decision; chose %s", decision)
        return decision

    async def score(self, decision: str, suggestions: list[dict[str, Any]]) -> dict[str, Any]:
        """Run the chosen scoring tool and merge its output into *suggestions*."""
        tool_name = "rank_domains" if decision == "rank" else "check_trademarks"
        domains = [s["domain"] for s in suggestions]
        result = await self.executor.execute(self.registry.lookup(tool_name), {"domains": domains})
        if not result.ok:
            return {"error": result.error_message}
        if decision == "rank":
            return merge_ranking(suggestions, result.payload)
        return merge_trademarks(suggestions, result.payload)

    async def advise(
        self,
        turns: Sequence[Turn],
        *,
        model: str | None = None,
        on_event: EventCallback | None = None,
    ) -> AdvisorResult:
        """Produce scored domain suggestions for the caller's conversation.

        Args:
            turns: Inbound conversation (must include a user turn).
            model: Model tag override.
            on_event: Optional diagnostic callback passed to every run.

        Returns:
            The :class:`AdvisorResult`.
        """
        query = next((t.content for t in reversed(turns) if t.role is Role.USER), "")
        run = await self.loop.run(
            self.build_conversation(turns),
            tool_names=SUGGESTION_TOOLS,
            model=model,
            on_event=on_event,
        )

        extraction = extractor.extract(run.final_answer, marker=SUGGESTIONS_MARKER)
        suggestions = normalize_suggestions(extraction.value) if extraction.parsed else []
        logger.info("[advisor] %d suggestion(s) parsed", len(suggestions))

        if not suggestions:
            return AdvisorResult(
                query=query,
                decision=None,
                suggestions=[],
                result=extraction.payload if not extraction.parsed else {"suggestions": []},
                truncated=run.truncated,
                tool_calls=run.tool_calls(),
            )

        decision = await self.decide(model=model, on_event=on_event)
        return AdvisorResult(
            query=query,
            decision=decision,
            suggestions=suggestions,
            result=await self.score(decision, suggestions),
            truncated=run.truncated,
            tool_calls=run.tool_calls(),
        )
