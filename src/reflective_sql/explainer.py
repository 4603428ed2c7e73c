"""Natural-language explanations of query results.

Explanations are a convenience layered on top of a result: they never
fail a query. Empty results and failed queries get a localized fixed
message without a service call, and service errors fall back to a
localized generic message.
"""
from dataclasses import dataclass
from typing import Any, Optional, Sequence

from .errors import TranslationError
from .i18n import Messages
from .llm.base import CompletionRequest, LLMProvider, LLMUsage
from .logging import logger
from .prompts import PromptAssembler

MAX_EXPLAINED_ROWS = 50


@dataclass(frozen=True)
class Explanation:
    text: str
    usage: Optional[LLMUsage] = None
    generated: bool = False


class ResultExplainer:
    """Turns (sql, rows) into text through the completion service."""

    def __init__(
        self,
        provider: LLMProvider,
        assembler: PromptAssembler,
        messages: Messages,
        timeout: float = 60.0
    ):
        self._provider = provider
        self._assembler = assembler
        self._messages = messages
        self._timeout = timeout

    def explain(
        self,
        sql: str,
        rows: Sequence[dict[str, Any]],
        detailed: bool = False
    ) -> Explanation:
        """Explain rows returned by sql.

        Args:
            sql: The executed statement
            rows: Its result rows (only the first 50 are sent)
            detailed: Ask for a longer, markdown analysis
        """
        if not rows:
            return Explanation(text=self._messages.get("responses", "no_results"))

        operation = "format-detailed-response" if detailed else "format-response"
        messages = self._assembler.explanation(sql, rows[:MAX_EXPLAINED_ROWS], detailed)
        try:
            completion = self._provider.complete(
                CompletionRequest(messages=messages),
                timeout=self._timeout
            )
        except TranslationError as e:
            logger.warning("explanation_failed operation=%s error=%s", operation, e.message)
            return Explanation(text=self._fallback(detailed))

        usage = completion.usage
        if usage is not None:
            logger.info(
                "llm_usage operation=%s model=%s input_tokens=%d output_tokens=%d total_tokens=%d cost_usd=%.6f",
                operation, self._provider.model_name, usage.input_tokens,
                usage.output_tokens, usage.total_tokens, usage.estimated_cost_usd
            )

        text = (completion.text or "").strip()
        if not text:
            return Explanation(text=self._fallback(detailed), usage=usage)
        return Explanation(text=text, usage=usage, generated=True)

    def failure(self) -> Explanation:
        """Message for a query whose correction loop was exhausted."""
        return Explanation(text=self._messages.get("responses", "query_failed"))

    def _fallback(self, detailed: bool) -> str:
        key = "detailed_unavailable" if detailed else "query_completed"
        return self._messages.get("responses", key)
