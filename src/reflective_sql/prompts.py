"""Prompt assembly for translation, correction and explanation requests.

Rendering is pure: the same request and message set always produce the
same chat messages. Optional sections (relationships, business context,
examples, custom instructions) are omitted entirely when empty, and any
placeholder a template does not receive a value for renders as "".

Example:
    >>> assembler = PromptAssembler(Messages("en"))
    >>> messages = assembler.translation(TranslationRequest(
    ...     question="how many products are there?",
    ...     schema_description="Table products: id (integer), name (text)",
    ... ))
    >>> messages[1]["role"]
    'user'
"""
import json
import re
from typing import Any, Mapping, Sequence

from .i18n import Messages
from .schemas_translation import QueryExample, TranslationRequest

PLACEHOLDER_PATTERN = re.compile(r"\{(\w+)\}")


def fill_template(template: str, values: Mapping[str, str]) -> str:
    """Substitute {name} placeholders literally.

    Unknown placeholders become empty strings. Substituted values are not
    re-scanned, so braces inside a value (JSON rows, SQL) are kept as-is.
    """
    return PLACEHOLDER_PATTERN.sub(lambda m: values.get(m.group(1), ""), template)


class PromptAssembler:
    """Renders requests into chat messages using a localized message set."""

    def __init__(self, messages: Messages):
        self._messages = messages

    def translation(self, request: TranslationRequest) -> tuple[dict[str, str], ...]:
        """Messages asking for a SQL translation of request.question."""
        values = self._context_values(request)
        values["custom_instructions"] = self._instructions_section(request.custom_instructions)
        prompt = fill_template(self._prompt("translate_sql"), values)
        return self._chat("system_sql", prompt)

    def correction(
        self,
        request: TranslationRequest,
        failed_sql: str,
        error: str
    ) -> tuple[dict[str, str], ...]:
        """Messages asking to fix failed_sql given the database error text."""
        values = self._context_values(request)
        values["sql"] = failed_sql
        values["error"] = error
        prompt = fill_template(self._prompt("fix_sql"), values)
        return self._chat("system_sql", prompt)

    def explanation(
        self,
        sql: str,
        rows: Sequence[Mapping[str, Any]],
        detailed: bool = False
    ) -> tuple[dict[str, str], ...]:
        """Messages asking to explain rows returned by sql."""
        template = self._prompt("explain_detailed" if detailed else "explain")
        prompt = fill_template(template, {
            "sql": sql,
            "results": json.dumps(list(rows), default=str, ensure_ascii=False),
        })
        return self._chat("system_explain", prompt)

    def _context_values(self, request: TranslationRequest) -> dict[str, str]:
        return {
            "question": request.question,
            "schema": request.schema_description,
            "relationships": self._section("relationships", request.relationships),
            "business_context": self._section("business_context", request.business_context),
            "examples": self._examples_section(request.examples),
        }

    def _section(self, heading_key: str, body: str | None) -> str:
        if not body or not body.strip():
            return ""
        heading = self._messages.get("sections", heading_key)
        return f"{heading}\n{body.strip()}\n\n"

    def _examples_section(self, examples: Sequence[QueryExample]) -> str:
        if not examples:
            return ""
        question_label = self._messages.get("sections", "example_question")
        sql_label = self._messages.get("sections", "example_sql")
        lines = []
        for number, example in enumerate(examples, start=1):
            lines.append(f"{number}. {question_label}: {example.question}")
            lines.append(f"   {sql_label}: {example.sql}")
        return self._section("examples", "\n".join(lines))

    def _instructions_section(self, instructions: Sequence[str]) -> str:
        bullets = [f"- {item.strip()}" for item in instructions if item.strip()]
        return self._section("custom_instructions", "\n".join(bullets))

    def _prompt(self, key: str) -> str:
        return self._messages.get("prompts", key)

    def _chat(self, system_key: str, prompt: str) -> tuple[dict[str, str], ...]:
        return (
            {"role": "system", "content": self._prompt(system_key)},
            {"role": "user", "content": prompt},
        )
