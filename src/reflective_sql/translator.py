"""Translation invoker: natural language to SQL through the completion service.

Each invocation first forces the service to call a declared capability
(generate_sql or fix_sql) whose arguments are validated with pydantic.
When no usable invocation comes back (the service answered with text, or
the arguments fail validation) a plain completion is requested and the
free text is cleaned into SQL.

Architecture:
    TranslationRequest
         ↓
    PromptAssembler (messages)
         ↓
    Structured request (forced capability)
         ↓  no usable invocation
    Text request → clean_sql_response
         ↓
    StructuredTranslation | TextTranslation

Service errors (LLMError, LLMTimeoutError) are TranslationErrors and
propagate; the caller decides whether they are fatal.
"""
from dataclasses import dataclass
from typing import Optional, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from .errors import TranslationError
from .i18n import Messages
from .llm.base import Completion, CompletionRequest, LLMProvider, LLMUsage, ToolSpec, combine_usage
from .logging import logger
from .prompts import PromptAssembler
from .schemas_translation import SqlFixArgs, SqlGenerationArgs, TranslationRequest
from .sql_cleaner import DEFAULT_MIN_LENGTH, clean_sql_response, parse_reflection


T = TypeVar("T", bound=BaseModel)

GENERATE_SQL_TOOL = "generate_sql"
FIX_SQL_TOOL = "fix_sql"

GENERATE_SQL_SPEC = ToolSpec.from_model(
    GENERATE_SQL_TOOL,
    "Return the SQL query that answers the user's question",
    SqlGenerationArgs
)
FIX_SQL_SPEC = ToolSpec.from_model(
    FIX_SQL_TOOL,
    "Return a corrected SQL query and the reasoning behind the fix",
    SqlFixArgs
)


@dataclass(frozen=True)
class StructuredTranslation:
    """SQL produced through the forced capability call."""
    sql: str
    confidence: float
    reasoning: Optional[str]
    usage: Optional[LLMUsage]


@dataclass(frozen=True)
class TextTranslation:
    """SQL recovered from free text. Confidence is unknown, not zero."""
    sql: str
    usage: Optional[LLMUsage]

    @property
    def confidence(self) -> None:
        return None

    @property
    def reasoning(self) -> None:
        return None


Translation = Union[StructuredTranslation, TextTranslation]


@dataclass(frozen=True)
class FixOutcome:
    """A corrected statement proposed by a reflection step."""
    sql: str
    reasoning: str
    structured: bool
    usage: Optional[LLMUsage]


class TranslationInvoker:
    """Issues generate/fix requests with a structured-then-text strategy.

    Example:
        >>> from reflective_sql.llm.providers import MockProvider
        >>> provider = MockProvider(tool_responses={
        ...     "generate_sql": {"sql": "SELECT COUNT(*) FROM products", "confidence": 0.95}
        ... })
        >>> invoker = TranslationInvoker(provider, PromptAssembler(Messages("en")), Messages("en"))
        >>> result = invoker.translate(request)
        >>> isinstance(result, StructuredTranslation)
        True
    """

    def __init__(
        self,
        provider: LLMProvider,
        assembler: PromptAssembler,
        messages: Messages,
        min_sql_length: int = DEFAULT_MIN_LENGTH,
        timeout: float = 60.0
    ):
        self._provider = provider
        self._assembler = assembler
        self._messages = messages
        self._min_sql_length = min_sql_length
        self._timeout = timeout

    def translate(self, request: TranslationRequest) -> Translation:
        """Generate SQL for request.question.

        Raises:
            TranslationError: If the service fails or returns no SQL at all
        """
        operation = "generate-sql"
        messages = self._assembler.translation(request)

        structured = self._complete(
            CompletionRequest(
                messages=messages,
                tools=(GENERATE_SQL_SPEC,),
                forced_tool=GENERATE_SQL_TOOL
            ),
            operation
        )
        args = self._parse_arguments(structured, GENERATE_SQL_TOOL, SqlGenerationArgs)
        if args is not None and args.sql.strip():
            return StructuredTranslation(
                sql=args.sql.strip(),
                confidence=args.confidence,
                reasoning=args.reasoning,
                usage=structured.usage
            )

        logger.info("translation_fallback operation=%s mode=text", operation)
        text = self._complete(CompletionRequest(messages=messages), operation)
        sql = clean_sql_response(text.text or "", operation, self._min_sql_length)
        if not sql:
            raise TranslationError(
                "Completion service returned no SQL",
                details={"operation": operation, "model": self._provider.model_name}
            )
        return TextTranslation(sql=sql, usage=combine_usage(structured.usage, text.usage))

    def fix(
        self,
        request: TranslationRequest,
        failed_sql: str,
        error: str
    ) -> FixOutcome:
        """Propose a corrected statement for failed_sql given the error text.

        Raises:
            TranslationError: If the service fails or returns no SQL at all
        """
        operation = "reflect-fix"
        messages = self._assembler.correction(request, failed_sql, error)
        not_provided = self._messages.get("responses", "reasoning_not_provided")

        structured = self._complete(
            CompletionRequest(
                messages=messages,
                tools=(FIX_SQL_SPEC,),
                forced_tool=FIX_SQL_TOOL
            ),
            operation
        )
        args = self._parse_arguments(structured, FIX_SQL_TOOL, SqlFixArgs)
        if args is not None and args.fixed_sql.strip():
            return FixOutcome(
                sql=args.fixed_sql.strip(),
                reasoning=args.reasoning.strip() or not_provided,
                structured=True,
                usage=structured.usage
            )

        logger.info("translation_fallback operation=%s mode=text", operation)
        text = self._complete(CompletionRequest(messages=messages), operation)
        parsed = parse_reflection(text.text or "")
        sql = clean_sql_response(parsed.sql, operation, self._min_sql_length)
        if not sql:
            raise TranslationError(
                "Completion service returned no corrected SQL",
                details={"operation": operation, "model": self._provider.model_name}
            )
        return FixOutcome(
            sql=sql,
            reasoning=parsed.reasoning or not_provided,
            structured=False,
            usage=combine_usage(structured.usage, text.usage)
        )

    def _complete(self, request: CompletionRequest, operation: str) -> Completion:
        completion = self._provider.complete(request, timeout=self._timeout)
        usage = completion.usage
        if usage is not None:
            logger.info(
                "llm_usage operation=%s model=%s input_tokens=%d output_tokens=%d total_tokens=%d cost_usd=%.6f",
                operation, self._provider.model_name, usage.input_tokens,
                usage.output_tokens, usage.total_tokens, usage.estimated_cost_usd
            )
        return completion

    def _parse_arguments(
        self,
        completion: Completion,
        tool_name: str,
        schema: Type[T]
    ) -> Optional[T]:
        """Validated capability arguments, or None when none were produced."""
        if completion.tool_name != tool_name or not completion.tool_arguments:
            return None
        try:
            return schema.model_validate_json(completion.tool_arguments)
        except ValidationError as e:
            logger.debug("structured_arguments_invalid tool=%s errors=%d", tool_name, e.error_count())
            return None
