"""SqlAgent: natural-language questions in, executed SQL and explanations out.

Flow for query():
  1. Load the schema snapshot (SchemaFetchError is fatal)
  2. Cache lookup by (question, language, schema fingerprint)
  3. Translate the question (TranslationError here is fatal)
  4. Correction loop: validate → execute → reflect, up to max_reflections
  5. Explain the result (never fatal)
  6. Store successful results in the cache
  7. Record the execution in the query history

An exhausted correction loop is returned as success=False with its
attempt records, not raised.

Example:
    >>> agent = SqlAgent(provider, PostgresClient())
    >>> result = agent.query("how many products are there?")
    >>> result.sql, result.rows
    ('SELECT COUNT(*) FROM products', [{'count': 42}])
    >>> agent.query("How many products are there").from_cache
    True
"""
import time
from typing import Optional

from .cache import CacheStats, ResultCache
from .config import Language, Settings
from .correction import CorrectionLoop
from .db import DatabaseClient
from .errors import ExecutionError, StructuredError
from .explainer import ResultExplainer
from .i18n import Messages
from .llm.base import LLMProvider, combine_usage
from .logging import logger
from .prompts import PromptAssembler, fill_template
from .query_history import QueryHistory, QueryRecord
from .schema_loader import SchemaLoader, describe_relationships, describe_schema
from .schemas import QueryResult, SqlResult
from .schemas_snapshot import SchemaSnapshot
from .schemas_translation import SchemaContext, TranslationRequest
from .sql_cleaner import clean_sql_response
from .translator import StructuredTranslation, TranslationInvoker
from .validator import check_read_only


class SqlAgent:
    """Orchestrates translation, validation, correction, caching and explanation.

    Args:
        provider: Completion service
        database: Database client used for metadata and execution
        cache: Result cache; when omitted the agent builds and owns one
            from settings
        settings: Runtime settings (defaults to Settings())
        context: Business context folded into every prompt
        history: Query history; a new one is created when omitted
    """

    def __init__(
        self,
        provider: LLMProvider,
        database: DatabaseClient,
        cache: Optional[ResultCache] = None,
        settings: Optional[Settings] = None,
        context: Optional[SchemaContext] = None,
        history: Optional[QueryHistory] = None
    ):
        self._settings = settings or Settings()
        self._database = database
        self._context = context or SchemaContext()
        self._history = history if history is not None else QueryHistory()

        self._messages = Messages(self._settings.language)
        assembler = PromptAssembler(self._messages)
        self._invoker = TranslationInvoker(
            provider,
            assembler,
            self._messages,
            min_sql_length=self._settings.min_sql_length,
            timeout=self._settings.llm_timeout_seconds
        )
        self._loop = CorrectionLoop(self._invoker, database, self._settings.max_reflections)
        self._explainer = ResultExplainer(
            provider,
            assembler,
            self._messages,
            timeout=self._settings.llm_timeout_seconds
        )
        self._schema_loader = SchemaLoader(database, self._settings.schema_ttl_seconds)

        self._owns_cache = cache is None
        self._cache = cache if cache is not None else ResultCache(
            max_size=self._settings.cache_max_size,
            cleanup_interval_seconds=self._settings.cache_cleanup_interval_seconds,
            enabled=self._settings.cache_enabled
        )

    @property
    def language(self) -> Language:
        return self._messages.language

    def set_language(self, language: Language) -> None:
        """Switch prompt and response language. Cache entries are per language."""
        self._messages.set_language(language)
        logger.info("language_changed language=%s", language)

    @property
    def history(self) -> QueryHistory:
        return self._history

    @property
    def cache(self) -> ResultCache:
        return self._cache

    def query(
        self,
        question: str,
        detailed: bool = False,
        bypass_cache: bool = False
    ) -> QueryResult:
        """Answer a natural-language question.

        Args:
            question: The user's question
            detailed: Also produce a detailed analysis of the rows
            bypass_cache: Skip the cache lookup (a success still refreshes the entry)

        Returns:
            QueryResult; success=False when the correction loop was exhausted

        Raises:
            SchemaFetchError: If the schema cannot be loaded
            TranslationError: If the first SQL generation fails
        """
        start = time.perf_counter()
        try:
            snapshot = self._schema_loader.load()
            fingerprint = snapshot.fingerprint
            language = self._messages.language

            if not bypass_cache:
                entry = self._cache.lookup(question, language, fingerprint)
                if entry is not None:
                    return self._from_cache(question, entry, detailed, start)

            request = self._build_request(question, snapshot)
            translation = self._invoker.translate(request)
            outcome = self._loop.run(request, snapshot, translation.sql)
        except StructuredError as e:
            self._record(question, "", False, start, error=e.message)
            logger.error("query_failed error_type=%s error=%s", e.__class__.__name__, e.message)
            raise

        if outcome.success:
            explanation = self._explainer.explain(outcome.sql, outcome.rows)
        else:
            explanation = self._explainer.failure()

        detailed_explanation = None
        detailed_usage = None
        if detailed and outcome.success:
            detailed_result = self._explainer.explain(outcome.sql, outcome.rows, detailed=True)
            detailed_explanation = detailed_result.text
            detailed_usage = detailed_result.usage

        # Confidence describes the generated statement; a corrected one is unscored
        confidence = None
        if isinstance(translation, StructuredTranslation) and not outcome.attempts:
            confidence = translation.confidence

        usage = combine_usage(translation.usage, outcome.usage, explanation.usage, detailed_usage)
        elapsed_ms = self._elapsed_ms(start)

        if outcome.success:
            self._cache.store(
                question, language, fingerprint,
                outcome.sql, outcome.rows, explanation.text, elapsed_ms
            )

        result = QueryResult(
            sql=outcome.sql,
            rows=outcome.rows,
            success=outcome.success,
            explanation=explanation.text,
            detailed_explanation=detailed_explanation,
            elapsed_ms=elapsed_ms,
            from_cache=False,
            token_usage=usage,
            attempts=list(outcome.attempts),
            attempt_count=outcome.attempt_count,
            confidence=confidence
        )
        self._record(
            question, result.sql, result.success, start,
            confidence=confidence, usage=usage,
            error=outcome.attempts[-1].error if not outcome.success and outcome.attempts else None
        )
        logger.info(
            "query_completed success=%s attempts=%d rows=%d elapsed_ms=%.1f",
            result.success, result.attempt_count, len(result.rows), elapsed_ms
        )
        return result

    def execute_sql(self, sql: str, detailed: bool = False) -> SqlResult:
        """Execute caller-supplied SQL once, without translation or correction.

        The statement is cleaned and must pass the read-only checks.
        Execution errors are reported as success=False, never raised.
        """
        start = time.perf_counter()
        cleaned = clean_sql_response(sql, "direct", self._settings.min_sql_length)

        errors = check_read_only(cleaned)
        if errors:
            return self._sql_failure(cleaned, "; ".join(errors), start)

        try:
            rows = self._database.execute(cleaned)
        except ExecutionError as e:
            logger.warning("direct_execution_failed error=%s", e.message)
            return self._sql_failure(cleaned, e.message, start)

        explanation = self._explainer.explain(cleaned, rows)
        detailed_explanation = None
        detailed_usage = None
        if detailed:
            detailed_result = self._explainer.explain(cleaned, rows, detailed=True)
            detailed_explanation = detailed_result.text
            detailed_usage = detailed_result.usage

        usage = combine_usage(explanation.usage, detailed_usage)
        self._record(None, cleaned, True, start, usage=usage)
        return SqlResult(
            sql=cleaned,
            rows=rows,
            success=True,
            explanation=explanation.text,
            detailed_explanation=detailed_explanation,
            elapsed_ms=self._elapsed_ms(start),
            token_usage=usage
        )

    def cache_stats(self) -> Optional[CacheStats]:
        """Cache statistics, or None while caching is disabled."""
        if not self._cache.is_enabled:
            return None
        return self._cache.stats()

    def clear_cache(self) -> None:
        self._cache.clear()

    def invalidate_table(self, table_name: str) -> int:
        """Drop cached results whose SQL mentions table_name. Returns the count."""
        return self._cache.invalidate_by_table(table_name)

    def set_cache_enabled(self, enabled: bool) -> None:
        self._cache.set_enabled(enabled)

    @property
    def is_cache_enabled(self) -> bool:
        return self._cache.is_enabled

    def close(self) -> None:
        """Stop the owned cache's sweeper and close the database client."""
        if self._owns_cache:
            self._cache.close()
        self._database.close()

    def _build_request(self, question: str, snapshot: SchemaSnapshot) -> TranslationRequest:
        return TranslationRequest(
            question=question,
            language=self._messages.language,
            schema_description=describe_schema(snapshot, self._messages, self._context),
            business_context=self._context.business_description,
            relationships=describe_relationships(snapshot),
            examples=self._context.examples,
            custom_instructions=self._context.custom_instructions
        )

    def _from_cache(self, question, entry, detailed: bool, start: float) -> QueryResult:
        detailed_explanation = None
        usage = None
        if detailed:
            detailed_result = self._explainer.explain(entry.sql, entry.results, detailed=True)
            detailed_explanation = detailed_result.text
            usage = detailed_result.usage

        result = QueryResult(
            sql=entry.sql,
            rows=entry.results,
            success=True,
            explanation=entry.explanation,
            detailed_explanation=detailed_explanation,
            elapsed_ms=self._elapsed_ms(start),
            from_cache=True,
            token_usage=usage
        )
        self._record(question, entry.sql, True, start, from_cache=True, usage=usage)
        return result

    def _sql_failure(self, sql: str, error: str, start: float) -> SqlResult:
        message = fill_template(self._messages.get("responses", "execution_failed"), {"error": error})
        self._record(None, sql, False, start, error=error)
        return SqlResult(
            sql=sql,
            rows=[],
            success=False,
            explanation=message,
            elapsed_ms=self._elapsed_ms(start)
        )

    def _record(
        self,
        question: Optional[str],
        sql: str,
        success: bool,
        start: float,
        confidence: Optional[float] = None,
        from_cache: bool = False,
        usage=None,
        error: Optional[str] = None
    ) -> None:
        self._history.add(QueryRecord(
            question=question,
            sql=sql,
            confidence=confidence,
            success=success,
            elapsed_ms=self._elapsed_ms(start),
            from_cache=from_cache,
            token_usage=usage,
            error=error
        ))

    @staticmethod
    def _elapsed_ms(start: float) -> float:
        return (time.perf_counter() - start) * 1000
