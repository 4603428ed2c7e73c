"""Correction loop: validate, execute, reflect on failure, retry.

States:
    Generated → Executing → Succeeded
                          ↘ Failed → Reflecting → Generated'   (attempts < ceiling)
                                   ↘ Exhausted                  (attempts == ceiling)

Loop state (current SQL, last error, attempt records, token usage) is an
immutable LoopState value threaded through each step. Validation
rejections, database errors and failed correction requests all end up as
AttemptRecords; none of them escapes run().
"""
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Optional

from .db import DatabaseClient
from .errors import ExecutionError, TranslationError, ValidationRejected
from .llm.base import LLMUsage, combine_usage
from .logging import logger
from .schemas_snapshot import SchemaSnapshot
from .schemas_translation import AttemptRecord, TranslationRequest
from .translator import TranslationInvoker
from .validator import validate_query


class CorrectionStatus(Enum):
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class LoopState:
    sql: str
    error: Optional[str] = None
    attempts: tuple[AttemptRecord, ...] = ()
    usage: Optional[LLMUsage] = None


@dataclass(frozen=True)
class CorrectionOutcome:
    """Terminal result of the loop. EXHAUSTED is a normal outcome."""
    sql: str
    rows: list[dict[str, Any]]
    status: CorrectionStatus
    attempts: tuple[AttemptRecord, ...]
    usage: Optional[LLMUsage]

    @property
    def success(self) -> bool:
        return self.status is CorrectionStatus.SUCCEEDED

    @property
    def attempt_count(self) -> int:
        return len(self.attempts)


@dataclass(frozen=True)
class _Execution:
    rows: Optional[list[dict[str, Any]]] = None
    error: Optional[str] = None


class CorrectionLoop:
    """Runs a candidate statement and corrects it until it executes.

    Args:
        invoker: Produces corrected statements
        database: Executes validated statements
        max_attempts: Ceiling on reflection steps (positive)
    """

    def __init__(
        self,
        invoker: TranslationInvoker,
        database: DatabaseClient,
        max_attempts: int = 3
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be a positive integer")
        self._invoker = invoker
        self._database = database
        self._max_attempts = max_attempts

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    def run(
        self,
        request: TranslationRequest,
        snapshot: SchemaSnapshot,
        candidate_sql: str
    ) -> CorrectionOutcome:
        """Execute candidate_sql, reflecting on failures up to the ceiling."""
        state = LoopState(sql=candidate_sql)

        result = self._execute(state.sql, snapshot)
        while result.error is not None:
            state = replace(state, error=result.error)
            if len(state.attempts) >= self._max_attempts:
                logger.error(
                    "correction_exhausted attempts=%d last_error=%s",
                    len(state.attempts), state.error
                )
                return CorrectionOutcome(
                    sql=state.sql,
                    rows=[],
                    status=CorrectionStatus.EXHAUSTED,
                    attempts=state.attempts,
                    usage=state.usage
                )

            state, proposed = self._reflect(state, request)
            if proposed:
                result = self._execute(state.sql, snapshot)
            else:
                result = _Execution(error=state.error)

        if state.attempts:
            logger.info("correction_succeeded attempts=%d", len(state.attempts))
        return CorrectionOutcome(
            sql=state.sql,
            rows=result.rows or [],
            status=CorrectionStatus.SUCCEEDED,
            attempts=state.attempts,
            usage=state.usage
        )

    def _execute(self, sql: str, snapshot: SchemaSnapshot) -> _Execution:
        """Validate then execute. Rejections never reach the database."""
        try:
            self._validate(sql, snapshot)
            rows = self._database.execute(sql)
        except ValidationRejected as e:
            logger.warning("validation_rejected error=%s", e.to_dict())
            return _Execution(error=e.message)
        except ExecutionError as e:
            logger.warning("execution_failed error=%s", e.message)
            return _Execution(error=e.message)
        return _Execution(rows=rows)

    @staticmethod
    def _validate(sql: str, snapshot: SchemaSnapshot) -> None:
        """Raises:
            ValidationRejected: If a blocking check failed
        """
        verdict = validate_query(sql, snapshot)
        if not verdict.valid:
            raise ValidationRejected(verdict, sql)
        for warning in verdict.warnings:
            logger.debug("validation_warning %s", warning)

    def _reflect(
        self,
        state: LoopState,
        request: TranslationRequest
    ) -> tuple[LoopState, bool]:
        """One reflection step. Returns the new state and whether a fix was proposed."""
        attempt_number = len(state.attempts) + 1
        logger.warning(
            "correction_attempt attempt=%d max=%d error=%s",
            attempt_number, self._max_attempts, state.error
        )
        try:
            fix = self._invoker.fix(request, state.sql, state.error or "")
        except TranslationError as e:
            logger.warning("correction_request_failed attempt=%d error=%s", attempt_number, e.message)
            record = AttemptRecord(error=state.error or "", reasoning=e.message, fix_attempt="")
            return replace(state, attempts=state.attempts + (record,)), False

        record = AttemptRecord(error=state.error or "", reasoning=fix.reasoning, fix_attempt=fix.sql)
        return LoopState(
            sql=fix.sql,
            error=None,
            attempts=state.attempts + (record,),
            usage=combine_usage(state.usage, fix.usage)
        ), True
