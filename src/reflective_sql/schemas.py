from pydantic import BaseModel, Field, ConfigDict
from typing import Any, Optional

from .llm.base import LLMUsage
from .schemas_translation import AttemptRecord


class SqlResult(BaseModel):
    """Result of executing caller-supplied SQL directly."""
    sql: str
    rows: list[dict[str, Any]] = Field(default_factory=list)
    success: bool
    explanation: str
    detailed_explanation: Optional[str] = None
    elapsed_ms: float = 0.0
    from_cache: bool = False
    token_usage: Optional[LLMUsage] = None

    model_config = ConfigDict(frozen=True)


class QueryResult(SqlResult):
    """Result of a natural-language query.

    success=False with a populated attempts list is the normal outcome of
    an exhausted correction loop, not an error.
    """
    attempts: list[AttemptRecord] = Field(default_factory=list)
    attempt_count: int = Field(default=0, ge=0)
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)


class QueryRequest(BaseModel):
    question: str = Field(..., min_length=1, max_length=4000)
    detailed: bool = False
    bypass_cache: bool = False


class SqlRequest(BaseModel):
    sql: str = Field(..., min_length=1, max_length=20000)
    detailed: bool = False


class InvalidateRequest(BaseModel):
    table: str = Field(..., min_length=1, max_length=256)


class CacheToggleRequest(BaseModel):
    enabled: bool
