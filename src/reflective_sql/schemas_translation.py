"""Pydantic schemas for the translation pipeline.

Covers the request sent to the completion service, the argument payloads
of the two callable capabilities (generate and fix), the attempt trail of
the correction loop and the static validation verdict.
"""
from typing import Optional

from pydantic import BaseModel, Field, ConfigDict

from .config import Language


class QueryExample(BaseModel):
    """A few-shot question/SQL pair."""
    question: str = Field(..., min_length=1)
    sql: str = Field(..., min_length=1)

    model_config = ConfigDict(frozen=True)


class TableContext(BaseModel):
    """Business description of a table and its columns."""
    description: Optional[str] = None
    columns: dict[str, str] = Field(
        default_factory=dict,
        description="column name -> business description"
    )

    model_config = ConfigDict(frozen=True)


class SchemaContext(BaseModel):
    """Business context supplied by the host to improve translation accuracy.

    Example:
        >>> context = SchemaContext(
        ...     business_description="Retail store CRM",
        ...     tables={"products": TableContext(description="Items for sale")},
        ...     examples=[QueryExample(question="How many products?",
        ...                            sql="SELECT COUNT(*) FROM products")],
        ...     custom_instructions=["Prices are in USD"],
        ... )
    """
    business_description: Optional[str] = None
    tables: dict[str, TableContext] = Field(default_factory=dict)
    examples: tuple[QueryExample, ...] = ()
    custom_instructions: tuple[str, ...] = ()

    model_config = ConfigDict(frozen=True)


class TranslationRequest(BaseModel):
    """Everything the prompt assembler needs for one attempt.

    Built fresh per attempt and never mutated.
    """
    question: str = Field(..., min_length=1)
    language: Language = "en"
    schema_description: str
    business_context: Optional[str] = None
    relationships: Optional[str] = None
    examples: tuple[QueryExample, ...] = ()
    custom_instructions: tuple[str, ...] = ()

    model_config = ConfigDict(frozen=True)


class SqlGenerationArgs(BaseModel):
    """Arguments of the generate capability the service is forced to call."""
    sql: str = Field(
        ...,
        min_length=1,
        description="A single read-only SQL statement answering the question",
        examples=["SELECT COUNT(*) FROM products"]
    )
    confidence: float = Field(
        ...,
        ge=0.0,
        le=1.0,
        description="Confidence that the SQL answers the question (0.0-1.0)"
    )
    reasoning: Optional[str] = Field(
        default=None,
        description="Short explanation of how the SQL answers the question"
    )

    model_config = ConfigDict(frozen=True)


class SqlFixArgs(BaseModel):
    """Arguments of the fix capability used by the correction loop."""
    fixed_sql: str = Field(
        ...,
        min_length=1,
        alias="fixedSql",
        description="The corrected read-only SQL statement"
    )
    reasoning: str = Field(
        default="",
        description="What caused the error and how the fix addresses it"
    )

    model_config = ConfigDict(frozen=True, populate_by_name=True)


class AttemptRecord(BaseModel):
    """One reflection: the error that triggered it and the fix it produced.

    Attempt records are ordered and append-only; they form the audit trail
    of a query() result.
    """
    error: str
    reasoning: str
    fix_attempt: str

    model_config = ConfigDict(frozen=True)


class ValidationVerdict(BaseModel):
    """Outcome of the static checks on a candidate statement.

    Only errors block execution; warnings and suggestions are advisory.
    """
    valid: bool
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()
    suggestions: tuple[str, ...] = ()

    model_config = ConfigDict(frozen=True)
