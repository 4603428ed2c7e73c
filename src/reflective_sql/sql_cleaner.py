"""Cleaning of free-text SQL returned by the completion service.

Models wrap SQL in markdown fences, add lead-in sentences and trailing
notes. clean_sql_response removes those artifacts while keeping quoting
that belongs to the statement itself (double-quoted identifiers, single
backticks, string literals).

Example:
    >>> clean_sql_response("```sql\\nSELECT \\"Name\\" FROM users;\\n```")
    'SELECT "Name" FROM users;'
"""
import re
from dataclasses import dataclass
from typing import Optional

from .logging import logger

DEFAULT_MIN_LENGTH = 5

FENCE_OPEN = re.compile(
    r"```[ \t]*(?:sqlite|postgresql|postgres|pgsql|psql|mysql|mariadb|sql)?[ \t]*\n?",
    re.IGNORECASE
)
FENCE = re.compile(r"```")
LINE_COMMENT = re.compile(r"--[^\n]*")
BLOCK_COMMENT = re.compile(r"/\*.*?\*/", re.DOTALL)
NOTE_LINE = re.compile(r"^\s*(Explanation|Explicación|Note|Nota)\s*:.*$", re.IGNORECASE | re.MULTILINE)
HASH_LINE = re.compile(r"^\s*(#|//)\s.*$", re.MULTILINE)

LEAD_IN_PHRASES = (
    # English
    "Here is", "Here's", "This query", "The query", "The following query",
    "Below is", "SQL query", "The SQL",
    # Spanish
    "Esta consulta", "Este query", "La consulta", "El query", "A continuación",
    "Aquí está", "Consulta SQL", "La siguiente consulta", "Query SQL",
    "El siguiente SQL", "Código SQL",
)
LEAD_IN_LINE = re.compile(
    r"^\s*(" + "|".join(re.escape(p) for p in LEAD_IN_PHRASES) + r").*$",
    re.IGNORECASE | re.MULTILINE
)

REFLECTION_PATTERN = re.compile(
    r"(?:REASONING|RAZONAMIENTO)\s*:(?P<reasoning>.*?)(?:CORRECTED SQL|SQL CORREGIDO)\s*:(?P<sql>.*)",
    re.IGNORECASE | re.DOTALL
)
CORRECTED_ONLY_PATTERN = re.compile(
    r"(?:CORRECTED SQL|SQL CORREGIDO)\s*:(?P<sql>.*)",
    re.IGNORECASE | re.DOTALL
)


def clean_sql_response(
    raw: str,
    operation: str = "unknown",
    min_length: int = DEFAULT_MIN_LENGTH
) -> str:
    """Strip presentation artifacts from model output.

    Args:
        raw: Text returned by the completion service
        operation: Operation name for diagnostics (generate-sql, reflect-fix)
        min_length: A cleaned result shorter than this is assumed to be
            over-cleaned and the trimmed raw text is returned instead

    Returns:
        The cleaned SQL string
    """
    if not raw:
        return ""

    cleaned = FENCE_OPEN.sub("", raw)
    cleaned = FENCE.sub("", cleaned)
    cleaned = BLOCK_COMMENT.sub("", cleaned)
    cleaned = LINE_COMMENT.sub("", cleaned)
    cleaned = LEAD_IN_LINE.sub("", cleaned)
    cleaned = NOTE_LINE.sub("", cleaned)
    cleaned = HASH_LINE.sub("", cleaned)

    lines = [line.rstrip() for line in cleaned.splitlines() if line.strip()]
    cleaned = "\n".join(lines).strip()

    if len(cleaned) < min_length:
        logger.debug(
            "sql_cleaning_fallback operation=%s cleaned_length=%d min_length=%d",
            operation, len(cleaned), min_length
        )
        return raw.strip()

    if cleaned != raw:
        logger.debug(
            "sql_cleaned operation=%s original_length=%d cleaned_length=%d removed=%d",
            operation, len(raw), len(cleaned), len(raw) - len(cleaned)
        )
    return cleaned


@dataclass(frozen=True)
class ParsedReflection:
    """SQL and reasoning extracted from a text-mode fix response."""
    sql: str
    reasoning: Optional[str]


def parse_reflection(text: str) -> ParsedReflection:
    """Split a fix response on its REASONING / CORRECTED SQL markers.

    Without markers the whole text is the SQL and reasoning is None.
    """
    if not text:
        return ParsedReflection(sql="", reasoning=None)

    match = REFLECTION_PATTERN.search(text)
    if match:
        reasoning = match.group("reasoning").strip() or None
        return ParsedReflection(sql=match.group("sql").strip(), reasoning=reasoning)

    match = CORRECTED_ONLY_PATTERN.search(text)
    if match:
        return ParsedReflection(sql=match.group("sql").strip(), reasoning=None)

    return ParsedReflection(sql=text.strip(), reasoning=None)
