"""Pattern-based static checks for generated SQL.

The validator does not parse SQL. It scans tokens with regular expressions
and compares what it finds to the schema snapshot:

Errors (block execution):
  1. The leading keyword is not a read verb
  2. A denylisted mutation/DDL keyword appears as a standalone word
  3. A table after FROM/JOIN is not in the snapshot

Warnings (advisory):
  4. A qualified table.column names an unknown column
  5. No LIMIT/FETCH clause and no aggregate
  6. More JOINs than ON/USING conditions

Suggestions:
  7. Wildcard projection (SELECT *)

Example:
    >>> verdict = validate_query("UPDATE users SET x = 1", snapshot)
    >>> verdict.valid
    False
"""
import re
from typing import Optional

from .schemas_snapshot import SchemaSnapshot
from .schemas_translation import ValidationVerdict


READ_VERBS = {"SELECT", "WITH", "SHOW", "DESCRIBE", "DESC", "EXPLAIN"}

# REPLACE is left out: it is also a string function
BLOCKED_KEYWORDS = (
    "INSERT", "UPDATE", "DELETE", "DROP", "CREATE", "ALTER", "TRUNCATE",
    "GRANT", "REVOKE", "COPY", "MERGE", "EXEC", "EXECUTE", "CALL",
)
BLOCKED_PATTERNS = tuple(
    (keyword, re.compile(r"\b" + keyword + r"\b", re.IGNORECASE))
    for keyword in BLOCKED_KEYWORDS
)

# Functions whose argument syntax uses FROM without naming a table
FROM_FUNCTIONS = {"EXTRACT", "SUBSTRING", "SUBSTR", "TRIM", "OVERLAY", "POSITION"}

STRING_LITERAL = re.compile(r"'(?:[^']|'')*'")
QUOTED_IDENTIFIER = re.compile(r'"(?:[^"]|"")*"|`[^`]*`')
LEADING_VERB = re.compile(r"^[\s(]*([A-Za-z]+)")
IDENT = r'(?:"[^"]+"|`[^`]+`|\w+)'
TABLE_REFERENCE = re.compile(
    r"\b(FROM|JOIN)\s+(?:(?:LATERAL|ONLY)\b\s*)?(" + IDENT + r"(?:\s*\.\s*" + IDENT + r")?)",
    re.IGNORECASE
)
CTE_NAME = re.compile(r"(?:\bWITH(?:\s+RECURSIVE)?|,)\s*(\w+)\s+AS\s*\(", re.IGNORECASE)
DISTINCT_FROM = re.compile(r"\bIS\s+(?:NOT\s+)?DISTINCT\s+$", re.IGNORECASE)
QUALIFIED_COLUMN = re.compile(r"\b([A-Za-z_]\w*)\.([A-Za-z_]\w*)\b")
AGGREGATE = re.compile(r"\b(?:COUNT|SUM|AVG|MIN|MAX)\s*\(|\bGROUP\s+BY\b", re.IGNORECASE)
ROW_LIMIT = re.compile(r"\bLIMIT\b|\bFETCH\s+(?:FIRST|NEXT)\b|\bTOP\s*\(?\s*\d", re.IGNORECASE)
JOIN = re.compile(r"\bJOIN\b", re.IGNORECASE)
CONDITIONLESS_JOIN = re.compile(r"\b(?:CROSS|NATURAL)\s+(?:\w+\s+)?JOIN\b", re.IGNORECASE)
JOIN_CONDITION = re.compile(r"\bON\b|\bUSING\s*\(", re.IGNORECASE)
WILDCARD = re.compile(r"\bSELECT\s+(?:DISTINCT\s+)?(?:\w+\.)?\*", re.IGNORECASE)


def _blank(pattern: re.Pattern, sql: str) -> str:
    """Replace matches with spaces of the same length, keeping offsets."""
    return pattern.sub(lambda m: " " * len(m.group(0)), sql)


def _leading_verb(sql: str) -> Optional[str]:
    match = LEADING_VERB.match(sql)
    return match.group(1).upper() if match else None


def check_read_only(sql: str) -> list[str]:
    """Errors for statements that are not read-only.

    Runs without a schema snapshot, so it also guards direct SQL execution.
    Every violation is reported; the check does not stop at the first.
    """
    errors = []
    scanned = _blank(QUOTED_IDENTIFIER, _blank(STRING_LITERAL, sql))

    verb = _leading_verb(scanned)
    if verb not in READ_VERBS:
        errors.append(
            f"Only read-only statements are allowed (leading keyword: {verb or 'none'})"
        )

    for keyword, pattern in BLOCKED_PATTERNS:
        if pattern.search(scanned):
            errors.append(f"Blocked keyword detected: {keyword}")

    return errors


def _enclosing_function(sql: str, position: int) -> Optional[str]:
    """Name of the function whose open parenthesis encloses position."""
    depth = 0
    for index in range(position - 1, -1, -1):
        char = sql[index]
        if char == ")":
            depth += 1
        elif char == "(":
            if depth == 0:
                match = re.search(r"(\w+)\s*$", sql[:index])
                return match.group(1).upper() if match else None
            depth -= 1
    return None


def _unquote(identifier: str) -> str:
    identifier = identifier.strip()
    if identifier[:1] in ('"', "`") and identifier[-1:] == identifier[:1]:
        return identifier[1:-1]
    return identifier


def extract_tables(sql: str) -> list[str]:
    """Table names following FROM/JOIN, best effort.

    Schema qualifiers and LATERAL/ONLY modifiers are dropped, CTE names
    and table functions are skipped, and FROM inside EXTRACT/SUBSTRING/TRIM
    or IS DISTINCT FROM is ignored.
    """
    scanned = _blank(STRING_LITERAL, sql)
    cte_names = set()
    if _leading_verb(scanned) == "WITH":
        cte_names = {name.lower() for name in CTE_NAME.findall(scanned)}

    tables: list[str] = []
    for match in TABLE_REFERENCE.finditer(scanned):
        keyword = match.group(1).upper()
        if keyword == "FROM":
            if DISTINCT_FROM.search(scanned[:match.start()]):
                continue
            if _enclosing_function(scanned, match.start()) in FROM_FUNCTIONS:
                continue
        # Table-valued function call, not a table
        if scanned[match.end():].lstrip().startswith("("):
            continue

        name = _unquote(re.split(r"\s*\.\s*", match.group(2))[-1])
        if name.lower() in cte_names:
            continue
        if name.lower() not in {t.lower() for t in tables}:
            tables.append(name)
    return tables


def validate_query(sql: str, snapshot: SchemaSnapshot) -> ValidationVerdict:
    """Run all static checks on sql against the snapshot.

    Args:
        sql: Candidate SQL statement
        snapshot: Schema the statement should target

    Returns:
        ValidationVerdict; valid is False only when a blocking check failed
    """
    errors = check_read_only(sql)
    warnings: list[str] = []
    suggestions: list[str] = []

    available = ", ".join(sorted(snapshot.tables)) or "none"
    for table in extract_tables(sql):
        if not snapshot.has_table(table):
            errors.append(f"Table '{table}' not found in schema. Available: {available}")

    scanned = _blank(STRING_LITERAL, sql)

    seen = set()
    for table, column in QUALIFIED_COLUMN.findall(scanned):
        info = snapshot.get_table(table)
        key = (table.lower(), column.lower())
        if info is None or not info.columns or key in seen:
            continue
        seen.add(key)
        if column.lower() not in info.column_names:
            warnings.append(f"Column '{column}' may not exist in table '{table}'")

    if not ROW_LIMIT.search(scanned) and not AGGREGATE.search(scanned):
        warnings.append("Query has no LIMIT clause and may return many rows")
        suggestions.append("Consider adding LIMIT to avoid large result sets")

    joins = len(JOIN.findall(scanned)) - len(CONDITIONLESS_JOIN.findall(scanned))
    conditions = len(JOIN_CONDITION.findall(scanned))
    if joins > 0 and joins > conditions:
        warnings.append(
            "Possible cartesian product: JOINs detected without matching ON/USING conditions"
        )

    if WILDCARD.search(scanned):
        suggestions.append("Consider listing explicit columns instead of SELECT *")

    return ValidationVerdict(
        valid=not errors,
        errors=tuple(errors),
        warnings=tuple(warnings),
        suggestions=tuple(suggestions),
    )
