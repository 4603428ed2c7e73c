"""Tests for cleaning free-text SQL returned by the completion service."""
from reflective_sql.sql_cleaner import clean_sql_response, parse_reflection


def test_strips_sql_fence():
    raw = "```sql\nSELECT COUNT(*) FROM products;\n```"
    assert clean_sql_response(raw) == "SELECT COUNT(*) FROM products;"


def test_strips_bare_and_postgres_fences():
    assert clean_sql_response("```\nSELECT 1 AS one\n```") == "SELECT 1 AS one"
    assert clean_sql_response("```postgresql\nSELECT 1 AS one\n```") == "SELECT 1 AS one"


def test_inline_fence_keeps_statement():
    assert clean_sql_response("```SELECT name FROM products```") == "SELECT name FROM products"


def test_preserves_quoted_identifiers():
    raw = '```sql\nSELECT "Product Name", `stock` FROM "Inventory"\n```'
    assert clean_sql_response(raw) == 'SELECT "Product Name", `stock` FROM "Inventory"'


def test_strips_lead_in_and_notes():
    raw = (
        "Here is the SQL query you asked for:\n"
        "SELECT name FROM products LIMIT 10\n"
        "Note: this returns at most 10 rows."
    )
    assert clean_sql_response(raw) == "SELECT name FROM products LIMIT 10"


def test_strips_spanish_lead_in():
    raw = "Aquí está la consulta:\nSELECT name FROM products LIMIT 10"
    assert clean_sql_response(raw) == "SELECT name FROM products LIMIT 10"


def test_strips_comments():
    raw = (
        "-- count all products\n"
        "SELECT COUNT(*) /* total */ FROM products\n"
        "# done"
    )
    assert clean_sql_response(raw) == "SELECT COUNT(*)  FROM products"


def test_short_result_falls_back_to_raw():
    # Cleaning would leave nothing useful; the raw text is kept
    raw = "  -- SELECT 1  "
    assert clean_sql_response(raw) == "-- SELECT 1"


def test_min_length_is_tunable():
    assert clean_sql_response("```\nSHOW\n```", min_length=5) == "```\nSHOW\n```"
    assert clean_sql_response("```\nSHOW\n```", min_length=2) == "SHOW"


def test_empty_input():
    assert clean_sql_response("") == ""


class TestParseReflection:

    def test_english_markers(self):
        parsed = parse_reflection(
            "REASONING: the table is called orders\n"
            "CORRECTED SQL: SELECT COUNT(*) FROM orders"
        )
        assert parsed.reasoning == "the table is called orders"
        assert parsed.sql == "SELECT COUNT(*) FROM orders"

    def test_spanish_markers(self):
        parsed = parse_reflection(
            "RAZONAMIENTO: la tabla se llama orders\n"
            "SQL CORREGIDO:\n```sql\nSELECT COUNT(*) FROM orders\n```"
        )
        assert parsed.reasoning == "la tabla se llama orders"
        assert parsed.sql.startswith("```sql")

    def test_corrected_marker_only(self):
        parsed = parse_reflection("CORRECTED SQL: SELECT 1 AS one")
        assert parsed.sql == "SELECT 1 AS one"
        assert parsed.reasoning is None

    def test_no_markers(self):
        parsed = parse_reflection("SELECT id FROM orders LIMIT 5")
        assert parsed.sql == "SELECT id FROM orders LIMIT 5"
        assert parsed.reasoning is None
