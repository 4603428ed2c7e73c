"""Tests for result explanations and their fallbacks."""
from reflective_sql.explainer import MAX_EXPLAINED_ROWS, ResultExplainer
from reflective_sql.i18n import Messages
from reflective_sql.llm.base import Completion, LLMTimeoutError
from reflective_sql.llm.providers import MockProvider
from reflective_sql.prompts import PromptAssembler

SQL = "SELECT name, stock FROM products LIMIT 100"


def make_explainer(provider, language="en") -> ResultExplainer:
    messages = Messages(language)
    return ResultExplainer(provider, PromptAssembler(messages), messages)


def test_generated_explanation():
    provider = MockProvider(text="  Widgets are the best stocked product.  ")

    explanation = make_explainer(provider).explain(SQL, [{"name": "widget", "stock": 12}])

    assert explanation.text == "Widgets are the best stocked product."
    assert explanation.generated is True
    assert explanation.usage.total_tokens == 150
    assert provider.calls[0].tools == ()


def test_empty_rows_need_no_service_call():
    provider = MockProvider(text="unused")

    explanation = make_explainer(provider, "es").explain(SQL, [])

    assert explanation.text == "No se encontraron datos que coincidan con los criterios de búsqueda."
    assert explanation.generated is False
    assert provider.calls == []


def test_only_first_rows_are_sent():
    provider = MockProvider(text="Many products.")
    rows = [{"name": f"item-{i}", "stock": i} for i in range(MAX_EXPLAINED_ROWS + 10)]

    make_explainer(provider).explain(SQL, rows)

    prompt = provider.calls[0].messages[1]["content"]
    assert f"item-{MAX_EXPLAINED_ROWS - 1}" in prompt
    assert f"item-{MAX_EXPLAINED_ROWS}\"" not in prompt


def test_service_failure_falls_back():
    provider = MockProvider(script=[LLMTimeoutError("too slow", 60.0)])

    explanation = make_explainer(provider).explain(SQL, [{"name": "widget", "stock": 12}])

    assert explanation.text == "Query completed successfully."
    assert explanation.usage is None


def test_detailed_failure_falls_back():
    provider = MockProvider(should_fail=True)

    explanation = make_explainer(provider).explain(SQL, [{"name": "widget"}], detailed=True)

    assert explanation.text == "A detailed analysis is not available for these results."


def test_blank_text_falls_back():
    provider = MockProvider(script=[Completion(text="   ")])
    explanation = make_explainer(provider, "es").explain(SQL, [{"name": "widget"}])
    assert explanation.text == "Consulta completada exitosamente."


def test_failure_message():
    explanation = make_explainer(MockProvider()).failure()
    assert explanation.text == "Could not complete this request after several correction attempts."
