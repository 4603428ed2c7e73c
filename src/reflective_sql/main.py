import os
from functools import lru_cache

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse, Response
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST

from .agent import SqlAgent
from .config import Settings
from .db import PostgresClient
from .errors import ConfigurationError, ErrorCategory, StructuredError
from .llm.base import LLMProvider
from .llm.providers import OpenAIProvider, OpenRouterProvider
from .logging import setup_logging, correlation_id_middleware, logger
from .schemas import CacheToggleRequest, InvalidateRequest, QueryRequest, QueryResult, SqlRequest, SqlResult

setup_logging()
app = FastAPI(title="Reflective SQL", version="0.1.0")
app.middleware("http")(correlation_id_middleware)

QUERIES = Counter("rsql_queries_total", "Total natural-language queries", ["outcome"])
LAT = Histogram("rsql_query_duration_ms", "Query duration in ms")
CORRECTIONS = Counter("rsql_correction_attempts_total", "Total correction attempts")
TOKENS_IN = Counter("rsql_tokens_input_total", "Total input tokens consumed")
TOKENS_OUT = Counter("rsql_tokens_output_total", "Total output tokens generated")
COST = Counter("rsql_cost_usd_total", "Total estimated cost in USD")

STATUS_BY_CATEGORY = {
    ErrorCategory.SCHEMA: 503,
    ErrorCategory.TRANSLATION: 502,
    ErrorCategory.VALIDATION: 422,
    ErrorCategory.EXECUTION: 400,
    ErrorCategory.CONFIGURATION: 500,
    ErrorCategory.UNKNOWN: 500,
}


def build_provider() -> LLMProvider:
    """Pick the completion provider from the environment.

    Raises:
        ConfigurationError: If no provider API key is set
    """
    if os.getenv("OPENROUTER_API_KEY"):
        return OpenRouterProvider()
    if os.getenv("OPENAI_API_KEY"):
        return OpenAIProvider()
    raise ConfigurationError(
        "No completion provider configured: set OPENROUTER_API_KEY or OPENAI_API_KEY"
    )


@lru_cache(maxsize=1)
def get_agent() -> SqlAgent:
    settings = Settings.from_env()
    return SqlAgent(
        build_provider(),
        PostgresClient(db_schema=settings.db_schema),
        settings=settings
    )


@app.exception_handler(StructuredError)
def structured_error_handler(request: Request, exc: StructuredError):
    status = STATUS_BY_CATEGORY.get(exc.category, 500)
    logger.error(
        "request_failed correlation_id=%s status=%d error_type=%s",
        getattr(request.state, "correlation_id", "unknown"), status, exc.__class__.__name__
    )
    return JSONResponse(status_code=status, content=exc.to_dict())


def _track_usage(result: SqlResult) -> None:
    usage = result.token_usage
    if usage is None:
        return
    if usage.input_tokens > 0:
        TOKENS_IN.inc(usage.input_tokens)
    if usage.output_tokens > 0:
        TOKENS_OUT.inc(usage.output_tokens)
    if usage.estimated_cost_usd > 0:
        COST.inc(usage.estimated_cost_usd)


@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/metrics")
def metrics():
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.post("/query", response_model=QueryResult)
def query(req: QueryRequest, agent: SqlAgent = Depends(get_agent)):
    result = agent.query(req.question, detailed=req.detailed, bypass_cache=req.bypass_cache)
    if result.from_cache:
        outcome = "cache_hit"
    else:
        outcome = "success" if result.success else "exhausted"
    QUERIES.labels(outcome=outcome).inc()
    LAT.observe(result.elapsed_ms)
    if result.attempt_count:
        CORRECTIONS.inc(result.attempt_count)
    _track_usage(result)
    return result


@app.post("/sql", response_model=SqlResult)
def execute_sql(req: SqlRequest, agent: SqlAgent = Depends(get_agent)):
    result = agent.execute_sql(req.sql, detailed=req.detailed)
    _track_usage(result)
    return result


@app.get("/cache/stats")
def cache_stats(agent: SqlAgent = Depends(get_agent)):
    stats = agent.cache_stats()
    return {"enabled": agent.is_cache_enabled, "stats": stats.to_dict() if stats else None}


@app.delete("/cache")
def clear_cache(agent: SqlAgent = Depends(get_agent)):
    agent.clear_cache()
    return {"status": "cleared"}


@app.post("/cache/invalidate")
def invalidate_cache(req: InvalidateRequest, agent: SqlAgent = Depends(get_agent)):
    removed = agent.invalidate_table(req.table)
    return {"table": req.table, "removed": removed}


@app.put("/cache/enabled")
def set_cache_enabled(req: CacheToggleRequest, agent: SqlAgent = Depends(get_agent)):
    agent.set_cache_enabled(req.enabled)
    return {"enabled": agent.is_cache_enabled}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("reflective_sql.main:app", host="127.0.0.1", port=8000, reload=True)
