#!/usr/bin/env python3
"""
confstats.api — Conference statistics dataset service.

Read-only HTTP surface over the CSV datasets. Raw datasets are served
as parsed rows; every derived view is computed per request from the
cached, immutable rows.

Endpoints:
    GET /                                   → service metadata
    GET /health                             → liveness probe
    GET /ready                              → readiness probe
    GET /data/{dataset}                     → raw rows of one dataset
    GET /views/continent-distribution       → ?dataset=papers|committee
    GET /views/asian-trends                 → per (conference, year)
    GET /views/asian-trends/summary         → mean ± sd bands (?limit, ?search)
    GET /views/big-tech                     → Big Tech / academia / unmapped
    GET /views/big-tech/by-region           → Big Tech split across blocs
    GET /views/big-tech/legacy              → precomputed Big Tech CSV
    GET /views/big-tech/split               → ?by=conference|year
    GET /views/committee-vs-papers          → continent gap (?by_year=1)
    GET /views/committee-vs-papers/country  → country gap (?by_year=1)
    GET /views/top-countries                → combined top countries
    GET /views/diversity                    → Gini-Simpson per conference
    GET /views/country-distribution         → fractional country shares
    GET /views/ranking/{kind}               → country | institution
    GET /views/citations                    → citations per (conference, year)
    GET /views/insights/country-pairs
    GET /views/insights/collaboration-evolution
    GET /views/insights/committee-turnover

Query parameters shared by views (all optional):
    startYear, endYear      inclusive year window
    countries               focus countries (repeat or ";"-separated)
    includeOther            "1"/"true" to add the Other bucket
    includeUnknown          "1"/"true" to add the Unknown bucket
    limit                   result cut-off where a view supports one

Error contract:
    404 {"error": "Unknown dataset"}
    404 {"error": "Dataset file not found", "filename": ...}
    500 {"error": "CSV parse error", "details": [...]}
    400 {"error": "INVALID_QUERY", ...}
    500 {"detail": "Internal server error."}   (no internals leaked)

Environment variables:
    ENV                  — "dev" or "prod" (default: "prod")
    DATA_DIR             — directory holding the CSV files (default: <repo>/data)
    ALLOWED_ORIGINS      — comma-separated extra CORS origins
    ENABLE_DOCS          — "1" to force-enable /docs in prod
    REQUIRE_DATA         — "1" to abort startup when core datasets are missing
    MAX_CACHED_DATASETS  — dataset cache bound (default: 8)
"""

from __future__ import annotations

import json
import logging
import os
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Literal

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.middleware.gzip import GZipMiddleware

from confstats.aggregation import (
    big_tech_split_by_conference,
    big_tech_split_by_year,
    process_asian_trends,
    process_big_tech,
    process_big_tech_by_region,
    process_big_tech_precomputed,
    process_citations,
    process_committee_continent_distribution,
    process_continent_distribution,
    process_country_distribution,
)
from confstats.constants import CORE_DATASETS, DATASET_TO_FILENAME
from confstats.dataset_cache import DatasetCache
from confstats.insights import collaboration_evolution, committee_turnover, top_country_pairs
from confstats.loader import (
    DatasetNotFoundError,
    DatasetParseError,
    Row,
    UnknownDatasetError,
    dataset_path,
    load_datasets,
)
from confstats.ranking import (
    compute_country_ranking,
    compute_institution_ranking,
    filter_institution_ranking,
)
from confstats.representation import (
    TOP_COUNTRIES_LIMIT,
    calculate_top_countries,
    compute_diversity,
    process_committee_vs_papers,
    process_committee_vs_papers_by_year,
    process_committee_vs_papers_by_year_country,
    process_committee_vs_papers_country,
)
from confstats.security import (
    ETagMiddleware,
    RequestIdMiddleware,
    RequestSizeLimitMiddleware,
    SecurityHeadersMiddleware,
)
from confstats.trends import (
    aggregate_by_conference,
    aggregate_by_year,
    pivot_by_year,
    rank_conferences_by_mean,
)

# ---------------------------------------------------------------------------
# Logging configuration: structured JSON to stdout
# ---------------------------------------------------------------------------

_log_level = logging.DEBUG if os.getenv("ENV", "prod") == "dev" else logging.INFO
logging.basicConfig(
    level=_log_level,
    format="%(message)s",
    stream=sys.stdout,
)
logger = logging.getLogger("confstats.api")

# ---------------------------------------------------------------------------
# Environment
# ---------------------------------------------------------------------------

ENV = os.getenv("ENV", "prod").lower().strip()
ALLOWED_ORIGINS_RAW = os.getenv("ALLOWED_ORIGINS", "").strip()
ENABLE_DOCS = os.getenv("ENABLE_DOCS", "").strip() == "1"
REQUIRE_DATA = os.getenv("REQUIRE_DATA", "").strip() == "1"

DATA_DIR: Path = Path(
    os.getenv("DATA_DIR", "").strip() or Path(__file__).resolve().parent.parent / "data"
)

VERSION = "0.3.0"

# ---------------------------------------------------------------------------
# Rate limiter and dataset cache
# ---------------------------------------------------------------------------

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["120/minute"],
    storage_uri="memory://",
    strategy="fixed-window",
)

cache = DatasetCache()


# ---------------------------------------------------------------------------
# Query model
# ---------------------------------------------------------------------------

class InvalidQueryError(Exception):
    """Query parameters failed validation. Mapped to 400 INVALID_QUERY."""

    def __init__(self, details: list[dict[str, str]]) -> None:
        self.details = details
        super().__init__(f"{len(details)} invalid query parameter(s)")


class ViewQuery(BaseModel):
    """Filters shared by the view endpoints.

    - Unknown parameters are ignored.
    - startYear must not exceed endYear.
    - countries accepts repeated parameters and ";"-separated values.
    """

    model_config = {"extra": "ignore", "populate_by_name": True}

    start_year: int | None = Field(default=None, alias="startYear", ge=1900, le=2100)
    end_year: int | None = Field(default=None, alias="endYear", ge=1900, le=2100)
    countries: list[str] | None = None
    include_other: bool = Field(default=False, alias="includeOther")
    include_unknown: bool = Field(default=False, alias="includeUnknown")
    limit: int | None = Field(default=None, ge=1, le=1000)

    @field_validator("countries")
    @classmethod
    def _split_countries(cls, v: list[str] | None) -> list[str] | None:
        if v is None:
            return None
        names = [part.strip() for item in v for part in item.split(";") if part.strip()]
        return names or None

    @model_validator(mode="after")
    def _check_window(self) -> ViewQuery:
        if (
            self.start_year is not None
            and self.end_year is not None
            and self.start_year > self.end_year
        ):
            raise ValueError(
                f"startYear ({self.start_year}) must not exceed endYear ({self.end_year})."
            )
        return self

    @property
    def year_range(self) -> tuple[int | None, int | None] | None:
        if self.start_year is None and self.end_year is None:
            return None
        return (self.start_year, self.end_year)


def _parse_query(request: Request) -> ViewQuery:
    params = request.query_params
    raw: dict[str, Any] = {k: v for k, v in params.items() if k != "countries"}
    if "countries" in params:
        raw["countries"] = params.getlist("countries")
    try:
        return ViewQuery.model_validate(raw)
    except ValidationError as exc:
        raise InvalidQueryError([
            {
                "field": ".".join(str(p) for p in e.get("loc", [])) or "query",
                "message": e.get("msg", "Validation failed"),
            }
            for e in exc.errors()
        ]) from exc


# ---------------------------------------------------------------------------
# Data access
# ---------------------------------------------------------------------------

async def _load(*datasets: str) -> tuple[list[Row], ...]:
    """Fetch datasets through the cache, reading missing files in parallel."""
    loaded = await load_datasets(DATA_DIR, *datasets, loader=cache.get)
    return tuple(loaded[name] for name in datasets)


def _missing_core_datasets() -> list[str]:
    return [name for name in CORE_DATASETS if not dataset_path(name, DATA_DIR).is_file()]


def _envelope(items: list[Any]) -> dict[str, Any]:
    return {"data": [item.to_dict() for item in items]}


def _choice(request: Request, name: str, allowed: tuple[str, ...], default: str) -> str:
    value = request.query_params.get(name, default)
    if value not in allowed:
        raise InvalidQueryError([
            {"field": name, "message": f"must be one of {', '.join(allowed)}"}
        ])
    return value


def _flag(request: Request, name: str) -> bool:
    return request.query_params.get(name, "").strip().lower() in ("1", "true", "yes")


# ---------------------------------------------------------------------------
# App construction
# ---------------------------------------------------------------------------

def _build_docs_kwargs() -> dict[str, Any]:
    """Determine docs/redoc/openapi URL availability."""
    if ENV == "prod" and not ENABLE_DOCS:
        return {"docs_url": None, "redoc_url": None, "openapi_url": None}
    return {"docs_url": "/docs", "redoc_url": "/redoc"}


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup: report configuration and check the core datasets exist.

    With REQUIRE_DATA=1 a missing core dataset aborts startup.
    """
    logger.info(json.dumps({
        "event": "startup",
        "env": ENV,
        "data_dir": DATA_DIR.name,
        "require_data": REQUIRE_DATA,
        "cors_origins": len(_CORS_ORIGINS),
        "docs_enabled": ENABLE_DOCS or ENV == "dev",
    }))

    missing = _missing_core_datasets()
    if missing:
        if REQUIRE_DATA:
            logger.error(json.dumps({
                "event": "startup_abort",
                "reason": "REQUIRE_DATA=1 but core datasets are missing",
                "missing": missing,
            }))
            sys.exit(1)
        logger.warning(json.dumps({
            "event": "startup_degraded",
            "reason": "Core datasets not found",
            "missing": missing,
        }))

    yield

    logger.info(json.dumps({"event": "shutdown", "cache": cache.stats["slots_used"]}))


app = FastAPI(
    title="Conference Statistics API",
    description="Read-only statistics over systems conference papers and program committees.",
    version=VERSION,
    lifespan=_lifespan,
    **_build_docs_kwargs(),
)

app.state.limiter = limiter


# ---------------------------------------------------------------------------
# CORS: GET only, no credentials. ALLOWED_ORIGINS extends the list.
# ---------------------------------------------------------------------------

DEV_ORIGINS: list[str] = [
    "http://localhost:3000",
]

_CORS_ORIGINS: list[str] = list(DEV_ORIGINS)

if ALLOWED_ORIGINS_RAW:
    for _o in ALLOWED_ORIGINS_RAW.split(","):
        _o = _o.strip()
        if _o and _o not in _CORS_ORIGINS:
            _CORS_ORIGINS.append(_o)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["GET", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID", "ETag"],
    max_age=3600,
)

logger.info("CORS configured for: %s", _CORS_ORIGINS)

# Starlette runs middleware in reverse registration order.
# Execution order (outermost first): GZip → RequestId → SecurityHeaders → ETag → RequestSizeLimit → CORS
app.add_middleware(RequestSizeLimitMiddleware)
app.add_middleware(ETagMiddleware)
app.add_middleware(SecurityHeadersMiddleware, enable_hsts=(ENV == "prod"))
app.add_middleware(RequestIdMiddleware)
app.add_middleware(GZipMiddleware, minimum_size=500)


# ---------------------------------------------------------------------------
# Error handlers
# ---------------------------------------------------------------------------

@app.exception_handler(RateLimitExceeded)
async def _rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    return JSONResponse(
        status_code=429,
        content={"detail": "Rate limit exceeded. Try again later."},
        headers={"Retry-After": "60"},
    )


@app.exception_handler(UnknownDatasetError)
async def _unknown_dataset_handler(request: Request, exc: UnknownDatasetError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"error": "Unknown dataset"})


@app.exception_handler(DatasetNotFoundError)
async def _dataset_missing_handler(request: Request, exc: DatasetNotFoundError) -> JSONResponse:
    logger.warning(json.dumps({
        "event": "dataset_missing",
        "dataset": exc.dataset,
        "filename": exc.filename,
        "request_id": getattr(request.state, "request_id", "unknown"),
    }))
    return JSONResponse(
        status_code=404,
        content={"error": "Dataset file not found", "filename": exc.filename},
    )


@app.exception_handler(DatasetParseError)
async def _dataset_parse_handler(request: Request, exc: DatasetParseError) -> JSONResponse:
    logger.error(json.dumps({
        "event": "dataset_parse_error",
        "dataset": exc.dataset,
        "filename": exc.filename,
        "errors": len(exc.details),
        "request_id": getattr(request.state, "request_id", "unknown"),
    }))
    return JSONResponse(
        status_code=500,
        content={"error": "CSV parse error", "details": exc.details},
    )


@app.exception_handler(InvalidQueryError)
async def _invalid_query_handler(request: Request, exc: InvalidQueryError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={
            "error": "INVALID_QUERY",
            "message": "Query validation failed.",
            "details": exc.details,
        },
    )


@app.exception_handler(RequestValidationError)
async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={
            "error": "INVALID_QUERY",
            "message": "Request validation failed.",
            "details": [
                {"field": ".".join(str(p) for p in e.get("loc", [])), "message": e.get("msg", "")}
                for e in exc.errors()
            ],
        },
    )


@app.exception_handler(Exception)
async def _global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(json.dumps({
        "event": "unhandled_exception",
        "exception_type": type(exc).__name__,
        "request_id": getattr(request.state, "request_id", "unknown"),
        "path": request.url.path,
    }))
    return JSONResponse(status_code=500, content={"detail": "Internal server error."})


# ---------------------------------------------------------------------------
# Service endpoints
# ---------------------------------------------------------------------------

@app.get("/")
@limiter.limit("60/minute")
async def root(request: Request) -> dict:
    """Service metadata."""
    return {
        "name": "confstats",
        "version": VERSION,
        "datasets": sorted(DATASET_TO_FILENAME),
    }


@app.get("/health", include_in_schema=False)
async def health(request: Request) -> JSONResponse:
    """Liveness probe. No I/O, always 200."""
    return JSONResponse(status_code=200, content={"status": "ok", "version": VERSION})


@app.get("/ready")
@limiter.limit("60/minute")
async def ready(request: Request) -> JSONResponse:
    """Readiness probe, always 200; ``ready`` is false when core datasets are missing."""
    available = sorted(
        name for name in DATASET_TO_FILENAME if dataset_path(name, DATA_DIR).is_file()
    )
    missing = _missing_core_datasets()
    body = {
        "ready": not missing,
        "status": "healthy" if not missing else "degraded",
        "version": VERSION,
        "datasets_available": available,
        "core_missing": missing,
        "cache": cache.stats,
        "timestamp": datetime.now(UTC).isoformat(),
    }
    return JSONResponse(status_code=200, content=body)


@app.get("/data/{dataset}")
@limiter.limit("60/minute")
async def get_dataset(dataset: str, request: Request) -> dict:
    """Raw rows of one dataset, as parsed from its CSV file."""
    (rows,) = await _load(dataset)
    return {"data": rows}


# ---------------------------------------------------------------------------
# Distribution and trend views
# ---------------------------------------------------------------------------

@app.get("/views/continent-distribution")
@limiter.limit("120/minute")
async def continent_distribution(request: Request) -> dict:
    dataset = _choice(request, "dataset", ("papers", "committee"), "papers")
    (rows,) = await _load(dataset)
    if dataset == "committee":
        return _envelope(process_committee_continent_distribution(rows))
    return _envelope(process_continent_distribution(rows))


@app.get("/views/asian-trends")
@limiter.limit("120/minute")
async def asian_trends(request: Request) -> dict:
    (rows,) = await _load("papers")
    return _envelope(process_asian_trends(rows))


@app.get("/views/asian-trends/summary")
@limiter.limit("120/minute")
async def asian_trends_summary(request: Request) -> dict:
    """Mean ± sd per year, per-conference mean / sd and a year × conference table.

    ``limit`` keeps the conferences with the highest mean Asian share and
    ``search`` keeps those whose code contains the text; both narrow every
    section of the response.
    """
    query = _parse_query(request)
    (rows,) = await _load("papers")
    items = process_asian_trends(rows)
    conferences = rank_conferences_by_mean(
        items, "percentage",
        top_n=query.limit,
        query=request.query_params.get("search"),
    )
    return {
        "conferences": conferences,
        "byYear": [
            band.to_dict()
            for band in aggregate_by_year(items, "percentage", conferences=conferences)
        ],
        "byConference": [
            s.to_dict()
            for s in aggregate_by_conference(items, "percentage", conferences=conferences)
        ],
        "series": pivot_by_year(items, "percentage", conferences),
    }


@app.get("/views/big-tech")
@limiter.limit("120/minute")
async def big_tech(request: Request) -> dict:
    (rows,) = await _load("papers")
    return _envelope(process_big_tech(rows))


@app.get("/views/big-tech/by-region")
@limiter.limit("120/minute")
async def big_tech_by_region(request: Request) -> dict:
    (rows,) = await _load("papers")
    return _envelope(process_big_tech_by_region(rows))


@app.get("/views/big-tech/legacy")
@limiter.limit("120/minute")
async def big_tech_legacy(request: Request) -> dict:
    (rows,) = await _load("bigtech")
    return _envelope(process_big_tech_precomputed(rows))


@app.get("/views/big-tech/split")
@limiter.limit("120/minute")
async def big_tech_split(request: Request) -> dict:
    """Averaged Big Tech / academia split per conference or per year."""
    by = _choice(request, "by", ("conference", "year"), "conference")
    source = _choice(request, "source", ("papers", "legacy"), "papers")
    if source == "legacy":
        (rows,) = await _load("bigtech")
        items = process_big_tech_precomputed(rows)
    else:
        (rows,) = await _load("papers")
        items = process_big_tech(rows)
    splits = big_tech_split_by_conference(items) if by == "conference" else big_tech_split_by_year(items)
    query = _parse_query(request)
    if query.limit is not None:
        splits = splits[:query.limit]
    return _envelope(splits)


@app.get("/views/citations")
@limiter.limit("120/minute")
async def citations(request: Request) -> dict:
    (rows,) = await _load("citations")
    return _envelope(process_citations(rows))


# ---------------------------------------------------------------------------
# Representation views
# ---------------------------------------------------------------------------

@app.get("/views/committee-vs-papers")
@limiter.limit("120/minute")
async def committee_vs_papers(request: Request) -> dict:
    query = _parse_query(request)
    papers, committee = await _load("papers", "committee")
    if _flag(request, "by_year"):
        items = process_committee_vs_papers_by_year(papers, committee, query.year_range)
    else:
        items = process_committee_vs_papers(papers, committee, query.year_range)
    return _envelope(items)


@app.get("/views/committee-vs-papers/country")
@limiter.limit("120/minute")
async def committee_vs_papers_country(request: Request) -> dict:
    query = _parse_query(request)
    papers, committee = await _load("papers-country", "committee-country")
    compute = (
        process_committee_vs_papers_by_year_country
        if _flag(request, "by_year")
        else process_committee_vs_papers_country
    )
    result = compute(
        papers,
        committee,
        focus_countries=query.countries,
        include_other_bucket=query.include_other,
        include_unknown_bucket=query.include_unknown,
        year_range=query.year_range,
    )
    return result.to_dict()


@app.get("/views/top-countries")
@limiter.limit("120/minute")
async def top_countries(request: Request) -> dict:
    query = _parse_query(request)
    papers, committee = await _load("papers-country", "committee-country")
    limit = query.limit if query.limit is not None else TOP_COUNTRIES_LIMIT
    return {"data": calculate_top_countries(papers, committee, limit=limit)}


@app.get("/views/diversity")
@limiter.limit("120/minute")
async def diversity(request: Request) -> dict:
    papers, committee = await _load("papers", "committee")
    return _envelope(compute_diversity(papers, committee))


@app.get("/views/country-distribution")
@limiter.limit("120/minute")
async def country_distribution(request: Request) -> dict:
    query = _parse_query(request)
    dataset = _choice(request, "dataset", ("papers-country", "committee-country"), "committee-country")
    group_by: Literal["conference", "year"] = _choice(  # type: ignore[assignment]
        request, "groupBy", ("conference", "year"), "conference"
    )
    (rows,) = await _load(dataset)
    result = process_country_distribution(
        rows,
        group_by=group_by,
        top_n=query.limit or 10,
        year_range=query.year_range,
    )
    return result.to_dict()


@app.get("/views/ranking/{kind}")
@limiter.limit("120/minute")
async def ranking(kind: str, request: Request) -> Any:
    """Fractional-weight ranking of countries or institutions.

    ``country`` and ``search`` narrow an institution ranking without
    changing its weights or ranks.
    """
    if kind not in ("country", "institution"):
        return JSONResponse(
            status_code=404,
            content={"error": "Unknown ranking", "valid": ["country", "institution"]},
        )
    dataset = _choice(request, "dataset", ("papers-country", "committee-country"), "papers-country")
    (rows,) = await _load(dataset)
    if kind == "country":
        summary = compute_country_ranking(rows)
    else:
        summary = filter_institution_ranking(
            compute_institution_ranking(rows),
            country=request.query_params.get("country"),
            search=request.query_params.get("search"),
        )
    return summary.to_dict()


# ---------------------------------------------------------------------------
# Insights
# ---------------------------------------------------------------------------

@app.get("/views/insights/country-pairs")
@limiter.limit("120/minute")
async def insights_country_pairs(request: Request) -> dict:
    query = _parse_query(request)
    (rows,) = await _load("papers-country")
    if query.limit is not None:
        return _envelope(top_country_pairs(rows, limit=query.limit))
    return _envelope(top_country_pairs(rows))


@app.get("/views/insights/collaboration-evolution")
@limiter.limit("120/minute")
async def insights_collaboration_evolution(request: Request) -> dict:
    (rows,) = await _load("papers-country")
    return _envelope(collaboration_evolution(rows))


@app.get("/views/insights/committee-turnover")
@limiter.limit("120/minute")
async def insights_committee_turnover(request: Request) -> dict:
    (rows,) = await _load("committee")
    return committee_turnover(rows).to_dict()


# ---------------------------------------------------------------------------
# Entry point (development only)
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    import uvicorn

    print(f"confstats API {VERSION}: serving datasets from {DATA_DIR}")
    uvicorn.run(app, host="0.0.0.0", port=8000)  # noqa: S104
