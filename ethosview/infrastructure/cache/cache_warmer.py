"""
Cache Warmer - Scheduled Population of Hot Read Paths

Architecture:
    CacheWarmer
        ├── warm_companies   -> cache:companies:all, :sector:<s>, cache:company:<id>, :symbol:<sym>  (30 min)
        ├── warm_esg_scores  -> cache:esg:scores:all, cache:esg:company:<id>:latest, cache:esg:top:<m> (15 min)
        ├── warm_sectors     -> cache:sectors:all                                                    (1 h)
        └── warm_analytics   -> cache:analytics:summary                                              (10 min)

The warmer writes plain JSON straight into Redis. Entries carry no
AdvancedCache envelope and no tags; their staleness is bounded by the next
warming tick. Every pass fully overwrites the keys it owns, so a failed or
skipped pass leaves the previous data in place.

Author: System Architect
Date: 2025-12-13
"""

from collections.abc import Awaitable, Callable, Iterable
from datetime import datetime, timezone
from typing import Any

import orjson
from pydantic import BaseModel, ValidationError

from ethosview.core.config.constants import (
    TOP_PERFORMER_METRICS,
    TOP_PERFORMERS_LIMIT,
    WARM_KEY_ANALYTICS_SUMMARY,
    WARM_KEY_COMPANIES_ALL,
    WARM_KEY_COMPANIES_BY_SECTOR,
    WARM_KEY_COMPANY_BY_ID,
    WARM_KEY_COMPANY_BY_SYMBOL,
    WARM_KEY_ESG_COMPANY_LATEST,
    WARM_KEY_ESG_SCORES_ALL,
    WARM_KEY_ESG_TOP,
    WARM_KEY_SECTORS_ALL,
    WARM_TTL_AGGREGATE,
    WARM_TTL_ENTITY,
    WARM_TTL_SUMMARY,
    WARM_TTL_TAXONOMY,
)
from ethosview.core.logging.logger import get_logger
from ethosview.core.scheduling import PeriodicTask
from ethosview.domain.models import Company, ESGScore
from ethosview.infrastructure.cache.redis_client import RedisClient
from ethosview.infrastructure.database.postgres_client import DatabaseClient

logger = get_logger(__name__)

COMPANIES_QUERY = (
    "SELECT id, name, symbol, sector, industry, country, market_cap, created_at, updated_at "
    "FROM companies"
)

LATEST_ESG_SCORES_QUERY = """
    SELECT DISTINCT ON (company_id)
        es.id, es.company_id, es.environmental_score, es.social_score,
        es.governance_score, es.overall_score, es.score_date, es.data_source
    FROM esg_scores es
    ORDER BY company_id, score_date DESC
"""

SECTORS_QUERY = "SELECT DISTINCT sector FROM companies WHERE sector IS NOT NULL AND sector != ''"

COMPANY_COUNT_QUERY = "SELECT COUNT(*) FROM companies"
ESG_SCORE_COUNT_QUERY = "SELECT COUNT(*) FROM esg_scores"

PASS_OK = "ok"
PASS_FAILED = "failed"


def _json_default(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    raise TypeError(f"Type is not JSON serializable: {type(value).__name__}")


def dumps(value: Any) -> str:
    """Serialize a warm payload (models, lists, dicts, datetimes) to JSON text."""
    return orjson.dumps(value, default=_json_default).decode("utf-8")


class CacheWarmer:
    """
    Re-populates known hot keys from PostgreSQL on a fixed cadence.

    Usage:
        warmer = CacheWarmer(redis_client, database_client)
        await warmer.warm_cache()                 # one pass, best effort
        warmer.start_cache_warming(interval=1800) # background loop
        ...
        await warmer.stop()
    """

    def __init__(
        self,
        redis_client: RedisClient,
        database_client: DatabaseClient,
        clock: Callable[[], datetime] | None = None,
    ):
        self._redis = redis_client
        self._db = database_client
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._task: PeriodicTask | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and self._task.is_running

    # -------------------------------------------------------------------------
    # Orchestration
    # -------------------------------------------------------------------------

    async def warm_cache(self) -> dict[str, str]:
        """
        Run every warming pass once.

        STAGE-WARM.1

        A failing pass is logged and does not stop the ones after it.

        Returns:
            Pass name -> "ok" | "failed"
        """
        logger.info("Starting cache warming", stage="WARM.1")

        passes: list[tuple[str, Callable[[], Awaitable[Any]]]] = [
            ("companies", self.warm_companies),
            ("esg_scores", self.warm_esg_scores),
            ("sectors", self.warm_sectors),
            ("analytics", self.warm_analytics),
        ]

        results: dict[str, str] = {}
        for name, warm_pass in passes:
            try:
                await warm_pass()
                results[name] = PASS_OK
            except Exception as e:
                results[name] = PASS_FAILED
                logger.error(
                    "Cache warming pass failed",
                    stage="WARM.1",
                    warm_pass=name,
                    error=str(e),
                    error_type=type(e).__name__,
                )

        logger.info("Cache warming completed", stage="WARM.1", results=results)
        return results

    def start_cache_warming(self, interval: float) -> PeriodicTask:
        """
        Warm once now, then every ``interval`` seconds, on a background task.

        Calling this while already running returns the existing task.
        """
        if self.is_running:
            return self._task

        self._task = PeriodicTask("cache-warmer", self.warm_cache, interval=interval)
        self._task.start()
        return self._task

    async def stop(self) -> None:
        """Stop background warming. Safe to call multiple times."""
        task, self._task = self._task, None
        if task is not None:
            await task.stop()

    # -------------------------------------------------------------------------
    # Passes
    # -------------------------------------------------------------------------

    async def warm_companies(self) -> int:
        """
        Cache the company list, per-sector lists and per-company lookups.

        Returns:
            Number of companies warmed
        """
        companies = await self.load_companies()

        await self._write(WARM_KEY_COMPANIES_ALL, companies, WARM_TTL_ENTITY)

        by_sector: dict[str, list[Company]] = {}
        for company in companies:
            if company.sector:
                by_sector.setdefault(company.sector, []).append(company)

        for sector, sector_companies in by_sector.items():
            await self._write(
                WARM_KEY_COMPANIES_BY_SECTOR.format(sector=sector), sector_companies, WARM_TTL_ENTITY
            )

        for company in companies:
            payload = dumps(company)
            await self._redis.set(
                WARM_KEY_COMPANY_BY_ID.format(company_id=company.id), payload, ttl=WARM_TTL_ENTITY
            )
            await self._redis.set(
                WARM_KEY_COMPANY_BY_SYMBOL.format(symbol=company.symbol), payload, ttl=WARM_TTL_ENTITY
            )

        logger.info("Warmed companies", stage="WARM.COMPANIES", count=len(companies), sectors=len(by_sector))
        return len(companies)

    async def warm_esg_scores(self) -> int:
        """
        Cache the latest score per company and the top performers per metric.

        Returns:
            Number of scores warmed
        """
        rows = await self._db.fetch_all(LATEST_ESG_SCORES_QUERY)
        scores = self._validate_rows(ESGScore, rows)

        await self._write(WARM_KEY_ESG_SCORES_ALL, scores, WARM_TTL_AGGREGATE)

        for score in scores:
            await self._write(
                WARM_KEY_ESG_COMPANY_LATEST.format(company_id=score.company_id), score, WARM_TTL_AGGREGATE
            )

        await self.warm_top_performers(scores)

        logger.info("Warmed ESG scores", stage="WARM.ESG", count=len(scores))
        return len(scores)

    async def warm_top_performers(self, scores: list[ESGScore]) -> None:
        for metric in TOP_PERFORMER_METRICS:
            top = self.get_top_performers(scores, metric, TOP_PERFORMERS_LIMIT)
            await self._write(WARM_KEY_ESG_TOP.format(metric=metric), top, WARM_TTL_AGGREGATE)

    async def warm_sectors(self) -> int:
        """
        Cache the distinct non-empty sector names.

        Returns:
            Number of sectors warmed
        """
        rows = await self._db.fetch_all(SECTORS_QUERY)
        sectors = [row["sector"] for row in rows if row.get("sector")]

        await self._write(WARM_KEY_SECTORS_ALL, sectors, WARM_TTL_TAXONOMY)

        logger.info("Warmed sectors", stage="WARM.SECTORS", count=len(sectors))
        return len(sectors)

    async def warm_analytics(self) -> dict[str, Any]:
        """Cache headline counts for the analytics summary."""
        summary = {
            "total_companies": int(await self._db.fetch_scalar(COMPANY_COUNT_QUERY) or 0),
            "total_esg_scores": int(await self._db.fetch_scalar(ESG_SCORE_COUNT_QUERY) or 0),
            "last_updated": self._clock(),
        }

        await self._write(WARM_KEY_ANALYTICS_SUMMARY, summary, WARM_TTL_SUMMARY)

        logger.info(
            "Warmed analytics summary",
            stage="WARM.ANALYTICS",
            total_companies=summary["total_companies"],
            total_esg_scores=summary["total_esg_scores"],
        )
        return summary

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    async def load_companies(self) -> list[Company]:
        rows = await self._db.fetch_all(COMPANIES_QUERY)
        return self._validate_rows(Company, rows)

    @staticmethod
    def get_top_performers(scores: Iterable[ESGScore], metric: str, limit: int) -> list[ESGScore]:
        """Highest ``limit`` scores by ``metric``, best first."""
        return sorted(scores, key=lambda score: score.metric(metric), reverse=True)[:limit]

    @staticmethod
    def _validate_rows(model: type[BaseModel], rows: list[dict[str, Any]]) -> list:
        """Validate rows into ``model``, skipping (and logging) rows that do not fit."""
        items = []
        for row in rows:
            try:
                items.append(model.model_validate(row))
            except ValidationError as e:
                logger.warning(
                    "Skipping invalid row",
                    stage="WARM.ROW",
                    model=model.__name__,
                    row_id=row.get("id"),
                    error_count=e.error_count(),
                )
        return items

    async def _write(self, key: str, value: Any, ttl: int) -> None:
        await self._redis.set(key, dumps(value), ttl=ttl)
