"""
Domain models for the data the warmer pre-loads and handlers cache.

Rows from the relational store are validated into these models, and cached
payloads can be read back into them through AdvancedCache.get(model=...).
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class Company(BaseModel):
    """A listed company."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    symbol: str
    sector: str | None = None
    industry: str | None = None
    country: str | None = None
    market_cap: float | None = Field(default=None, description="Market capitalisation in USD")
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ESGScore(BaseModel):
    """One dated ESG assessment of a company."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    company_id: int
    environmental_score: float | None = None
    social_score: float | None = None
    governance_score: float | None = None
    overall_score: float | None = None
    score_date: datetime
    data_source: str | None = None

    def metric(self, name: str) -> float:
        """Score for one of: overall, environmental, social, governance (missing scores rank as 0)."""
        return getattr(self, f"{name}_score") or 0.0
