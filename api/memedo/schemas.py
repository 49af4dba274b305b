# api/memedo/schemas.py
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field


# ---- Subscription I/O ----
class CheckoutIn(BaseModel):
    plan: str  # "monthly" | "yearly"


# ---- Watchlist I/O ----
class WatchlistIn(BaseModel):
    token_address: str = Field(min_length=1, max_length=255)
    chain: str = Field(min_length=1, max_length=50)
    token_name: str | None = Field(default=None, max_length=255)
    token_symbol: str | None = Field(default=None, max_length=50)


class WatchlistOut(BaseModel):
    id: int
    token_address: str
    chain: str
    token_name: str | None = None
    token_symbol: str | None = None
    added_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ---- Analyses ----
class AnalysisOut(BaseModel):
    id: int
    chain: str
    token_address: str
    token_name: str | None = None
    token_symbol: str | None = None
    safety_score: int | None = None
    risk_level: str | None = None
    completeness: int = 0
    payload: dict = {}
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AnalysisSummaryOut(BaseModel):
    id: int
    chain: str
    token_address: str
    token_name: str | None = None
    token_symbol: str | None = None
    safety_score: int | None = None
    risk_level: str | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ---- Users ----
class UserOut(BaseModel):
    id: int
    email: str | None = None
    display_name: str | None = None
    role: str
    subscription_status: str | None = None
    subscription_plan: str
    subscription_period_end: datetime | None = None
    created_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)
