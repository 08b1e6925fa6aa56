from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, JsonValue, field_validator


class Recommendation(str, Enum):
    """Trading recommendation an agent may attach to its opinion."""

    STRONG_BUY = "strong_buy"
    BUY = "buy"
    HOLD = "hold"
    SELL = "sell"
    STRONG_SELL = "strong_sell"


# Tie-break order, most conservative first
CONSERVATIVE_ORDER: tuple[Recommendation, ...] = (
    Recommendation.HOLD,
    Recommendation.BUY,
    Recommendation.SELL,
    Recommendation.STRONG_BUY,
    Recommendation.STRONG_SELL,
)


class AgentRole(str, Enum):
    """Agent family that produced an opinion."""

    ANALYST = "analyst"
    RESEARCHER = "researcher"
    TRADER = "trader"
    REFLECTOR = "reflector"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Opinion(BaseModel):
    """A single agent's successful analysis output."""

    model_config = ConfigDict(frozen=True)

    source_name: str = Field(..., min_length=1, description="Name of the agent producing the opinion")
    source_kind: AgentRole = Field(..., description="Agent family of the producer")
    narrative: str = Field(..., min_length=1, description="Human-readable analysis text")
    score: Optional[float] = Field(
        default=None,
        ge=0,
        le=100,
        description="Rating from 0-100"
    )
    confidence: Optional[float] = Field(
        default=None,
        ge=0,
        le=1,
        description="Confidence level from 0-1"
    )
    recommendation: Optional[Recommendation] = Field(default=None, description="Trading recommendation")
    key_insights: tuple[str, ...] = Field(default=(), description="Key insights, in order")
    risks: tuple[str, ...] = Field(default=(), description="Risk notes, in order")
    produced_at: datetime = Field(default_factory=_utcnow, description="Opinion timestamp")
    processing_time_ms: Optional[float] = Field(default=None, ge=0)
    supporting_data: dict[str, JsonValue] = Field(
        default_factory=dict,
        description="Cross-agent signals such as team consistency"
    )

    @field_validator("source_name", "narrative")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v
