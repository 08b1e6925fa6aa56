"""
Shared fixtures and fake agents for pipeline tests.
"""

from __future__ import annotations

import asyncio
from typing import Optional, Sequence

import pytest

from agent_pipeline.config import Settings
from agent_pipeline.exceptions import AgentError
from agent_pipeline.models import (
    AgentRole,
    AnalysisContext,
    AnalysisRequest,
    Opinion,
    Recommendation,
)


class StaticAgent:
    """Fake agent returning a fixed opinion and recording the contexts it saw."""

    def __init__(
        self,
        name: str,
        role: AgentRole = AgentRole.ANALYST,
        recommendation: Optional[Recommendation] = None,
        score: Optional[float] = None,
        confidence: Optional[float] = None,
        key_insights: Sequence[str] = (),
        risks: Sequence[str] = (),
        delay: float = 0.0,
    ):
        self.name = name
        self.role = role
        self.recommendation = recommendation
        self.score = score
        self.confidence = confidence
        self.key_insights = tuple(key_insights)
        self.risks = tuple(risks)
        self.delay = delay
        self.calls: list[AnalysisContext] = []

    async def analyze(self, context: AnalysisContext) -> Opinion:
        self.calls.append(context)
        if self.delay:
            await asyncio.sleep(self.delay)
        return Opinion(
            source_name=self.name,
            source_kind=self.role,
            narrative=f"{self.name} on {context.subject_id} with {len(context.prior_opinions)} prior opinions",
            score=self.score,
            confidence=self.confidence,
            recommendation=self.recommendation,
            key_insights=self.key_insights,
            risks=self.risks,
        )


class FailingAgent:
    """Fake agent that raises ``error`` after an optional delay."""

    def __init__(self, name: str, error: Optional[Exception] = None, delay: float = 0.0):
        self.name = name
        self.error = error or AgentError(f"{name} upstream model call failed", agent_name=name)
        self.delay = delay
        self.calls: list[AnalysisContext] = []

    async def analyze(self, context: AnalysisContext) -> Opinion:
        self.calls.append(context)
        if self.delay:
            await asyncio.sleep(self.delay)
        raise self.error


def make_opinion(
    name: str = "Market Analyst",
    role: AgentRole = AgentRole.ANALYST,
    recommendation: Optional[Recommendation] = None,
    score: Optional[float] = None,
    confidence: Optional[float] = None,
    key_insights: Sequence[str] = (),
    risks: Sequence[str] = (),
) -> Opinion:
    """Create a test opinion."""
    return Opinion(
        source_name=name,
        source_kind=role,
        narrative=f"{name} analysis",
        score=score,
        confidence=confidence,
        recommendation=recommendation,
        key_insights=tuple(key_insights),
        risks=tuple(risks),
    )


@pytest.fixture
def settings() -> Settings:
    """Settings with short timeouts and no pause between watchlist subjects."""
    return Settings(
        analyst_timeout_seconds=0.5,
        research_timeout_seconds=0.5,
        trading_timeout_seconds=0.5,
        reflection_timeout_seconds=0.5,
        watchlist_delay_seconds=0.0,
    )


@pytest.fixture
def request_000001() -> AnalysisRequest:
    """Request for a Shenzhen-listed bank with market hints."""
    return AnalysisRequest(
        subject_id="000001",
        subject_name="Ping An Bank",
        raw_data={
            "price": {"current": 12.5, "change_pct": 2.04},
            "indicators": {"MA5": 12.45, "MA10": 12.3, "RSI": 65.5},
        },
        metadata={
            "market_trend": "up",
            "sector_performance": "financials strong",
        },
    )


@pytest.fixture
def context(request_000001: AnalysisRequest) -> AnalysisContext:
    return AnalysisContext.from_request(request_000001)


@pytest.fixture
def analysts() -> list[StaticAgent]:
    return [
        StaticAgent("Market Analyst", AgentRole.ANALYST, Recommendation.BUY, 72, 0.7,
                    key_insights=["Volume expanding"], risks=["Overbought RSI"]),
        StaticAgent("Fundamental Analyst", AgentRole.ANALYST, Recommendation.BUY, 68, 0.6,
                    key_insights=["ROE improving"]),
        StaticAgent("News Analyst", AgentRole.ANALYST, Recommendation.HOLD, 55, 0.5,
                    risks=["Regulatory review"]),
    ]


@pytest.fixture
def researchers() -> list[StaticAgent]:
    return [
        StaticAgent("Bull Researcher", AgentRole.RESEARCHER, Recommendation.BUY, 80, 0.8),
        StaticAgent("Bear Researcher", AgentRole.RESEARCHER, Recommendation.SELL, 35, 0.6,
                    risks=["Regulatory review", "Net interest margin pressure"]),
    ]


@pytest.fixture
def traders() -> list[StaticAgent]:
    return [
        StaticAgent("Conservative Trader", AgentRole.TRADER, Recommendation.HOLD, 60, 0.7),
        StaticAgent("Aggressive Trader", AgentRole.TRADER, Recommendation.BUY, 78, 0.75),
    ]


@pytest.fixture
def reflector() -> StaticAgent:
    return StaticAgent("Reflection Agent", AgentRole.REFLECTOR, Recommendation.BUY, 70, 0.65)
