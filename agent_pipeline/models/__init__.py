from agent_pipeline.models.context import AnalysisContext, AnalysisRequest, TimeRange
from agent_pipeline.models.opinion import (
    CONSERVATIVE_ORDER,
    AgentRole,
    Opinion,
    Recommendation,
)
from agent_pipeline.models.results import (
    AgentFailure,
    PipelineResult,
    QuickPipelineResult,
    QuickSummary,
    ScoreRange,
    StageResult,
    StageStatus,
    Summary,
    TeamConsistency,
    WatchlistError,
    WatchlistResult,
)

__all__ = [
    # Opinion models
    "Recommendation",
    "AgentRole",
    "Opinion",
    "CONSERVATIVE_ORDER",
    # Context models
    "TimeRange",
    "AnalysisRequest",
    "AnalysisContext",
    # Result models
    "AgentFailure",
    "StageStatus",
    "StageResult",
    "ScoreRange",
    "TeamConsistency",
    "Summary",
    "QuickSummary",
    "PipelineResult",
    "QuickPipelineResult",
    "WatchlistError",
    "WatchlistResult",
]
