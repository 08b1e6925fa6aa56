from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

from agent_pipeline.models.opinion import Opinion, Recommendation


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StageStatus(str, Enum):
    """Outcome of one stage barrier."""

    COMPLETED = "completed"
    DEGRADED = "degraded"   # agents ran, none succeeded
    SKIPPED = "skipped"     # no agents configured


class AgentFailure(BaseModel):
    """One agent's failure inside a stage."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    agent_name: str
    error_code: str = Field(default="AGENT_ERROR")
    error_type: str
    error_message: str
    error: Optional[Exception] = Field(default=None, exclude=True, repr=False)


class StageResult(BaseModel):
    """Output of the stage runner: successes in agent order plus failures."""

    model_config = ConfigDict(frozen=True)

    stage: str
    opinions: tuple[Opinion, ...] = ()
    failures: tuple[AgentFailure, ...] = ()
    elapsed_ms: float = 0.0
    skipped: bool = False

    @computed_field
    @property
    def status(self) -> StageStatus:
        if self.skipped:
            return StageStatus.SKIPPED
        if not self.opinions:
            return StageStatus.DEGRADED
        return StageStatus.COMPLETED


class ScoreRange(BaseModel):
    model_config = ConfigDict(frozen=True)

    min: float = Field(default=0.0, ge=0, le=100)
    max: float = Field(default=0.0, ge=0, le=100)


class TeamConsistency(BaseModel):
    """How closely the non-reflector opinions agree with each other."""

    model_config = ConfigDict(frozen=True)

    recommendation_consistency: float = Field(..., ge=0, le=1)
    score_consistency: float = Field(..., ge=0, le=1)
    average_score: float = Field(..., ge=0, le=100)
    score_std_dev: float = Field(..., ge=0)


class Summary(BaseModel):
    """Reduction of every opinion of a pipeline run."""

    model_config = ConfigDict(frozen=True)

    average_score: float = Field(default=0.0, ge=0, le=100, description="Mean of present scores")
    score_range: ScoreRange = Field(default_factory=ScoreRange)
    dominant_recommendation: Optional[Recommendation] = Field(
        default=None,
        description="Most frequent recommendation, None when no opinion has one"
    )
    recommendation_distribution: dict[Recommendation, int] = Field(default_factory=dict)
    consensus: float = Field(default=0.0, ge=0, le=1, description="Share agreeing with the dominant recommendation")
    final_recommendation: Recommendation = Field(
        default=Recommendation.HOLD,
        description="Role-weighted decision"
    )
    confidence: float = Field(default=0.5, ge=0, le=1, description="Role-weighted mean confidence")
    key_insights: tuple[str, ...] = ()
    major_risks: tuple[str, ...] = ()
    team_consistency: Optional[TeamConsistency] = None
    opinion_count: int = Field(default=0, ge=0)


class QuickSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    average_score: float = Field(default=0.0, ge=0, le=100)
    recommendation: Recommendation = Recommendation.HOLD
    confidence: float = Field(default=0.5, ge=0, le=1)
    key_points: tuple[str, ...] = ()
    main_risks: tuple[str, ...] = ()


class PipelineResult(BaseModel):
    """Result of the full four-stage pipeline."""

    model_config = ConfigDict(frozen=True)

    run_id: str
    subject_id: str
    subject_name: Optional[str] = None
    started_at: datetime
    completed_at: datetime = Field(default_factory=_utcnow)
    elapsed_ms: float = Field(..., ge=0)
    analyst_results: tuple[Opinion, ...] = ()
    research_results: tuple[Opinion, ...] = ()
    trading_results: tuple[Opinion, ...] = ()
    reflection_result: Opinion
    summary: Summary
    stages: dict[str, StageStatus] = Field(default_factory=dict)
    stage_results: dict[str, StageResult] = Field(
        default_factory=dict,
        description="Per-stage opinions and agent failures, in stage order"
    )


class QuickPipelineResult(BaseModel):
    """Result of the reduced two-stage pipeline."""

    model_config = ConfigDict(frozen=True)

    run_id: str
    subject_id: str
    subject_name: Optional[str] = None
    started_at: datetime
    completed_at: datetime = Field(default_factory=_utcnow)
    elapsed_ms: float = Field(..., ge=0)
    core_results: tuple[Opinion, ...] = ()
    trading_result: Opinion
    quick_summary: QuickSummary
    stages: dict[str, StageStatus] = Field(default_factory=dict)
    stage_results: dict[str, StageResult] = Field(
        default_factory=dict,
        description="Per-stage opinions and agent failures, in stage order"
    )


class WatchlistError(BaseModel):
    model_config = ConfigDict(frozen=True)

    subject_id: str
    error_code: str
    message: str


class WatchlistResult(BaseModel):
    """Outcome of a sequential batch over several subjects."""

    model_config = ConfigDict(frozen=True)

    results: tuple[PipelineResult | QuickPipelineResult, ...] = ()
    errors: tuple[WatchlistError, ...] = ()
