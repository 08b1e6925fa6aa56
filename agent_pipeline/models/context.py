from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field, JsonValue, field_validator, model_validator

from agent_pipeline.models.opinion import Opinion
from agent_pipeline.utils.validators import SubjectValidationError, validate_subject_id


class TimeRange(BaseModel):
    """Window of relevant historical data."""

    model_config = ConfigDict(frozen=True)

    start: datetime = Field(..., description="Window start")
    end: datetime = Field(..., description="Window end")

    @model_validator(mode="after")
    def validate_order(self) -> "TimeRange":
        """Validate that start is not after end."""
        if self.start > self.end:
            raise ValueError("Time range start must not be after its end")
        return self

    @classmethod
    def last_days(cls, days: int, end: Optional[datetime] = None) -> "TimeRange":
        """Build a window covering the ``days`` days up to ``end`` (default now)."""
        end = end or datetime.now(timezone.utc)
        return cls(start=end - timedelta(days=days), end=end)


class AnalysisRequest(BaseModel):
    """What a caller asks the orchestrator to analyze."""

    model_config = ConfigDict(frozen=True)

    subject_id: str = Field(..., description="Stock code or ticker")
    subject_name: Optional[str] = Field(default=None, description="Display name of the subject")
    time_range: Optional[TimeRange] = Field(default=None, description="Historical window")
    raw_data: dict[str, JsonValue] = Field(
        default_factory=dict,
        description="Pre-fetched market, fundamental and news data"
    )
    metadata: dict[str, JsonValue] = Field(
        default_factory=dict,
        description="Domain hints such as market regime or sector performance"
    )

    @field_validator("subject_id")
    @classmethod
    def validate_subject_id_field(cls, v: str) -> str:
        """Validate and normalize the subject id."""
        try:
            return validate_subject_id(v)
        except SubjectValidationError as e:
            raise ValueError(str(e))


class AnalysisContext(BaseModel):
    """Immutable snapshot handed to every agent of a stage."""

    model_config = ConfigDict(frozen=True)

    subject_id: str
    subject_name: Optional[str] = None
    time_range: TimeRange
    raw_data: dict[str, JsonValue] = Field(default_factory=dict)
    metadata: dict[str, JsonValue] = Field(default_factory=dict)
    prior_opinions: tuple[Opinion, ...] = Field(
        default=(),
        description="Opinions of all earlier stages, in stage order"
    )

    @classmethod
    def from_request(cls, request: AnalysisRequest, default_lookback_days: int = 30) -> "AnalysisContext":
        """Build the first-stage context for a request.
        
        Args:
            request: The caller's analysis request.
            default_lookback_days: Window length used when the request has no time range.
            
        Returns:
            Context with no prior opinions.
        """
        return cls(
            subject_id=request.subject_id,
            subject_name=request.subject_name,
            time_range=request.time_range or TimeRange.last_days(default_lookback_days),
            raw_data=request.raw_data,
            metadata=request.metadata,
        )

    @property
    def display_name(self) -> str:
        return self.subject_name or self.subject_id

    def with_prior_opinions(self, opinions: Iterable[Opinion]) -> "AnalysisContext":
        """Return a copy of this context carrying ``opinions`` as prior opinions."""
        return self.model_copy(update={"prior_opinions": tuple(opinions)})
