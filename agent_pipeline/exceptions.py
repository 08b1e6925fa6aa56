from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Sequence

from agent_pipeline.models.results import AgentFailure


class ErrorSeverity(str, Enum):
    """How badly an error affects the run it occurred in."""

    LOW = "low"
    MEDIUM = "medium"     # one agent lost, stage continues
    HIGH = "high"         # run aborted
    CRITICAL = "critical" # orchestrator unusable


class PipelineBaseError(Exception):
    """Base exception for all pipeline errors.
    
    All custom exceptions inherit from this class so callers can catch a
    single type and still get a machine-readable error code.
    
    Attributes:
        message: Human-readable error message.
        error_code: Machine-readable error code.
        details: Additional error context.
        severity: Error severity level.
        timestamp: When the error occurred.
        recoverable: Whether the operation can be retried.
    """
    
    def __init__(
        self,
        message: str,
        error_code: str = "PIPELINE_BASE_ERROR",
        details: Optional[dict[str, Any]] = None,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        recoverable: bool = True,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.severity = severity
        self.timestamp = datetime.now(timezone.utc)
        self.recoverable = recoverable
    
    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a dictionary for logging or persistence.
        
        Returns:
            Dictionary representation of the error.
        """
        return {
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details if self.details else None,
            "severity": self.severity.value,
            "recoverable": self.recoverable,
            "timestamp": self.timestamp.isoformat(),
        }


# =============================================================================
# Agent Errors
# =============================================================================

class AgentError(PipelineBaseError):
    """Raised by a single agent invocation.
    
    Always isolated to that agent: the stage runner records it as a
    failure and never lets it escape the stage.
    """
    
    def __init__(
        self,
        message: str,
        agent_name: Optional[str] = None,
        error_code: str = "AGENT_ERROR",
        details: Optional[dict[str, Any]] = None,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        recoverable: bool = True,
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            details={"agent_name": agent_name, **(details or {})},
            severity=severity,
            recoverable=recoverable,
        )
        self.agent_name = agent_name


class AgentTimeoutError(AgentError):
    """Raised when an agent does not answer within its timeout."""
    
    def __init__(
        self,
        agent_name: str,
        timeout_seconds: float,
        subject_id: Optional[str] = None,
    ):
        super().__init__(
            message=f"{agent_name} agent timed out after {timeout_seconds}s",
            agent_name=agent_name,
            error_code="AGENT_TIMEOUT",
            details={
                "timeout_seconds": timeout_seconds,
                "subject_id": subject_id,
            },
        )
        self.timeout_seconds = timeout_seconds
        self.subject_id = subject_id


class AgentAnalysisError(AgentError):
    """Raised when agent analysis fails or returns a malformed result."""
    
    def __init__(
        self,
        agent_name: str,
        reason: str,
        subject_id: Optional[str] = None,
    ):
        super().__init__(
            message=f"{agent_name} analysis failed: {reason}",
            agent_name=agent_name,
            error_code="AGENT_ANALYSIS_ERROR",
            details={"reason": reason, "subject_id": subject_id},
        )
        self.reason = reason


class AgentDataUnavailableError(AgentError):
    """Raised when the data an agent needs is missing from the context."""
    
    def __init__(
        self,
        agent_name: str,
        missing: str,
        subject_id: Optional[str] = None,
    ):
        super().__init__(
            message=f"{agent_name} has no {missing} data for {subject_id or 'subject'}",
            agent_name=agent_name,
            error_code="AGENT_DATA_UNAVAILABLE",
            details={"missing": missing, "subject_id": subject_id},
        )
        self.missing = missing


# =============================================================================
# Pipeline Errors
# =============================================================================

class PipelineError(PipelineBaseError):
    """Raised when a critical stage produced no opinion at all.
    
    This is the only error that aborts a whole pipeline run.
    """
    
    def __init__(
        self,
        stage: str,
        failures: Sequence[AgentFailure] = (),
        subject_id: Optional[str] = None,
    ):
        failures = tuple(failures)
        message = f"Critical stage '{stage}' produced no opinions"
        if subject_id:
            message += f" for {subject_id}"
        if failures:
            message += ": " + "; ".join(f"{f.agent_name}: {f.error_message}" for f in failures)
        super().__init__(
            message=message,
            error_code="PIPELINE_ERROR",
            details={
                "stage": stage,
                "subject_id": subject_id,
                "failures": [f.model_dump() for f in failures],
            },
            severity=ErrorSeverity.HIGH,
            recoverable=True,
        )
        self.stage = stage
        self.failures = failures
        self.subject_id = subject_id


class PipelineConfigurationError(PipelineBaseError):
    """Raised when the orchestrator is wired with an unusable stage manifest."""
    
    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(
            message=message,
            error_code="PIPELINE_CONFIGURATION_ERROR",
            details={"stage": stage},
            severity=ErrorSeverity.CRITICAL,
            recoverable=False,
        )
        self.stage = stage
