import json
import logging
import sys
import time
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Optional

from agent_pipeline.config import Settings

# Context variable for run tracing; asyncio tasks inherit it from the pipeline
run_id_var: ContextVar[Optional[str]] = ContextVar("run_id", default=None)


def new_run_id() -> str:
    """Generate a run identifier of the form ``run_<epoch_ms>_<8 hex>``."""
    return f"run_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}"


def get_run_id() -> Optional[str]:
    """Get the current run ID from context.
    
    Returns:
        Current run ID or None.
    """
    return run_id_var.get()


def set_run_id(run_id: Optional[str] = None) -> str:
    """Set the run ID in context.
    
    Args:
        run_id: Run ID to set. Generates a new one if not provided.
        
    Returns:
        The run ID that was set.
    """
    if run_id is None:
        run_id = new_run_id()
    run_id_var.set(run_id)
    return run_id


def clear_run_id() -> None:
    """Clear the run ID from context."""
    run_id_var.set(None)


# Attributes every LogRecord carries; anything else arrived through ``extra=``
_RECORD_ATTRS = frozenset(
    logging.LogRecord("", logging.NOTSET, "", 0, "", (), None).__dict__
) | {"message", "asctime", "taskName"}


class StructuredLogFormatter(logging.Formatter):
    """One JSON object per record, tagged with the active run id.

    Event fields passed through ``extra=`` (``event``, ``stage``, ``agent``,
    ``duration_ms``...) become top-level keys. Values that ``json`` cannot
    encode are stringified.
    """

    def __init__(self, include_extra: bool = True):
        super().__init__()
        self.include_extra = include_extra

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        run_id = get_run_id()
        if run_id:
            log_data["run_id"] = run_id

        if record.exc_info:
            log_data["exception"] = self._exception_data(record)

        if self.include_extra:
            log_data.update(self._extra_fields(record))

        return json.dumps(log_data, default=str)

    def _exception_data(self, record: logging.LogRecord) -> dict[str, Optional[str]]:
        exc_type, exc_value, exc_tb = record.exc_info
        return {
            "type": exc_type.__name__ if exc_type else None,
            "message": str(exc_value) if exc_value else None,
            "traceback": self.formatException(record.exc_info) if exc_tb else None,
        }

    @staticmethod
    def _extra_fields(record: logging.LogRecord) -> dict[str, Any]:
        fields = {}
        for key, value in record.__dict__.items():
            if key in _RECORD_ATTRS or key.startswith("_"):
                continue
            try:
                json.dumps(value)
            except (TypeError, ValueError):
                value = str(value)
            fields[key] = value
        return fields


class ConsoleLogFormatter(logging.Formatter):
    """Coloured single-line output for local runs, prefixed with the run id."""

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelname, "")
        run_id = get_run_id()
        prefix = f"[{run_id}] " if run_id else ""
        timestamp = datetime.fromtimestamp(record.created, timezone.utc).strftime("%Y-%m-%d %H:%M:%S")

        line = (
            f"{timestamp} {color}{record.levelname:<8}{self.RESET} "
            f"{prefix}{record.name}: {record.getMessage()}"
        )
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


class AgentLogger:
    """Structured logging for single agent invocations inside a stage.
    
    Provides consistent event fields for tracking which agent ran against
    which subject, how long it took and why it failed.
    """
    
    def __init__(self, agent_name: str, logger: Optional[logging.Logger] = None):
        """Initialize agent logger.
        
        Args:
            agent_name: Name of the agent.
            logger: Logger to emit on. Defaults to a per-agent child logger.
        """
        self.agent_name = agent_name
        self.logger = logger or logging.getLogger(
            f"agent_pipeline.agents.{agent_name.lower().replace(' ', '_')}"
        )
    
    def log_agent_start(self, subject_id: str, stage: str, **extra: Any) -> None:
        self.logger.debug(
            f"{self.agent_name} starting on {subject_id} ({stage})",
            extra={
                "event": "agent_start",
                "agent": self.agent_name,
                "subject_id": subject_id,
                "stage": stage,
                **extra,
            }
        )
    
    def log_agent_complete(
        self,
        subject_id: str,
        stage: str,
        duration_ms: float,
        score: Optional[float] = None,
        recommendation: Optional[str] = None,
        confidence: Optional[float] = None,
        **extra: Any,
    ) -> None:
        """Log a successful agent invocation.
        
        Args:
            subject_id: Subject analyzed.
            stage: Stage the agent ran in.
            duration_ms: Invocation duration in milliseconds.
            score: Opinion score, if the agent produced one.
            recommendation: Opinion recommendation value, if any.
            confidence: Opinion confidence, if any.
            **extra: Additional context fields.
        """
        self.logger.info(
            f"{self.agent_name} completed {subject_id} in {duration_ms:.0f}ms",
            extra={
                "event": "agent_complete",
                "agent": self.agent_name,
                "subject_id": subject_id,
                "stage": stage,
                "score": score,
                "recommendation": recommendation,
                "confidence": confidence,
                "duration_ms": duration_ms,
                **extra,
            }
        )
    
    def log_agent_error(
        self,
        subject_id: str,
        stage: str,
        error: Exception,
        duration_ms: Optional[float] = None,
        **extra: Any,
    ) -> None:
        """Log a failed agent invocation.
        
        Args:
            subject_id: Subject being analyzed.
            stage: Stage the agent ran in.
            error: Exception that occurred.
            duration_ms: Duration before failure in milliseconds.
            **extra: Additional context fields.
        """
        self.logger.warning(
            f"{self.agent_name} failed on {subject_id}: {type(error).__name__}: {error}",
            extra={
                "event": "agent_error",
                "agent": self.agent_name,
                "subject_id": subject_id,
                "stage": stage,
                "error_type": type(error).__name__,
                "error_message": str(error),
                "duration_ms": duration_ms,
                **extra,
            },
        )


class PipelineLogger:
    """Structured logging for pipeline runs and stage barriers."""
    
    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger("agent_pipeline.pipeline")
    
    def log_pipeline_start(self, pipeline: str, subject_id: str, **extra: Any) -> None:
        self.logger.info(
            f"Starting {pipeline} pipeline for {subject_id}",
            extra={
                "event": "pipeline_start",
                "pipeline": pipeline,
                "subject_id": subject_id,
                **extra,
            }
        )
    
    def log_stage_complete(
        self,
        stage: str,
        succeeded: int,
        failed: int,
        status: str,
        duration_ms: float,
        **extra: Any,
    ) -> None:
        """Log a stage barrier.
        
        Args:
            stage: Stage name.
            succeeded: Number of agents that produced an opinion.
            failed: Number of agents that failed.
            status: Resulting stage status.
            duration_ms: Stage duration in milliseconds.
            **extra: Additional context fields.
        """
        level = logging.INFO if failed == 0 else logging.WARNING
        
        self.logger.log(
            level,
            f"Stage {stage}: {succeeded}/{succeeded + failed} succeeded ({status}, {duration_ms:.0f}ms)",
            extra={
                "event": "stage_complete",
                "stage": stage,
                "succeeded": succeeded,
                "failed": failed,
                "status": status,
                "duration_ms": duration_ms,
                **extra,
            }
        )
    
    def log_pipeline_complete(
        self,
        pipeline: str,
        subject_id: str,
        recommendation: str,
        confidence: float,
        duration_ms: float,
        **extra: Any,
    ) -> None:
        self.logger.info(
            f"{pipeline.capitalize()} pipeline complete for {subject_id}: "
            f"{recommendation} (confidence={confidence:.2f}, {duration_ms:.0f}ms)",
            extra={
                "event": "pipeline_complete",
                "pipeline": pipeline,
                "subject_id": subject_id,
                "recommendation": recommendation,
                "confidence": confidence,
                "duration_ms": duration_ms,
                **extra,
            }
        )
    
    def log_pipeline_error(
        self,
        pipeline: str,
        subject_id: str,
        error: Exception,
        duration_ms: float,
        **extra: Any,
    ) -> None:
        self.logger.error(
            f"{pipeline.capitalize()} pipeline failed for {subject_id}: {type(error).__name__}: {error}",
            extra={
                "event": "pipeline_error",
                "pipeline": pipeline,
                "subject_id": subject_id,
                "error_type": type(error).__name__,
                "error_message": str(error),
                "duration_ms": duration_ms,
                **extra,
            },
        )


def configure_logging(settings: Settings) -> None:
    """Install a single stdout handler on the root logger.
    
    JSON lines by default, coloured console lines when ``settings.debug``
    is set.
    
    Args:
        settings: Settings carrying ``log_level`` and ``debug``.
    """
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)
    
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()
    
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    
    if settings.debug:
        formatter = ConsoleLogFormatter()
    else:
        formatter = StructuredLogFormatter()
    
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)
    
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    
    logger = logging.getLogger(__name__)
    logger.info(
        f"Logging configured: level={settings.log_level}, debug={settings.debug}",
        extra={"event": "logging_configured"}
    )
