"""Staged multi-agent stock analysis orchestrator."""

from agent_pipeline.agents import Agent, FunctionAgent
from agent_pipeline.config import Settings, get_settings
from agent_pipeline.exceptions import (
    AgentAnalysisError,
    AgentDataUnavailableError,
    AgentError,
    AgentTimeoutError,
    PipelineBaseError,
    PipelineConfigurationError,
    PipelineError,
)
from agent_pipeline.models import (
    AgentRole,
    AnalysisContext,
    AnalysisRequest,
    Opinion,
    PipelineResult,
    QuickPipelineResult,
    Recommendation,
    Summary,
    TimeRange,
)
from agent_pipeline.pipeline import Aggregator, Orchestrator, StageRunner

__version__ = "0.1.0"

__all__ = [
    "Agent",
    "FunctionAgent",
    "Settings",
    "get_settings",
    "AgentError",
    "AgentAnalysisError",
    "AgentDataUnavailableError",
    "AgentTimeoutError",
    "PipelineBaseError",
    "PipelineConfigurationError",
    "PipelineError",
    "AgentRole",
    "AnalysisContext",
    "AnalysisRequest",
    "Opinion",
    "PipelineResult",
    "QuickPipelineResult",
    "Recommendation",
    "Summary",
    "TimeRange",
    "Aggregator",
    "Orchestrator",
    "StageRunner",
]
