from agent_pipeline.agents.base import Agent, AnalyzeFn, FunctionAgent
from agent_pipeline.exceptions import (
    AgentAnalysisError,
    AgentDataUnavailableError,
    AgentError,
    AgentTimeoutError,
)

__all__ = [
    "Agent",
    "AnalyzeFn",
    "FunctionAgent",
    "AgentError",
    "AgentAnalysisError",
    "AgentDataUnavailableError",
    "AgentTimeoutError",
]
