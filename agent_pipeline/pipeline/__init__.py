from agent_pipeline.pipeline.aggregator import Aggregator, StageWeights
from agent_pipeline.pipeline.context import ContextAccumulator
from agent_pipeline.pipeline.orchestrator import (
    ANALYSIS_STAGE,
    CORE_ANALYSIS_STAGE,
    DECISION_STAGE,
    REFLECTION_STAGE,
    RESEARCH_STAGE,
    TRADING_STAGE,
    Orchestrator,
    StageSpec,
)
from agent_pipeline.pipeline.stage_runner import StageRunner

__all__ = [
    "Aggregator",
    "StageWeights",
    "ContextAccumulator",
    "StageRunner",
    "Orchestrator",
    "StageSpec",
    "ANALYSIS_STAGE",
    "RESEARCH_STAGE",
    "TRADING_STAGE",
    "REFLECTION_STAGE",
    "CORE_ANALYSIS_STAGE",
    "DECISION_STAGE",
]
