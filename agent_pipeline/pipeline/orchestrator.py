import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Sequence

from agent_pipeline.agents.base import Agent
from agent_pipeline.config import Settings
from agent_pipeline.exceptions import (
    PipelineBaseError,
    PipelineConfigurationError,
    PipelineError,
)
from agent_pipeline.logging_config import PipelineLogger, new_run_id, run_id_var
from agent_pipeline.models.context import AnalysisContext, AnalysisRequest
from agent_pipeline.models.results import (
    PipelineResult,
    QuickPipelineResult,
    StageResult,
    WatchlistError,
    WatchlistResult,
)
from agent_pipeline.pipeline.aggregator import Aggregator
from agent_pipeline.pipeline.context import ContextAccumulator
from agent_pipeline.pipeline.stage_runner import StageRunner

# Full pipeline stages
ANALYSIS_STAGE = "analysis"
RESEARCH_STAGE = "research"
TRADING_STAGE = "trading"
REFLECTION_STAGE = "reflection"

# Quick pipeline stages
CORE_ANALYSIS_STAGE = "core_analysis"
DECISION_STAGE = "decision"


@dataclass(frozen=True)
class StageSpec:
    """One entry of a stage manifest."""

    name: str
    agents: tuple[Agent, ...]
    timeout_seconds: float
    critical: bool = False


class Orchestrator:
    """Staged multi-agent analysis engine.
    
    Runs stage manifests through the shared stage runner and context
    accumulator, then reduces every opinion with the aggregator. The full
    pipeline runs analysts, researchers, traders and the reflector; the
    quick pipeline runs a subset of analysts and a single decision agent.
    
    Non-critical stages (analysts, researchers, core analysts) may end with
    no opinions and the run continues. Critical stages (traders, reflector,
    decision) abort the run with ``PipelineError`` when every agent fails.
    """

    def __init__(
        self,
        analysts: Sequence[Agent],
        researchers: Sequence[Agent],
        traders: Sequence[Agent],
        reflector: Optional[Agent],
        core_analysts: Optional[Sequence[Agent]] = None,
        decision_agent: Optional[Agent] = None,
        settings: Optional[Settings] = None,
        stage_runner: Optional[StageRunner] = None,
        aggregator: Optional[Aggregator] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """Initialize the orchestrator.
        
        Args:
            analysts: Stage 1 agents, independent of each other.
            researchers: Stage 2 agents, see analyst opinions.
            traders: Stage 3 agents, see analyst and researcher opinions.
            reflector: Stage 4 agent, sees everything produced so far.
            core_analysts: Quick pipeline analysts. Defaults to the first
                ``settings.quick_core_analysts`` analysts.
            decision_agent: Quick pipeline decision agent. Defaults to the first trader.
            settings: Pipeline settings. A fresh ``Settings()`` if not provided.
            stage_runner: Stage runner to use. Built from ``logger`` if not provided.
            aggregator: Aggregator to use. Built from ``settings`` if not provided.
            logger: Logger for orchestration events.
            
        Raises:
            PipelineConfigurationError: If a critical stage has no agent or a
                stage lists two agents with the same name.
        """
        self.settings = settings or Settings()
        self.logger = logger or logging.getLogger(__name__)
        self.pipeline_logger = PipelineLogger(self.logger)
        self.stage_runner = stage_runner or StageRunner(self.logger)
        self.aggregator = aggregator or Aggregator.from_settings(self.settings)

        if not traders:
            raise PipelineConfigurationError("At least one trader agent is required", TRADING_STAGE)
        if reflector is None:
            raise PipelineConfigurationError("A reflection agent is required", REFLECTION_STAGE)

        if core_analysts is None:
            core_analysts = list(analysts)[: self.settings.quick_core_analysts]
        decision_agent = decision_agent or traders[0]

        self.full_manifest: tuple[StageSpec, ...] = (
            StageSpec(ANALYSIS_STAGE, tuple(analysts), self.settings.analyst_timeout_seconds),
            StageSpec(RESEARCH_STAGE, tuple(researchers), self.settings.research_timeout_seconds),
            StageSpec(TRADING_STAGE, tuple(traders), self.settings.trading_timeout_seconds, critical=True),
            StageSpec(REFLECTION_STAGE, (reflector,), self.settings.reflection_timeout_seconds, critical=True),
        )
        self.quick_manifest: tuple[StageSpec, ...] = (
            StageSpec(CORE_ANALYSIS_STAGE, tuple(core_analysts), self.settings.analyst_timeout_seconds),
            StageSpec(DECISION_STAGE, (decision_agent,), self.settings.trading_timeout_seconds, critical=True),
        )

        for spec in (*self.full_manifest, *self.quick_manifest):
            names = [agent.name for agent in spec.agents]
            if len(names) != len(set(names)):
                raise PipelineConfigurationError(
                    f"Stage '{spec.name}' lists duplicate agent names: {names}", spec.name
                )

        self.logger.info(
            "Initialized Orchestrator: %s",
            {spec.name: len(spec.agents) for spec in self.full_manifest},
        )

    async def run_full_analysis(self, request: AnalysisRequest) -> PipelineResult:
        """Run analysts, researchers, traders and the reflector for one subject.
        
        Args:
            request: Subject identity, time range, pre-fetched data and hints.
            
        Returns:
            PipelineResult with every stage's opinions and the summary.
            
        Raises:
            PipelineError: If the trading or reflection stage produced no opinion.
        """
        run_id = new_run_id()
        token = run_id_var.set(run_id)
        started_at = datetime.now(timezone.utc)
        start_time = time.perf_counter()
        self.pipeline_logger.log_pipeline_start("full", request.subject_id)

        try:
            stages = await self._run_manifest(self.full_manifest, request)

            analyst_results = stages[ANALYSIS_STAGE].opinions
            research_results = stages[RESEARCH_STAGE].opinions
            trading_results = stages[TRADING_STAGE].opinions
            reflection_result = stages[REFLECTION_STAGE].opinions[0]

            summary = self.aggregator.summarize(
                [*analyst_results, *research_results, *trading_results, reflection_result]
            )
            duration_ms = (time.perf_counter() - start_time) * 1000

            result = PipelineResult(
                run_id=run_id,
                subject_id=request.subject_id,
                subject_name=request.subject_name,
                started_at=started_at,
                elapsed_ms=duration_ms,
                analyst_results=analyst_results,
                research_results=research_results,
                trading_results=trading_results,
                reflection_result=reflection_result,
                summary=summary,
                stages={name: stage.status for name, stage in stages.items()},
                stage_results=stages,
            )

            self.pipeline_logger.log_pipeline_complete(
                "full",
                request.subject_id,
                recommendation=summary.final_recommendation.value,
                confidence=summary.confidence,
                duration_ms=duration_ms,
                consensus=summary.consensus,
            )
            return result

        except Exception as e:
            duration_ms = (time.perf_counter() - start_time) * 1000
            self.pipeline_logger.log_pipeline_error("full", request.subject_id, e, duration_ms)
            raise
        finally:
            run_id_var.reset(token)

    async def run_quick_analysis(self, request: AnalysisRequest) -> QuickPipelineResult:
        """Run the core analysts and the decision agent for one subject.
        
        The decision agent runs even when every core analyst failed, with
        no prior opinions.
        
        Args:
            request: Subject identity, time range, pre-fetched data and hints.
            
        Returns:
            QuickPipelineResult with core opinions, the decision and a quick summary.
            
        Raises:
            PipelineError: If the decision agent failed.
        """
        run_id = new_run_id()
        token = run_id_var.set(run_id)
        started_at = datetime.now(timezone.utc)
        start_time = time.perf_counter()
        self.pipeline_logger.log_pipeline_start("quick", request.subject_id)

        try:
            stages = await self._run_manifest(self.quick_manifest, request)

            core_results = stages[CORE_ANALYSIS_STAGE].opinions
            trading_result = stages[DECISION_STAGE].opinions[0]
            quick_summary = self.aggregator.quick_summary(core_results, trading_result)
            duration_ms = (time.perf_counter() - start_time) * 1000

            result = QuickPipelineResult(
                run_id=run_id,
                subject_id=request.subject_id,
                subject_name=request.subject_name,
                started_at=started_at,
                elapsed_ms=duration_ms,
                core_results=core_results,
                trading_result=trading_result,
                quick_summary=quick_summary,
                stages={name: stage.status for name, stage in stages.items()},
                stage_results=stages,
            )

            self.pipeline_logger.log_pipeline_complete(
                "quick",
                request.subject_id,
                recommendation=quick_summary.recommendation.value,
                confidence=quick_summary.confidence,
                duration_ms=duration_ms,
            )
            return result

        except Exception as e:
            duration_ms = (time.perf_counter() - start_time) * 1000
            self.pipeline_logger.log_pipeline_error("quick", request.subject_id, e, duration_ms)
            raise
        finally:
            run_id_var.reset(token)

    async def analyze_subject(
        self,
        subject_id: str,
        subject_name: Optional[str] = None,
        quick: bool = False,
    ) -> PipelineResult | QuickPipelineResult:
        """Analyze one subject over the default lookback window."""
        request = AnalysisRequest(subject_id=subject_id, subject_name=subject_name)
        if quick:
            return await self.run_quick_analysis(request)
        return await self.run_full_analysis(request)

    async def analyze_watchlist(
        self,
        requests: Sequence[AnalysisRequest],
        quick: bool = False,
    ) -> WatchlistResult:
        """Analyze several subjects one after another.
        
        A subject whose run raises a pipeline error is recorded in
        ``errors`` and the batch moves on. Consecutive subjects are spaced
        by ``settings.watchlist_delay_seconds``.
        
        Args:
            requests: One request per subject, in processing order.
            quick: Run the quick pipeline instead of the full one.
            
        Returns:
            WatchlistResult with successful results and per-subject errors.
        """
        self.logger.info("Starting watchlist batch of %d subjects", len(requests))

        results = []
        errors = []

        for index, request in enumerate(requests):
            if index > 0 and self.settings.watchlist_delay_seconds > 0:
                await asyncio.sleep(self.settings.watchlist_delay_seconds)

            try:
                if quick:
                    results.append(await self.run_quick_analysis(request))
                else:
                    results.append(await self.run_full_analysis(request))
            except PipelineBaseError as e:
                errors.append(
                    WatchlistError(
                        subject_id=request.subject_id,
                        error_code=e.error_code,
                        message=e.message,
                    )
                )

        if errors:
            self.logger.warning(
                "Watchlist batch finished with failures: %s",
                [error.subject_id for error in errors],
                extra={"event": "watchlist_partial_failure", "failed": len(errors)},
            )
        self.logger.info(
            "Watchlist batch complete: %d succeeded, %d failed", len(results), len(errors)
        )

        return WatchlistResult(results=tuple(results), errors=tuple(errors))

    async def _run_manifest(
        self,
        manifest: Sequence[StageSpec],
        request: AnalysisRequest,
    ) -> dict[str, StageResult]:
        """Run stages strictly in order, each seeing every earlier opinion.
        
        Args:
            manifest: Stages to run.
            request: The caller's request.
            
        Returns:
            StageResult per stage name, in manifest order.
            
        Raises:
            PipelineError: If a critical stage produced no opinion.
        """
        accumulator = ContextAccumulator(
            AnalysisContext.from_request(request, self.settings.default_lookback_days)
        )
        stages: dict[str, StageResult] = {}

        for spec in manifest:
            result = await self.stage_runner.run(
                spec.name,
                spec.agents,
                accumulator.context(),
                spec.timeout_seconds,
            )
            self.pipeline_logger.log_stage_complete(
                spec.name,
                succeeded=len(result.opinions),
                failed=len(result.failures),
                status=result.status.value,
                duration_ms=result.elapsed_ms,
            )

            if spec.critical and not result.opinions:
                raise PipelineError(spec.name, result.failures, request.subject_id)

            accumulator.add(result)
            stages[spec.name] = result

        return stages
