import asyncio
import copy
import logging
import time
from typing import Optional, Sequence, Union

from agent_pipeline.agents.base import Agent
from agent_pipeline.exceptions import AgentAnalysisError, AgentError, AgentTimeoutError
from agent_pipeline.logging_config import AgentLogger
from agent_pipeline.models.context import AnalysisContext
from agent_pipeline.models.opinion import Opinion
from agent_pipeline.models.results import AgentFailure, StageResult


class StageRunner:
    """Run one stage's agents concurrently against the same context snapshot.
    
    Every agent runs under its own timeout and failure isolation, on a
    private copy of the open data maps. The runner returns only once all of
    them have produced an opinion or failed. Cancellation of the caller
    propagates into the agent tasks. An agent cancelled from the inside is
    just a failed agent.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    async def run(
        self,
        stage: str,
        agents: Sequence[Agent],
        context: AnalysisContext,
        per_agent_timeout: float,
    ) -> StageResult:
        """Execute a stage.
        
        Args:
            stage: Stage name, recorded on the result and in logs.
            agents: Agents to launch, in manifest order.
            context: Snapshot shared read-only by every agent.
            per_agent_timeout: Seconds each agent may take.
            
        Returns:
            StageResult with successful opinions in agent order and failures.
        """
        if not agents:
            self.logger.debug("Stage %s has no agents, skipping", stage)
            return StageResult(stage=stage, skipped=True)

        start_time = time.perf_counter()

        results = await asyncio.gather(
            *(
                self._run_agent(agent, stage, self._agent_context(context), per_agent_timeout)
                for agent in agents
            ),
            return_exceptions=True,
        )

        opinions, failures = self._collect_results(agents, results, stage, context.subject_id)

        return StageResult(
            stage=stage,
            opinions=tuple(opinions),
            failures=tuple(failures),
            elapsed_ms=(time.perf_counter() - start_time) * 1000,
        )

    async def _run_agent(
        self,
        agent: Agent,
        stage: str,
        context: AnalysisContext,
        timeout: float,
    ) -> Opinion:
        """Run one agent with timeout, normalising every failure to ``AgentError``."""
        agent_logger = AgentLogger(agent.name, self.logger)
        agent_logger.log_agent_start(context.subject_id, stage)
        start_time = time.perf_counter()

        try:
            try:
                opinion = await asyncio.wait_for(agent.analyze(context), timeout=timeout)
            except asyncio.TimeoutError:
                raise AgentTimeoutError(agent.name, timeout, context.subject_id)
            except AgentError:
                raise
            except Exception as e:
                raise AgentAnalysisError(
                    agent.name, f"{type(e).__name__}: {e}", context.subject_id
                ) from e

            if not isinstance(opinion, Opinion):
                raise AgentAnalysisError(
                    agent.name,
                    f"expected Opinion, got {type(opinion).__name__}",
                    context.subject_id,
                )
        except AgentError as e:
            duration_ms = (time.perf_counter() - start_time) * 1000
            agent_logger.log_agent_error(context.subject_id, stage, e, duration_ms)
            raise

        duration_ms = (time.perf_counter() - start_time) * 1000
        agent_logger.log_agent_complete(
            context.subject_id,
            stage,
            duration_ms,
            score=opinion.score,
            recommendation=opinion.recommendation.value if opinion.recommendation else None,
            confidence=opinion.confidence,
        )
        return opinion

    @staticmethod
    def _agent_context(context: AnalysisContext) -> AnalysisContext:
        """Copy of ``context`` whose open data maps belong to a single agent.

        The model is frozen but its dicts are not; an agent writing into
        ``raw_data`` or ``metadata`` must not leak into its siblings or into
        later stages.
        """
        return context.model_copy(
            update={
                "raw_data": copy.deepcopy(context.raw_data),
                "metadata": copy.deepcopy(context.metadata),
            }
        )

    def _collect_results(
        self,
        agents: Sequence[Agent],
        results: Sequence[Union[Opinion, BaseException]],
        stage: str,
        subject_id: str,
    ) -> tuple[list[Opinion], list[AgentFailure]]:
        """Split gathered results into opinions and failures, keeping agent order.
        
        Only called once ``gather`` has returned, so the caller was not
        cancelled: a ``CancelledError`` in ``results`` came from inside that
        agent and is recorded as its failure.
        
        Args:
            agents: Agents in the order they were launched.
            results: Matching gather results.
            stage: Stage name, for logging.
            subject_id: Subject under analysis.
            
        Returns:
            Tuple of (opinions, failures).
        """
        opinions: list[Opinion] = []
        failures: list[AgentFailure] = []

        for agent, result in zip(agents, results):
            if isinstance(result, Opinion):
                opinions.append(result)
                continue

            if isinstance(result, asyncio.CancelledError):
                error = AgentAnalysisError(agent.name, "cancelled", subject_id)
                error.__cause__ = result
                AgentLogger(agent.name, self.logger).log_agent_error(subject_id, stage, error)
                result = error

            if isinstance(result, AgentError):
                failures.append(
                    AgentFailure(
                        agent_name=agent.name,
                        error_code=result.error_code,
                        error_type=type(result).__name__,
                        error_message=result.message,
                        error=result,
                    )
                )
            elif isinstance(result, Exception):
                # Only reachable if _run_agent lets a non-AgentError escape
                self.logger.error("Unexpected failure type from %s: %s", agent.name, type(result))
                failures.append(
                    AgentFailure(
                        agent_name=agent.name,
                        error_type=type(result).__name__,
                        error_message=str(result),
                        error=result,
                    )
                )
            else:
                # KeyboardInterrupt, SystemExit and the like are not agent failures
                raise result

        return opinions, failures
