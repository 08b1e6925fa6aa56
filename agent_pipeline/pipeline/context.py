from agent_pipeline.models.context import AnalysisContext
from agent_pipeline.models.opinion import Opinion
from agent_pipeline.models.results import StageResult


class ContextAccumulator:
    """Thread successful opinions of finished stages into the next stage's context.
    
    Contexts already handed out are never touched: each call to
    ``context()`` builds a fresh snapshot whose ``prior_opinions`` is the
    concatenation, in stage order, of every opinion added so far.
    """

    def __init__(self, base_context: AnalysisContext):
        self._base = base_context
        self._opinions: tuple[Opinion, ...] = tuple(base_context.prior_opinions)

    @property
    def opinions(self) -> tuple[Opinion, ...]:
        return self._opinions

    def context(self) -> AnalysisContext:
        """Snapshot for the next stage to run."""
        return self._base.with_prior_opinions(self._opinions)

    def add(self, result: StageResult) -> AnalysisContext:
        """Append a finished stage's opinions and return the next stage's context.
        
        Failed agents contribute nothing; a skipped or degraded stage leaves
        the accumulated opinions unchanged.
        """
        self._opinions = self._opinions + result.opinions
        return self.context()
