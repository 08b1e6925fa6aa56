import math
import statistics
from collections import Counter
from typing import Iterable, Optional, Sequence

from agent_pipeline.config import Settings
from agent_pipeline.models.opinion import CONSERVATIVE_ORDER, AgentRole, Opinion, Recommendation
from agent_pipeline.models.results import QuickSummary, ScoreRange, Summary, TeamConsistency

# Vote tie-break priority, highest first. Reflector opinions are advisory.
ROLE_PRIORITY: tuple[AgentRole, ...] = (
    AgentRole.TRADER,
    AgentRole.RESEARCHER,
    AgentRole.ANALYST,
    AgentRole.REFLECTOR,
)


class StageWeights:
    """Weight of each agent role in the final recommendation and confidence."""

    def __init__(
        self,
        analyst: float = 1.0,
        researcher: float = 1.5,
        trader: float = 2.0,
        reflector: float = 2.5,
    ):
        """Initialize stage weights.
        
        Args:
            analyst: Weight for analyst opinions (default 1.0).
            researcher: Weight for researcher opinions (default 1.5).
            trader: Weight for trader/decision opinions (default 2.0).
            reflector: Weight for the reflector opinion (default 2.5).
        """
        self.weights = {
            AgentRole.ANALYST: analyst,
            AgentRole.RESEARCHER: researcher,
            AgentRole.TRADER: trader,
            AgentRole.REFLECTOR: reflector,
        }
        for role, weight in self.weights.items():
            if weight <= 0:
                raise ValueError(f"Weight for {role.value} must be positive, got {weight}")

    @classmethod
    def from_settings(cls, settings: Settings) -> "StageWeights":
        return cls(
            analyst=settings.analyst_weight,
            researcher=settings.researcher_weight,
            trader=settings.trader_weight,
            reflector=settings.reflector_weight,
        )

    def get(self, role: AgentRole) -> float:
        return self.weights[role]


def _conservative_rank(recommendation: Recommendation) -> int:
    return CONSERVATIVE_ORDER.index(recommendation)


def _dedupe(items: Iterable[str], limit: int) -> tuple[str, ...]:
    """Order-preserving exact-match de-duplication, capped at ``limit``."""
    seen: dict[str, None] = {}
    for item in items:
        if item and item not in seen:
            seen[item] = None
            if len(seen) >= limit:
                break
    return tuple(seen)


class Aggregator:
    """Reduce the opinions of a pipeline run into a summary.
    
    Pure: no I/O, no state beyond its configuration, so calling it twice
    on the same opinions yields the same summary.
    """

    def __init__(
        self,
        weights: Optional[StageWeights] = None,
        max_items: int = 10,
        quick_key_points: int = 3,
        quick_main_risks: int = 2,
    ):
        self.weights = weights or StageWeights()
        self.max_items = max_items
        self.quick_key_points = quick_key_points
        self.quick_main_risks = quick_main_risks

    @classmethod
    def from_settings(cls, settings: Settings) -> "Aggregator":
        return cls(
            weights=StageWeights.from_settings(settings),
            max_items=settings.summary_max_items,
            quick_key_points=settings.quick_key_points,
            quick_main_risks=settings.quick_main_risks,
        )

    def summarize(self, opinions: Sequence[Opinion]) -> Summary:
        """Summarize every opinion of a run.
        
        Args:
            opinions: Opinions of all stages, in stage order.
            
        Returns:
            Summary with average score, dominant and final recommendations,
            consensus, confidence and de-duplicated insights and risks.
        """
        scores = [o.score for o in opinions if o.score is not None]
        voted = [o for o in opinions if o.recommendation is not None]

        distribution = Counter(o.recommendation for o in voted)
        dominant = self._dominant_recommendation(voted)
        consensus = distribution[dominant] / len(voted) if voted else 0.0

        return Summary(
            average_score=self._average_score(scores),
            score_range=ScoreRange(min=min(scores), max=max(scores)) if scores else ScoreRange(),
            dominant_recommendation=dominant,
            recommendation_distribution=dict(distribution),
            consensus=consensus,
            final_recommendation=self._final_recommendation(voted),
            confidence=self._weighted_confidence(opinions),
            key_insights=_dedupe((i for o in opinions for i in o.key_insights), self.max_items),
            major_risks=_dedupe((r for o in opinions for r in o.risks), self.max_items),
            team_consistency=self._team_consistency(opinions),
            opinion_count=len(opinions),
        )

    def quick_summary(self, core: Sequence[Opinion], decision: Opinion) -> QuickSummary:
        """Summarize a quick run: core analyst opinions plus the decision opinion."""
        summary = self.summarize([*core, decision])
        return QuickSummary(
            average_score=summary.average_score,
            recommendation=decision.recommendation or summary.final_recommendation,
            confidence=summary.confidence,
            key_points=summary.key_insights[: self.quick_key_points],
            main_risks=summary.major_risks[: self.quick_main_risks],
        )

    def _average_score(self, scores: Sequence[float]) -> float:
        if not scores:
            return 0.0
        # fsum keeps the mean independent of opinion order
        return round(math.fsum(scores) / len(scores), 1)

    def _dominant_recommendation(self, voted: Sequence[Opinion]) -> Optional[Recommendation]:
        """Most frequent recommendation.
        
        Ties go to the value with more trader votes, then researcher, then
        analyst, then reflector votes, and finally to the more conservative
        value.
        """
        if not voted:
            return None

        by_role: Counter = Counter((o.recommendation, o.source_kind) for o in voted)
        totals = Counter(o.recommendation for o in voted)

        def rank(rec: Recommendation) -> tuple:
            role_votes = tuple(by_role[(rec, role)] for role in ROLE_PRIORITY)
            return (totals[rec], *role_votes, -_conservative_rank(rec))

        return max(totals, key=rank)

    def _final_recommendation(self, voted: Sequence[Opinion]) -> Recommendation:
        """Role-weighted vote; ties go to the more conservative value."""
        if not voted:
            return Recommendation.HOLD

        contributions: dict[Recommendation, list[float]] = {}
        for opinion in voted:
            contributions.setdefault(opinion.recommendation, []).append(
                self.weights.get(opinion.source_kind)
            )
        totals = {rec: math.fsum(ws) for rec, ws in contributions.items()}

        return max(totals, key=lambda rec: (totals[rec], -_conservative_rank(rec)))

    def _weighted_confidence(self, opinions: Sequence[Opinion]) -> float:
        """Role-weighted mean confidence; missing confidences count as 0.5."""
        if not opinions:
            return 0.5

        weights = [self.weights.get(o.source_kind) for o in opinions]
        values = [
            w * (o.confidence if o.confidence is not None else 0.5)
            for w, o in zip(weights, opinions)
        ]
        confidence = math.fsum(values) / math.fsum(weights)
        return max(0.0, min(1.0, confidence))

    def _team_consistency(self, opinions: Sequence[Opinion]) -> Optional[TeamConsistency]:
        """Agreement among non-reflector opinions, or None when there are none."""
        team = [o for o in opinions if o.source_kind != AgentRole.REFLECTOR]
        scores = [o.score for o in team if o.score is not None]
        recommendations = [o.recommendation for o in team if o.recommendation is not None]

        if not team:
            return None

        if recommendations:
            recommendation_consistency = max(Counter(recommendations).values()) / len(recommendations)
        else:
            recommendation_consistency = 0.0

        if scores:
            average = math.fsum(scores) / len(scores)
            std_dev = statistics.pstdev(scores)
            score_consistency = max(0.0, 1 - std_dev / 50)
        else:
            average = std_dev = score_consistency = 0.0

        return TeamConsistency(
            recommendation_consistency=recommendation_consistency,
            score_consistency=min(1.0, score_consistency),
            average_score=max(0.0, min(100.0, average)),
            score_std_dev=std_dev,
        )
