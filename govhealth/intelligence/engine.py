"""
Governance Intelligence Engine.

Single entry point that runs pipeline analysis, health scoring, balance
assessment and trend assessment over one shared activity index, and
produces the snapshot the history pipeline should append.

Usage:
    from govhealth.intelligence.engine import evaluate_governance

    report = evaluate_governance(data, history)
    print(report.health.score, report.balance.verdict.value)
    history = append_snapshot(history, report.snapshot)
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from govhealth.models import ActivityData, GovernanceSnapshot
from govhealth.observability import EvaluationContext

from .assessment import GovernanceAssessment, assess_governance_health
from .balance import GovernanceBalanceAssessment, compute_governance_balance
from .health import GovernanceHealthScore, compute_governance_health
from .index import build_activity_index
from .pipeline import GovernanceMetrics, compute_governance_metrics
from .references import CompetingImplementation, find_competing_implementations
from .snapshots import build_snapshot
from .thresholds import GovernanceThresholds, get_thresholds

logger = logging.getLogger(__name__)


@dataclass
class GovernanceReport:
    """Everything one evaluation produces."""

    health: GovernanceHealthScore
    balance: GovernanceBalanceAssessment
    assessment: GovernanceAssessment
    metrics: GovernanceMetrics
    snapshot: GovernanceSnapshot
    competing_implementations: list[CompetingImplementation] = field(default_factory=list)
    evaluation_id: str | None = None

    def to_dict(self) -> dict:
        return {
            "health": self.health.to_dict(),
            "balance": self.balance.to_dict(),
            "assessment": self.assessment.to_dict(),
            "metrics": self.metrics.to_dict(),
            "snapshot": self.snapshot.model_dump(),
            "competing_implementations": [c.to_dict() for c in self.competing_implementations],
        }


def evaluate_governance(
    data: ActivityData,
    history: Sequence[GovernanceSnapshot] = (),
    thresholds: GovernanceThresholds | None = None,
    evaluation_id: str | None = None,
) -> GovernanceReport:
    """
    Evaluate governance for one activity dataset against prior snapshots.

    Args:
        data: Activity captured by the ingestion process.
        history: Prior snapshots, any order. Not modified.
        thresholds: Override the active thresholds.
        evaluation_id: Tag for log records (generated when omitted).

    Returns:
        GovernanceReport. The snapshot is timestamped at data.generated_at
        (now when absent); appending it is the caller's job.
    """
    thresholds = thresholds or get_thresholds()

    with EvaluationContext(
        evaluation_id,
        proposals=len(data.proposals),
        agents=len(data.agent_stats),
        snapshots=len(history),
    ) as ctx:
        logger.debug(f"Evaluating governance: {ctx.describe_inputs()}")

        index = build_activity_index(data, thresholds)
        metrics = compute_governance_metrics(data, index.proposal_counts)
        health = compute_governance_health(data, thresholds, index)
        balance = compute_governance_balance(data, thresholds, index)
        assessment = assess_governance_health(
            data, history, thresholds, index, power=balance.power_concentration
        )
        competing = find_competing_implementations(
            data.proposals, data.pull_requests, thresholds.assessment.closing_keywords
        )
        snapshot = build_snapshot(
            data,
            health,
            timestamp=data.generated_at or None,
            velocity_window_days=thresholds.assessment.velocity_window_days,
        )

        logger.debug(
            f"Evaluation complete in {ctx.elapsed_ms:.1f}ms: health={health.score} ({health.bucket.value}), "
            f"verdict={balance.verdict.value}, {len(assessment.alerts)} alerts, "
            f"{len(assessment.recommendations)} recommendations"
        )

        return GovernanceReport(
            health=health,
            balance=balance,
            assessment=assessment,
            metrics=metrics,
            snapshot=snapshot,
            competing_implementations=competing,
            evaluation_id=ctx.evaluation_id,
        )
