"""
Health Scorer.

Composite governance health, 0-100 in steps of 5, from four sub-metrics
worth 0-25 each:

1. Participation: is activity spread across agents or carried by one?
2. Pipeline Flow: are proposals moving or stalling?
3. Follow-through: do approved proposals get built?
4. Consensus Quality: are decisions deliberated or rubber-stamped?

Gini is volatile with fewer than ~6 agents. The composite absorbs that
by rounding to the nearest 5 and reporting a bucket rather than a raw
number.
"""

import logging
import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import Enum

from govhealth.models import ActivityData, AgentStat, Phase, Proposal

from .index import ActivityIndex, build_activity_index, count_proposals_by_author
from .pipeline import PipelineCounts, compute_pipeline
from .stats import SECONDS_PER_DAY, clamp, compute_gini, parse_timestamp, round_half_up
from .thresholds import GovernanceThresholds, HealthThresholds, get_thresholds

logger = logging.getLogger(__name__)


class HealthBucket(Enum):
    THRIVING = "Thriving"
    HEALTHY = "Healthy"
    NEEDS_ATTENTION = "Needs Attention"
    CRITICAL = "Critical"


@dataclass
class SubMetric:
    key: str  # participation | pipeline-flow | follow-through | consensus
    label: str
    score: int  # 0-25
    reason: str

    def to_dict(self) -> dict:
        return {"key": self.key, "label": self.label, "score": self.score, "reason": self.reason}


@dataclass
class GovernanceHealthScore:
    score: int  # 0-100, multiple of 5
    bucket: HealthBucket
    sub_metrics: tuple[SubMetric, SubMetric, SubMetric, SubMetric]
    data_window_days: int

    @property
    def participation(self) -> SubMetric:
        return self.sub_metrics[0]

    @property
    def pipeline_flow(self) -> SubMetric:
        return self.sub_metrics[1]

    @property
    def follow_through(self) -> SubMetric:
        return self.sub_metrics[2]

    @property
    def consensus(self) -> SubMetric:
        return self.sub_metrics[3]

    def to_dict(self) -> dict:
        return {
            "score": self.score,
            "bucket": self.bucket.value,
            "sub_metrics": [m.to_dict() for m in self.sub_metrics],
            "data_window_days": self.data_window_days,
        }


def _bounded(score: int, cfg: HealthThresholds) -> int:
    return clamp(score, 0, cfg.sub_metric_max)


def score_to_bucket(score: int, thresholds: HealthThresholds | None = None) -> HealthBucket:
    cfg = thresholds or get_thresholds().health
    if score >= cfg.thriving_min:
        return HealthBucket.THRIVING
    if score >= cfg.healthy_min:
        return HealthBucket.HEALTHY
    if score >= cfg.needs_attention_min:
        return HealthBucket.NEEDS_ATTENTION
    return HealthBucket.CRITICAL


def composite_score(sub_scores: Sequence[int], thresholds: HealthThresholds | None = None) -> int:
    """Sum of sub-scores rounded half-up to the nearest composite step."""
    cfg = thresholds or get_thresholds().health
    return round_half_up(sum(sub_scores) / cfg.composite_step) * cfg.composite_step


# =============================================================================
# Sub-metric 1: Participation
# =============================================================================


def compute_participation(
    agent_stats: Sequence[AgentStat],
    proposals: Sequence[Proposal],
    proposal_counts: Mapping[str, int] | None = None,
    thresholds: HealthThresholds | None = None,
) -> SubMetric:
    """
    Inverted Gini over per-agent activity (proposals + reviews + comments).

    Only active agents count. Perfect equality scores the maximum, total
    concentration scores 0.
    """
    cfg = thresholds or get_thresholds().health
    active = [a for a in agent_stats if a.is_active]

    if len(active) <= 1:
        if not active:
            return SubMetric("participation", "Participation", 0, "No active agents detected")
        return SubMetric(
            "participation",
            "Participation",
            _bounded(cfg.single_agent_score, cfg),
            "Only one active agent — cannot measure distribution",
        )

    if proposal_counts is None:
        proposal_counts = count_proposals_by_author(proposals)

    activities = [proposal_counts.get(a.login, 0) + a.reviews + a.comments for a in active]
    gini = compute_gini(activities)
    score = _bounded(round_half_up((1 - gini) * cfg.sub_metric_max), cfg)

    if gini < cfg.gini_well_distributed_below:
        word = "well-distributed"
    elif gini < cfg.gini_moderate_below:
        word = "moderately distributed"
    else:
        word = "concentrated"

    return SubMetric(
        "participation",
        "Participation",
        score,
        f"Activity is {word} across {len(active)} agents",
    )


# =============================================================================
# Sub-metric 2: Pipeline Flow
# =============================================================================


def compute_pipeline_flow(pipeline: PipelineCounts, thresholds: HealthThresholds | None = None) -> SubMetric:
    """
    Progression (left discussion) plus completion (reached a terminal phase).

    A pipeline where everything sits in discussion scores 0.
    """
    cfg = thresholds or get_thresholds().health
    if pipeline.total == 0:
        return SubMetric("pipeline-flow", "Pipeline Flow", 0, "No proposals in the pipeline")

    progression = pipeline.advanced / pipeline.total
    completion = pipeline.terminal / pipeline.total
    score = _bounded(
        round_half_up(progression * cfg.progression_points) + round_half_up(completion * cfg.completion_points),
        cfg,
    )

    if score >= 20:
        word = "flowing well"
    elif score >= 10:
        word = "moving slowly"
    else:
        word = "stalling"

    return SubMetric(
        "pipeline-flow",
        "Pipeline Flow",
        score,
        f"{pipeline.advanced} of {pipeline.total} proposals advanced past discussion — pipeline is {word}",
    )


# =============================================================================
# Sub-metric 3: Follow-through
# =============================================================================


def compute_follow_through(pipeline: PipelineCounts, thresholds: HealthThresholds | None = None) -> SubMetric:
    """Implemented share of approved (implemented + ready-to-implement) proposals."""
    cfg = thresholds or get_thresholds().health
    approved = pipeline.approved

    if approved == 0:
        return SubMetric(
            "follow-through",
            "Follow-through",
            _bounded(cfg.follow_through_baseline, cfg),
            "No approved proposals yet — score reflects early-stage baseline",
        )

    score = _bounded(round_half_up(pipeline.implemented / approved * cfg.sub_metric_max), cfg)

    if score >= 20:
        word = "strong"
    elif score >= 10:
        word = "moderate"
    else:
        word = "needs improvement"

    return SubMetric(
        "follow-through",
        "Follow-through",
        score,
        f"{pipeline.implemented} of {approved} approved proposals implemented — follow-through is {word}",
    )


# =============================================================================
# Sub-metric 4: Consensus Quality
# =============================================================================


def _diversity_points(proposals: Sequence[Proposal], cfg: HealthThresholds) -> int:
    """
    Points for the non-implemented share of decided proposals.

    Zero rejections reads as rubber-stamping; rejecting most proposals
    reads as a failing process, which scores lower still.
    """
    terminal = [p for p in proposals if p.is_terminal]
    if not terminal:
        return 0

    not_implemented = sum(1 for p in terminal if p.phase_enum is not Phase.IMPLEMENTED)
    rate = not_implemented / len(terminal)

    if cfg.diversity_sweet_spot_low <= rate <= cfg.diversity_sweet_spot_high:
        return cfg.diversity_sweet_spot_points
    if 0 < rate < cfg.diversity_sweet_spot_low:
        return cfg.diversity_near_points
    if cfg.diversity_sweet_spot_high < rate <= cfg.diversity_broken_above:
        return cfg.diversity_near_points
    if rate == 0:
        return cfg.diversity_rubber_stamp_points
    return 0


def compute_consensus(proposals: Sequence[Proposal], thresholds: HealthThresholds | None = None) -> SubMetric:
    """Vote turnout + decision diversity + discussion depth."""
    cfg = thresholds or get_thresholds().health
    if not proposals:
        return SubMetric("consensus", "Consensus Quality", 0, "No proposals to assess consensus quality")

    voted = [p for p in proposals if p.votes_summary is not None]
    vote_score = 0
    if voted:
        avg_votes = sum(p.votes_summary.total for p in voted) / len(voted)
        vote_score = min(cfg.vote_points, round_half_up(avg_votes / cfg.votes_for_full_marks * cfg.vote_points))

    avg_comments = sum(p.comment_count for p in proposals) / len(proposals)
    discussion_score = min(
        cfg.discussion_points,
        round_half_up(avg_comments / cfg.comments_for_full_marks * cfg.discussion_points),
    )

    score = _bounded(vote_score + _diversity_points(proposals, cfg) + discussion_score, cfg)

    if score >= 20:
        word = "strong"
    elif score >= 10:
        word = "moderate"
    else:
        word = "developing"

    return SubMetric(
        "consensus",
        "Consensus Quality",
        score,
        f"{avg_comments:.1f} avg comments, {len(voted)} proposals voted on — consensus quality is {word}",
    )


# =============================================================================
# Composite
# =============================================================================


def compute_data_window(proposals: Sequence[Proposal]) -> int:
    """Whole days spanned by proposal creation dates (at least 1 when any exist)."""
    if not proposals:
        return 0
    created = [t for t in (parse_timestamp(p.created_at) for p in proposals) if t is not None]
    if not created:
        return 1
    span = (max(created) - min(created)).total_seconds() / SECONDS_PER_DAY
    return max(1, math.ceil(span))


def compute_governance_health(
    data: ActivityData,
    thresholds: GovernanceThresholds | None = None,
    index: ActivityIndex | None = None,
) -> GovernanceHealthScore:
    """
    Score governance health for one activity dataset.

    Args:
        data: Activity captured by the ingestion process.
        thresholds: Override the active thresholds.
        index: Pre-built activity index (built here when omitted).
    """
    thresholds = thresholds or get_thresholds()
    index = index or build_activity_index(data, thresholds)
    cfg = thresholds.health

    pipeline = compute_pipeline(data.proposals)
    participation = compute_participation(data.agent_stats, data.proposals, index.proposal_counts, cfg)
    pipeline_flow = compute_pipeline_flow(pipeline, cfg)
    follow_through = compute_follow_through(pipeline, cfg)
    consensus = compute_consensus(data.proposals, cfg)

    sub_metrics = (participation, pipeline_flow, follow_through, consensus)
    score = composite_score([m.score for m in sub_metrics], cfg)
    result = GovernanceHealthScore(
        score=score,
        bucket=score_to_bucket(score, cfg),
        sub_metrics=sub_metrics,
        data_window_days=compute_data_window(data.proposals),
    )

    logger.debug(
        f"Health score {result.score} ({result.bucket.value}) over {pipeline.total} proposals: "
        + ", ".join(f"{m.key}={m.score}" for m in sub_metrics)
    )
    return result
