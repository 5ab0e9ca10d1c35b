"""
Trend & Assessment Engine.

Combines the snapshot history (temporal signal) with the current activity
data (structural signal):

- trend summary: 7d/30d deltas and the current run of health declines;
- alerts: conditions that need attention now;
- patterns: longer-run behaviours, mostly negative, one positive;
- recommendations: prioritized actions for what fired, at most five.

Every alert and pattern check is independent; any combination may fire.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum

from govhealth.models import ActivityData, GovernanceSnapshot, Phase

from .balance import PowerConcentration, compute_power_concentration
from .index import ActivityIndex, build_activity_index
from .snapshots import sort_snapshots
from .stats import format_number, parse_timestamp, percent
from .thresholds import AssessmentThresholds, GovernanceThresholds, get_thresholds

logger = logging.getLogger(__name__)


class AlertSeverity(Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class AlertType(Enum):
    HEALTH_DECLINING = "health-declining"
    HEALTH_CRITICAL = "health-critical"
    PARTICIPATION_COLLAPSE = "participation-collapse"
    PIPELINE_STALL = "pipeline-stall"
    FOLLOW_THROUGH_GAP = "follow-through-gap"
    MERGE_QUEUE_GROWTH = "merge-queue-growth"
    REVIEW_CONCENTRATION = "review-concentration"


class PatternType(Enum):
    RUBBER_STAMPING = "rubber-stamping"
    SINGLE_POINT_OF_FAILURE = "single-point-of-failure"
    GOVERNANCE_DEBT = "governance-debt"
    VELOCITY_CLIFF = "velocity-cliff"
    HEALTHY_GROWTH = "healthy-growth"


class Priority(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {Priority.HIGH: 0, Priority.MEDIUM: 1, Priority.LOW: 2}


@dataclass
class Alert:
    type: AlertType
    severity: AlertSeverity
    title: str
    detail: str

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "severity": self.severity.value,
            "title": self.title,
            "detail": self.detail,
        }


@dataclass
class Pattern:
    type: PatternType
    label: str
    detail: str
    positive: bool

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "label": self.label,
            "detail": self.detail,
            "positive": self.positive,
        }


@dataclass
class Recommendation:
    priority: Priority
    description: str
    source: AlertType | PatternType  # what triggered it

    def to_dict(self) -> dict:
        return {
            "priority": self.priority.value,
            "description": self.description,
            "source": self.source.value,
        }


@dataclass
class TrendSummary:
    health_delta_7d: float | None = None
    health_delta_30d: float | None = None
    participation_delta_7d: float | None = None
    pipeline_flow_delta_7d: float | None = None
    follow_through_delta_7d: float | None = None
    consensus_delta_7d: float | None = None
    consecutive_declines: int = 0

    def to_dict(self) -> dict:
        return {
            "health_delta_7d": self.health_delta_7d,
            "health_delta_30d": self.health_delta_30d,
            "participation_delta_7d": self.participation_delta_7d,
            "pipeline_flow_delta_7d": self.pipeline_flow_delta_7d,
            "follow_through_delta_7d": self.follow_through_delta_7d,
            "consensus_delta_7d": self.consensus_delta_7d,
            "consecutive_declines": self.consecutive_declines,
        }


@dataclass
class GovernanceAssessment:
    alerts: list[Alert] = field(default_factory=list)
    patterns: list[Pattern] = field(default_factory=list)
    recommendations: list[Recommendation] = field(default_factory=list)
    trend_summary: TrendSummary = field(default_factory=TrendSummary)

    def to_dict(self) -> dict:
        return {
            "alerts": [a.to_dict() for a in self.alerts],
            "patterns": [p.to_dict() for p in self.patterns],
            "recommendations": [r.to_dict() for r in self.recommendations],
            "trend_summary": self.trend_summary.to_dict(),
        }


# =============================================================================
# Trend summary
# =============================================================================


def find_closest_before(
    ordered: Sequence[GovernanceSnapshot],
    target: datetime,
) -> GovernanceSnapshot | None:
    """Latest snapshot at or before `target` in a chronologically sorted history."""
    best = None
    for s in ordered:
        at = parse_timestamp(s.timestamp)
        if at is None:
            continue
        if at <= target:
            best = s
        else:
            break
    return best


def count_consecutive_declines(ordered: Sequence[GovernanceSnapshot]) -> int:
    """Strict health-score drops walking back from the latest snapshot."""
    count = 0
    for i in range(len(ordered) - 1, 0, -1):
        if ordered[i].health_score < ordered[i - 1].health_score:
            count += 1
        else:
            break
    return count


def compute_trend_summary(
    history: Sequence[GovernanceSnapshot],
    thresholds: AssessmentThresholds | None = None,
) -> TrendSummary:
    cfg = thresholds or get_thresholds().assessment
    if len(history) < 2:
        return TrendSummary()

    ordered = sort_snapshots(history)
    latest = ordered[-1]
    latest_at = parse_timestamp(latest.timestamp)
    declines = count_consecutive_declines(ordered)
    if latest_at is None:
        return TrendSummary(consecutive_declines=declines)

    short = find_closest_before(ordered, latest_at - timedelta(days=cfg.short_window_days))
    long = find_closest_before(ordered, latest_at - timedelta(days=cfg.long_window_days))

    def delta(attr: str, base: GovernanceSnapshot | None) -> float | None:
        return None if base is None else getattr(latest, attr) - getattr(base, attr)

    return TrendSummary(
        health_delta_7d=delta("health_score", short),
        health_delta_30d=delta("health_score", long),
        participation_delta_7d=delta("participation", short),
        pipeline_flow_delta_7d=delta("pipeline_flow", short),
        follow_through_delta_7d=delta("follow_through", short),
        consensus_delta_7d=delta("consensus_quality", short),
        consecutive_declines=declines,
    )


# =============================================================================
# Alerts
# =============================================================================


def _merge_anchor(data: ActivityData) -> datetime | None:
    """Reference time for "recent" merges: the data's own generation time."""
    anchor = parse_timestamp(data.generated_at)
    if anchor is not None:
        return anchor
    merged = [t for t in (parse_timestamp(pr.merged_at) for pr in data.pull_requests) if t is not None]
    if merged:
        logger.debug("generated_at unparseable, anchoring merge window to latest merge")
        return max(merged)
    return None


def count_recent_merges(data: ActivityData, window_hours: float) -> int:
    """PRs merged less than `window_hours` before the data was generated."""
    anchor = _merge_anchor(data)
    if anchor is None:
        return 0
    window = timedelta(hours=window_hours)
    recent = 0
    for pr in data.pull_requests:
        if pr.state != "merged":
            continue
        merged_at = parse_timestamp(pr.merged_at)
        if merged_at is not None and anchor - merged_at < window:
            recent += 1
    return recent


def detect_alerts(
    data: ActivityData,
    history: Sequence[GovernanceSnapshot],
    trend: TrendSummary,
    thresholds: AssessmentThresholds | None = None,
    index: ActivityIndex | None = None,
) -> list[Alert]:
    cfg = thresholds or get_thresholds().assessment
    index = index or build_activity_index(data, GovernanceThresholds(assessment=cfg))
    ordered = sort_snapshots(history)
    alerts: list[Alert] = []

    if trend.consecutive_declines >= cfg.consecutive_decline_threshold:
        alerts.append(
            Alert(
                AlertType.HEALTH_DECLINING,
                AlertSeverity.WARNING,
                "Health score declining",
                f"Health score has dropped for {trend.consecutive_declines} consecutive snapshots",
            )
        )

    if len(ordered) >= cfg.critical_snapshot_count:
        recent = ordered[-cfg.critical_snapshot_count :]
        if all(s.health_score < cfg.critical_score_threshold for s in recent):
            alerts.append(
                Alert(
                    AlertType.HEALTH_CRITICAL,
                    AlertSeverity.CRITICAL,
                    "Governance health critical",
                    f"Health score has been below {cfg.critical_score_threshold} "
                    f"for the last {len(recent)} snapshots",
                )
            )

    if trend.participation_delta_7d is not None and trend.participation_delta_7d < -cfg.participation_drop_threshold:
        alerts.append(
            Alert(
                AlertType.PARTICIPATION_COLLAPSE,
                AlertSeverity.WARNING,
                "Participation dropping",
                f"Participation sub-metric dropped {abs(trend.participation_delta_7d)} points in 7 days",
            )
        )

    if ordered:
        latest = ordered[-1]
        if latest.pipeline_flow == 0 and latest.total_proposals > 0:
            alerts.append(
                Alert(
                    AlertType.PIPELINE_STALL,
                    AlertSeverity.CRITICAL,
                    "Pipeline stalled",
                    "No proposals are advancing through the governance pipeline",
                )
            )

    unclaimed = [
        p
        for p in data.proposals
        if p.phase_enum is Phase.READY_TO_IMPLEMENT and p.number not in index.linked_issue_numbers
    ]
    if len(unclaimed) > cfg.unclaimed_ready_threshold:
        alerts.append(
            Alert(
                AlertType.FOLLOW_THROUGH_GAP,
                AlertSeverity.WARNING,
                "Implementation backlog growing",
                f"{len(unclaimed)} approved proposals have no implementation PR",
            )
        )

    open_count = len(index.open_pull_requests)
    merged_recently = count_recent_merges(data, cfg.recent_merge_hours)
    if open_count > cfg.merge_queue_min_open and open_count > merged_recently * cfg.merge_queue_ratio:
        alerts.append(
            Alert(
                AlertType.MERGE_QUEUE_GROWTH,
                AlertSeverity.WARNING,
                "Merge queue bottleneck",
                f"{open_count} open PRs with only {merged_recently} merged in last "
                f"{format_number(cfg.recent_merge_hours)}h",
            )
        )

    total_reviews = sum(a.reviews for a in data.agent_stats)
    if total_reviews > 0:
        for agent in data.agent_stats:
            share = agent.reviews / total_reviews
            if share > cfg.review_concentration_share:
                alerts.append(
                    Alert(
                        AlertType.REVIEW_CONCENTRATION,
                        AlertSeverity.INFO,
                        "Review concentration",
                        f"{agent.login} performed {percent(share)} of all reviews",
                    )
                )
                break

    return alerts


# =============================================================================
# Patterns
# =============================================================================


def detect_patterns(
    data: ActivityData,
    history: Sequence[GovernanceSnapshot],
    trend: TrendSummary,
    thresholds: GovernanceThresholds | None = None,
    index: ActivityIndex | None = None,
    power: PowerConcentration | None = None,
) -> list[Pattern]:
    thresholds = thresholds or get_thresholds()
    cfg = thresholds.assessment
    ordered = sort_snapshots(history)
    patterns: list[Pattern] = []

    terminal = [p for p in data.proposals if p.is_terminal]
    if len(terminal) >= cfg.rubber_stamp_min_terminal:
        approval_rate = sum(1 for p in terminal if p.phase_enum is Phase.IMPLEMENTED) / len(terminal)
        avg_comments = sum(p.comment_count for p in data.proposals) / len(data.proposals)
        if approval_rate > cfg.rubber_stamp_approval_rate and avg_comments < cfg.rubber_stamp_max_avg_comments:
            patterns.append(
                Pattern(
                    PatternType.RUBBER_STAMPING,
                    "Rubber-stamping risk",
                    f"{percent(approval_rate)} approval rate with only {avg_comments:.1f} avg comments per proposal",
                    positive=False,
                )
            )

    if power is None:
        index = index or build_activity_index(data, thresholds)
        power = compute_power_concentration(
            data.agent_stats, data.proposals, index.proposal_counts, thresholds.balance
        )
    if power.agents and power.top_agent_share > cfg.single_point_share:
        top = power.agents[0]
        patterns.append(
            Pattern(
                PatternType.SINGLE_POINT_OF_FAILURE,
                "Single point of failure",
                f"{top.login} holds {percent(top.share)} of governance influence",
                positive=False,
            )
        )

    window = cfg.governance_debt_window
    if len(ordered) >= window:
        recent = ordered[-window:]
        if all(recent[i].active_proposals > recent[i - 1].active_proposals for i in range(1, window)):
            patterns.append(
                Pattern(
                    PatternType.GOVERNANCE_DEBT,
                    "Governance debt accumulating",
                    f"Active proposal backlog has grown for {window} consecutive snapshots",
                    positive=False,
                )
            )

    if len(ordered) >= 2:
        latest, previous = ordered[-1], ordered[-2]
        if (
            previous.proposal_velocity is not None
            and previous.proposal_velocity > 0
            and latest.proposal_velocity is not None
            and latest.proposal_velocity < previous.proposal_velocity * cfg.velocity_cliff_ratio
        ):
            patterns.append(
                Pattern(
                    PatternType.VELOCITY_CLIFF,
                    "Velocity cliff",
                    f"Proposal velocity dropped from {format_number(previous.proposal_velocity)}/day "
                    f"to {format_number(latest.proposal_velocity)}/day",
                    positive=False,
                )
            )

    if trend.health_delta_7d is not None and trend.health_delta_7d > 0 and len(ordered) >= 2:
        if ordered[-1].active_agents >= ordered[0].active_agents:
            patterns.append(
                Pattern(
                    PatternType.HEALTHY_GROWTH,
                    "Healthy growth",
                    f"Health score up {trend.health_delta_7d} points over 7 days with stable agent participation",
                    positive=True,
                )
            )

    return patterns


# =============================================================================
# Recommendations
# =============================================================================

_RECOMMENDATIONS: dict[AlertType | PatternType, tuple[Priority, str]] = {
    AlertType.HEALTH_CRITICAL: (
        Priority.HIGH,
        "Governance health is critically low. Review sub-metrics to identify which dimension "
        "needs immediate attention.",
    ),
    AlertType.PIPELINE_STALL: (
        Priority.HIGH,
        "No proposals are progressing. Check if discussion or voting phases are blocked.",
    ),
    AlertType.FOLLOW_THROUGH_GAP: (
        Priority.MEDIUM,
        "Approved proposals are piling up without implementation. Consider a focused implementation sprint.",
    ),
    AlertType.PARTICIPATION_COLLAPSE: (
        Priority.MEDIUM,
        "Participation has dropped significantly. Encourage broader proposal authorship and review "
        "activity across roles.",
    ),
    AlertType.REVIEW_CONCENTRATION: (
        Priority.LOW,
        "Review activity is concentrated in one agent. Distributing reviews improves governance resilience.",
    ),
    PatternType.RUBBER_STAMPING: (
        Priority.MEDIUM,
        "Proposals may be approved without sufficient deliberation. Encourage agents to challenge "
        "assumptions and propose alternatives.",
    ),
    PatternType.SINGLE_POINT_OF_FAILURE: (
        Priority.MEDIUM,
        "Governance influence is heavily concentrated. If this agent becomes unavailable, governance could stall.",
    ),
    PatternType.GOVERNANCE_DEBT: (
        Priority.MEDIUM,
        "Active proposal backlog is growing. Prioritize closing or implementing existing proposals "
        "before opening new ones.",
    ),
}
# health-declining, velocity-cliff and healthy-growth are reported without a recommendation.


def generate_recommendations(
    alerts: Sequence[Alert],
    patterns: Sequence[Pattern],
    open_pull_requests: int,
    thresholds: AssessmentThresholds | None = None,
) -> list[Recommendation]:
    """One recommendation per firing type, high priority first, capped."""
    cfg = thresholds or get_thresholds().assessment
    recs: list[Recommendation] = []
    seen: set[AlertType | PatternType] = set()

    for source in [a.type for a in alerts] + [p.type for p in patterns]:
        if source in seen:
            continue
        seen.add(source)
        if source is AlertType.MERGE_QUEUE_GROWTH:
            recs.append(
                Recommendation(
                    Priority.HIGH,
                    f"Merge queue bottleneck: {open_pull_requests} open PRs. "
                    "This may be a permissions issue rather than a governance issue.",
                    source,
                )
            )
        elif source in _RECOMMENDATIONS:
            priority, description = _RECOMMENDATIONS[source]
            recs.append(Recommendation(priority, description, source))

    recs.sort(key=lambda r: r.priority.rank)
    return recs[: cfg.max_recommendations]


# =============================================================================
# Entry point
# =============================================================================


def assess_governance_health(
    data: ActivityData,
    history: Sequence[GovernanceSnapshot],
    thresholds: GovernanceThresholds | None = None,
    index: ActivityIndex | None = None,
    power: PowerConcentration | None = None,
) -> GovernanceAssessment:
    """
    Alerts, patterns, recommendations and trend summary.

    Args:
        data: Current activity data.
        history: Prior snapshots in any order.
        thresholds: Override the active thresholds.
        index: Pre-built activity index (built here when omitted).
        power: Pre-computed power concentration (computed when omitted).
    """
    thresholds = thresholds or get_thresholds()
    index = index or build_activity_index(data, thresholds)

    trend = compute_trend_summary(history, thresholds.assessment)
    alerts = detect_alerts(data, history, trend, thresholds.assessment, index)
    patterns = detect_patterns(data, history, trend, thresholds, index, power)
    recommendations = generate_recommendations(
        alerts, patterns, len(index.open_pull_requests), thresholds.assessment
    )

    if alerts or patterns:
        logger.debug(
            f"Assessment: {len(alerts)} alerts ({', '.join(a.type.value for a in alerts) or 'none'}), "
            f"{len(patterns)} patterns ({', '.join(p.type.value for p in patterns) or 'none'})"
        )
    return GovernanceAssessment(alerts, patterns, recommendations, trend)
