"""
Balance Assessor.

Three lenses on how evenly the colony self-organizes:
- power concentration: who holds weighted governance influence;
- role diversity: which role x activity combinations are covered;
- responsiveness: how quickly someone other than the author engages.

A verdict combines the three into balanced / mostly-balanced /
imbalanced, or insufficient-data when there is too little to judge.
"""

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum

from govhealth.models import ActivityData, AgentStat, Comment, Proposal

from .index import ActivityIndex, build_activity_index, count_proposals_by_author
from .stats import format_hours, hours_between, parse_timestamp, percent, round_half_up, round_to, upper_median
from .thresholds import BalanceThresholds, GovernanceThresholds, get_thresholds

logger = logging.getLogger(__name__)


class ConcentrationLevel(Enum):
    BALANCED = "balanced"
    MODERATE = "moderate"
    CONCENTRATED = "concentrated"
    OLIGARCHY = "oligarchy"


class ActivityDimension(Enum):
    PROPOSING = "proposing"
    REVIEWING = "reviewing"
    COMMENTING = "commenting"


class ResponsivenessBucket(Enum):
    HIGHLY_RESPONSIVE = "highly-responsive"
    RESPONSIVE = "responsive"
    SLOW = "slow"
    CONCERNING = "concerning"
    NO_DATA = "no-data"


class BalanceVerdict(Enum):
    BALANCED = "balanced"
    MOSTLY_BALANCED = "mostly-balanced"
    IMBALANCED = "imbalanced"
    INSUFFICIENT_DATA = "insufficient-data"


# Verdict points per component outcome
_POWER_POINTS = {
    ConcentrationLevel.BALANCED: 3,
    ConcentrationLevel.MODERATE: 2,
    ConcentrationLevel.CONCENTRATED: 1,
    ConcentrationLevel.OLIGARCHY: 0,
}
_RESPONSIVENESS_POINTS = {
    ResponsivenessBucket.HIGHLY_RESPONSIVE: 3,
    ResponsivenessBucket.RESPONSIVE: 2,
    ResponsivenessBucket.SLOW: 1,
    ResponsivenessBucket.CONCERNING: 0,
    ResponsivenessBucket.NO_DATA: 0,
}


# =============================================================================
# Power concentration
# =============================================================================


@dataclass
class AgentInfluence:
    login: str
    proposals_authored: int
    reviews_given: int
    votes_inferred: int  # min(comments, total proposals)
    weight: int = 0
    share: float = 0.0  # 0-1

    def to_dict(self) -> dict:
        return {
            "login": self.login,
            "share": round(self.share, 4),
            "proposals_authored": self.proposals_authored,
            "reviews_given": self.reviews_given,
            "votes_inferred": self.votes_inferred,
        }


@dataclass
class PowerConcentration:
    level: ConcentrationLevel
    top_agent_share: float
    top_two_share: float
    agents: list[AgentInfluence]  # sorted by share, descending
    reason: str

    @property
    def influential_agents(self) -> int:
        return sum(1 for a in self.agents if a.weight > 0)

    def to_dict(self) -> dict:
        return {
            "level": self.level.value,
            "top_agent_share": round(self.top_agent_share, 4),
            "top_two_share": round(self.top_two_share, 4),
            "agents": [a.to_dict() for a in self.agents],
            "reason": self.reason,
        }


def compute_power_concentration(
    agent_stats: Sequence[AgentStat],
    proposals: Sequence[Proposal],
    proposal_counts: Mapping[str, int] | None = None,
    thresholds: BalanceThresholds | None = None,
) -> PowerConcentration:
    """
    Weighted influence share per agent.

    influence = 3 x proposals authored + 2 x reviews + 1 x inferred votes,
    where inferred votes is comments capped at the number of proposals (an
    agent can vote at most once per proposal).
    """
    cfg = thresholds or get_thresholds().balance
    if not agent_stats:
        return PowerConcentration(ConcentrationLevel.BALANCED, 0.0, 0.0, [], "No agents detected")

    if proposal_counts is None:
        proposal_counts = count_proposals_by_author(proposals)

    agents = []
    for a in agent_stats:
        influence = AgentInfluence(
            login=a.login,
            proposals_authored=proposal_counts.get(a.login, 0),
            reviews_given=a.reviews,
            votes_inferred=min(a.comments, len(proposals)),
        )
        influence.weight = (
            influence.proposals_authored * cfg.proposal_weight
            + influence.reviews_given * cfg.review_weight
            + influence.votes_inferred * cfg.vote_weight
        )
        agents.append(influence)

    total_weight = sum(a.weight for a in agents)
    if total_weight == 0:
        return PowerConcentration(
            ConcentrationLevel.BALANCED, 0.0, 0.0, agents, "No governance activity detected"
        )

    for a in agents:
        a.share = a.weight / total_weight
    agents.sort(key=lambda a: a.share, reverse=True)

    top = agents[0].share
    top_two = top + agents[1].share if len(agents) >= 2 else top

    if top_two > cfg.oligarchy_top_two_share:
        level = ConcentrationLevel.OLIGARCHY
        reason = f"Top 2 agents hold {percent(top_two)} of governance influence — oligarchy risk"
    elif top > cfg.concentrated_top_share:
        level = ConcentrationLevel.CONCENTRATED
        reason = f"{agents[0].login} holds {percent(top)} of governance influence — concentrated"
    elif top > cfg.moderate_top_share:
        level = ConcentrationLevel.MODERATE
        reason = f"Influence is moderately distributed across {len(agents)} agents"
    else:
        level = ConcentrationLevel.BALANCED
        reason = f"Influence is well-distributed across {len(agents)} agents"

    return PowerConcentration(level, top, top_two, agents, reason)


# =============================================================================
# Role diversity
# =============================================================================


def infer_role(login: str, prefixes: Sequence[str] | None = None) -> str | None:
    """Role named in a login ("builder-2" -> "builder"); None when no known role matches."""
    prefixes = prefixes if prefixes is not None else get_thresholds().balance.role_prefixes
    lower = (login or "").lower()
    for prefix in prefixes:
        if prefix in lower:
            return prefix
    return None


@dataclass
class RoleCoverage:
    role: str
    proposing: bool = False
    reviewing: bool = False
    commenting: bool = False

    def covers(self, dimension: ActivityDimension) -> bool:
        return getattr(self, dimension.value)

    def to_dict(self) -> dict:
        return {
            "role": self.role,
            "proposing": self.proposing,
            "reviewing": self.reviewing,
            "commenting": self.commenting,
        }


@dataclass
class RoleDiversity:
    score: int  # 0-100
    coverage: list[RoleCoverage]
    missing_combinations: list[str] = field(default_factory=list)
    reason: str = ""

    def to_dict(self) -> dict:
        return {
            "score": self.score,
            "coverage": [c.to_dict() for c in self.coverage],
            "missing_combinations": list(self.missing_combinations),
            "reason": self.reason,
        }


def compute_role_diversity(
    agent_stats: Sequence[AgentStat],
    proposals: Sequence[Proposal],
    comments: Sequence[Comment],
    thresholds: BalanceThresholds | None = None,
) -> RoleDiversity:
    """Share of role x {proposing, reviewing, commenting} combinations with activity."""
    cfg = thresholds or get_thresholds().balance
    coverage = {role: RoleCoverage(role) for role in cfg.role_prefixes}

    for p in proposals:
        role = infer_role(p.author, cfg.role_prefixes)
        if role is not None:
            coverage[role].proposing = True
    for a in agent_stats:
        role = infer_role(a.login, cfg.role_prefixes)
        if role is not None and a.reviews > 0:
            coverage[role].reviewing = True
    for c in comments:
        role = infer_role(c.author, cfg.role_prefixes)
        if role is not None:
            coverage[role].commenting = True

    total = len(coverage) * len(ActivityDimension)
    active = 0
    missing = []
    for rc in coverage.values():
        for dim in ActivityDimension:
            if rc.covers(dim):
                active += 1
            else:
                missing.append(f"{rc.role.capitalize()} role has not been active in {dim.value}")

    score = round_half_up(active / total * 100) if total > 0 else 0

    if score == 100:
        reason = "All roles are active across all governance dimensions"
    elif score >= cfg.diversity_high:
        reason = f"Most role-activity combinations covered ({active}/{total})"
    elif score >= cfg.diversity_medium:
        reason = f"Partial role coverage — {len(missing)} gaps detected"
    else:
        reason = f"Low role diversity — {len(missing)} gaps across {len(coverage)} roles"

    return RoleDiversity(score, list(coverage.values()), missing, reason)


# =============================================================================
# Responsiveness
# =============================================================================


@dataclass
class GovernanceResponsiveness:
    median_hours: float | None  # one decimal
    bucket: ResponsivenessBucket
    proposals_with_responses: int
    total_proposals: int
    reason: str

    def to_dict(self) -> dict:
        return {
            "median_hours": self.median_hours,
            "bucket": self.bucket.value,
            "proposals_with_responses": self.proposals_with_responses,
            "total_proposals": self.total_proposals,
            "reason": self.reason,
        }


_RESPONSIVENESS_REASONS = {
    ResponsivenessBucket.HIGHLY_RESPONSIVE: "governance is highly engaged",
    ResponsivenessBucket.RESPONSIVE: "proposals get timely attention",
    ResponsivenessBucket.SLOW: "proposals wait before getting attention",
    ResponsivenessBucket.CONCERNING: "proposals take over a day to get a response",
}


def first_response_hours(
    proposal: Proposal,
    comments: Sequence[Comment],
    thresholds: BalanceThresholds | None = None,
) -> float | None:
    """
    Hours from proposal creation to the earliest qualifying comment.

    The author's own comments and automation accounts do not count, nor do
    comments with unparseable timestamps. When the earliest qualifying
    comment predates the proposal there is no measurable response.
    """
    cfg = thresholds or get_thresholds().balance
    created = parse_timestamp(proposal.created_at)
    if created is None:
        return None

    first = None
    for c in comments:
        if c.author == proposal.author or cfg.is_automation(c.author):
            continue
        at = parse_timestamp(c.created_at)
        if at is not None and (first is None or at < first):
            first = at

    if first is None:
        return None
    hours = hours_between(created, first)
    return hours if hours >= 0 else None


def compute_responsiveness(
    proposals: Sequence[Proposal],
    comments: Sequence[Comment],
    proposal_comments: Mapping[int, Sequence[Comment]] | None = None,
    thresholds: BalanceThresholds | None = None,
) -> GovernanceResponsiveness:
    """Median first-response time across proposals that received a response."""
    cfg = thresholds or get_thresholds().balance
    if not proposals:
        return GovernanceResponsiveness(
            None, ResponsivenessBucket.NO_DATA, 0, 0, "No proposals to assess responsiveness"
        )

    if proposal_comments is None:
        grouped: dict[int, list[Comment]] = {}
        for c in comments:
            if c.type == "proposal":
                grouped.setdefault(c.issue_or_pr_number, []).append(c)
        proposal_comments = grouped

    response_times = []
    for p in proposals:
        hours = first_response_hours(p, proposal_comments.get(p.number, ()), cfg)
        if hours is not None:
            response_times.append(hours)

    if not response_times:
        return GovernanceResponsiveness(
            None,
            ResponsivenessBucket.NO_DATA,
            0,
            len(proposals),
            "No non-author responses detected on proposals",
        )

    median_hours = upper_median(response_times)
    if median_hours < cfg.highly_responsive_hours:
        bucket = ResponsivenessBucket.HIGHLY_RESPONSIVE
    elif median_hours < cfg.responsive_hours:
        bucket = ResponsivenessBucket.RESPONSIVE
    elif median_hours < cfg.slow_hours:
        bucket = ResponsivenessBucket.SLOW
    else:
        bucket = ResponsivenessBucket.CONCERNING

    return GovernanceResponsiveness(
        median_hours=round_to(median_hours, 1),
        bucket=bucket,
        proposals_with_responses=len(response_times),
        total_proposals=len(proposals),
        reason=f"Median response time is {format_hours(median_hours)} — {_RESPONSIVENESS_REASONS[bucket]}",
    )


# =============================================================================
# Verdict
# =============================================================================


@dataclass
class GovernanceBalanceAssessment:
    power_concentration: PowerConcentration
    role_diversity: RoleDiversity
    responsiveness: GovernanceResponsiveness
    verdict: BalanceVerdict
    verdict_reason: str

    def to_dict(self) -> dict:
        return {
            "power_concentration": self.power_concentration.to_dict(),
            "role_diversity": self.role_diversity.to_dict(),
            "responsiveness": self.responsiveness.to_dict(),
            "verdict": self.verdict.value,
            "verdict_reason": self.verdict_reason,
        }


def compute_verdict(
    power: PowerConcentration,
    diversity: RoleDiversity,
    responsiveness: GovernanceResponsiveness,
    thresholds: BalanceThresholds | None = None,
) -> tuple[BalanceVerdict, str]:
    cfg = thresholds or get_thresholds().balance
    if power.influential_agents < cfg.min_influential_agents or responsiveness.total_proposals == 0:
        return BalanceVerdict.INSUFFICIENT_DATA, "Not enough governance data to assess balance"

    points = _POWER_POINTS[power.level] + _RESPONSIVENESS_POINTS[responsiveness.bucket]
    if diversity.score >= cfg.diversity_high:
        points += 3
    elif diversity.score >= cfg.diversity_medium:
        points += 2
    elif diversity.score >= cfg.diversity_low:
        points += 1

    if points >= cfg.balanced_verdict_min:
        return (
            BalanceVerdict.BALANCED,
            "Self-organization is well-balanced: distributed power, diverse roles, and responsive governance",
        )
    if points >= cfg.mostly_balanced_verdict_min:
        return (
            BalanceVerdict.MOSTLY_BALANCED,
            "Self-organization is mostly balanced with some areas for improvement",
        )
    return BalanceVerdict.IMBALANCED, "Self-organization shows significant imbalances that need attention"


def compute_governance_balance(
    data: ActivityData,
    thresholds: GovernanceThresholds | None = None,
    index: ActivityIndex | None = None,
) -> GovernanceBalanceAssessment:
    """Power, role diversity and responsiveness for one activity dataset."""
    thresholds = thresholds or get_thresholds()
    index = index or build_activity_index(data, thresholds)
    cfg = thresholds.balance

    power = compute_power_concentration(data.agent_stats, data.proposals, index.proposal_counts, cfg)
    diversity = compute_role_diversity(data.agent_stats, data.proposals, data.comments, cfg)
    responsiveness = compute_responsiveness(data.proposals, data.comments, index.proposal_comments, cfg)
    verdict, reason = compute_verdict(power, diversity, responsiveness, cfg)

    logger.debug(
        f"Balance verdict {verdict.value}: power={power.level.value}, "
        f"diversity={diversity.score}, responsiveness={responsiveness.bucket.value}"
    )
    return GovernanceBalanceAssessment(power, diversity, responsiveness, verdict, reason)
