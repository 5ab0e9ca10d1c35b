"""
Pipeline Analyzer.

Tallies proposals across lifecycle phases, classifies each agent by its
dominant kind of activity, and measures how long proposals spend moving
between phases. Everything downstream (health, snapshots, assessment)
reads from these results.
"""

import logging
from collections import Counter
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from govhealth.models import TERMINAL_PHASES, ActivityData, AgentStat, Phase, Proposal

from .index import count_proposals_by_author
from .stats import hours_between, median, parse_timestamp, round_to

logger = logging.getLogger(__name__)


# =============================================================================
# Phase tallies
# =============================================================================


@dataclass
class PipelineCounts:
    """Proposals per lifecycle phase. Unrecognized phases count only toward total."""

    discussion: int = 0
    voting: int = 0
    extended_voting: int = 0
    ready_to_implement: int = 0
    implemented: int = 0
    rejected: int = 0
    inconclusive: int = 0
    total: int = 0

    @property
    def active(self) -> int:
        return self.discussion + self.voting + self.extended_voting + self.ready_to_implement

    @property
    def terminal(self) -> int:
        return self.implemented + self.rejected + self.inconclusive

    @property
    def advanced(self) -> int:
        """Proposals that have left discussion."""
        return self.voting + self.extended_voting + self.ready_to_implement + self.terminal

    @property
    def approved(self) -> int:
        return self.implemented + self.ready_to_implement

    def to_dict(self) -> dict:
        return {
            "discussion": self.discussion,
            "voting": self.voting,
            "extended_voting": self.extended_voting,
            "ready_to_implement": self.ready_to_implement,
            "implemented": self.implemented,
            "rejected": self.rejected,
            "inconclusive": self.inconclusive,
            "total": self.total,
        }


_PHASE_FIELDS = {
    Phase.DISCUSSION: "discussion",
    Phase.VOTING: "voting",
    Phase.EXTENDED_VOTING: "extended_voting",
    Phase.READY_TO_IMPLEMENT: "ready_to_implement",
    Phase.IMPLEMENTED: "implemented",
    Phase.REJECTED: "rejected",
    Phase.INCONCLUSIVE: "inconclusive",
}
assert set(_PHASE_FIELDS) == set(Phase), "every Phase needs a pipeline bucket"


def compute_pipeline(proposals: Sequence[Proposal]) -> PipelineCounts:
    """Count proposals per phase. Each proposal lands in at most one bucket."""
    counts = PipelineCounts(total=len(proposals))
    unknown = 0
    for p in proposals:
        phase = p.phase_enum
        if phase is None:
            unknown += 1
            continue
        name = _PHASE_FIELDS[phase]
        setattr(counts, name, getattr(counts, name) + 1)

    if unknown:
        logger.debug(f"{unknown} proposals have an unrecognized phase")
    return counts


# =============================================================================
# Agent roles
# =============================================================================


class AgentRole(Enum):
    """Dominant activity type. Declaration order is the tie-break order."""

    CODER = "coder"  # commits + merged PRs
    REVIEWER = "reviewer"  # reviews
    PROPOSER = "proposer"  # proposals authored
    DISCUSSANT = "discussant"  # comments


@dataclass
class AgentRoleProfile:
    login: str
    primary_role: AgentRole | None  # None when the agent has no activity at all
    scores: dict[AgentRole, float]  # normalized to the agent's own maximum
    avatar_url: str | None = None

    def to_dict(self) -> dict:
        return {
            "login": self.login,
            "avatar_url": self.avatar_url,
            "primary_role": self.primary_role.value if self.primary_role else None,
            "scores": {role.value: round(score, 4) for role, score in self.scores.items()},
        }


def compute_agent_roles(
    agent_stats: Sequence[AgentStat],
    proposals: Sequence[Proposal],
    proposal_counts: Mapping[str, int] | None = None,
) -> list[AgentRoleProfile]:
    """
    Classify each agent by its dominant activity.

    Scores are normalized to the agent's own maximum so the role reflects
    personal emphasis rather than absolute volume.
    """
    if proposal_counts is None:
        proposal_counts = count_proposals_by_author(proposals)

    profiles = []
    for agent in agent_stats:
        raw = {
            AgentRole.CODER: agent.commits + agent.pull_requests_merged,
            AgentRole.REVIEWER: agent.reviews,
            AgentRole.PROPOSER: proposal_counts.get(agent.login, 0),
            AgentRole.DISCUSSANT: agent.comments,
        }
        raw_max = max(raw.values())
        divisor = max(raw_max, 1)
        scores = {role: value / divisor for role, value in raw.items()}

        primary = None
        if raw_max > 0:
            # Strict comparison keeps the earliest role on ties
            for role in AgentRole:
                if primary is None or scores[role] > scores[primary]:
                    primary = role

        profiles.append(
            AgentRoleProfile(
                login=agent.login,
                primary_role=primary,
                scores=scores,
                avatar_url=agent.avatar_url,
            )
        )
    return profiles


# =============================================================================
# Throughput
# =============================================================================


@dataclass
class Throughput:
    """Median phase-to-phase durations in hours (None when nothing measured)."""

    discussion_to_voting_hours: float | None
    voting_to_decision_hours: float | None
    creation_to_decision_hours: float | None
    resolved: int
    active: int

    def to_dict(self) -> dict:
        return {
            "discussion_to_voting_hours": self.discussion_to_voting_hours,
            "voting_to_decision_hours": self.voting_to_decision_hours,
            "creation_to_decision_hours": self.creation_to_decision_hours,
            "resolved": self.resolved,
            "active": self.active,
        }


def phase_entry_times(proposal: Proposal) -> dict[Phase, datetime]:
    """
    Earliest entry time per phase.

    Repeated transitions into the same phase collapse to the first one.
    A proposal without a discussion transition entered discussion at
    creation.
    """
    entries: dict[Phase, datetime] = {}
    for transition in proposal.phase_transitions or ():
        phase = Phase.parse(transition.phase)
        entered = parse_timestamp(transition.entered_at)
        if phase is None or entered is None:
            continue
        if phase not in entries or entered < entries[phase]:
            entries[phase] = entered

    if Phase.DISCUSSION not in entries:
        created = parse_timestamp(proposal.created_at)
        if created is not None:
            entries[Phase.DISCUSSION] = created
    return entries


def _decision_time(entries: Mapping[Phase, datetime]) -> datetime | None:
    decided = [t for phase, t in entries.items() if phase in TERMINAL_PHASES]
    return min(decided) if decided else None


def _median_hours(durations: list[float]) -> float | None:
    value = median(durations)
    return None if value is None else round_to(value, 1)


def compute_throughput(proposals: Sequence[Proposal]) -> Throughput:
    """Median hours from discussion to voting, voting to decision, creation to decision."""
    to_voting: list[float] = []
    to_decision: list[float] = []
    end_to_end: list[float] = []

    for p in proposals:
        entries = phase_entry_times(p)
        decided = _decision_time(entries)
        discussion = entries.get(Phase.DISCUSSION)
        voting = entries.get(Phase.VOTING)
        created = parse_timestamp(p.created_at)

        for start, end, bucket in (
            (discussion, voting, to_voting),
            (voting, decided, to_decision),
            (created, decided, end_to_end),
        ):
            if start is None or end is None:
                continue
            hours = hours_between(start, end)
            if hours >= 0:
                bucket.append(hours)

    return Throughput(
        discussion_to_voting_hours=_median_hours(to_voting),
        voting_to_decision_hours=_median_hours(to_decision),
        creation_to_decision_hours=_median_hours(end_to_end),
        resolved=sum(1 for p in proposals if p.is_terminal),
        active=sum(1 for p in proposals if p.is_active),
    )


# =============================================================================
# Governance metrics
# =============================================================================


@dataclass
class ProposerCount:
    login: str
    count: int

    def to_dict(self) -> dict:
        return {"login": self.login, "count": self.count}


@dataclass
class GovernanceMetrics:
    total_proposals: int
    success_rate: float | None  # implemented / (implemented + rejected)
    active_proposals: int
    avg_comments: float
    pipeline: PipelineCounts
    agent_roles: list[AgentRoleProfile] = field(default_factory=list)
    top_proposers: list[ProposerCount] = field(default_factory=list)
    throughput: Throughput | None = None

    def to_dict(self) -> dict:
        return {
            "total_proposals": self.total_proposals,
            "success_rate": round(self.success_rate, 4) if self.success_rate is not None else None,
            "active_proposals": self.active_proposals,
            "avg_comments": round(self.avg_comments, 2),
            "pipeline": self.pipeline.to_dict(),
            "agent_roles": [r.to_dict() for r in self.agent_roles],
            "top_proposers": [p.to_dict() for p in self.top_proposers],
            "throughput": self.throughput.to_dict() if self.throughput else None,
        }


def compute_top_proposers(proposals: Sequence[Proposal]) -> list[ProposerCount]:
    """Authors by proposal count, descending; ties keep first-seen order."""
    return [ProposerCount(login, count) for login, count in Counter(p.author for p in proposals).most_common()]


def compute_governance_metrics(
    data: ActivityData,
    proposal_counts: Mapping[str, int] | None = None,
) -> GovernanceMetrics:
    """Pipeline, roles, throughput and proposal-level aggregates for one dataset."""
    proposals = data.proposals
    pipeline = compute_pipeline(proposals)

    decided = pipeline.implemented + pipeline.rejected
    success_rate = pipeline.implemented / decided if decided > 0 else None

    total_comments = sum(p.comment_count for p in proposals)
    avg_comments = total_comments / len(proposals) if proposals else 0.0

    return GovernanceMetrics(
        total_proposals=pipeline.total,
        success_rate=success_rate,
        active_proposals=pipeline.active,
        avg_comments=avg_comments,
        pipeline=pipeline,
        agent_roles=compute_agent_roles(data.agent_stats, proposals, proposal_counts),
        top_proposers=compute_top_proposers(proposals),
        throughput=compute_throughput(proposals),
    )
