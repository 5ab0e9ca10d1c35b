"""
Activity-data builders for deterministic tests.

Builders take snake_case keyword arguments and return frozen pydantic
models, so tests describe only the fields that matter to them. All
timestamps are offsets from BASE_TIME.
"""

from datetime import UTC, datetime, timedelta

from govhealth.models import (
    ActivityData,
    Agent,
    AgentStat,
    Comment,
    GovernanceSnapshot,
    PhaseTransition,
    Proposal,
    PullRequest,
    VotesSummary,
)

BASE_TIME = datetime(2026, 2, 1, 12, 0, tzinfo=UTC)

ROLE_AGENTS = ("builder-1", "worker-1", "scout-1", "polisher-1")


def iso(dt: datetime) -> str:
    return dt.strftime("%Y-%m-%dT%H:%M:%SZ")


def at(days: float = 0, hours: float = 0, minutes: float = 0) -> str:
    """ISO timestamp offset from BASE_TIME."""
    return iso(BASE_TIME + timedelta(days=days, hours=hours, minutes=minutes))


# =============================================================================
# Builders
# =============================================================================


def make_proposal(
    number: int,
    phase: str = "discussion",
    author: str = "builder-1",
    created_at: str | None = None,
    comment_count: int = 0,
    votes: tuple[int, int] | None = None,
    transitions: list[tuple[str, str]] | None = None,
    title: str | None = None,
) -> Proposal:
    return Proposal(
        number=number,
        title=title or f"Proposal {number}",
        phase=phase,
        author=author,
        created_at=created_at or at(),
        comment_count=comment_count,
        votes_summary=VotesSummary(thumbs_up=votes[0], thumbs_down=votes[1]) if votes else None,
        phase_transitions=(
            [PhaseTransition(phase=p, entered_at=t) for p, t in transitions] if transitions is not None else None
        ),
    )


def make_agent(
    login: str,
    commits: int = 0,
    merged: int = 0,
    reviews: int = 0,
    comments: int = 0,
    issues: int = 0,
) -> AgentStat:
    return AgentStat(
        login=login,
        commits=commits,
        pull_requests_merged=merged,
        issues_opened=issues,
        reviews=reviews,
        comments=comments,
        last_active_at=at(),
    )


_comment_ids = iter(range(1000, 10**6))


def make_comment(
    number: int,
    author: str,
    created_at: str,
    type: str = "proposal",
    body: str = "",
) -> Comment:
    return Comment(
        id=next(_comment_ids),
        issue_or_pr_number=number,
        type=type,
        author=author,
        body=body,
        created_at=created_at,
        url=f"https://example.test/issues/{number}",
    )


def make_pr(
    number: int,
    state: str = "open",
    title: str = "",
    body: str | None = None,
    author: str = "worker-1",
    merged_at: str | None = None,
    created_at: str | None = None,
) -> PullRequest:
    return PullRequest(
        number=number,
        title=title or f"PR {number}",
        body=body,
        state=state,
        author=author,
        created_at=created_at or at(),
        merged_at=merged_at,
        closed_at=merged_at,
    )


def make_snapshot(
    timestamp: str,
    health_score: int = 50,
    participation: int = 15,
    pipeline_flow: int = 15,
    follow_through: int = 12,
    consensus_quality: int = 10,
    active_proposals: int = 3,
    total_proposals: int = 5,
    active_agents: int = 4,
    proposal_velocity: float | None = 0.3,
) -> GovernanceSnapshot:
    return GovernanceSnapshot(
        timestamp=timestamp,
        health_score=health_score,
        participation=participation,
        pipeline_flow=pipeline_flow,
        follow_through=follow_through,
        consensus_quality=consensus_quality,
        active_proposals=active_proposals,
        total_proposals=total_proposals,
        active_agents=active_agents,
        proposal_velocity=proposal_velocity,
    )


def make_data(
    proposals=(),
    agent_stats=(),
    comments=(),
    pull_requests=(),
    generated_at: str | None = None,
) -> ActivityData:
    return ActivityData(
        generated_at=generated_at or at(days=8),
        agents=[Agent(login=a.login) for a in agent_stats],
        agent_stats=list(agent_stats),
        proposals=list(proposals),
        comments=list(comments),
        pull_requests=list(pull_requests),
    )


# =============================================================================
# Shared scenario: four equally active role agents
# =============================================================================


def _lifecycle(phase: str, created: datetime) -> list[tuple[str, str]]:
    steps = [("discussion", iso(created)), ("voting", iso(created + timedelta(hours=24)))]
    if phase == "implemented":
        steps += [
            ("ready-to-implement", iso(created + timedelta(hours=48))),
            ("implemented", iso(created + timedelta(hours=72))),
        ]
    elif phase == "rejected":
        steps.append(("rejected", iso(created + timedelta(hours=48))))
    return steps


def build_balanced_colony() -> ActivityData:
    """
    Four role agents with identical activity, five proposals.

    3 implemented, 1 rejected, 1 voting; 6 comments and 4 votes each; every
    proposal gets a first response from another agent one hour in.
    """
    agents = [make_agent(login, commits=5, merged=2, reviews=4, comments=6) for login in ROLE_AGENTS]

    plan = [
        (1, "implemented", "builder-1"),
        (2, "implemented", "worker-1"),
        (3, "implemented", "scout-1"),
        (4, "rejected", "polisher-1"),
        (5, "voting", "builder-1"),
    ]
    proposals = []
    comments = []
    for number, phase, author in plan:
        created = BASE_TIME + timedelta(days=number - 1)
        proposals.append(
            make_proposal(
                number,
                phase=phase,
                author=author,
                created_at=iso(created),
                comment_count=6,
                votes=(3, 1),
                transitions=_lifecycle(phase, created),
            )
        )
        responder = ROLE_AGENTS[number % 4]
        comments.append(make_comment(number, responder, iso(created + timedelta(hours=1))))

    # Author and governance bot speak first on #1; neither counts as a response
    comments.append(make_comment(1, "builder-1", at(minutes=5)))
    comments.append(make_comment(1, "hivemoot", at(minutes=10)))

    pull_requests = [
        make_pr(10, state="merged", body="Fixes #1", merged_at=at(days=3, hours=-2)),
        make_pr(11, state="merged", body="Closes #2", merged_at=at(days=4, hours=-2)),
        make_pr(12, state="merged", body="Fixes #3", merged_at=at(days=5, hours=-2)),
        make_pr(13, state="open", title="WIP: follow-up for #5"),
    ]

    return make_data(
        proposals=proposals,
        agent_stats=agents,
        comments=comments,
        pull_requests=pull_requests,
        generated_at=at(days=8),
    )
