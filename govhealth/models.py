"""
Input contracts for governance intelligence.

Pydantic models for the activity data written by the ingestion process
and the health snapshots kept by the history pipeline. Fields are
snake_case in Python and accept the camelCase keys of the JSON artifacts
(pullRequestsMerged, issueOrPrNumber, ...).

Usage:
    from govhealth.models import ActivityData, GovernanceSnapshot

    data = ActivityData.model_validate_json(raw_json)
    history = [GovernanceSnapshot.model_validate(s) for s in raw_history]
"""

from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class Phase(str, Enum):
    """Proposal lifecycle phases, in lifecycle order."""

    DISCUSSION = "discussion"
    VOTING = "voting"
    EXTENDED_VOTING = "extended-voting"
    READY_TO_IMPLEMENT = "ready-to-implement"
    IMPLEMENTED = "implemented"
    REJECTED = "rejected"
    INCONCLUSIVE = "inconclusive"

    @classmethod
    def parse(cls, value: str | None) -> Optional["Phase"]:
        """Map a raw phase string to a Phase, None when unrecognized."""
        try:
            return cls(value)
        except ValueError:
            return None

    @property
    def is_active(self) -> bool:
        return self in ACTIVE_PHASES

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_PHASES


ACTIVE_PHASES = frozenset(
    {Phase.DISCUSSION, Phase.VOTING, Phase.EXTENDED_VOTING, Phase.READY_TO_IMPLEMENT}
)
TERMINAL_PHASES = frozenset({Phase.IMPLEMENTED, Phase.REJECTED, Phase.INCONCLUSIVE})


class _Contract(BaseModel):
    """
    Immutable record, populated by field name or camelCase alias.

    An explicit null for a field that has a default takes the default
    (title: null -> "", comments: null -> []). Required fields still
    reject null.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )

    @model_validator(mode="before")
    @classmethod
    def _null_takes_default(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        defaulted = set()
        for name, info in cls.model_fields.items():
            if not info.is_required():
                defaulted.add(name)
                if info.alias:
                    defaulted.add(info.alias)
        return {k: v for k, v in values.items() if v is not None or k not in defaulted}


# ==== Activity records ====


class VotesSummary(_Contract):
    thumbs_up: int = 0
    thumbs_down: int = 0

    @property
    def total(self) -> int:
        return self.thumbs_up + self.thumbs_down


class PhaseTransition(_Contract):
    phase: str
    entered_at: str


class Proposal(_Contract):
    """A governance proposal. Phase stays a raw string; see Phase.parse()."""

    number: int
    title: str = ""
    phase: str
    author: str = ""
    created_at: str = ""
    comment_count: int = 0
    votes_summary: VotesSummary | None = None
    phase_transitions: list[PhaseTransition] | None = None
    repo: str | None = None

    @property
    def phase_enum(self) -> Phase | None:
        return Phase.parse(self.phase)

    @property
    def is_terminal(self) -> bool:
        phase = self.phase_enum
        return phase is not None and phase.is_terminal

    @property
    def is_active(self) -> bool:
        phase = self.phase_enum
        return phase is not None and phase.is_active


class AgentStat(_Contract):
    """Per-contributor rollup."""

    login: str
    avatar_url: str | None = None
    commits: int = 0
    pull_requests_merged: int = 0
    issues_opened: int = 0
    reviews: int = 0
    comments: int = 0
    last_active_at: str = ""

    @property
    def is_active(self) -> bool:
        """Active agents have any commit, merge, review or comment activity."""
        return (
            self.commits > 0
            or self.pull_requests_merged > 0
            or self.reviews > 0
            or self.comments > 0
        )


class Comment(_Contract):
    id: int
    issue_or_pr_number: int
    type: str
    author: str = ""
    body: str = ""
    created_at: str = ""
    url: str = ""
    repo: str | None = None


class PullRequest(_Contract):
    number: int
    title: str = ""
    body: str | None = None
    state: str = "open"
    draft: bool = False
    author: str = ""
    created_at: str = ""
    closed_at: str | None = None
    merged_at: str | None = None
    repo: str | None = None


class Commit(_Contract):
    sha: str
    message: str = ""
    author: str = ""
    date: str = ""
    repo: str | None = None


class Issue(_Contract):
    number: int
    title: str = ""
    state: str = "open"
    labels: list[str] = Field(default_factory=list)
    author: str = ""
    created_at: str = ""
    closed_at: str | None = None
    repo: str | None = None


class Agent(_Contract):
    login: str
    avatar_url: str | None = None


class Repository(_Contract):
    owner: str = ""
    name: str = ""
    url: str = ""


class ActivityData(_Contract):
    """Everything the ingestion process captured in one cycle."""

    generated_at: str = ""
    repository: Repository | None = None
    agents: list[Agent] = Field(default_factory=list)
    agent_stats: list[AgentStat] = Field(default_factory=list)
    commits: list[Commit] = Field(default_factory=list)
    issues: list[Issue] = Field(default_factory=list)
    pull_requests: list[PullRequest] = Field(default_factory=list)
    proposals: list[Proposal] = Field(default_factory=list)
    comments: list[Comment] = Field(default_factory=list)


# ==== History ====


class GovernanceSnapshot(_Contract):
    """
    Point-in-time health record appended by the history pipeline.

    Scores written by this engine are ints; histories from other writers
    may carry fractional scores, which are kept as floats.
    """

    timestamp: str
    health_score: int | float
    participation: int | float
    pipeline_flow: int | float
    follow_through: int | float
    consensus_quality: int | float
    active_proposals: int = 0
    total_proposals: int = 0
    active_agents: int = 0
    proposal_velocity: float | None = None


class HistoryProvenance(_Contract):
    repositories: list[str] = Field(default_factory=list)
    generated_by: str = "unknown"
    generator_version: str = "unknown"
    source_commit_sha: str | None = None


class HistoryCompleteness(_Contract):
    status: Literal["complete", "partial"] = "complete"
    missing_repositories: list[str] = Field(default_factory=list)
    permission_gaps: list[str] = Field(default_factory=list)
    api_partials: list[str] = Field(default_factory=list)

    @property
    def has_gaps(self) -> bool:
        return bool(self.missing_repositories or self.permission_gaps or self.api_partials)


class HistoryIntegrity(_Contract):
    algorithm: Literal["sha256"] = "sha256"
    digest: str


class HistoryArtifact(_Contract):
    """Versioned governance-history file: snapshots plus provenance metadata."""

    schema_version: int
    generated_at: str
    snapshots: list[GovernanceSnapshot] = Field(default_factory=list)
    provenance: HistoryProvenance = Field(default_factory=HistoryProvenance)
    completeness: HistoryCompleteness = Field(default_factory=HistoryCompleteness)
    integrity: HistoryIntegrity | None = None
