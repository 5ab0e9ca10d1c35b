"""
Activity index: lookup maps built once per evaluation.

Scorers need the same few views of the activity data (proposals per
author, proposal comments per proposal, open PRs and the issues they
reference). Building them here once and passing the index down keeps
every sub-computation a plain function of its arguments.
"""

import logging
from collections import Counter
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from types import MappingProxyType

from govhealth.models import ActivityData, Comment, Proposal, PullRequest

from .references import linked_issue_numbers
from .thresholds import GovernanceThresholds, get_thresholds

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActivityIndex:
    """Read-only keyed views over one ActivityData."""

    proposal_counts: Mapping[str, int]  # author -> proposals authored
    proposal_comments: Mapping[int, tuple[Comment, ...]]  # proposal number -> type=proposal comments
    open_pull_requests: tuple[PullRequest, ...]
    linked_issue_numbers: frozenset[int]  # referenced by open PRs (keywords + bare #N)

    def proposals_by(self, login: str) -> int:
        return self.proposal_counts.get(login, 0)

    def comments_on(self, number: int) -> tuple[Comment, ...]:
        return self.proposal_comments.get(number, ())


def count_proposals_by_author(proposals: Sequence[Proposal]) -> Mapping[str, int]:
    return MappingProxyType(dict(Counter(p.author for p in proposals)))


def build_activity_index(
    data: ActivityData,
    thresholds: GovernanceThresholds | None = None,
) -> ActivityIndex:
    """Build the lookup maps for one evaluation."""
    thresholds = thresholds or get_thresholds()

    comments: dict[int, list[Comment]] = {}
    for c in data.comments:
        if c.type == "proposal":
            comments.setdefault(c.issue_or_pr_number, []).append(c)

    open_prs = tuple(pr for pr in data.pull_requests if pr.state == "open")

    index = ActivityIndex(
        proposal_counts=count_proposals_by_author(data.proposals),
        proposal_comments=MappingProxyType({n: tuple(cs) for n, cs in comments.items()}),
        open_pull_requests=open_prs,
        linked_issue_numbers=linked_issue_numbers(
            open_prs, thresholds.assessment.closing_keywords, include_bare=True
        ),
    )
    logger.debug(
        f"Indexed {len(data.proposals)} proposals, {len(data.comments)} comments, "
        f"{len(open_prs)} open PRs"
    )
    return index
