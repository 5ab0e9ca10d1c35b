"""
Issue-reference parsing for pull request titles and bodies.

Two grammars are in use:
- closing keywords only ("Fixes #12", "closes #7"), which is what the
  source-control host itself honours when a PR merges;
- closing keywords plus bare "#N" mentions, used where any mention is
  evidence that someone has picked the proposal up.
"""

import logging
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from functools import lru_cache

from govhealth.models import Proposal, PullRequest

from .thresholds import CLOSING_KEYWORDS

logger = logging.getLogger(__name__)

_BARE_REFERENCE = re.compile(r"(?<![\w&/])#(\d+)\b")


@lru_cache(maxsize=16)
def _closing_pattern(keywords: tuple[str, ...]) -> re.Pattern:
    # Longest first so "closes" wins over "close"
    alternatives = "|".join(re.escape(k) for k in sorted(set(keywords), key=len, reverse=True))
    return re.compile(rf"\b(?:{alternatives})\s*:?\s+#(\d+)\b", re.IGNORECASE)


def extract_issue_references(
    text: str | None,
    keywords: Sequence[str] = CLOSING_KEYWORDS,
    include_bare: bool = False,
) -> frozenset[int]:
    """
    Issue numbers referenced in `text`.

    Args:
        text: Free text (PR title, body, or both joined).
        keywords: Closing keywords recognized before "#N", case-insensitive.
        include_bare: Also count standalone "#N" mentions.
    """
    if not text:
        return frozenset()

    numbers = {int(m) for m in _closing_pattern(tuple(k.lower() for k in keywords)).findall(text)}
    if include_bare:
        numbers.update(int(m) for m in _BARE_REFERENCE.findall(text))
    return frozenset(numbers)


def pull_request_references(
    pr: PullRequest,
    keywords: Sequence[str] = CLOSING_KEYWORDS,
    include_bare: bool = False,
) -> frozenset[int]:
    """References in a PR's title and body."""
    return extract_issue_references(f"{pr.title} {pr.body or ''}", keywords, include_bare)


def linked_issue_numbers(
    pull_requests: Iterable[PullRequest],
    keywords: Sequence[str] = CLOSING_KEYWORDS,
    include_bare: bool = True,
) -> frozenset[int]:
    """Union of references across open pull requests."""
    linked: set[int] = set()
    for pr in pull_requests:
        if pr.state == "open":
            linked.update(pull_request_references(pr, keywords, include_bare))
    return frozenset(linked)


# =============================================================================
# Competing implementations
# =============================================================================


@dataclass
class CompetingImplementation:
    """A proposal claimed by more than one open pull request."""

    number: int
    title: str
    pull_requests: list[int]

    @property
    def detail(self) -> str:
        refs = ", ".join(f"#{n}" for n in self.pull_requests)
        return f"{len(self.pull_requests)} open PRs: {refs}"

    def to_dict(self) -> dict:
        return {
            "number": self.number,
            "title": self.title,
            "pull_requests": list(self.pull_requests),
            "detail": self.detail,
        }


def find_competing_implementations(
    proposals: Sequence[Proposal],
    pull_requests: Sequence[PullRequest],
    keywords: Sequence[str] = CLOSING_KEYWORDS,
) -> list[CompetingImplementation]:
    """
    Proposals referenced by two or more open PRs through closing keywords.

    Bare "#N" mentions are not claims and do not count here.
    """
    claims: dict[int, list[int]] = {}
    for pr in pull_requests:
        if pr.state != "open":
            continue
        for number in pull_request_references(pr, keywords, include_bare=False):
            claimed = claims.setdefault(number, [])
            if pr.number not in claimed:
                claimed.append(pr.number)

    competing = []
    for proposal in proposals:
        prs = claims.get(proposal.number, [])
        if len(prs) >= 2:
            competing.append(CompetingImplementation(proposal.number, proposal.title, prs))

    if competing:
        logger.debug(f"{len(competing)} proposals have competing implementations")
    return competing
