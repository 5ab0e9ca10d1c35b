"""
Test fixtures for deterministic testing.

This module provides:
- activity: builders for proposals, agents, comments, PRs and snapshots
- build_balanced_colony: the shared four-agent scenario
"""

from .activity import (
    BASE_TIME,
    ROLE_AGENTS,
    at,
    build_balanced_colony,
    iso,
    make_agent,
    make_comment,
    make_data,
    make_pr,
    make_proposal,
    make_snapshot,
)

__all__ = [
    "BASE_TIME",
    "ROLE_AGENTS",
    "at",
    "build_balanced_colony",
    "iso",
    "make_agent",
    "make_comment",
    "make_data",
    "make_pr",
    "make_proposal",
    "make_snapshot",
]
