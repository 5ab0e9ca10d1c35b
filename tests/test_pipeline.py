"""
Tests for the pipeline analyzer: phase tallies, agent roles, throughput, metrics.
"""

import pytest

from govhealth.intelligence.pipeline import (
    AgentRole,
    compute_agent_roles,
    compute_governance_metrics,
    compute_pipeline,
    compute_throughput,
    phase_entry_times,
)
from govhealth.models import Phase
from tests.fixtures import at, make_agent, make_data, make_proposal


class TestComputePipeline:
    def test_counts_each_phase_once(self):
        proposals = [
            make_proposal(1, "discussion"),
            make_proposal(2, "voting"),
            make_proposal(3, "extended-voting"),
            make_proposal(4, "ready-to-implement"),
            make_proposal(5, "implemented"),
            make_proposal(6, "rejected"),
            make_proposal(7, "inconclusive"),
        ]
        counts = compute_pipeline(proposals)

        assert counts.to_dict() == {
            "discussion": 1,
            "voting": 1,
            "extended_voting": 1,
            "ready_to_implement": 1,
            "implemented": 1,
            "rejected": 1,
            "inconclusive": 1,
            "total": 7,
        }
        assert counts.active == 4
        assert counts.terminal == 3
        assert counts.advanced == 6
        assert counts.approved == 2

    def test_unknown_phase_counts_only_toward_total(self):
        counts = compute_pipeline([make_proposal(1, "archived"), make_proposal(2, "voting")])

        assert counts.total == 2
        assert counts.voting == 1
        assert counts.active + counts.terminal == 1

    def test_empty(self):
        counts = compute_pipeline([])
        assert counts.total == 0
        assert counts.advanced == 0


class TestAgentRoles:
    def test_primary_role_is_highest_normalized_score(self):
        agents = [make_agent("reviewer-bee", commits=1, reviews=10, comments=3)]
        [profile] = compute_agent_roles(agents, [])

        assert profile.primary_role is AgentRole.REVIEWER
        assert profile.scores[AgentRole.REVIEWER] == 1.0
        assert profile.scores[AgentRole.DISCUSSANT] == pytest.approx(0.3)

    def test_proposals_authored_count_toward_proposer(self):
        proposals = [make_proposal(n, author="scout-1") for n in range(1, 6)]
        [profile] = compute_agent_roles([make_agent("scout-1", comments=2)], proposals)

        assert profile.primary_role is AgentRole.PROPOSER

    def test_ties_resolve_in_declaration_order(self):
        # coder = 2 + 1, reviewer = 3, discussant = 3
        agents = [make_agent("builder-1", commits=2, merged=1, reviews=3, comments=3)]
        [profile] = compute_agent_roles(agents, [])
        assert profile.primary_role is AgentRole.CODER

        agents = [make_agent("worker-1", reviews=4, comments=4)]
        [profile] = compute_agent_roles(agents, [])
        assert profile.primary_role is AgentRole.REVIEWER

    def test_idle_agent_has_no_role(self):
        [profile] = compute_agent_roles([make_agent("idle", issues=5)], [])

        assert profile.primary_role is None
        assert all(score == 0 for score in profile.scores.values())
        assert profile.to_dict()["primary_role"] is None


class TestPhaseEntryTimes:
    def test_duplicate_transitions_keep_earliest(self):
        p = make_proposal(
            1,
            "voting",
            created_at=at(),
            transitions=[
                ("discussion", at()),
                ("voting", at(hours=30)),
                ("discussion", at(hours=40)),
                ("voting", at(hours=50)),
            ],
        )
        entries = phase_entry_times(p)

        assert entries[Phase.VOTING].isoformat().startswith("2026-02-02T18:00")
        assert entries[Phase.DISCUSSION].isoformat().startswith("2026-02-01T12:00")

    def test_missing_discussion_defaults_to_creation(self):
        p = make_proposal(1, "voting", created_at=at(hours=2), transitions=[("voting", at(hours=10))])
        entries = phase_entry_times(p)

        assert entries[Phase.DISCUSSION].isoformat().startswith("2026-02-01T14:00")

    def test_unparseable_and_unknown_transitions_are_skipped(self):
        p = make_proposal(
            1,
            "voting",
            transitions=[("voting", "not-a-date"), ("archived", at(hours=1))],
        )
        entries = phase_entry_times(p)

        assert Phase.VOTING not in entries
        assert set(entries) == {Phase.DISCUSSION}


class TestThroughput:
    def test_medians_over_complete_lifecycles(self):
        proposals = [
            make_proposal(
                1,
                "implemented",
                created_at=at(),
                transitions=[("discussion", at()), ("voting", at(hours=10)), ("implemented", at(hours=30))],
            ),
            make_proposal(
                2,
                "rejected",
                created_at=at(),
                transitions=[("discussion", at()), ("voting", at(hours=20)), ("rejected", at(hours=60))],
            ),
            make_proposal(3, "discussion", created_at=at()),
        ]
        throughput = compute_throughput(proposals)

        assert throughput.discussion_to_voting_hours == 15.0
        assert throughput.voting_to_decision_hours == 30.0
        assert throughput.creation_to_decision_hours == 45.0
        assert throughput.resolved == 2
        assert throughput.active == 1

    def test_decision_is_earliest_terminal_transition(self):
        p = make_proposal(
            1,
            "implemented",
            created_at=at(),
            transitions=[("voting", at(hours=5)), ("inconclusive", at(hours=9)), ("implemented", at(hours=50))],
        )
        throughput = compute_throughput([p])

        assert throughput.voting_to_decision_hours == 4.0
        assert throughput.creation_to_decision_hours == 9.0

    def test_negative_durations_are_dropped(self):
        p = make_proposal(
            1,
            "rejected",
            created_at=at(hours=10),
            transitions=[("discussion", at(hours=10)), ("voting", at(hours=2)), ("rejected", at(hours=12))],
        )
        throughput = compute_throughput([p])

        assert throughput.discussion_to_voting_hours is None
        assert throughput.voting_to_decision_hours == 10.0

    def test_empty_buckets_are_none(self):
        throughput = compute_throughput([make_proposal(1, "discussion")])

        assert throughput.discussion_to_voting_hours is None
        assert throughput.voting_to_decision_hours is None
        assert throughput.creation_to_decision_hours is None


class TestGovernanceMetrics:
    def test_success_rate_and_top_proposers(self, balanced_colony):
        metrics = compute_governance_metrics(balanced_colony)

        assert metrics.total_proposals == 5
        assert metrics.success_rate == pytest.approx(0.75)
        assert metrics.active_proposals == 1
        assert metrics.avg_comments == pytest.approx(6.0)
        assert metrics.top_proposers[0].login == "builder-1"
        assert metrics.top_proposers[0].count == 2
        assert [p.count for p in metrics.top_proposers[1:]] == [1, 1, 1]

    def test_success_rate_none_when_nothing_decided(self):
        data = make_data(proposals=[make_proposal(1, "voting"), make_proposal(2, "inconclusive")])
        metrics = compute_governance_metrics(data)

        assert metrics.success_rate is None
        assert metrics.to_dict()["success_rate"] is None

    def test_empty_data(self):
        metrics = compute_governance_metrics(make_data())

        assert metrics.total_proposals == 0
        assert metrics.avg_comments == 0.0
        assert metrics.agent_roles == []
