"""
Tests for the governance engine entry point.
"""

import dataclasses
import json
import logging

import pytest
from pydantic import ValidationError

from govhealth import ActivityData, GovernanceSnapshot, evaluate_governance
from govhealth.intelligence.assessment import AlertType
from govhealth.intelligence.balance import BalanceVerdict
from govhealth.intelligence.health import HealthBucket
from govhealth.observability import current_evaluation, get_evaluation_id
from tests.fixtures import at, make_data, make_pr, make_proposal, make_snapshot


class TestEvaluateGovernance:
    def test_balanced_colony(self, balanced_colony, rising_history):
        report = evaluate_governance(balanced_colony, rising_history)

        assert report.health.score == 100
        assert report.health.bucket is HealthBucket.THRIVING
        assert report.balance.verdict is BalanceVerdict.BALANCED
        assert report.assessment.alerts == []
        assert report.metrics.total_proposals == 5
        assert report.competing_implementations == []
        assert report.snapshot.timestamp == at(days=8)
        assert report.snapshot.proposal_velocity == 0.57

    def test_history_is_not_modified(self, balanced_colony, rising_history):
        before = list(rising_history)
        evaluate_governance(balanced_colony, rising_history)

        assert rising_history == before

    def test_deterministic(self, balanced_colony, rising_history):
        first = evaluate_governance(balanced_colony, rising_history).to_dict()
        second = evaluate_governance(balanced_colony, list(reversed(rising_history))).to_dict()

        assert first == second

    def test_evaluation_id(self, balanced_colony):
        assert evaluate_governance(balanced_colony, evaluation_id="eval-fixed").evaluation_id == "eval-fixed"
        assert evaluate_governance(balanced_colony).evaluation_id.startswith("eval-")

    def test_evaluation_id_on_log_records(self, balanced_colony, caplog):
        seen = []
        inputs = []

        class _Capture(logging.Handler):
            def emit(self, record):
                seen.append(get_evaluation_id())
                inputs.append(current_evaluation().inputs)

        handler = _Capture(level=logging.DEBUG)
        engine_logger = logging.getLogger("govhealth.intelligence.engine")
        engine_logger.addHandler(handler)
        try:
            with caplog.at_level(logging.DEBUG, logger="govhealth.intelligence.engine"):
                evaluate_governance(
                    balanced_colony, [make_snapshot(at(days=7))], evaluation_id="eval-logged"
                )
        finally:
            engine_logger.removeHandler(handler)

        assert seen
        assert set(seen) == {"eval-logged"}
        assert inputs[0] == {"proposals": 5, "agents": 4, "snapshots": 1}
        assert "5 proposals, 4 agents, 1 snapshots" in caplog.text

    def test_empty_data(self):
        report = evaluate_governance(make_data())

        assert report.health.score == 10
        assert report.balance.verdict is BalanceVerdict.INSUFFICIENT_DATA
        assert report.metrics.success_rate is None
        assert report.snapshot.total_proposals == 0
        assert report.snapshot.proposal_velocity is None

    def test_missing_generated_at_uses_current_time(self, balanced_colony):
        data = balanced_colony.model_copy(update={"generated_at": ""})
        report = evaluate_governance(data)

        assert report.snapshot.timestamp != ""
        assert report.snapshot.timestamp.endswith("Z")

    def test_competing_implementations(self):
        data = make_data(
            proposals=[make_proposal(7, "ready-to-implement")],
            pull_requests=[make_pr(20, body="Fixes #7"), make_pr(21, body="Closes #7")],
        )
        report = evaluate_governance(data)

        assert [c.number for c in report.competing_implementations] == [7]
        assert report.to_dict()["competing_implementations"][0]["detail"] == "2 open PRs: #20, #21"

    def test_thresholds_override(self, balanced_colony, thresholds):
        strict = dataclasses.replace(
            thresholds,
            assessment=dataclasses.replace(thresholds.assessment, critical_score_threshold=101),
        )
        history = [make_snapshot(at(days=6), health_score=100), make_snapshot(at(days=7), health_score=100)]
        report = evaluate_governance(balanced_colony, history, thresholds=strict)

        assert [a.type for a in report.assessment.alerts] == [AlertType.HEALTH_CRITICAL]
        assert report.assessment.recommendations[0].source is AlertType.HEALTH_CRITICAL

    def test_to_dict_is_json_serializable(self, balanced_colony, rising_history):
        result = evaluate_governance(balanced_colony, rising_history).to_dict()
        text = json.dumps(result)

        assert set(result) == {"health", "balance", "assessment", "metrics", "snapshot", "competing_implementations"}
        assert result["snapshot"]["health_score"] == 100
        assert "eval-" not in text


class TestCamelCaseInput:
    def test_activity_json_round_trip(self):
        raw = {
            "generatedAt": at(days=2),
            "agentStats": [
                {"login": "builder-1", "commits": 2, "pullRequestsMerged": 1, "issuesOpened": 0,
                 "reviews": 3, "comments": 4, "lastActiveAt": at()},
            ],
            "proposals": [
                {"number": 1, "title": "Add cache", "phase": "voting", "author": "builder-1",
                 "createdAt": at(), "commentCount": 2, "votesSummary": {"thumbsUp": 2, "thumbsDown": 0},
                 "phaseTransitions": [{"phase": "discussion", "enteredAt": at()}], "unknownField": 1},
            ],
            "comments": None,
            "pullRequests": [],
        }
        data = ActivityData.model_validate_json(json.dumps(raw))

        assert data.agent_stats[0].pull_requests_merged == 1
        assert data.proposals[0].votes_summary.total == 2
        assert data.comments == []
        assert evaluate_governance(data).metrics.total_proposals == 1

    def test_null_optional_fields_take_defaults(self):
        raw = {
            "generatedAt": None,
            "repository": {"owner": None, "name": "app", "url": None},
            "agentStats": [{"login": "builder-1", "commits": 1, "lastActiveAt": None, "avatarUrl": None}],
            "proposals": [
                {"number": 1, "title": None, "phase": "voting", "author": None, "createdAt": None,
                 "commentCount": None, "votesSummary": None, "phaseTransitions": None},
            ],
            "comments": [
                {"id": 9, "issueOrPrNumber": 1, "type": "proposal", "author": "scout-1",
                 "body": None, "createdAt": None, "url": None},
            ],
            "pullRequests": [{"number": 4, "title": None, "author": None, "createdAt": None}],
            "commits": [{"sha": "abc", "message": None, "author": None, "date": None}],
            "issues": [{"number": 5, "title": None, "labels": None, "author": None, "createdAt": None}],
        }
        data = ActivityData.model_validate(raw)

        assert data.generated_at == ""
        assert data.repository.owner == ""
        assert data.agent_stats[0].last_active_at == ""
        assert data.proposals[0].title == ""
        assert data.proposals[0].comment_count == 0
        assert data.comments[0].body == ""
        assert data.pull_requests[0].state == "open"
        assert data.commits[0].message == ""
        assert data.issues[0].labels == []
        assert evaluate_governance(data).metrics.total_proposals == 1

    def test_null_required_field_is_rejected(self):
        with pytest.raises(ValidationError):
            ActivityData.model_validate({"proposals": [{"number": None, "phase": "voting"}]})

    def test_snapshot_aliases(self):
        snapshot = GovernanceSnapshot.model_validate(
            {"timestamp": at(), "healthScore": 60, "participation": 15, "pipelineFlow": 15,
             "followThrough": 15, "consensusQuality": 15}
        )

        assert snapshot.health_score == 60
        assert snapshot.proposal_velocity is None
        assert snapshot.model_dump(by_alias=True)["healthScore"] == 60
