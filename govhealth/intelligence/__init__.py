"""
Governance intelligence layer.

Single entry point for governance analytics:
- Pipeline analysis (phase tallies, agent roles, throughput)
- Health scoring (participation, pipeline flow, follow-through, consensus)
- Balance assessment (power concentration, role diversity, responsiveness)
- Trend assessment (deltas, alerts, patterns, recommendations)
- Snapshot history (building, capping, artifact parsing, integrity)

Usage:
    # Full evaluation
    from govhealth.intelligence import evaluate_governance
    report = evaluate_governance(data, history)

    # Individual components
    from govhealth.intelligence import compute_governance_health, compute_gini
"""

from .assessment import (
    Alert,
    AlertSeverity,
    AlertType,
    GovernanceAssessment,
    Pattern,
    PatternType,
    Priority,
    Recommendation,
    TrendSummary,
    assess_governance_health,
    compute_trend_summary,
    detect_alerts,
    detect_patterns,
    generate_recommendations,
)
from .balance import (
    BalanceVerdict,
    ConcentrationLevel,
    GovernanceBalanceAssessment,
    ResponsivenessBucket,
    compute_governance_balance,
    compute_power_concentration,
    compute_responsiveness,
    compute_role_diversity,
    infer_role,
)
from .engine import GovernanceReport, evaluate_governance
from .health import (
    GovernanceHealthScore,
    HealthBucket,
    SubMetric,
    compute_consensus,
    compute_follow_through,
    compute_governance_health,
    compute_participation,
    compute_pipeline_flow,
    score_to_bucket,
)
from .index import ActivityIndex, build_activity_index
from .pipeline import (
    AgentRole,
    GovernanceMetrics,
    PipelineCounts,
    Throughput,
    compute_agent_roles,
    compute_governance_metrics,
    compute_pipeline,
    compute_throughput,
)
from .references import extract_issue_references, find_competing_implementations
from .snapshots import (
    append_snapshot,
    build_history_artifact,
    build_snapshot,
    compute_history_digest,
    parse_history_artifact,
    verify_history_integrity,
)
from .stats import compute_gini
from .thresholds import (
    GovernanceThresholds,
    ThresholdConfigError,
    get_thresholds,
    load_thresholds,
    reload_thresholds,
)

__all__ = [
    # Engine
    "GovernanceReport",
    "evaluate_governance",
    # Pipeline
    "AgentRole",
    "GovernanceMetrics",
    "PipelineCounts",
    "Throughput",
    "compute_agent_roles",
    "compute_governance_metrics",
    "compute_pipeline",
    "compute_throughput",
    # Health
    "GovernanceHealthScore",
    "HealthBucket",
    "SubMetric",
    "compute_consensus",
    "compute_follow_through",
    "compute_governance_health",
    "compute_participation",
    "compute_pipeline_flow",
    "score_to_bucket",
    "compute_gini",
    # Balance
    "BalanceVerdict",
    "ConcentrationLevel",
    "GovernanceBalanceAssessment",
    "ResponsivenessBucket",
    "compute_governance_balance",
    "compute_power_concentration",
    "compute_responsiveness",
    "compute_role_diversity",
    "infer_role",
    # Assessment
    "Alert",
    "AlertSeverity",
    "AlertType",
    "GovernanceAssessment",
    "Pattern",
    "PatternType",
    "Priority",
    "Recommendation",
    "TrendSummary",
    "assess_governance_health",
    "compute_trend_summary",
    "detect_alerts",
    "detect_patterns",
    "generate_recommendations",
    # Index and references
    "ActivityIndex",
    "build_activity_index",
    "extract_issue_references",
    "find_competing_implementations",
    # Snapshots
    "append_snapshot",
    "build_history_artifact",
    "build_snapshot",
    "compute_history_digest",
    "parse_history_artifact",
    "verify_history_integrity",
    # Thresholds
    "GovernanceThresholds",
    "ThresholdConfigError",
    "get_thresholds",
    "load_thresholds",
    "reload_thresholds",
]
