"""
Threshold configuration for governance intelligence.

Every cutoff the scorers, the balance assessor and the assessment engine
compare against lives in one GovernanceThresholds structure. Defaults are
the dataclass defaults; thresholds.yaml overrides them per section.

Entry points accept an explicit GovernanceThresholds, so tests build
variants with dataclasses.replace() instead of patching module state.
"""

import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from govhealth import config

logger = logging.getLogger(__name__)

# Closing keywords recognized in "<keyword> #N" references.
CLOSING_KEYWORDS: tuple[str, ...] = (
    "close",
    "closes",
    "closed",
    "fix",
    "fixes",
    "fixed",
    "resolve",
    "resolves",
    "resolved",
)

DEFAULT_ROLE_PREFIXES: tuple[str, ...] = ("builder", "worker", "scout", "polisher")


class ThresholdConfigError(ValueError):
    """A threshold value is out of range or inconsistent with its neighbours."""


def _require(condition: bool, message: str) -> None:
    if not condition:
        raise ThresholdConfigError(message)


def _is_share(value: float) -> bool:
    return 0.0 <= value <= 1.0


@dataclass(frozen=True)
class HealthThresholds:
    """Cutoffs for the four health sub-metrics and the composite bucket."""

    sub_metric_max: int = 25
    composite_step: int = 5
    thriving_min: int = 75
    healthy_min: int = 50
    needs_attention_min: int = 25
    single_agent_score: int = 5
    follow_through_baseline: int = 12
    progression_points: int = 15
    completion_points: int = 10
    vote_points: int = 10
    votes_for_full_marks: float = 4.0
    discussion_points: int = 10
    comments_for_full_marks: float = 5.0
    diversity_sweet_spot_low: float = 0.1
    diversity_sweet_spot_high: float = 0.4
    diversity_broken_above: float = 0.6
    diversity_sweet_spot_points: int = 5
    diversity_near_points: int = 3
    diversity_rubber_stamp_points: int = 1
    gini_well_distributed_below: float = 0.2
    gini_moderate_below: float = 0.4

    def __post_init__(self):
        _require(self.sub_metric_max > 0, "health.sub_metric_max must be positive")
        _require(self.composite_step > 0, "health.composite_step must be positive")
        _require(
            self.thriving_min > self.healthy_min > self.needs_attention_min >= 0,
            "health bucket cutoffs must satisfy thriving > healthy > needs_attention >= 0",
        )
        _require(self.votes_for_full_marks > 0, "health.votes_for_full_marks must be positive")
        _require(self.comments_for_full_marks > 0, "health.comments_for_full_marks must be positive")
        _require(
            0.0 <= self.diversity_sweet_spot_low <= self.diversity_sweet_spot_high
            <= self.diversity_broken_above <= 1.0,
            "health diversity cutoffs must be ordered within [0, 1]",
        )


@dataclass(frozen=True)
class BalanceThresholds:
    """Weights and cutoffs for power, role diversity and responsiveness."""

    proposal_weight: int = 3
    review_weight: int = 2
    vote_weight: int = 1
    oligarchy_top_two_share: float = 0.7
    concentrated_top_share: float = 0.4
    moderate_top_share: float = 0.3
    role_prefixes: tuple[str, ...] = DEFAULT_ROLE_PREFIXES
    highly_responsive_hours: float = 2.0
    responsive_hours: float = 8.0
    slow_hours: float = 24.0
    diversity_high: int = 75
    diversity_medium: int = 50
    diversity_low: int = 25
    balanced_verdict_min: int = 8
    mostly_balanced_verdict_min: int = 5
    min_influential_agents: int = 2
    bot_suffix: str = config.BOT_LOGIN_SUFFIX
    system_accounts: frozenset[str] = field(default_factory=lambda: config.SYSTEM_ACCOUNTS)

    def __post_init__(self):
        for name in ("oligarchy_top_two_share", "concentrated_top_share", "moderate_top_share"):
            _require(_is_share(getattr(self, name)), f"balance.{name} must be within [0, 1]")
        _require(
            self.highly_responsive_hours < self.responsive_hours < self.slow_hours,
            "balance responsiveness hours must be strictly increasing",
        )
        _require(len(self.role_prefixes) > 0, "balance.role_prefixes must not be empty")
        _require(
            self.balanced_verdict_min > self.mostly_balanced_verdict_min,
            "balance.balanced_verdict_min must exceed mostly_balanced_verdict_min",
        )

    def is_automation(self, login: str) -> bool:
        """True for bot-suffixed logins and configured system accounts."""
        if not login:
            return False
        return login.endswith(self.bot_suffix) or login in self.system_accounts


@dataclass(frozen=True)
class AssessmentThresholds:
    """Trend windows, alert and pattern triggers, recommendation cap."""

    short_window_days: int = 7
    long_window_days: int = 30
    consecutive_decline_threshold: int = 3
    critical_score_threshold: int = 25
    critical_snapshot_count: int = 2
    participation_drop_threshold: float = 10.0
    unclaimed_ready_threshold: int = 5
    merge_queue_min_open: int = 10
    merge_queue_ratio: float = 3.0
    recent_merge_hours: float = 48.0
    review_concentration_share: float = 0.6
    rubber_stamp_min_terminal: int = 3
    rubber_stamp_approval_rate: float = 0.95
    rubber_stamp_max_avg_comments: float = 2.0
    single_point_share: float = 0.5
    governance_debt_window: int = 3
    velocity_cliff_ratio: float = 0.5
    velocity_window_days: int = 7
    max_recommendations: int = 5
    closing_keywords: tuple[str, ...] = CLOSING_KEYWORDS

    def __post_init__(self):
        _require(
            0 < self.short_window_days < self.long_window_days,
            "assessment windows must satisfy 0 < short < long",
        )
        _require(self.critical_snapshot_count >= 1, "assessment.critical_snapshot_count must be >= 1")
        _require(self.governance_debt_window >= 2, "assessment.governance_debt_window must be >= 2")
        _require(self.max_recommendations >= 0, "assessment.max_recommendations must be >= 0")
        for name in (
            "review_concentration_share",
            "rubber_stamp_approval_rate",
            "single_point_share",
            "velocity_cliff_ratio",
        ):
            _require(_is_share(getattr(self, name)), f"assessment.{name} must be within [0, 1]")
        _require(len(self.closing_keywords) > 0, "assessment.closing_keywords must not be empty")


@dataclass(frozen=True)
class GovernanceThresholds:
    """All governance intelligence thresholds."""

    health: HealthThresholds = field(default_factory=HealthThresholds)
    balance: BalanceThresholds = field(default_factory=BalanceThresholds)
    assessment: AssessmentThresholds = field(default_factory=AssessmentThresholds)


DEFAULT_THRESHOLDS = GovernanceThresholds()


# =============================================================================
# YAML loading
# =============================================================================


def _list_items(value: Any, name: str) -> Any:
    # A lone string is a one-item list, not a sequence of characters
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    if isinstance(value, (list, tuple, set, frozenset)):
        return value
    raise ThresholdConfigError(f"{name} must be a list, got {value!r}")


def _coerce(value: Any, default: Any, name: str = "value") -> Any:
    """Match YAML scalars/lists to the container type of the default."""
    if isinstance(default, frozenset):
        return frozenset(str(v) for v in _list_items(value, name))
    if isinstance(default, tuple):
        return tuple(str(v).lower() for v in _list_items(value, name))
    if isinstance(default, bool):
        return bool(value)
    if isinstance(default, float) and isinstance(value, int) and not isinstance(value, bool):
        return float(value)
    return value


def _build_section(cls, raw: Any, section: str):
    if raw is None:
        return cls()
    if not isinstance(raw, dict):
        raise ThresholdConfigError(f"{section} must be a mapping, got {type(raw).__name__}")

    defaults = cls()
    known = {f.name for f in fields(cls)}
    kwargs = {}
    for key, value in raw.items():
        if key not in known:
            logger.warning(f"Ignoring unknown threshold {section}.{key}")
            continue
        default = getattr(defaults, key)
        coerced = _coerce(value, default, f"{section}.{key}")
        if not isinstance(default, (tuple, frozenset, str)) and not isinstance(coerced, (int, float)):
            raise ThresholdConfigError(f"{section}.{key} must be a number, got {value!r}")
        kwargs[key] = coerced
    return cls(**kwargs)


def thresholds_from_mapping(raw: dict) -> GovernanceThresholds:
    """Build thresholds from a parsed YAML/JSON mapping (missing keys keep defaults)."""
    return GovernanceThresholds(
        health=_build_section(HealthThresholds, raw.get("health"), "health"),
        balance=_build_section(BalanceThresholds, raw.get("balance"), "balance"),
        assessment=_build_section(AssessmentThresholds, raw.get("assessment"), "assessment"),
    )


def load_thresholds(path: Path | None = None) -> GovernanceThresholds:
    """
    Load threshold configuration from a YAML file.

    A missing, unreadable or unparseable file falls back to defaults with a
    warning. Values that parse but are out of range raise ThresholdConfigError.
    """
    path = Path(path) if path is not None else config.THRESHOLDS_PATH
    if not path.exists():
        logger.warning(f"Thresholds file {path} not found, using defaults")
        return GovernanceThresholds()

    try:
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Failed to load thresholds from {path}: {e}")
        return GovernanceThresholds()

    if not isinstance(raw, dict):
        logger.warning(f"Thresholds file {path} is not a mapping, using defaults")
        return GovernanceThresholds()

    return thresholds_from_mapping(raw)


_active: GovernanceThresholds | None = None


def get_thresholds() -> GovernanceThresholds:
    """Active thresholds, loaded from THRESHOLDS_PATH on first use."""
    global _active
    if _active is None:
        _active = load_thresholds()
    return _active


def reload_thresholds(path: Path | None = None) -> GovernanceThresholds:
    """Re-read thresholds (call after editing thresholds.yaml)."""
    global _active
    _active = load_thresholds(path)
    return _active
