"""
Test configuration: ensures repo root is in sys.path and provides shared fixtures.

Builders live in tests/fixtures (import with `from tests.fixtures import ...`).
"""

import sys
from pathlib import Path

import pytest

# Add repo root to sys.path so tests can import govhealth.* and tests.fixtures
REPO_ROOT = Path(__file__).parent.parent
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from govhealth.intelligence import thresholds as thresholds_module  # noqa: E402
from govhealth.intelligence.thresholds import GovernanceThresholds  # noqa: E402
from tests.fixtures import at, build_balanced_colony, make_snapshot  # noqa: E402


@pytest.fixture(autouse=True)
def _isolate_active_thresholds():
    """Reset the module-level active thresholds around every test."""
    saved = thresholds_module._active
    thresholds_module._active = GovernanceThresholds()
    yield
    thresholds_module._active = saved


@pytest.fixture
def thresholds() -> GovernanceThresholds:
    """Default thresholds, independent of any GOVHEALTH_THRESHOLDS_PATH override."""
    return GovernanceThresholds()


@pytest.fixture
def balanced_colony():
    return build_balanced_colony()


@pytest.fixture
def rising_history():
    """Three snapshots, shuffled, with health climbing 70 -> 80 -> 95 over eight days."""
    return [
        make_snapshot(at(days=4), 80, 22, 18, 22, 18, active_proposals=2, total_proposals=4, proposal_velocity=0.29),
        make_snapshot(at(days=8), 95, 25, 23, 25, 25, active_proposals=1, total_proposals=5, proposal_velocity=0.43),
        make_snapshot(at(days=0), 70, 20, 15, 20, 15, active_proposals=3, total_proposals=3, proposal_velocity=0.14),
    ]
