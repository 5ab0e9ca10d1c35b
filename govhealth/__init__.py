"""
govhealth: governance health and assessment for multi-agent projects.

Usage:
    from govhealth import ActivityData, evaluate_governance

    data = ActivityData.model_validate_json(raw_json)
    report = evaluate_governance(data, history)
"""

__version__ = "0.1.0"

from govhealth.intelligence import GovernanceReport, evaluate_governance
from govhealth.models import ActivityData, GovernanceSnapshot

__all__ = ["ActivityData", "GovernanceReport", "GovernanceSnapshot", "evaluate_governance", "__version__"]
