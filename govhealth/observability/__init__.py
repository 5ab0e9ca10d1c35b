"""
Observability module: structured logging and evaluation IDs.

Usage:
    from govhealth.observability import EvaluationContext, configure_logging, get_logger

    configure_logging("DEBUG", json_format=True)
    logger = get_logger(__name__)

    with EvaluationContext(proposals=12, agents=4) as ctx:
        logger.info("Evaluating governance")  # JSON lines carry evaluation_id + inputs
"""

from .context import (
    EvaluationContext,
    current_evaluation,
    generate_evaluation_id,
    get_evaluation_id,
)
from .logging import HumanFormatter, JSONFormatter, configure_logging, get_logger

__all__ = [
    "EvaluationContext",
    "current_evaluation",
    "generate_evaluation_id",
    "get_evaluation_id",
    "HumanFormatter",
    "JSONFormatter",
    "configure_logging",
    "get_logger",
]
