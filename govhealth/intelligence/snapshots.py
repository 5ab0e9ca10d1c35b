"""
Governance snapshot history.

A snapshot is the compact, timestamped form of one health evaluation.
The history pipeline appends one per data refresh and keeps the newest
MAX_HISTORY_ENTRIES (30 days at 6h intervals). The trend engine reads the
history; nothing here writes files.

History files are either a legacy bare list of snapshots or a versioned
artifact carrying provenance, completeness and a sha256 integrity digest.
"""

import hashlib
import json
import logging
from collections.abc import Sequence
from datetime import UTC, datetime, timedelta
from typing import Any

from pydantic import ValidationError
from pydantic.alias_generators import to_camel

from govhealth import config
from govhealth.models import (
    ActivityData,
    GovernanceSnapshot,
    HistoryArtifact,
    HistoryCompleteness,
    HistoryIntegrity,
    HistoryProvenance,
    Proposal,
)

from .health import GovernanceHealthScore
from .pipeline import compute_pipeline
from .stats import parse_timestamp, round_to

logger = logging.getLogger(__name__)

HISTORY_SCHEMA_VERSION = 1
LEGACY_SCHEMA_VERSION = 0
LEGACY_GENERATOR = "legacy-governance-history"
LEGACY_PERMISSION_GAP = "Legacy history format: provenance metadata unavailable"
EPOCH_TIMESTAMP = "1970-01-01T00:00:00.000Z"

_SNAPSHOT_KEYS = tuple(to_camel(name) for name in GovernanceSnapshot.model_fields)


def _utc_now_iso() -> str:
    return datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


def sort_snapshots(history: Sequence[GovernanceSnapshot]) -> list[GovernanceSnapshot]:
    """
    Snapshots in chronological order.

    Unparseable timestamps sort first so they never become "latest".
    Ties keep their input order.
    """
    floor = datetime.min.replace(tzinfo=UTC)
    return sorted(history, key=lambda s: parse_timestamp(s.timestamp) or floor)


# =============================================================================
# Building snapshots
# =============================================================================


def compute_velocity(
    proposals: Sequence[Proposal],
    as_of: datetime,
    window_days: int = 7,
) -> float | None:
    """
    Proposals decided per day over the trailing window ending at `as_of`.

    A decided proposal counts when its most recent phase transition falls
    inside the window; proposals without transitions cannot be dated and
    are skipped. None when nothing has been decided yet.
    """
    decided = [p for p in proposals if p.is_terminal]
    if not decided:
        return None

    window_start = as_of - timedelta(days=window_days)
    recent = 0
    for p in decided:
        if not p.phase_transitions:
            continue
        entered = parse_timestamp(p.phase_transitions[-1].entered_at)
        if entered is not None and window_start <= entered <= as_of:
            recent += 1
    return round_to(recent / window_days, 2)


def build_snapshot(
    data: ActivityData,
    health: GovernanceHealthScore,
    timestamp: str | None = None,
    velocity_window_days: int = 7,
) -> GovernanceSnapshot:
    """
    Snapshot of one health evaluation.

    Args:
        data: The activity data that was scored.
        health: Its health result.
        timestamp: Snapshot time (ISO-8601). Defaults to now; velocity is
            measured against this time.
        velocity_window_days: Trailing window for proposal velocity.
    """
    timestamp = timestamp or _utc_now_iso()
    as_of = parse_timestamp(timestamp) or datetime.now(UTC)
    pipeline = compute_pipeline(data.proposals)

    return GovernanceSnapshot(
        timestamp=timestamp,
        health_score=health.score,
        participation=health.participation.score,
        pipeline_flow=health.pipeline_flow.score,
        follow_through=health.follow_through.score,
        consensus_quality=health.consensus.score,
        active_proposals=pipeline.active,
        total_proposals=pipeline.total,
        active_agents=sum(1 for a in data.agent_stats if a.is_active),
        proposal_velocity=compute_velocity(data.proposals, as_of, velocity_window_days),
    )


def append_snapshot(
    history: Sequence[GovernanceSnapshot],
    snapshot: GovernanceSnapshot,
    max_entries: int | None = None,
) -> list[GovernanceSnapshot]:
    """New history list with `snapshot` appended, oldest entries dropped past the cap."""
    max_entries = config.MAX_HISTORY_ENTRIES if max_entries is None else max_entries
    updated = [*history, snapshot]
    if len(updated) > max_entries:
        dropped = len(updated) - max_entries
        logger.debug(f"History at cap {max_entries}, dropping {dropped} oldest snapshots")
        return updated[dropped:]
    return updated


# =============================================================================
# History artifact
# =============================================================================


def build_history_artifact(
    generated_at: str,
    snapshots: Sequence[GovernanceSnapshot],
    repositories: Sequence[str],
    generated_by: str,
    generator_version: str,
    source_commit_sha: str | None = None,
    missing_repositories: Sequence[str] = (),
    permission_gaps: Sequence[str] = (),
    api_partials: Sequence[str] = (),
    schema_version: int = HISTORY_SCHEMA_VERSION,
    sign: bool = False,
) -> HistoryArtifact:
    """Assemble a history artifact; completeness is partial when any gap list is non-empty."""
    completeness = HistoryCompleteness(
        missing_repositories=list(missing_repositories),
        permission_gaps=list(permission_gaps),
        api_partials=list(api_partials),
    )
    if completeness.has_gaps:
        completeness = completeness.model_copy(update={"status": "partial"})

    artifact = HistoryArtifact(
        schema_version=schema_version,
        generated_at=generated_at,
        snapshots=list(snapshots),
        provenance=HistoryProvenance(
            repositories=list(repositories),
            generated_by=generated_by,
            generator_version=generator_version,
            source_commit_sha=source_commit_sha,
        ),
        completeness=completeness,
    )
    if sign:
        artifact = artifact.model_copy(
            update={"integrity": HistoryIntegrity(digest=compute_history_digest(artifact))}
        )
    return artifact


def _is_snapshot_record(value: Any) -> bool:
    if not isinstance(value, dict):
        return False
    return all(key in value for key in _SNAPSHOT_KEYS)


def _parse_snapshots(raw: Any) -> list[GovernanceSnapshot] | None:
    if not isinstance(raw, list) or not all(_is_snapshot_record(s) for s in raw):
        return None
    try:
        return [GovernanceSnapshot.model_validate(s) for s in raw]
    except ValidationError as e:
        logger.warning(f"Discarding history with invalid snapshots: {e.error_count()} errors")
        return None


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [v for v in value if isinstance(v, str)]


def _string_or(value: Any, default: str | None) -> str | None:
    return value if isinstance(value, str) else default


def parse_history_artifact(raw: Any) -> HistoryArtifact | None:
    """
    Read a parsed history file (legacy list or versioned artifact).

    Returns None when the snapshots are missing or malformed. Missing
    metadata falls back to "unknown" values rather than failing. A legacy
    list becomes schema version 0 with a permission gap noting that its
    provenance is unavailable.
    """
    legacy = _parse_snapshots(raw) if isinstance(raw, list) else None
    if legacy is not None:
        return build_history_artifact(
            generated_at=legacy[-1].timestamp if legacy else EPOCH_TIMESTAMP,
            snapshots=legacy,
            repositories=[],
            generated_by=LEGACY_GENERATOR,
            generator_version="unknown",
            permission_gaps=[LEGACY_PERMISSION_GAP],
            schema_version=LEGACY_SCHEMA_VERSION,
        )

    if not isinstance(raw, dict):
        return None

    snapshots = _parse_snapshots(raw.get("snapshots"))
    if snapshots is None:
        return None

    provenance = raw.get("provenance") if isinstance(raw.get("provenance"), dict) else {}
    completeness = raw.get("completeness") if isinstance(raw.get("completeness"), dict) else {}
    integrity = raw.get("integrity") if isinstance(raw.get("integrity"), dict) else None

    schema_version = raw.get("schemaVersion")
    if not isinstance(schema_version, int) or isinstance(schema_version, bool):
        schema_version = HISTORY_SCHEMA_VERSION

    artifact = build_history_artifact(
        generated_at=_string_or(
            raw.get("generatedAt"), snapshots[-1].timestamp if snapshots else EPOCH_TIMESTAMP
        ),
        snapshots=snapshots,
        repositories=_string_list(provenance.get("repositories")),
        generated_by=_string_or(provenance.get("generatedBy"), "unknown"),
        generator_version=_string_or(provenance.get("generatorVersion"), "unknown"),
        source_commit_sha=_string_or(provenance.get("sourceCommitSha"), None),
        missing_repositories=_string_list(completeness.get("missingRepositories")),
        permission_gaps=_string_list(completeness.get("permissionGaps")),
        api_partials=_string_list(completeness.get("apiPartials")),
        schema_version=schema_version,
    )

    update: dict[str, Any] = {}
    if integrity is not None and integrity.get("algorithm") == "sha256" and isinstance(integrity.get("digest"), str):
        update["integrity"] = HistoryIntegrity(digest=integrity["digest"])
    if completeness.get("status") in ("complete", "partial"):
        update["completeness"] = artifact.completeness.model_copy(update={"status": completeness["status"]})
    return artifact.model_copy(update=update) if update else artifact


# =============================================================================
# Integrity
# =============================================================================


def _canonical_numbers(value: Any) -> Any:
    # Integral floats serialize as integers (1.0 -> 1), matching JSON writers
    # that do not distinguish the two.
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, dict):
        return {k: _canonical_numbers(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_canonical_numbers(v) for v in value]
    return value


def serialize_history_for_integrity(artifact: HistoryArtifact) -> str:
    """Compact JSON of everything except the integrity block, camelCase keys."""
    payload = artifact.model_dump(by_alias=True, mode="json", exclude={"integrity"})
    return json.dumps(_canonical_numbers(payload), separators=(",", ":"), ensure_ascii=False)


def compute_history_digest(artifact: HistoryArtifact) -> str:
    return hashlib.sha256(serialize_history_for_integrity(artifact).encode("utf-8")).hexdigest()


def verify_history_integrity(artifact: HistoryArtifact) -> bool:
    """True when the artifact carries a sha256 digest matching its content."""
    if artifact.integrity is None or artifact.integrity.algorithm != "sha256":
        return False
    return compute_history_digest(artifact) == artifact.integrity.digest
