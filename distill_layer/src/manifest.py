"""
Run manifests and run artifacts.

The manifest records what one distillation run consumed and produced:
input files, stage counts, reduction ratio, covered themes, the most
frequent signals and any errors. Artifacts are written per target and run id:

    <output_dir>/<target>/<run_id>.evidence.json   tiered packs + reports
    <output_dir>/<target>/<run_id>.manifest.json   manifest
    <output_dir>/<target>/<run_id>.cards.jsonl     high-signal cards, one per line
"""

import json
import logging
import uuid
from collections import Counter
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Iterable, Optional

from .schemas.chunk import SourceDocument
from .schemas.profile import DistillationProfile
from .schemas.report import (
    DistillationManifest,
    InputFileInfo,
    ManifestStats,
    TieredEvidence,
)
from .tokenizers import contains_term

if TYPE_CHECKING:
    from .distill import DistillationResult


logger = logging.getLogger(__name__)

TOP_SIGNAL_LIMIT = 10
BYTES_PER_MB = 1024 * 1024


def generate_run_id(target_id: str, created_at: datetime) -> str:
    """Run identifier: {TARGET}_{YYYYMMDDTHHMMSS}_{short uuid}."""
    return f"{target_id}_{created_at.strftime('%Y%m%dT%H%M%S')}_{uuid.uuid4().hex[:8]}"


def input_file_info(documents: Iterable[SourceDocument]) -> list[InputFileInfo]:
    return [
        InputFileInfo(name=d.name, size_mb=round(d.byte_size / BYTES_PER_MB, 3))
        for d in documents
    ]


def compute_top_signals(
    evidence: TieredEvidence,
    profile: DistillationProfile,
    limit: int = TOP_SIGNAL_LIMIT,
) -> list[str]:
    """
    Most frequent configured signals across the high-signal pack.

    Each signal counts at most once per card; ties break alphabetically.
    """
    counts: Counter = Counter()
    for card in evidence.high_signal:
        text = f"{card.quote} {card.claim}"
        for signal in dict.fromkeys(profile.signals.all_signals()):
            if contains_term(text, signal):
                counts[signal] += 1
    ranked = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0].lower()))
    return [signal for signal, _ in ranked[:limit]]


def reduction_ratio(chunks_processed: int, final_card_count: int) -> float:
    """Share of input chunks that did not become a final card."""
    if chunks_processed <= 0:
        return 0.0
    return round(1 - final_card_count / chunks_processed, 4)


def build_manifest(
    run_id: str,
    profile: DistillationProfile,
    created_at: datetime,
    documents: list[SourceDocument],
    evidence: TieredEvidence,
    stats: ManifestStats,
    needs_distillation: bool,
    errors: Optional[list[str]] = None,
) -> DistillationManifest:
    return DistillationManifest(
        run_id=run_id,
        target_id=profile.target_id,
        target_name=profile.target_name,
        timestamp=created_at,
        input_files=input_file_info(documents),
        output_file=f"{profile.target_id}/{run_id}.evidence.json",
        stats=stats,
        top_signals=compute_top_signals(evidence, profile),
        config_version=profile.config_version,
        needs_distillation=needs_distillation,
        errors=list(errors or []),
    )


def build_error_manifest(
    run_id: str,
    target_id: str,
    created_at: datetime,
    documents: list[SourceDocument],
    errors: list[str],
    config_version: str = "2.1.0",
) -> DistillationManifest:
    """Manifest of a run that produced no evidence."""
    return DistillationManifest(
        run_id=run_id,
        target_id=target_id,
        timestamp=created_at,
        input_files=input_file_info(documents),
        stats=ManifestStats(),
        config_version=config_version,
        errors=list(errors),
    )


def save_run_artifacts(result: "DistillationResult", output_dir: Path) -> dict[str, Path]:
    """
    Write the run's evidence, manifest and card lines to disk.

    Returns:
        Mapping of artifact kind to written path
    """
    import jsonlines

    manifest = result.manifest
    run_dir = Path(output_dir) / manifest.target_id
    run_dir.mkdir(parents=True, exist_ok=True)

    evidence_path = run_dir / f"{manifest.run_id}.evidence.json"
    manifest_path = run_dir / f"{manifest.run_id}.manifest.json"
    cards_path = run_dir / f"{manifest.run_id}.cards.jsonl"

    payload = {
        "run_id": manifest.run_id,
        "target_id": manifest.target_id,
        "severity": result.severity.value,
        "evidence": result.evidence.model_dump(mode="json", by_alias=True),
        "coverage": result.coverage.model_dump(mode="json"),
        "dedup": result.dedup.model_dump(mode="json"),
        "prompts": {k: v.model_dump(mode="json") for k, v in result.prompts.items()},
        "notes": list(result.notes),
    }
    with open(evidence_path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, ensure_ascii=False)

    with open(manifest_path, "w", encoding="utf-8") as f:
        json.dump(manifest.model_dump(mode="json"), f, indent=2, ensure_ascii=False)

    with jsonlines.open(cards_path, mode="w") as writer:
        for card in result.evidence.high_signal:
            writer.write(card.model_dump(mode="json", by_alias=True))

    logger.info(f"Saved run {manifest.run_id} artifacts to {run_dir}")
    return {"evidence": evidence_path, "manifest": manifest_path, "cards": cards_path}
