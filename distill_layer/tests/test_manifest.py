"""Tests for run manifests and saved artifacts."""

import json
import re

import jsonlines

from ..src.distill import distill_documents
from ..src.loaders import documents_from_texts
from ..src.manifest import (
    build_manifest,
    compute_top_signals,
    generate_run_id,
    reduction_ratio,
    save_run_artifacts,
)
from ..src.schemas.report import ManifestStats, TieredEvidence


class TestManifestHelpers:
    """Tests for run ids, ratios and top signals."""

    def test_run_id_format(self, created_at):
        run_id = generate_run_id("DOC", created_at)
        assert re.fullmatch(r"DOC_20250301T120000_[0-9a-f]{8}", run_id)

    def test_reduction_ratio(self):
        assert reduction_ratio(10, 3) == 0.7
        assert reduction_ratio(3, 2) == 0.3333
        assert reduction_ratio(0, 0) == 0.0

    def test_top_signals_count_once_per_card(self, profile, card_factory):
        """Repeats inside one card count once; ties sort alphabetically."""
        evidence = TieredEvidence(high_signal=[
            card_factory("a.txt:1:0", "FISMA and FISMA audits of the SOC"),
            card_factory("b.txt:1:0", "FISMA reporting continued"),
            card_factory("c.txt:1:0", "SOC staffing grew"),
        ])
        assert compute_top_signals(evidence, profile) == ["FISMA", "SOC"]

    def test_build_manifest(self, profile, created_at):
        docs = documents_from_texts({"memo.txt": "x" * 2048})
        manifest = build_manifest(
            run_id="DOC_run",
            profile=profile,
            created_at=created_at,
            documents=docs,
            evidence=TieredEvidence(),
            stats=ManifestStats(chunks_processed=1),
            needs_distillation=False,
            errors=["bad.pdf: ValueError: broken"],
        )
        assert manifest.target_name == "Department of Commerce"
        assert manifest.output_file == "DOC/DOC_run.evidence.json"
        assert manifest.input_files[0].size_mb == 0.002
        assert manifest.config_version == profile.config_version
        assert manifest.errors == ["bad.pdf: ValueError: broken"]


class TestSaveArtifacts:
    """Tests for save_run_artifacts."""

    def test_writes_three_files(self, tmp_path, settings, created_at):
        docs = documents_from_texts({
            "memo.txt": (
                "The Department of Commerce shall enforce MFA under OMB M-19-17.\n\n"
                "NOAA must fund its SIEM with $12 million in FY2025."
            ),
        })
        result = distill_documents(docs, target="DOC", settings=settings, run_id="DOC_test", created_at=created_at)
        paths = save_run_artifacts(result, tmp_path)

        assert paths["evidence"] == tmp_path / "DOC" / "DOC_test.evidence.json"
        evidence = json.loads(paths["evidence"].read_text(encoding="utf-8"))
        assert evidence["run_id"] == "DOC_test"
        assert len(evidence["evidence"]["high_signal"]) == len(result.evidence.high_signal)
        assert "class" in evidence["evidence"]["high_signal"][0]

        manifest = json.loads(paths["manifest"].read_text(encoding="utf-8"))
        assert manifest["stats"]["chunks_processed"] == 2

        with jsonlines.open(paths["cards"]) as reader:
            lines = list(reader)
        assert [line["id"] for line in lines] == [c.id for c in result.evidence.high_signal]
