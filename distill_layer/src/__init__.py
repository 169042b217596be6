"""
Distillation Layer source modules.

Pipeline:
    distill.py      - Main orchestrator
    loaders.py      - Text/PDF files → source documents
    chunk_text.py   - Documents → provenance-tagged chunks
    relevance.py    - Boilerplate + relevance filter
    scoring.py      - Specificity/compliance/budget scores, class/role/confidence
    cards.py        - Chunks → evidence cards
    themes.py       - Deterministic theme tagger
    dedup.py        - Two-pass similarity dedup
    quotas.py       - Per-theme quotas + coverage report
    packing.py      - High-signal / context packs
    budget.py       - Budget-aware prompt blocks
    gates.py        - Coverage banner, quality gates, export decision
    manifest.py     - Run manifest + artifacts
    tokenizers.py   - Normalization, similarity, fingerprints
"""
