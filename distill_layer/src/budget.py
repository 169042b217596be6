"""
Budget-aware serialization of evidence packs.

A pack is serialized into a flat text block (header, one line per card,
footer). When the block is over its character budget, shrink steps run
in order until it fits:

1. collapse_quotes:  quotes over 100 chars become a 97-char excerpt + "..."
2. drop_cards:       keep min(0.7, budget/length) of the card lines, the
                     head and tail in a 60:30 ratio, with an omitted marker
3. truncate:         hard cut with an explicit warning marker

The result is never over budget; ``shrunk`` / ``truncated`` say what happened.
"""

import json
import logging
import math
from dataclasses import dataclass, field, replace
from functools import lru_cache
from typing import Optional

from .schemas.card import CardRole, ContextCard, EvidenceCard
from .schemas.report import BudgetedPrompt, ProcurementMetrics, TieredEvidence


logger = logging.getLogger(__name__)

QUOTE_COLLAPSE_CHARS = 100
MAX_KEEP_RATIO = 0.7
HEAD_SHARE = 0.6
TAIL_SHARE = 0.3
TRUNCATION_MARKER = "[WARNING: Prompt truncated to fit token budget. Results may be incomplete.]"
OMITTED_MARKER = "[... {count} cards omitted for space ...]"

BRIEFING_MD = "BRIEFING_MD"
PLAYS_MD = "PLAYS_MD"
PROCUREMENT_JSON = "PROCUREMENT_JSON"
ANNEX_JSON = "ANNEX_JSON"

TOKEN_ENCODING = "cl100k_base"


@dataclass(frozen=True)
class PromptBudget:
    """Character and card limits of one downstream prompt type."""
    prompt_type: str
    max_chars: int
    max_cards: int
    max_context: int = 0
    min_cards: int = 0


DEFAULT_PROMPT_BUDGETS: dict[str, PromptBudget] = {
    BRIEFING_MD: PromptBudget(BRIEFING_MD, max_chars=16000, max_cards=40, max_context=10, min_cards=10),
    PLAYS_MD: PromptBudget(PLAYS_MD, max_chars=8000, max_cards=25, max_context=15, min_cards=5),
    PROCUREMENT_JSON: PromptBudget(PROCUREMENT_JSON, max_chars=800, max_cards=0),
    ANNEX_JSON: PromptBudget(ANNEX_JSON, max_chars=10000, max_cards=40),
}


@dataclass
class PromptBlock:
    """Structured text block: card lines are the only droppable part."""
    header: list[str] = field(default_factory=list)
    cards: list[EvidenceCard] = field(default_factory=list)
    context: list[ContextCard] = field(default_factory=list)
    footer: list[str] = field(default_factory=list)
    json_lines: bool = False


def collapse_quote(quote: str, limit: int = QUOTE_COLLAPSE_CHARS) -> str:
    if len(quote) <= limit:
        return quote
    return quote[:limit - 3] + "..."


def format_card_line(card: EvidenceCard, json_lines: bool, quote_limit: Optional[int] = None) -> str:
    quote = collapse_quote(card.quote, quote_limit) if quote_limit else card.quote
    if json_lines:
        return json.dumps({
            "id": card.id,
            "quote": quote,
            "theme": card.primary_theme,
            "csf": card.function_tag.value,
            "class": card.card_class.value,
            "role": card.role.value,
            "confidence": card.confidence.value,
            "source": card.source.document_id,
            "page": card.source.page,
        }, ensure_ascii=False)
    page = f" p.{card.source.page}" if card.source.page is not None else ""
    return (
        f"- [{card.id}] \"{quote}\" | THEME: {card.primary_theme} | CSF: {card.function_tag.value} "
        f"| CLASS: {card.card_class.value} | CONFIDENCE: {card.confidence.value} "
        f"| SOURCE: {card.source.document_id}{page}"
    )


def format_context_line(card: ContextCard, json_lines: bool) -> str:
    if json_lines:
        return json.dumps({
            "id": card.id,
            "summary": card.summary,
            "theme": card.theme,
            "context": True,
        }, ensure_ascii=False)
    return f"- (context) {card.summary} [{card.theme}]"


def _card_lines(block: PromptBlock, quote_limit: Optional[int]) -> list[str]:
    lines = [format_card_line(c, block.json_lines, quote_limit) for c in block.cards]
    lines.extend(format_context_line(c, block.json_lines) for c in block.context)
    return lines


def _join(header: list[str], lines: list[str], footer: list[str]) -> str:
    return "\n".join(header + lines + footer)


def split_head_tail(count: int, keep: int) -> tuple[int, int]:
    """Head/tail sizes for ``keep`` of ``count`` lines in a 60:30 ratio."""
    keep = max(0, min(keep, count))
    head = math.ceil(round(keep * HEAD_SHARE / (HEAD_SHARE + TAIL_SHARE), 6))
    return head, keep - head


def hard_truncate(text: str, max_chars: int) -> str:
    """Cut text so that text + marker fits in ``max_chars``."""
    suffix = "\n\n" + TRUNCATION_MARKER
    if max_chars <= len(suffix):
        return TRUNCATION_MARKER[:max_chars]
    return text[:max_chars - len(suffix)].rstrip() + suffix


def apply_budget(block: PromptBlock, max_chars: int, prompt_type: str = "") -> BudgetedPrompt:
    """
    Render a block within ``max_chars``, shrinking progressively.

    Returns:
        BudgetedPrompt whose text is never longer than ``max_chars``
    """
    lines = _card_lines(block, None)
    text = _join(block.header, lines, block.footer)
    original = len(text)
    steps: list[str] = []
    cards_used = len(block.cards)
    context_used = len(block.context)

    if len(text) > max_chars:
        lines = _card_lines(block, QUOTE_COLLAPSE_CHARS)
        text = _join(block.header, lines, block.footer)
        steps.append("collapse_quotes")

    if len(text) > max_chars and lines:
        keep_ratio = min(MAX_KEEP_RATIO, max_chars / len(text))
        keep = math.floor(round(len(lines) * keep_ratio, 6))
        head, tail = split_head_tail(len(lines), keep)
        omitted = len(lines) - head - tail
        kept_indices = list(range(head)) + list(range(len(lines) - tail, len(lines)))
        reduced = [lines[i] for i in range(head)]
        reduced.append(OMITTED_MARKER.format(count=omitted))
        reduced.extend(lines[len(lines) - tail:])
        lines = reduced
        cards_used = sum(1 for i in kept_indices if i < len(block.cards))
        context_used = len(kept_indices) - cards_used
        text = _join(block.header, lines, block.footer)
        steps.append("drop_cards")

    truncated = False
    if len(text) > max_chars:
        text = hard_truncate(text, max_chars)
        truncated = True
        steps.append("truncate")

    if steps:
        logger.info(
            f"BUDGET: {prompt_type or 'block'} {original} → {len(text)} chars "
            f"(max {max_chars}, steps: {', '.join(steps)})"
        )

    return BudgetedPrompt(
        prompt_type=prompt_type,
        text=text,
        char_count=len(text),
        max_chars=max_chars,
        within_budget=len(text) <= max_chars,
        cards_used=cards_used,
        context_used=context_used,
        original_char_count=original,
        shrunk=bool(steps),
        truncated=truncated,
        shrink_steps=steps,
    )


def _by_total(cards: list[EvidenceCard]) -> list[EvidenceCard]:
    return sorted(cards, key=lambda c: (-c.total, c.id))


def build_block(
    evidence: TieredEvidence,
    budget: PromptBudget,
    target_id: str,
    procurement_metrics: Optional[ProcurementMetrics] = None,
) -> PromptBlock:
    """Select and frame the cards each prompt type receives."""
    prompt_type = budget.prompt_type

    if prompt_type == PROCUREMENT_JSON:
        if procurement_metrics is not None:
            payload = procurement_metrics.model_dump(mode="json")
        else:
            payload = {"note": "No procurement data provided; evidence-based estimates only"}
        metric_cards = [c.id for c in evidence.high_signal if c.role == CardRole.METRIC]
        payload["metric_card_ids"] = metric_cards[:10]
        return PromptBlock(header=[json.dumps(payload, sort_keys=True, ensure_ascii=False)])

    if prompt_type == ANNEX_JSON:
        cards = evidence.high_signal[:budget.max_cards]
        themes = json.dumps(evidence.theme_counts, ensure_ascii=False)
        return PromptBlock(
            header=[f"HIGH-SIGNAL EVIDENCE for {target_id} ({len(cards)} cards, JSON lines):"],
            cards=cards,
            footer=[f"THEME DISTRIBUTION: {themes}"],
            json_lines=True,
        )

    if prompt_type == PLAYS_MD:
        cards = evidence.high_signal[:budget.max_cards]
        context = evidence.context[:budget.max_context]
        return PromptBlock(
            header=[f"EVIDENCE CARDS for {target_id} plays ({len(cards)} high-signal, {len(context)} context):"],
            cards=cards,
            context=context,
            footer=["END OF EVIDENCE"],
        )

    cards = _by_total(evidence.high_signal)[:budget.max_cards]
    context = evidence.context[:budget.max_context]
    return PromptBlock(
        header=[f"EVIDENCE CARDS for {target_id} briefing ({len(cards)} high-signal):"],
        cards=cards,
        context=context,
        footer=["Cite cards as [doc_id:page]. Context cards are background only."],
    )


def compose_budgeted_prompts(
    evidence: TieredEvidence,
    target_id: str,
    procurement_metrics: Optional[ProcurementMetrics] = None,
    budgets: Optional[dict[str, PromptBudget]] = None,
) -> dict[str, BudgetedPrompt]:
    """One budgeted block per prompt type, in budget order."""
    budgets = budgets or DEFAULT_PROMPT_BUDGETS
    prompts: dict[str, BudgetedPrompt] = {}
    for prompt_type, budget in budgets.items():
        if budget.prompt_type != prompt_type:
            budget = replace(budget, prompt_type=prompt_type)
        block = build_block(evidence, budget, target_id, procurement_metrics)
        prompts[prompt_type] = apply_budget(block, budget.max_chars, prompt_type)
    return prompts


def validate_budgeted_prompts(
    prompts: dict[str, BudgetedPrompt],
    budgets: Optional[dict[str, PromptBudget]] = None,
) -> list[str]:
    """
    Check composed blocks for problems a caller should surface.

    Returns:
        Human-readable issues (empty when every block is usable)
    """
    budgets = budgets or DEFAULT_PROMPT_BUDGETS
    issues: list[str] = []
    for prompt_type, prompt in prompts.items():
        if not prompt.within_budget:
            issues.append(f"{prompt_type}: exceeds character budget ({prompt.char_count} chars)")
        if prompt.truncated:
            issues.append(f"{prompt_type}: was truncated, may affect quality")
        if not prompt.text.strip():
            issues.append(f"{prompt_type}: empty block")

        budget = budgets.get(prompt_type)
        if budget and budget.min_cards and prompt.cards_used < budget.min_cards:
            issues.append(
                f"{prompt_type}: insufficient high-signal cards ({prompt.cards_used} < {budget.min_cards})"
            )
        if prompt_type.endswith("_JSON") and ("{" not in prompt.text or "}" not in prompt.text):
            issues.append(f"{prompt_type}: malformed JSON structure")
    return issues


@lru_cache(maxsize=1)
def _token_encoder():
    import tiktoken  # Lazy import

    return tiktoken.get_encoding(TOKEN_ENCODING)


def estimate_tokens(text: str) -> int:
    """Approximate prompt tokens of a block (GPT-4 tokenizer)."""
    return len(_token_encoder().encode(text))
