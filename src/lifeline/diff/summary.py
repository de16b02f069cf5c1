"""Natural-language summaries of diff results.

The prompt gives the model the diff counters and up to ``top_n`` of the
most significant changed items.  Near-identical items (similarity 0.99
or more) and items that could not be classified are left out of the
highlights.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from openai import AsyncOpenAI

from lifeline.config import DEFAULT_SUMMARY_MODEL
from lifeline.models import ChangedItem, ChangeType, DiffResult
from lifeline.observability import get_logger

log = get_logger("lifeline.diff.summary")

SUMMARY_FAILED = "Automated summary generation failed."
SUMMARY_UNAVAILABLE = "Automated summary not available."
NO_MODEL = "none"

SYSTEM_PROMPT = (
    "You are an expert Notion workspace analyst. Your goal is to provide a concise, "
    "insightful, and helpful summary of changes between two snapshots of a user's "
    "workspace. Focus on what would be most relevant to a user trying to understand "
    "what happened."
)

_UNRANKED = frozenset({ChangeType.PENDING_SEMANTIC_CHECK, ChangeType.NO_EMBEDDINGS_FOUND})


@dataclass
class GeneratedText:
    text: str
    tokens: int
    model: str


@runtime_checkable
class TextGenerator(Protocol):
    """Completes a system + user prompt pair."""

    async def generate(self, system: str, prompt: str) -> GeneratedText: ...


class OpenAITextGenerator:
    """:class:`TextGenerator` backed by OpenAI chat completions."""

    def __init__(
        self,
        client: AsyncOpenAI | None = None,
        api_key: str | None = None,
        model: str = DEFAULT_SUMMARY_MODEL,
        temperature: float = 0.4,
        max_tokens: int = 250,
    ) -> None:
        self._client = client or AsyncOpenAI(api_key=api_key)
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

    async def generate(self, system: str, prompt: str) -> GeneratedText:
        completion = await self._client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        content = completion.choices[0].message.content if completion.choices else None
        tokens = completion.usage.total_tokens if completion.usage else 0
        return GeneratedText(text=(content or "").strip(), tokens=tokens, model=self.model)


def is_highlight(item: ChangedItem) -> bool:
    if item.change_type in _UNRANKED:
        return False
    if item.change_type is ChangeType.HASH_ONLY_SIMILAR and (item.similarity_score or 0) >= 0.99:
        return False
    return True


def format_highlight(item: ChangedItem) -> str:
    """One bullet line, e.g. ``• block "Intro" - semantic divergence (Similarity: 42%)``."""
    kind = item.kind.value if item.kind else "Item"
    name = item.name or "Unnamed"
    change = item.change_type.value.replace("_", " ")
    similarity = "N/A" if item.similarity_score is None else f"{item.similarity_score * 100:.0f}%"
    return f'• {kind} "{name}" - {change} (Similarity: {similarity})'


def build_summary_prompt(result: DiffResult, top_n: int = 10) -> str:
    s = result.summary
    highlights = [format_highlight(i) for i in result.changed_items if is_highlight(i)][:top_n]
    if highlights:
        highlight_block = f"Highlights of Modified Items (up to {top_n} shown):\n" + "\n".join(highlights)
    else:
        highlight_block = (
            "No specific modified items highlighted due to similarity or lack of "
            "detailed changes available."
        )
    return "\n".join([
        "Based on the following changes between two snapshots of a Notion workspace, "
        "please provide a summary.",
        "",
        "Key Statistics:",
        f"- Items Added: {s.added}",
        f"- Items Deleted: {s.deleted}",
        f"- Items Modified (content hash changed): {s.content_hash_changed}",
        f"  - Of these modified items, {s.semantically_similar} were found to be "
        "semantically similar to their previous version.",
        f"  - And {s.semantically_changed} were found to have significant semantic "
        "differences from their previous version.",
        "",
        highlight_block,
        "",
        "Please provide a crisp 3-sentence summary of the most important changes, "
        "followed by up to 3 actionable bullet-point recommendations or observations "
        "for the user.",
        'Format your response clearly with "Summary:" and "Recommendations:" headings.',
    ])


async def summarize(result: DiffResult, generator: TextGenerator | None, top_n: int = 10) -> None:
    """Fill the ``llm_*`` fields of *result*.

    Never raises: a missing generator or a failed call stores a
    placeholder instead.
    """
    if generator is None:
        result.llm_summary, result.llm_model, result.llm_tokens = SUMMARY_UNAVAILABLE, NO_MODEL, 0
        return
    try:
        generated = await generator.generate(SYSTEM_PROMPT, build_summary_prompt(result, top_n))
    except Exception as exc:
        log.warning(
            "Summary generation failed",
            extra={"extra_fields": {"job_id": result.job_id, "error": str(exc)}},
        )
        result.llm_summary, result.llm_model, result.llm_tokens = SUMMARY_FAILED, NO_MODEL, 0
        return
    result.llm_summary = generated.text or SUMMARY_FAILED
    result.llm_model = generated.model
    result.llm_tokens = generated.tokens
