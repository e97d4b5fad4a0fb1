"""Subtitle translation in fixed-size batches using LLMs (Gemini and Ollama)."""

import json
import logging
import re
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import Callable, Iterable, Sequence

import ollama
from openai import OpenAI

from .config import Config
from .exceptions import ConfigError, TranslationError
from .models import SubtitleSegment

logger = logging.getLogger(__name__)

TRANSLATION_SYSTEM_PROMPT = """You are a professional subtitle translator helping students learn English from news broadcasts. Translate the following English subtitles into {target_lang}.

Rules:
1. Return one entry per input entry, keeping each "id" unchanged
2. Keep translations natural and concise, suitable for subtitles
3. Do not merge, split, add or remove entries
4. Return ONLY valid JSON, no other text

Input format: [{{"id": 1, "text": "original text"}}, ...]
Output format: [{{"id": 1, "translation": "translated text"}}, ...]"""

DEFAULT_BATCH_SIZE = 15

# (items) -> [{"id": ..., "translation": ...}]; may raise on any failure
BatchTranslator = Callable[[list[dict]], list[dict]]
ProgressCallback = Callable[[int, int], None]


def batch_segments(
    segments: Sequence[SubtitleSegment], batch_size: int = DEFAULT_BATCH_SIZE
) -> list[list[SubtitleSegment]]:
    """Split segments into consecutive batches of ``batch_size``.

    The last batch may be shorter.
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be >= 1, got {batch_size}")
    return [list(segments[i:i + batch_size]) for i in range(0, len(segments), batch_size)]


def _fix_json(text: str) -> str:
    """Attempt to fix common JSON issues from LLM output."""
    # Remove markdown code blocks
    text = re.sub(r"^```(?:json)?\s*", "", text, flags=re.MULTILINE)
    text = re.sub(r"^```\s*$", "", text, flags=re.MULTILINE)

    match = re.search(r"\[.*\]", text, re.DOTALL)
    if not match:
        raise TranslationError("Could not find JSON array in response")

    json_str = match.group()

    # Trailing commas before ] or }
    json_str = re.sub(r",\s*]", "]", json_str)
    json_str = re.sub(r",\s*}", "}", json_str)
    return json_str


def parse_translation_response(response: str) -> list[dict]:
    """Parse an LLM reply into ``[{"id": int, "translation": str}]``.

    Entries without a usable id or translation are dropped.

    Raises:
        TranslationError: If no JSON array can be recovered
    """
    try:
        items = json.loads(_fix_json(response))
    except json.JSONDecodeError as e:
        raise TranslationError(f"Invalid JSON in response: {e}\nResponse: {response[:500]}") from e

    results = []
    for item in items:
        if not isinstance(item, dict):
            continue
        try:
            seg_id = int(item["id"])
        except (KeyError, TypeError, ValueError):
            continue
        translation = item.get("translation")
        if isinstance(translation, str):
            results.append({"id": seg_id, "translation": translation})
    return results


def _merge_batch(batch: list[SubtitleSegment], results: list[dict]) -> list[SubtitleSegment]:
    """Append translations to the matching segments by id."""
    if not isinstance(results, list):
        raise TranslationError(f"Expected a list of translations, got {type(results).__name__}")

    trans_by_id = {}
    for item in results:
        try:
            trans_by_id[int(item["id"])] = item["translation"]
        except (KeyError, TypeError, ValueError):
            continue

    merged = []
    for seg in batch:
        translation = trans_by_id.get(seg.id)
        if isinstance(translation, str) and translation.strip():
            merged.append(seg.with_translation(translation.strip()))
        else:
            merged.append(seg)
    return merged


def _run_batch(translate_batch: BatchTranslator, batch: list[SubtitleSegment]) -> list[SubtitleSegment]:
    """Translate one batch; on failure return it unchanged."""
    input_data = [{"id": s.id, "text": s.text} for s in batch]
    try:
        return _merge_batch(batch, translate_batch(input_data))
    except Exception as e:
        logger.warning(
            "Translation batch %d-%d failed, keeping original text: %s",
            batch[0].id,
            batch[-1].id,
            e,
        )
        return list(batch)


def _collect(
    batches: list[list[SubtitleSegment]],
    results: Iterable[list[SubtitleSegment]],
    total: int,
    on_progress: ProgressCallback | None,
) -> list[SubtitleSegment]:
    translated = []
    completed = 0
    for batch, batch_result in zip(batches, results):
        translated.extend(batch_result)
        completed += len(batch)
        if on_progress:
            on_progress(completed, total)
    return translated


def translate_all(
    segments: Sequence[SubtitleSegment],
    translate_batch: BatchTranslator,
    batch_size: int = DEFAULT_BATCH_SIZE,
    on_progress: ProgressCallback | None = None,
    concurrency_limit: int = 1,
) -> list[SubtitleSegment]:
    """Translate all segments batch by batch.

    Batches run one after another unless ``concurrency_limit`` allows
    more in flight; either way results are merged and progress reported
    in batch order. A failed batch passes through untranslated.

    Args:
        segments: Segments to translate
        translate_batch: Callable taking ``[{"id", "text"}]`` and returning
            ``[{"id", "translation"}]``
        batch_size: Segments per request
        on_progress: Called with (segments attempted so far, total) after
            every batch
        concurrency_limit: Maximum batches in flight

    Returns:
        New list of segments, same length and order as the input
    """
    if concurrency_limit < 1:
        raise ValueError(f"concurrency_limit must be >= 1, got {concurrency_limit}")

    batches = batch_segments(segments, batch_size)
    total = len(segments)
    run = partial(_run_batch, translate_batch)
    logger.info("Translating %d segments in %d batches", total, len(batches))

    if concurrency_limit > 1:
        with ThreadPoolExecutor(max_workers=concurrency_limit) as pool:
            return _collect(batches, pool.map(run, batches), total, on_progress)
    return _collect(batches, map(run, batches), total, on_progress)


class LLMTranslator:
    """Batch translator over an OpenAI-compatible chat completions API."""

    def __init__(self, client: OpenAI, model: str, target_lang: str = "zh", temperature: float = 0.3):
        self.client = client
        self.model = model
        self.target_lang = target_lang
        self.temperature = temperature

    def __call__(self, items: list[dict]) -> list[dict]:
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {
                    "role": "system",
                    "content": TRANSLATION_SYSTEM_PROMPT.format(
                        target_lang=get_language_name(self.target_lang)
                    ),
                },
                {"role": "user", "content": json.dumps(items, ensure_ascii=False)},
            ],
            temperature=self.temperature,
        )

        result_text = response.choices[0].message.content
        if not result_text:
            raise TranslationError("Empty response from translation model")
        return parse_translation_response(result_text)


class OllamaTranslator:
    """Batch translator over a local Ollama model."""

    def __init__(self, model: str = "llama3.1:8b", target_lang: str = "zh", temperature: float = 0.3):
        self.model = model
        self.target_lang = target_lang
        self.temperature = temperature

    def __call__(self, items: list[dict]) -> list[dict]:
        response = ollama.chat(
            model=self.model,
            messages=[
                {
                    "role": "system",
                    "content": TRANSLATION_SYSTEM_PROMPT.format(
                        target_lang=get_language_name(self.target_lang)
                    ),
                },
                {"role": "user", "content": json.dumps(items, ensure_ascii=False)},
            ],
            options={"temperature": self.temperature},
        )

        return parse_translation_response(response["message"]["content"])


LANGUAGE_NAMES = {
    "en": "English",
    "zh": "Simplified Chinese",
    "zh-tw": "Traditional Chinese",
    "ja": "Japanese",
    "ko": "Korean",
    "es": "Spanish",
    "fr": "French",
    "de": "German",
    "it": "Italian",
    "pt": "Portuguese",
    "ru": "Russian",
    "ar": "Arabic",
    "hi": "Hindi",
    "th": "Thai",
    "vi": "Vietnamese",
}


def get_language_name(code: str) -> str:
    """Get full language name from code."""
    return LANGUAGE_NAMES.get(code.lower(), code)


def build_translator(
    config: Config,
    provider: str = "gemini",
    target_lang: str | None = None,
) -> BatchTranslator:
    """Create the batch translator for ``provider``."""
    target_lang = target_lang or config.target_language
    if provider == "gemini":
        if not config.has_gemini():
            raise ConfigError("GEMINI_API_KEY environment variable required for Gemini translation")
        client = OpenAI(api_key=config.gemini_api_key, base_url=config.gemini_base_url)
        return LLMTranslator(client, config.gemini_model, target_lang)
    elif provider == "ollama":
        return OllamaTranslator(config.ollama_model, target_lang)
    else:
        raise ValueError(f"Unknown translation provider: {provider}")
