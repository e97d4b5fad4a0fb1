import json
from types import SimpleNamespace

import pytest

import newslingo.translate as translate_mod
from newslingo.config import Config
from newslingo.exceptions import ConfigError, TranslationError
from newslingo.translate import (
    LLMTranslator,
    OllamaTranslator,
    batch_segments,
    build_translator,
    parse_translation_response,
    translate_all,
)

from conftest import make_segments


def _echo_translator(items):
    return [{"id": item["id"], "translation": f"T{item['id']}"} for item in items]


def test_batch_segments_fixed_size_with_short_tail():
    batches = batch_segments(make_segments(35), 15)

    assert [len(b) for b in batches] == [15, 15, 5]
    assert [s.id for s in batches[2]] == [31, 32, 33, 34, 35]


def test_batch_segments_rejects_bad_size():
    with pytest.raises(ValueError):
        batch_segments(make_segments(3), 0)


def test_translate_all_appends_translation():
    segments = make_segments(3)

    result = translate_all(segments, _echo_translator)

    assert [s.text for s in result] == ["line 1\nT1", "line 2\nT2", "line 3\nT3"]
    assert [s.start_time for s in result] == [s.start_time for s in segments]
    # the input sequence is left untouched
    assert [s.text for s in segments] == ["line 1", "line 2", "line 3"]


def test_translate_all_sends_id_and_text_per_batch():
    calls = []

    def translator(items):
        calls.append(items)
        return _echo_translator(items)

    translate_all(make_segments(5), translator, batch_size=2)

    assert calls == [
        [{"id": 1, "text": "line 1"}, {"id": 2, "text": "line 2"}],
        [{"id": 3, "text": "line 3"}, {"id": 4, "text": "line 4"}],
        [{"id": 5, "text": "line 5"}],
    ]


def test_translate_all_matches_by_id_not_position():
    def reversed_translator(items):
        return list(reversed(_echo_translator(items)))

    result = translate_all(make_segments(3), reversed_translator)

    assert [s.text for s in result] == ["line 1\nT1", "line 2\nT2", "line 3\nT3"]


def test_translate_all_missing_id_keeps_original_text():
    def lossy_translator(items):
        return [r for r in _echo_translator(items) if r["id"] != 2]

    result = translate_all(make_segments(3), lossy_translator)

    assert result[1].text == "line 2"
    assert result[0].text == "line 1\nT1"
    assert result[2].text == "line 3\nT3"


def test_translate_all_accepts_string_ids():
    def stringly_translator(items):
        return [{"id": str(r["id"]), "translation": r["translation"]} for r in _echo_translator(items)]

    result = translate_all(make_segments(2), stringly_translator)

    assert result[1].text == "line 2\nT2"


def test_translate_all_skips_non_string_translation():
    def mixed_translator(items):
        return [{"id": 1, "translation": "ok"}, {"id": 2, "translation": 5}]

    result = translate_all(make_segments(2), mixed_translator)

    assert [s.text for s in result] == ["line 1\nok", "line 2"]


def test_translate_all_isolates_failed_batch():
    def flaky_translator(items):
        if items[0]["id"] == 1:
            raise RuntimeError("network down")
        return _echo_translator(items)

    result = translate_all(make_segments(5), flaky_translator, batch_size=2)

    assert len(result) == 5
    assert [s.text for s in result[:2]] == ["line 1", "line 2"]
    assert [s.text for s in result[2:]] == ["line 3\nT3", "line 4\nT4", "line 5\nT5"]


def test_translate_all_bad_result_shape_counts_as_failure():
    result = translate_all(make_segments(2), lambda items: "not a list")

    assert [s.text for s in result] == ["line 1", "line 2"]


def test_translate_all_reports_cumulative_progress():
    progress = []

    def failing_middle(items):
        if items[0]["id"] == 3:
            raise TranslationError("bad json")
        return _echo_translator(items)

    translate_all(
        make_segments(5),
        failing_middle,
        batch_size=2,
        on_progress=lambda done, total: progress.append((done, total)),
    )

    assert progress == [(2, 5), (4, 5), (5, 5)]


def test_translate_all_empty_input():
    progress = []

    assert translate_all([], _echo_translator, on_progress=lambda *a: progress.append(a)) == []
    assert progress == []


def test_translate_all_with_concurrency_keeps_order():
    progress = []
    result = translate_all(
        make_segments(10),
        _echo_translator,
        batch_size=3,
        on_progress=lambda done, total: progress.append(done),
        concurrency_limit=3,
    )

    assert [s.text for s in result] == [f"line {i}\nT{i}" for i in range(1, 11)]
    assert progress == [3, 6, 9, 10]


def test_translate_all_rejects_bad_concurrency():
    with pytest.raises(ValueError):
        translate_all(make_segments(1), _echo_translator, concurrency_limit=0)


def test_parse_translation_response_strips_fences_and_trailing_commas():
    response = '```json\n[{"id": 1, "translation": "你好"}, {"id": 2, "translation": "再见"},]\n```'

    assert parse_translation_response(response) == [
        {"id": 1, "translation": "你好"},
        {"id": 2, "translation": "再见"},
    ]


def test_parse_translation_response_drops_unusable_entries():
    response = '[{"id": 1}, {"translation": "x"}, "junk", {"id": "2", "translation": "ok"}]'

    assert parse_translation_response(response) == [{"id": 2, "translation": "ok"}]


@pytest.mark.parametrize("response", ["Sorry, I cannot help.", "[{not json}]"])
def test_parse_translation_response_errors(response):
    with pytest.raises(TranslationError):
        parse_translation_response(response)


class _FakeCompletions:
    def __init__(self, content):
        self.content = content
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _fake_client(content):
    completions = _FakeCompletions(content)
    return SimpleNamespace(chat=SimpleNamespace(completions=completions)), completions


def test_llm_translator_builds_request_and_parses_reply():
    client, completions = _fake_client('```json\n[{"id": 1, "translation": "你好"}]\n```')
    translator = LLMTranslator(client, "gemini-2.5-flash", target_lang="zh")

    result = translator([{"id": 1, "text": "Hello"}])

    assert result == [{"id": 1, "translation": "你好"}]
    call = completions.calls[0]
    assert call["model"] == "gemini-2.5-flash"
    assert "Simplified Chinese" in call["messages"][0]["content"]
    assert json.loads(call["messages"][1]["content"]) == [{"id": 1, "text": "Hello"}]


def test_llm_translator_empty_reply_raises():
    client, _ = _fake_client(None)

    with pytest.raises(TranslationError):
        LLMTranslator(client, "model")([{"id": 1, "text": "Hello"}])


def test_ollama_translator(monkeypatch):
    calls = []

    def fake_chat(**kwargs):
        calls.append(kwargs)
        return {"message": {"content": '[{"id": 4, "translation": "Hola"}]'}}

    monkeypatch.setattr(translate_mod.ollama, "chat", fake_chat)

    result = OllamaTranslator("llama3.1:8b", target_lang="es")([{"id": 4, "text": "Hello"}])

    assert result == [{"id": 4, "translation": "Hola"}]
    assert calls[0]["model"] == "llama3.1:8b"
    assert "Spanish" in calls[0]["messages"][0]["content"]


def test_build_translator_requires_gemini_key():
    with pytest.raises(ConfigError):
        build_translator(Config(gemini_api_key=None), "gemini")


def test_build_translator_providers():
    config = Config(gemini_api_key="test-key", target_language="ja")

    gemini = build_translator(config, "gemini")
    assert isinstance(gemini, LLMTranslator)
    assert gemini.model == "gemini-2.5-flash"
    assert gemini.target_lang == "ja"

    ollama_translator = build_translator(config, "ollama", target_lang="es")
    assert isinstance(ollama_translator, OllamaTranslator)
    assert ollama_translator.target_lang == "es"

    with pytest.raises(ValueError):
        build_translator(config, "bogus")
