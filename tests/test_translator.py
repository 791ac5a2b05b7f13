"""Tests for three-tier string translation."""

import pytest

from lingoscan.dictionary import DictionaryStore
from lingoscan.translator import Translator


@pytest.fixture
def translator(store, zh_entries):
    return Translator(store(zh_entries))


def make_translator(entries):
    store = DictionaryStore()
    store.load_mapping(entries)
    return Translator(store)


class TestExactMatch:
    def test_exact_key(self, translator):
        assert translator.translate("Hello") == "你好"

    def test_surrounding_whitespace_kept(self, translator):
        assert translator.translate("  Hello \n") == "  你好 \n"

    def test_exact_beats_pattern(self):
        translator = make_translator(
            {"Apply 1 changes": "应用一处修改", "Apply %d changes": "应用 %d 处修改"}
        )
        assert translator.translate("Apply 1 changes") == "应用一处修改"
        assert translator.translate("Apply 4 changes") == "应用 4 处修改"

    def test_empty_value_is_a_translation(self):
        translator = make_translator({"Beta": ""})
        assert translator.translate("Beta") == ""


class TestPatternMatch:
    def test_parametric(self, translator):
        assert translator.translate("Apply 3 changes") == "应用 3 处修改"

    def test_parametric_keeps_whitespace(self, translator):
        assert translator.translate(" Apply 12 changes ") == " 应用 12 处修改 "

    def test_first_matching_rule_wins(self):
        translator = make_translator(
            {"Version %d": "版本 %d", "Version %d.%d": "版本 %d 点 %d"}
        )
        assert translator.translate("Version 1.5") == "版本 1.5"


class TestSubstringMatch:
    """Whole-word replacement of long keys inside longer strings."""

    def test_whole_word_replacement(self, translator):
        assert translator.translate("Open Settings now") == "Open 设置 now"

    def test_short_keys_never_substituted(self):
        translator = make_translator({"to": "到"})
        assert translator.translate("photo") == "photo"
        assert translator.translate("go to town") == "go to town"

    def test_partial_words_untouched(self):
        translator = make_translator({"Export": "导出"})
        assert translator.translate("Exporter ready") == "Exporter ready"
        assert translator.translate("Quick Export") == "Quick 导出"

    def test_every_occurrence_replaced(self):
        translator = make_translator({"Layers": "图层"})
        assert translator.translate("Layers and more Layers") == "图层 and more 图层"

    def test_replaced_spans_not_revisited(self):
        translator = make_translator({"Upload": "Upload file", "Upload file": "上传文件"})
        assert translator.translate("Upload now") == "Upload file now"

    def test_rule_skipped_when_value_present(self):
        translator = make_translator({"Layers": "图层"})
        assert translator.translate("图层 Layers") == "图层 Layers"

    def test_no_substring_rules(self):
        translator = make_translator({"Hi": "嗨"})
        assert translator.translate("Hi there") == "Hi there"


class TestAlreadyTranslated:
    def test_translatable(self, translator):
        assert translator.is_already_translated("Hello")
        assert translator.is_already_translated(" Apply 2 changes ")

    def test_unknown(self, translator):
        assert not translator.is_already_translated("Goodbye")
        assert not translator.is_already_translated("   ")

    def test_empty_dictionary_is_identity(self):
        translator = Translator(DictionaryStore())
        assert translator.translate("Hello") == "Hello"
        assert translator.translate("") == ""

    def test_follows_reload(self, store):
        shared = store({"Hello": "你好"})
        translator = Translator(shared)
        shared.load_mapping({"Hello": "こんにちは"})
        assert translator.translate("Hello") == "こんにちは"


class TestProperties:
    """Whole-function guarantees."""

    @pytest.mark.parametrize(
        "text",
        ["Hello", "Apply 42 changes", "Open Settings now", " Hello ", "Goodbye"],
    )
    def test_idempotent_once_localized(self, translator, text):
        once = translator.translate(text)
        assert translator.translate(once) == once

    def test_exact_match_bypasses_substrings(self):
        translator = make_translator({"Settings": "设置", "Open Settings": "打开设置"})
        assert translator.translate("Open Settings") == "打开设置"

    def test_parametric_round_trip(self, translator):
        assert translator.translate("Apply 42 changes") == "应用 42 处修改"
