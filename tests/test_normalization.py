"""
Tests for text normalization.

Tests cover:
- HTML tag stripping and entity decoding
- Punctuation runs, symbol removal, parentheses, digit/letter spacing
- Idempotence and empty input
- Generation eligibility and change detection
"""
import pytest

from tts_cache.utils.text import (
    clean_text_for_tts,
    has_text_changed,
    should_generate_tts,
    strip_html_tags,
)


class TestStripHtml:
    def test_tags_removed(self):
        assert strip_html_tags("<p>Hello <b>world</b></p>") == "Hello world"

    def test_entities_decoded(self):
        assert strip_html_tags("Tom &amp; Jerry&nbsp;&lt;3") == "Tom & Jerry <3"

    def test_double_escaped_entities_fully_decoded(self):
        assert strip_html_tags("a &amp;lt;b&amp;gt; R&amp;D") == "a <b> R&D"

    def test_whitespace_collapsed(self):
        assert strip_html_tags("<p>a</p>\n\n<p>  b\t c</p>") == "a b c"

    @pytest.mark.parametrize("value", [None, "", "<br/>"])
    def test_empty(self, value):
        assert strip_html_tags(value) == ""


class TestCleanTextForTts:
    def test_repeated_punctuation_collapsed(self):
        assert clean_text_for_tts("정말요?!?! 네... 좋아요!!!") == "정말요! 네. 좋아요!"

    def test_symbols_removed(self):
        assert clean_text_for_tts("**강조** #태그 @사람 ~물결~ `코드` a|b ^") == "강조 태그 사람 물결 코드 ab"

    def test_parentheses_padded(self):
        assert clean_text_for_tts("서울(Seoul)에서") == "서울 ( Seoul ) 에서"

    def test_digits_separated_from_units(self):
        assert clean_text_for_tts("100kg 3개 2024년") == "100 kg 3 개 2024 년"

    def test_html_article(self):
        markup = "<h1>제목</h1><p>첫 번째 문장입니다.</p><p>두 번째&nbsp;문장!!</p>"
        assert clean_text_for_tts(markup) == "제목첫 번째 문장입니다.두 번째 문장!"

    def test_idempotent(self):
        once = clean_text_for_tts("<p>Hello!!  (world) 10km</p>")
        assert clean_text_for_tts(once) == once

    @pytest.mark.parametrize("value", [None, "", "   ", "<p> </p>", "***"])
    def test_nothing_to_speak(self, value):
        assert clean_text_for_tts(value) == ""


class TestShouldGenerate:
    def test_eligible_category_and_length(self):
        assert should_generate_tts("essay", "가" * 50) is True

    def test_category_case_insensitive(self):
        assert should_generate_tts(" Essay ", "가" * 50) is True

    def test_short_text(self):
        assert should_generate_tts("essay", "가" * 49) is False

    def test_markup_not_counted(self):
        assert should_generate_tts("essay", "<p>" + "가" * 40 + "</p>") is False

    def test_other_category(self):
        assert should_generate_tts("news", "가" * 500) is False
        assert should_generate_tts(None, "가" * 500) is False

    def test_custom_categories(self):
        assert should_generate_tts("column", "x" * 10, min_chars=5, categories=["essay", "column"]) is True


class TestHasTextChanged:
    def test_markup_only_edit(self):
        assert has_text_changed("<p>같은 글</p>", "<div>같은   글</div>") is False

    def test_text_edit(self):
        assert has_text_changed("<p>같은 글</p>", "<p>다른 글</p>") is True
