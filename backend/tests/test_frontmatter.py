"""Tests for the frontmatter codec (pure functions, no I/O)."""

import pytest

from nordwiki.exceptions import ValidationError
from nordwiki.storage.frontmatter import (
    BODY_MARKER,
    FrontmatterCodec,
    format_list,
    parse_bool,
    parse_list,
)

codec = FrontmatterCodec()


class TestDecode:

    def test_single_block(self):
        fm, body = codec.decode("---\ntitle: Garvia\nstatus: published\n---\n# Garvia\n")
        assert fm == {"title": "Garvia", "status": "published"}
        assert body == "# Garvia\n"

    def test_no_frontmatter_returns_whole_text(self):
        fm, body = codec.decode("# Just a body\n\n---\nnot: frontmatter\n---\n")
        assert fm == {}
        assert body == "# Just a body\n\n---\nnot: frontmatter\n---\n"

    def test_consecutive_blocks_merge_last_wins(self):
        text = (
            "---\ntitle: Garvia\nlive_sync_enabled: \"true\"\n---\n"
            "\n"
            "---\ntitle: Garvia (fixed)\n---\n"
            "Body text"
        )
        fm, body = codec.decode(text)
        assert fm == {"title": "Garvia (fixed)", "live_sync_enabled": "true"}
        assert body == "Body text"

    def test_quotes_are_unwrapped_once(self):
        fm, _ = codec.decode("---\na: \"x\"\nb: 'y'\nc: \"'z'\"\n---\n")
        assert fm == {"a": "x", "b": "y", "c": "'z'"}

    def test_bytes_and_bom(self):
        fm, body = codec.decode("\ufeff---\ntitle: T\n---\nbody".encode("utf-8"))
        assert fm == {"title": "T"}
        assert body == "body"

    def test_unclosed_block_is_body(self):
        text = "---\ntitle: T\nbody without closing fence\n"
        fm, body = codec.decode(text)
        assert fm == {}
        assert body == text

    def test_block_with_prose_is_not_frontmatter(self):
        text = "---\nThis is a horizontal rule section\n---\n"
        fm, body = codec.decode(text)
        assert fm == {}
        assert body == text

    def test_indented_list_continuation(self):
        fm, _ = codec.decode("---\ntags:\n  - lore\n  - towns\n---\n")
        assert parse_list(fm["tags"]) == ["lore", "towns"]

    def test_comments_and_blank_lines_ignored(self):
        fm, _ = codec.decode("---\n# comment\n\ntitle: T\n---\n")
        assert fm == {"title": "T"}

    @pytest.mark.parametrize("tail", ["---\n\n---\nText", "---\n# Chapter one\n---\nText"])
    def test_later_block_without_keys_is_body(self, tail):
        fm, body = codec.decode("---\ntitle: X\n---\n" + tail)
        assert fm == {"title": "X"}
        assert body == tail

    def test_one_marker_after_blocks_is_dropped(self):
        fm, body = codec.decode(f"---\ntitle: X\n---\n{BODY_MARKER}\n{BODY_MARKER}\nText")
        assert fm == {"title": "X"}
        assert body == f"{BODY_MARKER}\nText"

    def test_marker_without_frontmatter_is_body(self):
        text = f"{BODY_MARKER}\nText"
        assert codec.decode(text) == ({}, text)


class TestEncode:

    def test_round_trip_preserves_map_and_body(self):
        fm = {"title": "Garvia", "live_sync_enabled": "true", "note": "  padded  "}
        body = "# Garvia\n\n---\nkey: value inside body\n---\n"
        decoded_fm, decoded_body = codec.decode(codec.encode(fm, body))
        assert decoded_fm == fm
        assert decoded_body == body

    def test_emits_exactly_one_block(self):
        merged, body = codec.decode("---\na: 1\n---\n---\nb: 2\n---\nbody")
        text = codec.encode(merged, body)
        assert text == "---\na: 1\nb: 2\n---\nbody"

    @pytest.mark.parametrize("body", [
        "---\n# Chapter one\n---\nText",
        "---\nNote: read this first\n---\nText",
        "---\n\n---\nText",
        "\n---\nNote: after a blank line\n---\n",
        f"{BODY_MARKER}\nText",
    ])
    def test_body_opening_with_fences_round_trips(self, body):
        fm = {"title": "X"}
        assert codec.decode(codec.encode(fm, body)) == (fm, body)

    def test_keyed_block_in_body_is_marked(self):
        text = codec.encode({"title": "X"}, "---\nNote: read this first\n---\nText")
        assert text == f"---\ntitle: X\n---\n{BODY_MARKER}\n---\nNote: read this first\n---\nText"

    def test_empty_map_with_fenced_body_round_trips(self):
        body = "---\nNote: x\n---\n"
        assert codec.decode(codec.encode({}, body)) == ({}, body)

    def test_value_wrapped_in_quotes_survives(self):
        fm = {"quote": '"already quoted"'}
        assert codec.decode(codec.encode(fm, ""))[0] == fm

    def test_multiline_value_rejected(self):
        with pytest.raises(ValidationError):
            codec.encode({"title": "a\nb"}, "")

    def test_bad_key_rejected(self):
        with pytest.raises(ValidationError):
            codec.encode({"a:b": "x"}, "")


class TestHelpers:

    @pytest.mark.parametrize("value", ["true", "TRUE", "yes", "On", "1"])
    def test_parse_bool_true(self, value):
        assert parse_bool(value) is True

    @pytest.mark.parametrize("value", [None, "", "false", "no", "maybe"])
    def test_parse_bool_false(self, value):
        assert parse_bool(value) is False

    def test_parse_list_bracketed(self):
        assert parse_list("[lore, 'towns', ]") == ["lore", "towns"]

    def test_format_list_skips_blanks(self):
        assert format_list(["lore", " ", " towns "]) == "lore, towns"
