"""Unit tests for the format-aware TextChunker."""

from __future__ import annotations

import re

import pytest

from docrag.models.document import FormatFamily
from docrag.services.ingestion.chunker import TextChunker

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_chunker(**overrides) -> TextChunker:
    """Build a TextChunker with the production defaults unless overridden."""
    return TextChunker(**overrides)


def _tokens(count: int) -> str:
    """``token0000 token0001 ...``: fixed-width words, 10 chars per word + space."""
    return " ".join(f"token{i:04d}" for i in range(count))


# ---------------------------------------------------------------------------
# Generic prose
# ---------------------------------------------------------------------------


class TestGenericChunking:
    def test_empty_text_returns_no_segments(self) -> None:
        assert _make_chunker().chunk("", FormatFamily.TEXT) == []
        assert _make_chunker().chunk(" \n\t ", FormatFamily.TEXT) == []

    def test_short_text_is_one_normalized_segment(self) -> None:
        raw = "Short note.\r\n\r\n\r\nSecond   line  "
        assert _make_chunker().chunk(raw, FormatFamily.TEXT) == ["Short note.\nSecond line"]

    def test_text_below_minimum_length_still_returned_whole(self) -> None:
        assert _make_chunker().chunk("tiny", FormatFamily.TEXT) == ["tiny"]

    def test_text_exactly_chunk_size_is_one_segment(self) -> None:
        text = "a" * 1000
        assert _make_chunker().chunk(text, FormatFamily.TEXT) == [text]

    def test_2500_characters_yield_three_overlapping_segments(self) -> None:
        text = ("word " * 500).strip()
        segments = _make_chunker(chunk_size=1000, overlap=100).chunk(text, FormatFamily.TEXT)

        assert len(segments) == 3
        # Segment 2 starts 900 characters into segment 1.
        assert segments[1].startswith(segments[0][900:])
        assert segments[2].startswith(segments[1][900:])

    def test_cut_walks_back_to_word_boundary(self) -> None:
        text = _tokens(300)
        segments = _make_chunker(chunk_size=995, overlap=100).chunk(text, FormatFamily.TEXT)

        assert len(segments) > 1
        for segment in segments:
            for word in segment.split(" "):
                assert re.fullmatch(r"token\d{4}", word), f"split word: {word!r}"

    def test_cut_after_period_is_not_a_word_split(self) -> None:
        text = "x" * 999 + "." + "y" * 500
        segments = _make_chunker(chunk_size=1000, overlap=100).chunk(text, FormatFamily.TEXT)
        assert segments[0] == "x" * 999 + "."

    def test_hard_cut_when_no_boundary_in_window(self) -> None:
        text = "x" * 2500
        segments = _make_chunker(chunk_size=1000, overlap=100).chunk(text, FormatFamily.TEXT)
        assert [len(s) for s in segments] == [1000, 1000, 700]

    def test_short_trailing_segment_dropped(self) -> None:
        chunker = _make_chunker(chunk_size=100, overlap=10, min_chunk_length=50, lookback_floor=10)
        segments = chunker.chunk("x" * 195, FormatFamily.TEXT)
        assert [len(s) for s in segments] == [100, 100]

    def test_deterministic(self) -> None:
        text = _tokens(400)
        chunker = _make_chunker()
        assert chunker.chunk(text, FormatFamily.TEXT) == chunker.chunk(text, FormatFamily.TEXT)

    def test_unknown_family_uses_generic(self) -> None:
        text = "x" * 2500
        assert len(_make_chunker().chunk(text, FormatFamily.UNKNOWN)) == 3

    def test_overlap_must_be_smaller_than_chunk_size(self) -> None:
        with pytest.raises(ValueError, match="overlap"):
            TextChunker(chunk_size=100, overlap=100)


# ---------------------------------------------------------------------------
# Tabular
# ---------------------------------------------------------------------------


class TestTabularChunking:
    def _csv_text(self, rows: int) -> tuple[str, list[str]]:
        body = [f"person{i:03d} | {20 + i % 50}" for i in range(rows)]
        return "name | age\n" + "\n".join(body), body

    def test_every_segment_starts_with_header(self) -> None:
        text, _ = self._csv_text(60)
        segments = _make_chunker(tabular_chunk_size=200, min_chunk_length=10).chunk(
            text, FormatFamily.CSV
        )

        assert len(segments) > 1
        for segment in segments:
            assert segment.startswith("name | age\n")
            assert len(segment) <= 200

    def test_every_row_appears_exactly_once(self) -> None:
        text, rows = self._csv_text(60)
        segments = _make_chunker(tabular_chunk_size=200, min_chunk_length=10).chunk(
            text, FormatFamily.CSV
        )
        emitted = [line for s in segments for line in s.split("\n")[1:]]
        assert emitted == rows

    def test_mime_type_string_routes_to_tabular(self) -> None:
        text, _ = self._csv_text(60)
        segments = _make_chunker(tabular_chunk_size=200, min_chunk_length=10).chunk(text, "text/csv")
        assert all(s.startswith("name | age\n") for s in segments)

    def test_oversized_row_becomes_its_own_segment(self) -> None:
        big = "z" * 300
        text = f"h1 | h2\nsmall | row\n{big}\nafter | row"
        segments = _make_chunker(tabular_chunk_size=200, min_chunk_length=10).chunk(
            text, FormatFamily.CSV
        )
        assert segments == [
            "h1 | h2\nsmall | row",
            f"h1 | h2\n{big}",
            "h1 | h2\nafter | row",
        ]

    def test_sheets_chunked_separately_with_marker_in_header(self) -> None:
        first = [f"a{i:03d} | {i}" for i in range(40)]
        second = [f"b{i:03d} | {i}" for i in range(40)]
        text = "\n".join(
            ["=== Sheet: First ===", "key | value", *first, "=== Sheet: Second ===", "code | n", *second]
        )
        segments = _make_chunker(tabular_chunk_size=150, min_chunk_length=10).chunk(
            text, FormatFamily.XLSX
        )

        first_segments = [s for s in segments if s.startswith("=== Sheet: First ===")]
        second_segments = [s for s in segments if s.startswith("=== Sheet: Second ===")]
        assert len(first_segments) + len(second_segments) == len(segments)
        assert len(first_segments) > 1 and len(second_segments) > 1
        assert all(s.startswith("=== Sheet: First ===\nkey | value\n") for s in first_segments)
        assert all(s.startswith("=== Sheet: Second ===\ncode | n\n") for s in second_segments)
        assert not any("b000" in s for s in first_segments)


# ---------------------------------------------------------------------------
# Slides
# ---------------------------------------------------------------------------


class TestSlideChunking:
    def test_small_slides_kept_with_markers(self) -> None:
        text = "--- Slide 1 ---\nIntro\n--- Slide 2 ---\nAgenda"
        segments = _make_chunker().chunk(text, FormatFamily.PPTX)
        assert segments == ["--- Slide 1 ---\nIntro", "--- Slide 2 ---\nAgenda"]

    def test_oversized_slide_split_and_marked(self) -> None:
        text = "--- Slide 1 ---\nIntro\n--- Slide 2 ---\n" + _tokens(200)
        segments = _make_chunker(slide_chunk_size=800).chunk(text, FormatFamily.PPTX)

        assert segments[0] == "--- Slide 1 ---\nIntro"
        assert len(segments) > 2
        assert all(s.startswith("--- Slide 2 ---") for s in segments[1:])

    def test_text_without_markers_uses_generic(self) -> None:
        text = "x" * 2500
        assert len(_make_chunker().chunk(text, FormatFamily.PPT)) == 3
