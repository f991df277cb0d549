"""Tests for heading-aware segmentation."""

from __future__ import annotations

import pytest

from notefinder.errors import ConfigurationError
from notefinder.index.segmenter import segment_id, segment_text


class TestSections:
    """Heading handling and line ranges."""

    def test_two_headings(self) -> None:
        """Each heading opens its own segment."""
        segments = segment_text("M", "# A\nfoo\n# B\nbar", max_chars=1000, overlap=0)

        assert [s.heading for s in segments] == ["A", "B"]
        assert [(s.start_line, s.end_line) for s in segments] == [(0, 1), (2, 3)]
        assert segments[0].text == "# A\nfoo"
        assert segments[1].text == "# B\nbar"
        assert segments[0].segment_id == "M::A::0-1"
        assert segments[1].segment_id == "M::B::2-3"

    def test_text_before_first_heading_is_root(self) -> None:
        """Leading text belongs to the ROOT section."""
        segments = segment_text("n.md", "intro\n\n## Details\nmore", max_chars=1000, overlap=0)

        assert segments[0].heading == "ROOT"
        assert (segments[0].start_line, segments[0].end_line) == (0, 1)
        assert segments[1].heading == "Details"

    def test_empty_sections_are_dropped(self) -> None:
        """Whitespace-only sections produce no segment."""
        segments = segment_text("n.md", "\n\n   \n# Only\nbody", max_chars=1000, overlap=0)

        assert len(segments) == 1
        assert segments[0].heading == "Only"
        assert segments[0].start_line == 3

    def test_heading_label_trimmed(self) -> None:
        """Heading labels are trimmed."""
        segments = segment_text("n.md", "###   Spaced out   \ntext", max_chars=1000, overlap=0)

        assert segments[0].heading == "Spaced out"

    def test_seven_hashes_is_not_heading(self) -> None:
        """Only levels 1-6 count as headings."""
        segments = segment_text("n.md", "####### nope\ntext", max_chars=1000, overlap=0)

        assert len(segments) == 1
        assert segments[0].heading == "ROOT"

    def test_hash_without_space_is_not_heading(self) -> None:
        """Tags like #meeting do not open sections."""
        segments = segment_text("n.md", "#meeting\ntext\n# Real\nx", max_chars=1000, overlap=0)

        assert [s.heading for s in segments] == ["ROOT", "Real"]

    def test_empty_text(self) -> None:
        """Empty notes have no segments."""
        assert segment_text("n.md", "", max_chars=100, overlap=10) == []

    def test_stable_ids(self) -> None:
        """Segmenting identical text twice yields the same ids in the same order."""
        text = "# A\n" + "x" * 500 + "\n# B\nshort\n# C\n" + "y" * 50
        first = [s.segment_id for s in segment_text("d.md", text, max_chars=120, overlap=20)]
        second = [s.segment_id for s in segment_text("d.md", text, max_chars=120, overlap=20)]

        assert first == second
        assert len(set(first)) == len(first)


class TestSizeSplitting:
    """Oversized sections are cut into overlapping windows."""

    def test_windows_overlap_and_keep_line_range(self) -> None:
        """Windows share the overlap and inherit the section line range."""
        body = "0123456789" * 25  # 250 chars, no heading
        segments = segment_text("d.md", body, max_chars=100, overlap=20)

        offsets = [s.segment_id.rsplit("::", 1)[1] for s in segments]
        assert offsets == ["0-100", "80-180", "160-250"]
        assert all((s.start_line, s.end_line) == (0, 0) for s in segments)
        assert segments[0].text[-20:] == segments[1].text[:20]
        assert segments[-1].text.endswith(body[-10:])

    def test_window_ids_carry_offsets(self) -> None:
        """Window ids extend the section id with character offsets."""
        segments = segment_text("d.md", "# H\n" + "a" * 300, max_chars=200, overlap=0)

        assert segments[0].segment_id == "d.md::H::0-1::0-200"
        assert segments[1].segment_id == "d.md::H::0-1::200-304"

    def test_section_at_limit_not_split(self) -> None:
        """A section exactly max_chars long stays whole."""
        segments = segment_text("d.md", "z" * 100, max_chars=100, overlap=10)

        assert len(segments) == 1
        assert segments[0].segment_id == "d.md::ROOT::0-0"

    def test_window_text_trimmed(self) -> None:
        """Window text is trimmed."""
        body = "a" * 9 + " " * 2 + "b" * 9
        segments = segment_text("d.md", body, max_chars=10, overlap=0)

        assert all(s.text == s.text.strip() for s in segments)


class TestValidation:
    """Invalid window settings are configuration errors."""

    @pytest.mark.parametrize("max_chars,overlap", [(0, 0), (-5, 0), (100, 100), (100, -1)])
    def test_rejects_bad_settings(self, max_chars: int, overlap: int) -> None:
        with pytest.raises(ConfigurationError):
            segment_text("d.md", "text", max_chars=max_chars, overlap=overlap)


def test_segment_id_without_window() -> None:
    assert segment_id("a/b.md", "H", 3, 9) == "a/b.md::H::3-9"
    assert segment_id("a/b.md", "H", 3, 9, (0, 10)) == "a/b.md::H::3-9::0-10"
