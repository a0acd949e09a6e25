"""Tests for the line segmenter."""

from collections.abc import Iterator

from wine_catalog.ingestion.segmenter import segment_lines


class TestSegmentLines:
    """Tests for segment_lines."""

    def test_splits_and_trims(self) -> None:
        """Lines are trimmed and keep their source index."""
        text = "  Opus One 2018  \n\nRED WINES\nChâteau Margaux 2015 - $425\n"
        lines = list(segment_lines(text))

        assert [line.text for line in lines] == [
            "Opus One 2018",
            "RED WINES",
            "Château Margaux 2015 - $425",
        ]
        assert [line.index for line in lines] == [0, 2, 3]

    def test_drops_short_fragments(self) -> None:
        """Fragments under the minimum length are noise."""
        lines = list(segment_lines("12\n---\nab c\nSancerre"))
        assert [line.text for line in lines] == ["ab c", "Sancerre"]

    def test_custom_min_length(self) -> None:
        lines = list(segment_lines("Cava\nBarolo Riserva", min_length=6))
        assert [line.text for line in lines] == ["Barolo Riserva"]

    def test_windows_line_endings(self) -> None:
        lines = list(segment_lines("Chablis 2020\r\nRioja 2019\r\n"))
        assert [line.text for line in lines] == ["Chablis 2020", "Rioja 2019"]

    def test_empty_and_blank_input(self) -> None:
        assert list(segment_lines("")) == []
        assert list(segment_lines("   \n\t\n  ")) == []

    def test_is_lazy(self) -> None:
        """The segmenter yields lines one at a time."""
        lines = segment_lines("Chablis 2020\nRioja 2019")
        assert isinstance(lines, Iterator)
        assert next(lines).text == "Chablis 2020"
        assert next(lines).text == "Rioja 2019"
