"""Unit tests for context assembly."""

from ask_ed.pipeline.assembly import (
    PASSAGE_SEPARATOR,
    TRUNCATION_MARKER,
    ContextAssembler,
    assemble_context,
    format_citation,
)


class TestFormatCitation:
    def test_full_citation(self, result_factory):
        result = result_factory(
            content="Staff must be suitable.", source="KCSiE 2025", page=12, section="Part one"
        )
        assert format_citation(result) == "[KCSiE 2025, p.12, Part one]\nStaff must be suitable."

    def test_source_only(self, result_factory):
        result = result_factory(content="Ratios apply.", source="EYFS Framework")
        assert format_citation(result) == "[EYFS Framework]\nRatios apply."

    def test_section_without_page(self, result_factory):
        result = result_factory(content="x", source="Annex B", section="Domestic abuse")
        assert format_citation(result) == "[Annex B, Domestic abuse]\nx"


class TestSelect:
    """Tests for passage selection and re-ranking."""

    def test_default_top_five_by_similarity(self, result_factory):
        results = [result_factory(content=f"p{i}", similarity=i / 10) for i in range(8)]
        selected = ContextAssembler().select(results, "kcsie recruitment checks")
        assert [r.content for r in selected] == ["p7", "p6", "p5", "p4", "p3"]

    def test_eyfs_updates_prioritised(self, result_factory):
        """Updates passages come first, then the best of the rest."""
        updates = [
            result_factory(content=f"u{i}", source="EYFS Updates 2025", similarity=0.5 + i / 100)
            for i in range(6)
        ]
        others = [
            result_factory(content=f"o{i}", source="EYFS Framework", similarity=0.8 + i / 100)
            for i in range(5)
        ]
        selected = ContextAssembler().select(others + updates, "what changed in the eyfs")
        assert [r.content for r in selected] == ["u5", "u4", "u3", "u2", "o4", "o3"]

    def test_eyfs_query_without_updates_source(self, result_factory):
        results = [result_factory(content=f"p{i}", similarity=i / 10) for i in range(7)]
        selected = ContextAssembler().select(results, "eyfs learning goals")
        assert len(selected) == 5
        assert selected[0].content == "p6"

    def test_updates_ignored_for_non_eyfs_query(self, result_factory):
        results = [
            result_factory(content="u", source="EYFS Updates 2025", similarity=0.4),
            result_factory(content="k", source="KCSiE 2025", similarity=0.9),
        ]
        selected = ContextAssembler().select(results, "kcsie part one")
        assert [r.content for r in selected] == ["k", "u"]


class TestAssemble:
    """Tests for formatting and the length budget."""

    def test_passages_joined_with_separator(self, result_factory):
        results = [
            result_factory(content="first", source="A", similarity=0.9),
            result_factory(content="second", source="B", similarity=0.8),
        ]
        assembled = ContextAssembler().assemble(results, "question")
        assert assembled.context == f"[A]\nfirst{PASSAGE_SEPARATOR}[B]\nsecond"
        assert assembled.truncated is False
        assert assembled.sources == ["A", "B"]

    def test_crossing_passage_truncated_with_marker(self, result_factory):
        results = [result_factory(content="x" * 200, source="S")]
        assembled = ContextAssembler(max_context_length=100).assemble(results, "question")
        assert assembled.truncated is True
        assert assembled.context.endswith(TRUNCATION_MARKER)
        assert assembled.context == ("[S]\n" + "x" * 200)[:100] + TRUNCATION_MARKER

    def test_passages_past_budget_dropped(self, result_factory):
        results = [
            result_factory(content="a" * 60, source="S", similarity=0.9),
            result_factory(content="b" * 60, source="S", similarity=0.8),
            result_factory(content="c" * 60, source="S", similarity=0.7),
        ]
        assembled = ContextAssembler(max_context_length=140).assemble(results, "question")
        assert assembled.truncated is True
        assert len(assembled.results) == 2
        assert "c" * 10 not in assembled.context
        assert len(assembled.context) <= 140

    def test_sources_deduplicated(self, result_factory):
        results = [
            result_factory(content="one", source="KCSiE 2025", similarity=0.9),
            result_factory(content="two", source="KCSiE 2025", similarity=0.8),
        ]
        assert ContextAssembler().assemble(results, "q").sources == ["KCSiE 2025"]

    def test_empty_results(self):
        assembled = assemble_context([], "question")
        assert assembled.context == ""
        assert assembled.results == []
