"""Tests for query scoring and highlight spans over a small real index."""

from __future__ import annotations

import pytest

from fulltext_desktop.data.queries import BooleanQuery, FuzzyQuery, PhraseQuery, TermQuery
from fulltext_desktop.foundation.analysis import EnglishAnalyzer

A, B, C = "/docs/a.txt", "/docs/b.txt", "/docs/c.txt"


@pytest.fixture()
def reader(store):
    with store.write_session() as writer:
        writer.upsert_document({"full_path": A, "body_en": "the quick fox jumps over the lazy dog"})
        writer.upsert_document({"full_path": B, "body_en": "fox fox fox"})
        writer.upsert_document({"full_path": C, "body_pl": "szybki lis"})
        writer.add_root("/docs")
    with store.read_session() as reader:
        yield reader


def test_term_query_ranks_by_term_frequency(reader) -> None:
    top = reader.search(BooleanQuery((TermQuery("body_en", "fox"),)))

    assert top.total_hits == 2
    assert [hit.doc_id for hit in top.score_docs] == [B, A]
    assert top.score_docs[0].score > top.score_docs[1].score > 0


def test_search_limit_caps_hits_but_not_total(reader) -> None:
    top = reader.search(TermQuery("body_en", "fox"), limit=1)

    assert top.total_hits == 2
    assert len(top.score_docs) == 1


def test_field_statistics_ignore_root_rows(reader) -> None:
    assert reader.num_docs == 3
    assert reader.doc_count("body_en") == 2
    assert reader.doc_count("name_en") == 0
    # "the" is dropped: six terms in a.txt and three in b.txt.
    assert reader.average_length("body_en") == pytest.approx(4.5)
    assert reader.doc_freq("body_en", "fox") == 2


def test_postings_carry_positions_and_field_length(reader) -> None:
    postings = reader.postings("body_en", "fox")

    assert postings[B].positions == (0, 1, 2)
    assert postings[B].length == 3
    assert postings[A].positions == (2,)
    assert reader.postings("body_en", "missing") == {}


def test_phrase_query_requires_adjacent_positions(reader) -> None:
    assert set(PhraseQuery("body_en", ((0, "quick"), (1, "fox"))).scores(reader)) == {A}
    assert PhraseQuery("body_en", ((0, "fox"), (1, "quick"))).scores(reader) == {}


def test_phrase_query_respects_stop_word_gaps(reader) -> None:
    # "over the lazy": "the" is removed, so "lazi" sits two positions after "over".
    over, lazy = EnglishAnalyzer().terms("over lazy")

    assert set(PhraseQuery("body_en", ((0, over), (2, lazy))).scores(reader)) == {A}
    assert PhraseQuery("body_en", ((0, over), (1, lazy))).scores(reader) == {}


def test_fuzzy_query_matches_within_two_edits(reader) -> None:
    assert set(FuzzyQuery("body_en", "fx").scores(reader)) == {A, B}
    assert FuzzyQuery("body_en", "cat").scores(reader) == {}
    assert set(FuzzyQuery("body_pl", "lisy").scores(reader)) == {C}


def test_fuzzy_expansion_reads_the_stored_vocabulary(reader) -> None:
    vocabulary = reader.terms("body_en")

    assert "fox" in vocabulary and "the" not in vocabulary
    assert FuzzyQuery("body_en", "fix").expand(vocabulary) == {"fox": pytest.approx(2 / 3)}


def test_fuzzy_query_never_rewrites_whole_term() -> None:
    query = FuzzyQuery("body_en", "ab")

    assert query.allowed_edits == 1
    assert query.similarity("xy") is None
    assert query.similarity("ac") == 0.5


def test_language_fields_are_isolated(reader) -> None:
    assert TermQuery("body_pl", "fox").scores(reader) == {}


def test_unknown_field_is_rejected(reader) -> None:
    with pytest.raises(ValueError, match="body_de"):
        TermQuery("body_de", "fox").scores(reader)


def test_highlight_spans_follow_field_and_term() -> None:
    analyzer = EnglishAnalyzer()
    text = "A fox and another fox"
    tokens = list(analyzer.tokens(text))
    query = BooleanQuery((TermQuery("body_en", "fox"), TermQuery("name_en", "fox")))

    spans = query.highlight_spans("body_en", tokens)

    assert [text[start:end] for start, end in spans] == ["fox", "fox"]
    assert TermQuery("name_en", "fox").highlight_spans("body_en", tokens) == []
