"""Tests for search sessions, query building and result rendering."""

from __future__ import annotations

import io

import pytest

from fulltext_desktop.data.queries import BooleanQuery, FuzzyQuery, PhraseQuery, TermQuery
from fulltext_desktop.services.highlight import ANSI_BOLD, ANSI_RED, ANSI_RESET
from fulltext_desktop.services.query import (
    InvalidSettingError,
    NoTermError,
    QueryMode,
    QueryTranslator,
    SearchSession,
)


@pytest.fixture()
def indexed(engine, docs):
    (docs / "a.txt").write_text("The quick fox jumps over the lazy dog", encoding="utf-8")
    (docs / "b.txt").write_text("A quick brown dog", encoding="utf-8")
    (docs / "c.txt").write_text("[pl] Szybki lis biegnie przez las", encoding="utf-8")
    engine.add_tree(docs, register_as_root=True)
    return docs


def test_session_setters_return_new_sessions() -> None:
    session = SearchSession()
    updated = session.with_language("pl").with_limit("5").with_details("on").with_color("on")

    assert session == SearchSession()
    assert (updated.language, updated.limit, updated.details, updated.color) == ("pl", 5, True, True)
    assert updated.with_mode("fuzzy").mode is QueryMode.FUZZY
    assert updated.fields.all == ("body_pl", "name_pl")


@pytest.mark.parametrize(
    "setter, value",
    [
        ("with_language", "de"),
        ("with_limit", "-1"),
        ("with_limit", "many"),
        ("with_details", "maybe"),
        ("with_color", "yes"),
        ("with_mode", "regex"),
    ],
)
def test_session_rejects_invalid_values(setter: str, value: str) -> None:
    with pytest.raises(InvalidSettingError):
        getattr(SearchSession(), setter)(value)


def test_build_query_uses_first_term_for_term_and_fuzzy(store) -> None:
    translator = QueryTranslator(store)

    term_query = translator.build_query(SearchSession(), "The foxes ran")
    fuzzy_query = translator.build_query(SearchSession(mode=QueryMode.FUZZY), "fox")

    assert term_query == BooleanQuery((TermQuery("body_en", "fox"), TermQuery("name_en", "fox")))
    assert all(isinstance(clause, FuzzyQuery) for clause in fuzzy_query.clauses)


def test_build_query_phrase_keeps_gaps(store) -> None:
    translator = QueryTranslator(store)
    session = SearchSession(mode=QueryMode.PHRASE)

    query = translator.build_query(session, "over the lazy")

    first = query.clauses[0]
    assert isinstance(first, PhraseQuery)
    assert [offset for offset, _ in first.terms] == [0, 2]
    assert isinstance(translator.build_query(session, "fox").clauses[0], TermQuery)


def test_build_query_without_terms_raises(store) -> None:
    translator = QueryTranslator(store)

    with pytest.raises(NoTermError):
        translator.build_query(SearchSession(), "the of and")
    with pytest.raises(NoTermError):
        translator.build_query(SearchSession(mode=QueryMode.PHRASE), "!!!")


def test_execute_honours_limit_and_reports_total(store, indexed) -> None:
    translator = QueryTranslator(store)
    session = SearchSession()
    query = translator.build_query(session, "quick")

    unbounded = translator.execute(session, query, 0)
    limited = translator.execute(session, query, 1)

    assert unbounded.total_hits == 2
    assert {hit.full_path for hit in unbounded.hits} == {
        str(indexed / "a.txt"),
        str(indexed / "b.txt"),
    }
    assert limited.total_hits == 2
    assert len(limited.hits) == 1


def test_search_respects_language(store, indexed) -> None:
    translator = QueryTranslator(store, output=io.StringIO())

    english = translator.search(SearchSession(), "szybki")
    polish = translator.search(SearchSession(language="pl"), "szybki")

    assert english.total_hits == 0
    assert [hit.full_path for hit in polish.hits] == [str(indexed / "c.txt")]


def test_polish_search_matches_inflected_forms(store, indexed) -> None:
    translator = QueryTranslator(store, output=io.StringIO())
    session = SearchSession(language="pl")

    inflected = translator.search(session, "lisy")
    phrase = translator.search(session.with_mode("phrase"), "lisy biegnie")

    assert [hit.full_path for hit in inflected.hits] == [str(indexed / "c.txt")]
    assert [hit.full_path for hit in phrase.hits] == [str(indexed / "c.txt")]
    assert translator.search(SearchSession(), "lisy").total_hits == 0


def test_phrase_and_fuzzy_search(store, indexed) -> None:
    translator = QueryTranslator(store, output=io.StringIO())

    phrase = translator.search(SearchSession(mode=QueryMode.PHRASE), "quick fox")
    fuzzy = translator.search(SearchSession(mode=QueryMode.FUZZY), "dgo")

    assert [hit.full_path for hit in phrase.hits] == [str(indexed / "a.txt")]
    assert fuzzy.total_hits == 2


def test_render_lists_paths_without_details(store, indexed) -> None:
    output = io.StringIO()
    QueryTranslator(store).search(SearchSession(), "fox", output=output)

    assert output.getvalue() == f"File count: 1\n\n{indexed / 'a.txt'}\n"


def test_render_details_marks_matches(store, indexed) -> None:
    translator = QueryTranslator(store)
    plain, colored = io.StringIO(), io.StringIO()

    translator.search(SearchSession(details=True), "fox", output=plain)
    translator.search(SearchSession(details=True, color=True), "fox", output=colored)

    assert f"{ANSI_BOLD}{indexed / 'a.txt'}{ANSI_RESET}" in plain.getvalue()
    assert "The quick <B>fox</B> jumps over the lazy dog" in plain.getvalue()
    assert f"{ANSI_RED}fox{ANSI_RESET}" in colored.getvalue()


def test_render_with_no_hits_prints_zero_count(store, indexed) -> None:
    output = io.StringIO()
    QueryTranslator(store).search(SearchSession(), "lighthouse", output=output)

    assert output.getvalue() == "File count: 0\n"
