"""Tests for fuzzy area search."""
import pytest

from osm_areas.core.models import Point
from osm_areas.core.normalization import parse_query
from osm_areas.core.search import SearchRanker

KALLHALL = Point(lat=59.455, lng=17.805)


@pytest.fixture
def ranker(populated_db):
    return SearchRanker(populated_db)


def test_search_typo_finds_area(ranker):
    """A dropped letter is recovered through the broad prefix search."""
    results = ranker.search("kalio", 5)

    assert [r.area.name for r in results] == ["Kallio", "Kallio"]
    assert results[0].score == pytest.approx(0.5952, abs=1e-3)
    assert results[0].distance_meters is None


def test_search_exact_name_and_postal(ranker):
    results = ranker.search("Kallio 00530", 10)

    assert results[0].area.postal_code == "00530"
    assert results[0].score == 1.0
    assert all(r.area.name == "Kallio" for r in results)


def test_search_postal_only(ranker):
    results = ranker.search("00530", 10)

    assert [(r.area.name, r.area.postal_code) for r in results] == [("Kallio", "00530")]
    assert results[0].score == 1.0


def test_search_postal_prefix(ranker):
    results = ranker.search("005", 10)

    assert [r.area.postal_code for r in results] == ["00530", "00510"]
    assert all(r.score == pytest.approx(0.89) for r in results)


def test_search_translated_name(ranker):
    results = ranker.search("Berghäll", 10)

    assert {r.area.name for r in results} == {"Kallio"}
    assert results[0].score == 1.0


def test_search_diacritics_insensitive(ranker):
    results = ranker.search("kivisto", 10)

    assert results[0].area.name == "Kivistö"
    assert results[0].score == 1.0


def test_search_country_filter(ranker):
    results = ranker.search("kal", 10, country_code="SE")

    assert [r.area.name for r in results] == ["Kallhäll"]
    assert results[0].score == pytest.approx(0.85)


def test_search_short_query_uses_prefix(ranker):
    results = ranker.search("ka", 10)

    assert [r.area.name for r in results] == ["Kallio", "Kallio", "Kamppi", "Kallhäll"]
    assert results[0].score == pytest.approx(0.87)
    assert results[-1].score == pytest.approx(0.83)


def test_search_scores_sorted_descending(ranker):
    results = ranker.search("kal", 10)
    scores = [r.score for r in results]

    assert scores == sorted(scores, reverse=True)
    assert [r.area.name for r in results] == ["Kallio", "Kallio", "Kallhäll"]


def test_search_bias_point_boosts_nearby(ranker):
    results = ranker.search("kal", 10, bias=KALLHALL)

    assert results[0].area.name == "Kallhäll"
    assert results[0].distance_meters == pytest.approx(0, abs=1)
    assert results[0].score == pytest.approx(0.85 * 0.8 + 0.2)
    assert results[1].distance_meters > 100000


def test_search_bias_ignored_with_zero_weight(ranker):
    results = ranker.search("kal", 10, bias=KALLHALL, proximity_weight=0.0)

    assert results[0].area.name == "Kallio"
    assert results[0].score == pytest.approx(0.89)


def test_search_limit(ranker):
    assert len(ranker.search("kal", 1)) == 1


@pytest.mark.parametrize("query", ["", "   ", "zzzz", "qwerty 99999"])
def test_search_no_results(ranker, query):
    assert ranker.search(query, 10) == []


def test_search_terms_for_combined_query():
    terms = SearchRanker._search_terms(parse_query("Kivistö 01700"))

    assert ("name", "Kivistö") in terms
    assert ("name_normalized", "kivisto") in terms
    assert ("name_normalized", "kivi") in terms
    assert ("all_names", "Kivistö") in terms
    assert ("postal_code", "01700") in terms


def test_search_terms_postal_only():
    assert SearchRanker._search_terms(parse_query("00530")) == [("postal_code", "00530")]
