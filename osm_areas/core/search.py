"""Fuzzy name and postal-code search over the area search index."""
from typing import List, Optional, Tuple

from osm_areas.core.config import PROXIMITY_DECAY_RADIUS_M, PROXIMITY_WEIGHT
from osm_areas.core.fuzzy import best_name_score, fuse_proximity, fuse_text_scores, postal_score
from osm_areas.core.geometry import haversine_distance
from osm_areas.core.models import Area, ParsedQuery, Point, SearchResult
from osm_areas.core.normalization import normalize_text, parse_query

MIN_TRIGRAM_TERM = 3
SHORT_PREFIX_LENGTH = 4
BROAD_PREFIX_LENGTH = 3
MIN_CANDIDATES = 100


class SearchRanker:
    """
    Ranks areas against a free-text query.

    Candidates are fetched from the store's trigram search index, scored with
    fuzzy name and postal matching, optionally blended with proximity to a
    bias point, and sorted best first.
    """

    def __init__(self, store, decay_radius: float = PROXIMITY_DECAY_RADIUS_M):
        """
        Args:
            store: DuckDBStore with a built search index
            decay_radius: Proximity decay radius in meters
        """
        self.store = store
        self.decay_radius = decay_radius

    def search(
        self,
        query: str,
        limit: int,
        country_code: Optional[str] = None,
        bias: Optional[Point] = None,
        proximity_weight: float = PROXIMITY_WEIGHT
    ) -> List[SearchResult]:
        """
        Search areas by name and/or postal code.

        Args:
            query: Free text such as "Kallio", "00530" or "Kallio 00530"
            limit: Maximum results
            country_code: Optional country filter
            bias: Optional point that boosts nearby areas
            proximity_weight: Share of the final score given to proximity

        Returns:
            SearchResult list sorted by descending score
        """
        parsed = parse_query(query)
        if not parsed.full_query:
            return []

        candidates = self._get_candidates(parsed, limit, country_code)

        results = []
        for area in candidates:
            text_score = self.score_area(parsed, area)
            if text_score <= 0:
                continue

            distance = haversine_distance(bias, area.center) if bias is not None else None
            score = fuse_proximity(text_score, distance, proximity_weight, self.decay_radius)
            results.append(SearchResult(area=area, score=score, distance_meters=distance))

        # Stable: equal scores keep candidate order
        results.sort(key=lambda r: r.score, reverse=True)
        return results[:limit]

    @staticmethod
    def score_area(parsed: ParsedQuery, area: Area) -> float:
        """Text score of one area: best name variant fused with the postal score."""
        name_query = parsed.name_part or parsed.full_query
        name_score = best_name_score(name_query, [area.name, *area.names.values()])

        postal_score_value = 0.0
        if parsed.postal_part:
            postal_score_value = postal_score(parsed.postal_part, area.postal_code)

        return fuse_text_scores(parsed, name_score, postal_score_value)

    def _get_candidates(
        self,
        parsed: ParsedQuery,
        limit: int,
        country_code: Optional[str] = None
    ) -> List[Area]:
        candidate_limit = max(limit * 5, MIN_CANDIDATES)
        normalized_query = normalize_text(parsed.name_part or parsed.full_query)

        # Trigram terms need three characters
        if len(normalized_query) < MIN_TRIGRAM_TERM and not parsed.postal_part:
            candidates = self._get_candidates_by_prefix(normalized_query, candidate_limit, country_code)
        else:
            candidates = self._get_candidates_by_trigrams(parsed, candidate_limit, country_code)

        if len(candidates) < limit:
            seen = {area.id for area in candidates}
            for area in self._get_candidates_broad(normalized_query, candidate_limit, country_code):
                if area.id not in seen:
                    candidates.append(area)
                    seen.add(area.id)

        return candidates

    @staticmethod
    def _search_terms(parsed: ParsedQuery) -> List[Tuple[str, str]]:
        terms: List[Tuple[str, str]] = []

        if parsed.name_part:
            normalized_name = normalize_text(parsed.name_part)
            if len(normalized_name) >= MIN_TRIGRAM_TERM:
                terms.append(("name", parsed.name_part))
                terms.append(("name_normalized", normalized_name))
                terms.append(("all_names", parsed.name_part))
                short_prefix = normalized_name[:SHORT_PREFIX_LENGTH]
                if len(short_prefix) >= MIN_TRIGRAM_TERM:
                    terms.append(("name_normalized", short_prefix))

        if parsed.postal_part:
            terms.append(("postal_code", parsed.postal_part))

        normalized_query = normalize_text(parsed.full_query)
        if not terms and len(normalized_query) >= MIN_TRIGRAM_TERM:
            terms.append(("name", parsed.full_query))
            terms.append(("name_normalized", normalized_query))
            terms.append(("all_names", parsed.full_query))
            short_prefix = normalized_query[:SHORT_PREFIX_LENGTH]
            if len(short_prefix) >= MIN_TRIGRAM_TERM:
                terms.append(("name_normalized", short_prefix))

        return terms

    def _get_candidates_by_trigrams(
        self,
        parsed: ParsedQuery,
        limit: int,
        country_code: Optional[str] = None
    ) -> List[Area]:
        terms = self._search_terms(parsed)
        if not terms:
            return []
        return self.store.search_contains(terms, limit, country_code)

    def _get_candidates_by_prefix(
        self,
        normalized_query: str,
        limit: int,
        country_code: Optional[str] = None
    ) -> List[Area]:
        return self.store.search_prefix(normalized_query, limit, country_code)

    def _get_candidates_broad(
        self,
        normalized_query: str,
        limit: int,
        country_code: Optional[str] = None
    ) -> List[Area]:
        """First two or three characters of the query, for typo tolerance."""
        prefix = normalized_query[:BROAD_PREFIX_LENGTH]
        if len(prefix) < 2:
            return []

        if len(prefix) >= MIN_TRIGRAM_TERM:
            return self.store.search_contains([("name_normalized", prefix)], limit, country_code)
        return self.store.search_prefix(prefix, limit, country_code, field="name")
