"""Fuzzy matching utilities using RapidFuzz."""
import math
from dataclasses import dataclass
from functools import cached_property
from typing import Callable, Iterable, List, Optional, Tuple

from rapidfuzz import process

from osm_areas.core.config import PROXIMITY_DECAY_RADIUS_M, PROXIMITY_WEIGHT
from osm_areas.core.models import ParsedQuery
from osm_areas.core.normalization import generate_ngrams, normalize_text

WINKLER_PREFIX_SCALE = 0.1
WINKLER_MAX_PREFIX = 4
FUZZY_ACCEPT_THRESHOLD = 0.65
WORD_MATCH_THRESHOLD = 0.85


def jaro_similarity(s1: str, s2: str) -> float:
    """
    Jaro similarity (0-1, higher is better).

    Each character of s1 takes the first unused equal character of s2 within
    the match window; transpositions are counted over the matches in order.
    Identical strings score 1, an empty string against a non-empty one 0.
    """
    if s1 == s2:
        return 1.0
    if not s1 or not s2:
        return 0.0

    window = max(0, max(len(s1), len(s2)) // 2 - 1)
    s1_matched = [False] * len(s1)
    s2_matched = [False] * len(s2)

    matches = 0
    for i, c in enumerate(s1):
        start = max(0, i - window)
        end = min(i + window + 1, len(s2))
        for j in range(start, end):
            if s2_matched[j] or s2[j] != c:
                continue
            s1_matched[i] = s2_matched[j] = True
            matches += 1
            break

    if matches == 0:
        return 0.0

    s1_chars = [c for c, m in zip(s1, s1_matched) if m]
    s2_chars = [c for c, m in zip(s2, s2_matched) if m]
    transpositions = sum(a != b for a, b in zip(s1_chars, s2_chars))

    return (
        matches / len(s1)
        + matches / len(s2)
        + (matches - transpositions / 2) / matches
    ) / 3


def jaro_winkler_similarity(s1: str, s2: str, prefix_scale: float = WINKLER_PREFIX_SCALE) -> float:
    """
    Jaro-Winkler similarity (0-1, higher is better).

    Adds a bonus for a common prefix of up to four characters.
    """
    jaro = jaro_similarity(s1, s2)

    prefix_length = 0
    for c1, c2 in zip(s1[:WINKLER_MAX_PREFIX], s2[:WINKLER_MAX_PREFIX]):
        if c1 != c2:
            break
        prefix_length += 1

    return jaro + prefix_length * prefix_scale * (1 - jaro)


def ngram_similarity(s1: str, s2: str, n: int = 3) -> float:
    """Jaccard index of the padded character n-grams of two strings."""
    ngrams1 = generate_ngrams(s1, n)
    ngrams2 = generate_ngrams(s2, n)

    intersection = len(ngrams1 & ngrams2)
    union = len(ngrams1) + len(ngrams2) - intersection
    return intersection / union if union else 0.0


@dataclass
class MatchContext:
    """Query/target pair with normalized forms shared by the scoring rules."""
    query: str
    target: str

    @cached_property
    def normalized_query(self) -> str:
        return normalize_text(self.query)

    @cached_property
    def normalized_target(self) -> str:
        return normalize_text(self.target)

    @cached_property
    def target_words(self) -> List[str]:
        return self.normalized_target.split()


def exact_normalized_rule(ctx: MatchContext) -> Optional[float]:
    if ctx.normalized_target == ctx.normalized_query:
        return 1.0
    return None


def exact_case_insensitive_rule(ctx: MatchContext) -> Optional[float]:
    # Diacritics are still compared here
    if ctx.target.lower() == ctx.query.lower():
        return 0.99
    return None


def prefix_rule(ctx: MatchContext) -> Optional[float]:
    if ctx.normalized_target.startswith(ctx.normalized_query):
        length_penalty = min(0.15, (len(ctx.normalized_target) - len(ctx.normalized_query)) * 0.02)
        return 0.95 - length_penalty
    return None


def word_prefix_rule(ctx: MatchContext) -> Optional[float]:
    if any(word.startswith(ctx.normalized_query) for word in ctx.target_words):
        return 0.85
    return None


def substring_rule(ctx: MatchContext) -> Optional[float]:
    position = ctx.normalized_target.find(ctx.normalized_query)
    if position >= 0:
        return max(0.6, 0.75 - position * 0.02)
    return None


def similarity_rule(ctx: MatchContext) -> Optional[float]:
    jw_score = jaro_winkler_similarity(ctx.normalized_query, ctx.normalized_target)
    ng_score = ngram_similarity(ctx.normalized_query, ctx.normalized_target)
    combined = jw_score * 0.6 + ng_score * 0.4

    # Scaled into the 0.3-0.65 band, below every substring-style match
    if combined >= FUZZY_ACCEPT_THRESHOLD:
        return 0.3 + combined * 0.35
    return None


def word_similarity_rule(ctx: MatchContext) -> Optional[float]:
    for word in ctx.target_words:
        word_jw = jaro_winkler_similarity(ctx.normalized_query, word)
        if word_jw >= WORD_MATCH_THRESHOLD:
            return 0.5 + (word_jw - WORD_MATCH_THRESHOLD) * 2
    return None


# Evaluated in order; the first rule returning a score wins
SCORING_RULES: List[Tuple[str, Callable[[MatchContext], Optional[float]]]] = [
    ("exact_normalized", exact_normalized_rule),
    ("exact_case_insensitive", exact_case_insensitive_rule),
    ("prefix", prefix_rule),
    ("word_prefix", word_prefix_rule),
    ("substring", substring_rule),
    ("similarity", similarity_rule),
    ("word_similarity", word_similarity_rule),
]


def fuzzy_score(query: str, target: str) -> float:
    """
    Score how well a query matches a target name (0-1, higher is better).

    Args:
        query: Query string as typed
        target: Candidate name

    Returns:
        Score of the first matching rule in SCORING_RULES, else 0
    """
    ctx = MatchContext(query, target)
    for _, rule in SCORING_RULES:
        score = rule(ctx)
        if score is not None:
            return score
    return 0.0


def _variant_scorer(query: str, choice: str, **kwargs) -> float:
    return fuzzy_score(query, choice)


def best_name_score(query: str, variants: Iterable[str]) -> float:
    """Best fuzzy_score of a query across name variants (0 with no variants)."""
    choices = [v for v in variants if v]
    if not query or not choices:
        return 0.0

    match = process.extractOne(query, choices, scorer=_variant_scorer, processor=None)
    return match[1] if match else 0.0


def postal_score(query: str, postal_code: Optional[str]) -> float:
    """
    Score a postal-code fragment against a postal code.

    Exact (case-insensitive) match scores 1, a prefix match 0.8-0.95 by how
    much of the code it covers.
    """
    if not postal_code or not query:
        return 0.0

    query_lower = query.lower()
    postal_lower = postal_code.lower()

    if postal_lower == query_lower:
        return 1.0
    if postal_lower.startswith(query_lower):
        return 0.8 + (len(query_lower) / len(postal_lower)) * 0.15
    return 0.0


def proximity_score(distance_meters: float, decay_radius: float = PROXIMITY_DECAY_RADIUS_M) -> float:
    """Exponential decay: 1 at distance 0, 1/e at decay_radius."""
    return math.exp(-distance_meters / decay_radius)


def fuse_text_scores(parsed: ParsedQuery, name_score: float, postal_score_value: float) -> float:
    """
    Combine name and postal scores according to the query shape.

    Queries with both fragments are boosted when both match well; postal-only
    queries prefer the postal score.
    """
    if parsed.name_part and parsed.postal_part:
        if name_score > 0.5 and postal_score_value > 0.5:
            return min(1.0, (name_score + postal_score_value) / 2 + 0.2)
        if name_score > 0.5 and postal_score_value > 0:
            return name_score * 0.7 + postal_score_value * 0.3 + 0.1
        return max(name_score, postal_score_value)

    if parsed.is_postal_only:
        return postal_score_value if postal_score_value > 0 else name_score

    return max(name_score, postal_score_value)


def fuse_proximity(
    text_score: float,
    distance_meters: Optional[float],
    weight: float = PROXIMITY_WEIGHT,
    decay_radius: float = PROXIMITY_DECAY_RADIUS_M
) -> float:
    """Blend a text score with proximity to the bias point, if there is one."""
    if distance_meters is None or weight <= 0:
        return text_score
    return text_score * (1 - weight) + proximity_score(distance_meters, decay_radius) * weight
