"""Rule-based confidence scoring of source matches against a juror query.

Score range: 0-100, the sum of five capped factors:
  - Name:          0-40 (last 0-20, first 0-15, middle 0-5)
  - Age:           0-20 (exact 20, within 2 years 15, within 5 years 8)
  - Location:      0-20 (city or ZIP5 20, ZIP3 12, state 5)
  - Occupation:    0-10 (fuzzy similarity)
  - Corroboration: 0-10 (filled in after entity linking)
"""

import logging
import math
from datetime import datetime

from src.core.schemas import RawMatch, ScoredCandidate, ScoreFactors, SearchQuery
from src.pipeline.names import (
    ParsedName,
    compose_full_name,
    normalize_text,
    overall_name_similarity,
    parse_name,
    similarity,
)

logger = logging.getLogger(__name__)

LAST_NAME_MAX = 20
FIRST_NAME_MAX = 15
MIDDLE_NAME_MAX = 5
NAME_MAX = LAST_NAME_MAX + FIRST_NAME_MAX + MIDDLE_NAME_MAX

# Partial credit, as a share of the part's maximum
PHONETIC_SHARE = 0.6
FUZZY_SHARE = 0.4
FUZZY_NAME_THRESHOLD = 0.7
FIRST_INITIAL_POINTS = 3
MIDDLE_INITIAL_POINTS = 2

SINGLE_SOURCE_REASON = "Single source"


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def score_match(
    query: SearchQuery,
    match: RawMatch,
    current_year: int | None = None,
) -> ScoredCandidate:
    """Score a single match against the juror query.

    Args:
        query: What is known about the juror.
        match: A raw hit from one source adapter.
        current_year: Year used to derive age from birth year; defaults to now.

    Returns:
        ScoredCandidate wrapping the match with its factor breakdown.
    """
    year = current_year or datetime.now().year

    name_score, name_reason = _score_name(query, match)
    age_score, age_reason = _score_age(query, match, year)
    location_score, location_reason = _score_location(query, match)
    occupation_score, occupation_reason = _score_occupation(query, match)

    total = min(
        100,
        round_half_up(name_score + age_score + location_score + occupation_score),
    )
    factors = ScoreFactors(
        name_score=name_score,
        name_reason=name_reason,
        age_score=age_score,
        age_reason=age_reason,
        location_score=location_score,
        location_reason=location_reason,
        occupation_score=occupation_score,
        occupation_reason=occupation_reason,
        corroboration_score=0,
        corroboration_reason=SINGLE_SOURCE_REASON,
        total_score=total,
    )
    return ScoredCandidate(match=match, factors=factors, confidence_score=total)


def score_matches(
    query: SearchQuery,
    matches: list[RawMatch],
    current_year: int | None = None,
) -> list[ScoredCandidate]:
    """Score a batch of matches independently, preserving input order."""
    return [score_match(query, m, current_year) for m in matches]


def corroboration_bonus(source_count: int) -> int:
    """Extra confidence for a cluster confirmed by several independent sources."""
    if source_count <= 1:
        return 0
    if source_count == 2:
        return 3
    if source_count == 3:
        return 6
    return 10


# ---------------------------------------------------------------------------
# Factors
# ---------------------------------------------------------------------------


def _score_name(query: SearchQuery, match: RawMatch) -> tuple[int, str]:
    query_name = compose_full_name(query.full_name, query.first_name, query.last_name)
    match_name = compose_full_name(match.full_name, match.first_name, match.last_name)
    if not query_name or not match_name:
        return 0, "No name data available"

    try:
        parsed_query = parse_name(query_name)
        parsed_match = parse_name(match_name)
    except ValueError:
        logger.debug(
            "Name parse failed for %r / %r, using overall similarity",
            query_name, match_name,
        )
        return _score_name_fallback(query_name, match_name)

    last_points, last_reason = _score_last_name(parsed_query, parsed_match)
    first_points, first_reason = _score_first_name(parsed_query, parsed_match)
    middle_points, middle_reason = _score_middle_name(parsed_query, parsed_match)

    reasons = [r for r in (last_reason, first_reason, middle_reason) if r]
    reason = ", ".join(reasons)
    reason = reason[:1].upper() + reason[1:]
    return min(NAME_MAX, last_points + first_points + middle_points), reason


def _score_last_name(q: ParsedName, m: ParsedName) -> tuple[int, str]:
    if q.last == m.last:
        return LAST_NAME_MAX, "exact last name match"
    if q.metaphone_last and q.metaphone_last == m.metaphone_last:
        return round_half_up(LAST_NAME_MAX * PHONETIC_SHARE), "phonetic last name match"
    if similarity(q.last, m.last) > FUZZY_NAME_THRESHOLD:
        return round_half_up(LAST_NAME_MAX * FUZZY_SHARE), "similar last name"
    return 0, "different last name"


def _score_first_name(q: ParsedName, m: ParsedName) -> tuple[int, str]:
    if not q.first or not m.first:
        return 0, "no first name to compare"
    if q.first == m.first:
        return FIRST_NAME_MAX, "exact first name match"
    if q.metaphone_first and q.metaphone_first == m.metaphone_first:
        return round_half_up(FIRST_NAME_MAX * PHONETIC_SHARE), "phonetic first name match"
    if len(q.first) == 1 or len(m.first) == 1:
        if q.first[0] == m.first[0]:
            return FIRST_INITIAL_POINTS, "first initial match"
        return 0, "different first initial"
    if similarity(q.first, m.first) > FUZZY_NAME_THRESHOLD:
        return round_half_up(FIRST_NAME_MAX * FUZZY_SHARE), "similar first name"
    return 0, "different first name"


def _score_middle_name(q: ParsedName, m: ParsedName) -> tuple[int, str]:
    if not q.middle and not m.middle:
        # Agreeing absence counts as exact, but only next to a first name
        if q.first and m.first:
            return MIDDLE_NAME_MAX, ""
        return 0, ""
    if not q.middle or not m.middle:
        return 0, ""
    if q.middle == m.middle:
        return MIDDLE_NAME_MAX, "exact middle name match"
    if q.middle[0] == m.middle[0]:
        return MIDDLE_INITIAL_POINTS, "middle initial match"
    return 0, "different middle name"


def _score_name_fallback(query_name: str, match_name: str) -> tuple[int, str]:
    score = min(NAME_MAX, round_half_up(overall_name_similarity(query_name, match_name) * NAME_MAX))
    if score >= 30:
        return score, "Strong name similarity"
    if score >= 15:
        return score, "Moderate name similarity"
    return score, "Weak name match"


def _score_age(query: SearchQuery, match: RawMatch, current_year: int) -> tuple[int, str]:
    match_age = match.effective_age(current_year)
    if not query.age or match_age is None:
        return 0, "No age data available for comparison"

    diff = abs(query.age - match_age)
    if diff == 0:
        return 20, "Exact age match"
    if diff <= 2:
        return 15, f"Age within 2 years (±{diff})"
    if diff <= 5:
        return 8, f"Age within 5 years (±{diff})"
    return 0, f"Age difference too large (±{diff} years)"


def _score_location(query: SearchQuery, match: RawMatch) -> tuple[int, str]:
    """First satisfied rule wins: city, ZIP5, ZIP3, state."""
    query_city = normalize_text(query.city)
    match_city = normalize_text(match.city)
    if query_city and query_city == match_city:
        return 20, f"Same city: {match.city}"

    query_zip = _zip5(query.zip_code)
    match_zip = _zip5(match.zip_code)
    if query_zip and match_zip:
        if query_zip == match_zip:
            return 20, f"Same ZIP code: {match_zip}"
        if len(query_zip) >= 3 and query_zip[:3] == match_zip[:3]:
            return 12, f"Same region (ZIP3: {query_zip[:3]})"

    query_state = normalize_text(query.state)
    if query_state and query_state == normalize_text(match.state):
        return 5, f"Same state: {match.state}"

    has_query_location = any((query_city, query_zip, query_state))
    has_match_location = any((match_city, match_zip, normalize_text(match.state)))
    if has_query_location and has_match_location:
        return 0, "No location match"
    return 0, "No location data available"


def _score_occupation(query: SearchQuery, match: RawMatch) -> tuple[int, str]:
    query_occupation = normalize_text(query.occupation)
    match_occupation = normalize_text(match.occupation)
    if not query_occupation or not match_occupation:
        return 0, "No occupation data available"

    sim = similarity(query_occupation, match_occupation)
    if sim > 0.8:
        return 10, f"Strong occupation match: {match.occupation}"
    if sim > 0.5:
        return 5, f"Partial occupation match: {match.occupation}"
    return 0, f"Different occupation: {match.occupation}"


def _zip5(zip_code: str | None) -> str:
    return (zip_code or "").strip()[:5]
