"""Name parsing, phonetic keys, and string similarity helpers.

Pure functions shared by the scorer, the entity linker, and the local
record stores.
"""

import re
from dataclasses import dataclass

import jellyfish
from nameparser import HumanName
from rapidfuzz import fuzz
from rapidfuzz.distance import Levenshtein

_DISALLOWED_CHARS = re.compile(r"[^\w\s\-'.,]")
_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class ParsedName:
    """Upper-cased name parts with their metaphone keys."""

    first: str
    middle: str
    last: str
    suffix: str
    metaphone_first: str
    metaphone_last: str

    @property
    def full(self) -> str:
        return " ".join(p for p in (self.first, self.middle, self.last, self.suffix) if p)


def normalize_text(value: str | None) -> str:
    """Lower-case, trim, and collapse internal whitespace."""
    if not value:
        return ""
    return _WHITESPACE.sub(" ", value.strip().lower())


def similarity(a: str | None, b: str | None) -> float:
    """Edit-distance similarity in 0-1 (1.0 = identical, case-insensitive)."""
    a_norm = normalize_text(a)
    b_norm = normalize_text(b)
    if not a_norm and not b_norm:
        return 1.0
    return float(Levenshtein.normalized_similarity(a_norm, b_norm))


def overall_name_similarity(a: str, b: str) -> float:
    """Order-insensitive similarity of two whole name strings, 0-1."""
    return fuzz.token_sort_ratio(normalize_text(a), normalize_text(b)) / 100.0


def phonetic_key(value: str | None) -> str:
    """Metaphone code for a single name part ("" for blank input)."""
    cleaned = re.sub(r"[^A-Za-z]", "", value or "")
    if not cleaned:
        return ""
    return jellyfish.metaphone(cleaned)


def name_metaphone_key(first_name: str | None, last_name: str | None) -> str:
    """Phonetic index key stored alongside local records."""
    return " ".join(k for k in (phonetic_key(first_name), phonetic_key(last_name)) if k)


def compose_full_name(
    full_name: str | None,
    first_name: str | None,
    last_name: str | None,
) -> str:
    if full_name and full_name.strip():
        return full_name.strip()
    return f"{first_name or ''} {last_name or ''}".strip()


def parse_name(raw: str) -> ParsedName:
    """Parse a free-form personal name into structured parts.

    Handles "First Last", "First M. Last", "Last, First Middle", honorifics
    and generational suffixes. A single token is taken as the last name.

    Raises:
        ValueError: If no usable name part can be extracted.
    """
    if not raw or not raw.strip():
        msg = "Name input cannot be empty"
        raise ValueError(msg)

    normalized = _DISALLOWED_CHARS.sub("", raw.strip())
    normalized = normalized.replace(".", " ")
    normalized = _WHITESPACE.sub(" ", normalized).strip().upper()
    if not normalized.strip(" ,-'"):
        msg = f"Could not parse name: {raw!r}"
        raise ValueError(msg)

    human = HumanName(normalized)
    first = human.first.strip()
    middle = human.middle.strip()
    last = human.last.strip()
    if not last and first:
        # "SMITH" alone is a surname, not a given name
        first, last = "", first
    if not last:
        msg = f"Could not parse name: {raw!r}"
        raise ValueError(msg)

    return ParsedName(
        first=first,
        middle=middle,
        last=last,
        suffix=human.suffix.strip(),
        metaphone_first=phonetic_key(first),
        metaphone_last=phonetic_key(last),
    )
