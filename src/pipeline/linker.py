"""Entity linking: cluster scored matches that describe the same person.

Every unordered pair of matches gets a link strength in 0-10:

  Strong signals (+5 each, any one is enough on its own):
    - identical email
    - identical phone
    - identical birth year together with identical last name
  Moderate signals (accumulate):
    - identical first and last name   +3
    - ages within 2 years             +1
    - same city                       +2
    - same ZIP5                       +2
    - same street address             +3
    - same employer                   +2

Pairs at or above LINK_THRESHOLD are merged with union-find, so linking is
transitive: A~B and B~C puts A, B and C in one cluster.
"""

import logging

from src.core.schemas import EntityCluster, RawMatch, ScoredCandidate
from src.pipeline.names import normalize_text
from src.pipeline.scorer import round_half_up

logger = logging.getLogger(__name__)

LINK_THRESHOLD = 5
MAX_LINK_STRENGTH = 10
STRONG_SIGNAL = 5

PRIMARY_WEIGHT = 0.6
OTHERS_WEIGHT = 0.4


class UnionFind:
    """Array-backed disjoint sets with path compression and union by rank."""

    def __init__(self, size: int) -> None:
        self._parent = list(range(size))
        self._rank = [0] * size

    def find(self, i: int) -> int:
        root = i
        while self._parent[root] != root:
            root = self._parent[root]
        while self._parent[i] != root:
            self._parent[i], i = root, self._parent[i]
        return root

    def union(self, i: int, j: int) -> bool:
        """Merge the sets holding i and j. Returns False if already merged."""
        root_i = self.find(i)
        root_j = self.find(j)
        if root_i == root_j:
            return False
        if self._rank[root_i] < self._rank[root_j]:
            self._parent[root_i] = root_j
        elif self._rank[root_i] > self._rank[root_j]:
            self._parent[root_j] = root_i
        else:
            self._parent[root_j] = root_i
            self._rank[root_i] += 1
        return True

    def groups(self) -> list[list[int]]:
        """Index groups, ordered by each group's first member."""
        by_root: dict[int, list[int]] = {}
        for i in range(len(self._parent)):
            by_root.setdefault(self.find(i), []).append(i)
        return list(by_root.values())


def link_strength(a: RawMatch, b: RawMatch) -> int:
    """How strongly two matches look like the same person (0-10)."""
    strength = 0

    if _same(a.email, b.email):
        strength += STRONG_SIGNAL
    if _same(a.phone, b.phone):
        strength += STRONG_SIGNAL
    if a.birth_year and a.birth_year == b.birth_year and _same(a.last_name, b.last_name):
        strength += STRONG_SIGNAL

    if _same(a.first_name, b.first_name) and _same(a.last_name, b.last_name):
        strength += 3
    if a.age and b.age and abs(a.age - b.age) <= 2:
        strength += 1
    if _same(a.city, b.city):
        strength += 2
    if _same(_zip5(a.zip_code), _zip5(b.zip_code)):
        strength += 2
    if _same(a.address, b.address):
        strength += 3
    if _same(a.employer, b.employer):
        strength += 2

    return min(MAX_LINK_STRENGTH, strength)


def aggregated_score(members: list[ScoredCandidate]) -> int:
    """Weighted cluster score: primary 60%, the rest share 40% evenly.

    ``members`` must already be sorted with the primary first.
    """
    if len(members) == 1:
        return members[0].confidence_score
    primary, others = members[0], members[1:]
    per_other = OTHERS_WEIGHT / len(others)
    total = primary.confidence_score * PRIMARY_WEIGHT
    total += sum(o.confidence_score * per_other for o in others)
    return min(100, round_half_up(total))


def cluster_matches(scored: list[ScoredCandidate]) -> list[EntityCluster]:
    """Partition scored matches into clusters of the same person."""
    if not scored:
        return []

    uf = UnionFind(len(scored))
    for i in range(len(scored)):
        for j in range(i + 1, len(scored)):
            strength = link_strength(scored[i].match, scored[j].match)
            logger.debug(
                "Link %s (%s) <-> %s (%s): strength %d",
                scored[i].match.full_name, scored[i].source_type,
                scored[j].match.full_name, scored[j].source_type,
                strength,
            )
            if strength >= LINK_THRESHOLD:
                uf.union(i, j)

    clusters: list[EntityCluster] = []
    for group in uf.groups():
        members = sorted(
            (scored[i] for i in group),
            key=lambda s: s.confidence_score,
            reverse=True,
        )
        clusters.append(
            EntityCluster(
                members=members,
                aggregated_score=aggregated_score(members),
                source_count=len({m.source_type for m in members}),
            ),
        )

    logger.info("Linked %d matches into %d clusters", len(scored), len(clusters))
    return clusters


def _same(a: str | None, b: str | None) -> bool:
    """Case- and whitespace-insensitive equality of two non-empty strings."""
    a_norm = normalize_text(a)
    return bool(a_norm) and a_norm == normalize_text(b)


def _zip5(zip_code: str | None) -> str:
    return (zip_code or "").strip()[:5]
