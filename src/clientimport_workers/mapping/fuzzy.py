"""
String similarity measures used by the field scorer
"""
from typing import Iterable

from rapidfuzz.distance import Levenshtein

WINKLER_PREFIX_LIMIT = 4
WINKLER_SCALING = 0.1


def levenshtein(a: str, b: str) -> int:
    """Edit distance with unit insert, delete and substitute costs"""
    return Levenshtein.distance(a or "", b or "")


def levenshtein_similarity(a: str, b: str) -> float:
    """1 - distance / longer length; two empty strings are identical"""
    a, b = a or "", b or ""
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - levenshtein(a, b) / longest


def _common_prefix(a: str, b: str, limit: int = WINKLER_PREFIX_LIMIT) -> int:
    length = 0
    for char_a, char_b in zip(a[:limit], b[:limit]):
        if char_a != char_b:
            break
        length += 1
    return length


def jaro(a: str, b: str) -> float:
    """Jaro similarity

    Characters match when equal and no further apart than half the longer
    length minus one. Each matched character of ``b`` is used once, first
    come first served. Half the count of matched characters that appear in
    a different order is the transposition count.
    """
    a, b = a or "", b or ""
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0

    window = max(0, max(len(a), len(b)) // 2 - 1)
    matched_b = [False] * len(b)
    matches_a = []
    for i, char in enumerate(a):
        for j in range(max(0, i - window), min(len(b), i + window + 1)):
            if not matched_b[j] and b[j] == char:
                matched_b[j] = True
                matches_a.append(char)
                break

    matches = len(matches_a)
    if matches == 0:
        return 0.0
    matches_b = [char for char, used in zip(b, matched_b) if used]
    transpositions = sum(x != y for x, y in zip(matches_a, matches_b)) / 2
    return (matches / len(a) + matches / len(b) + (matches - transpositions) / matches) / 3


def jaro_winkler(a: str, b: str) -> float:
    """Jaro similarity with the Winkler prefix boost

    The boost is applied for every Jaro score, not only above a threshold.
    """
    a, b = a or "", b or ""
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0
    similarity = jaro(a, b)
    prefix = _common_prefix(a, b)
    return min(1.0, similarity + WINKLER_SCALING * prefix * (1.0 - similarity))


def token_overlap(tokens_a: Iterable[str], tokens_b: Iterable[str]) -> float:
    """Jaccard ratio of two token collections"""
    set_a, set_b = set(tokens_a or ()), set(tokens_b or ())
    if not set_a and not set_b:
        return 1.0
    if not set_a or not set_b:
        return 0.0
    return len(set_a & set_b) / len(set_a | set_b)


def best_similarity(a: str, b: str) -> float:
    return max(levenshtein_similarity(a, b), jaro_winkler(a, b))
