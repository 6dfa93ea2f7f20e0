from typing import Optional

FUZZY_NAME_THRESHOLD = 0.9


def levenshtein(a: str, b: str) -> int:
    """Edit distance with unit cost for insert, delete and substitute."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            if ca == cb:
                current.append(previous[j - 1])
            else:
                current.append(min(previous[j], current[j - 1], previous[j - 1]) + 1)
        previous = current
    return previous[-1]


def name_similarity(name1: Optional[str], name2: Optional[str]) -> float:
    """
    Similarity in [0, 1] between two names, case-insensitive.

    1 - levenshtein / max(len). Returns 0 when either name is empty.
    """
    if not name1 or not name2:
        return 0.0
    dist = levenshtein(name1.lower(), name2.lower())
    return 1 - dist / max(len(name1), len(name2))


def is_fuzzy_name_match(name1: Optional[str], name2: Optional[str],
                        threshold: float = FUZZY_NAME_THRESHOLD) -> bool:
    return name_similarity(name1, name2) > threshold
