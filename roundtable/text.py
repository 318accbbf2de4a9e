"""Tokenising, stemming and negation-aware similarity for position texts."""

import re
from functools import lru_cache

from roundtable.lexicon import DEFAULT_LEXICON, StanceLexicon

_TOKEN_RE = re.compile(r"[^\W_]+(?:'[^\W_]+)?")

# Longest first; "ies"/"ied" restore a trailing "y"
_SUFFIXES = ("ingly", "edly", "ness", "ment", "ing", "ies", "ied", "ed", "es", "ly", "s")

# Opposed pairs are forced into [0, OPPOSED_CEILING]
OPPOSED_CEILING = 0.2


def tokenize(text: str) -> list[str]:
    """Lower-case word tokens; contractions such as "isn't" stay whole."""
    return _TOKEN_RE.findall(text.replace("’", "'").lower())


def stem(word: str) -> str:
    """Strip one common English suffix. Non-ASCII words are returned unchanged."""
    if not word.isascii() or len(word) <= 4:
        return word
    for suffix in _SUFFIXES:
        if not word.endswith(suffix) or len(word) - len(suffix) < 3:
            continue
        if suffix == "s" and word.endswith(("ss", "us", "is")):
            return word
        base = word[: -len(suffix)]
        return base + "y" if suffix in ("ies", "ied") else base
    return word


def _is_keyword(token: str, lexicon: StanceLexicon) -> bool:
    if token in lexicon.stop_words or token in lexicon.negators or token.isdigit():
        return False
    return len(token) >= (3 if token.isascii() else 2)


def keyword_map(text: str, lexicon: StanceLexicon = DEFAULT_LEXICON) -> dict[str, str]:
    """Map each keyword stem to the first surface form it appeared as, in text order."""
    found: dict[str, str] = {}
    for token in tokenize(text):
        if _is_keyword(token, lexicon):
            found.setdefault(stem(token), token)
    return found


def keyword_stems(text: str, lexicon: StanceLexicon = DEFAULT_LEXICON) -> set[str]:
    return set(keyword_map(text, lexicon))


def jaccard(a: set[str], b: set[str]) -> float:
    if not a and not b:
        return 1.0
    if not a or not b:
        return 0.0
    return len(a & b) / len(a | b)


@lru_cache(maxsize=32)
def _stemmed_stance_terms(lexicon: StanceLexicon) -> frozenset[str]:
    return frozenset(stem(t) for t in lexicon.stance_terms)


def stance_terms(text: str, lexicon: StanceLexicon = DEFAULT_LEXICON) -> dict[str, bool]:
    """Stance-bearing terms in ``text`` mapped to whether they are negated.

    A term is negated when a negator occurs within the lexicon's lookback
    window of words before it. The first occurrence of a term decides.
    """
    vocabulary = _stemmed_stance_terms(lexicon)
    tokens = tokenize(text)
    found: dict[str, bool] = {}
    for i, token in enumerate(tokens):
        term = stem(token)
        if term not in vocabulary or term in found:
            continue
        window = tokens[max(0, i - lexicon.negation_window):i]
        found[term] = any(w in lexicon.negators for w in window)
    return found


def are_opposed(a: str, b: str, lexicon: StanceLexicon = DEFAULT_LEXICON) -> bool:
    """True when both texts use a stance term but only one of them negates it."""
    terms_a = stance_terms(a, lexicon)
    terms_b = stance_terms(b, lexicon)
    return any(terms_a[t] != terms_b[t] for t in terms_a.keys() & terms_b.keys())


def position_similarity(a: str, b: str, lexicon: StanceLexicon = DEFAULT_LEXICON) -> float:
    """Similarity of two positions in [0, 1].

    Opposed positions ("X is dangerous" / "X is not dangerous") are scaled
    into [0, 0.2] however much vocabulary they share.
    """
    overlap = jaccard(keyword_stems(a, lexicon), keyword_stems(b, lexicon))
    if are_opposed(a, b, lexicon):
        return OPPOSED_CEILING * overlap
    return overlap
