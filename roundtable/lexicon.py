"""Stance, negation and stop-word vocabulary used by the lexical analyzers.

The default lexicon covers English plus a few Korean, Spanish and German
terms. Deployments that debate in other languages can extend it from a
YAML file via ``load_lexicon``.
"""

import logging
from dataclasses import dataclass, replace
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StanceLexicon:
    stance_terms: frozenset[str]
    negators: frozenset[str]
    stop_words: frozenset[str]
    negation_window: int = 3


_STANCE_TERMS = frozenset({
    # agreement / disagreement
    "agree", "disagree", "support", "oppose", "endorse", "reject", "favor", "against",
    "recommend", "advise", "accept", "approve", "correct", "right", "wrong", "true", "false",
    # value judgements
    "good", "bad", "better", "worse", "beneficial", "harmful", "helpful", "useful",
    "worth", "worthwhile", "valuable", "effective", "ineffective", "necessary", "essential",
    "viable", "feasible", "sustainable", "justified", "ethical", "fair",
    # risk
    "safe", "unsafe", "dangerous", "risky", "risk", "threat", "secure", "vulnerable",
    "harm", "hazardous", "reliable", "stable",
    # ko
    "동의", "반대", "찬성", "위험", "안전", "필요", "유익", "효과",
    # es
    "acuerdo", "apoyo", "peligroso", "seguro", "riesgo", "necesario", "beneficioso",
    # de
    "zustimmen", "ablehnen", "gefährlich", "sicher", "risiko", "notwendig", "sinnvoll",
})

_NEGATORS = frozenset({
    "not", "no", "never", "none", "nor", "neither", "without", "hardly", "barely", "cannot",
    "isn't", "aren't", "wasn't", "weren't", "don't", "doesn't", "didn't", "won't",
    "wouldn't", "shouldn't", "can't", "couldn't", "mustn't", "hasn't", "haven't", "ain't",
    # ko (pre-verbal short negation)
    "안", "못", "아니",
    # es
    "nunca", "tampoco",
    # de
    "nicht", "kein", "keine", "niemals", "ohne",
})

_STOP_WORDS = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with",
    "by", "from", "as", "is", "are", "was", "were", "be", "been", "being", "have", "has",
    "had", "do", "does", "did", "will", "would", "should", "could", "may", "might", "must",
    "can", "shall", "this", "that", "these", "those", "it", "its", "i", "you", "he", "she",
    "we", "they", "them", "their", "our", "your", "my", "me", "us", "so", "if", "then",
    "than", "also", "very", "more", "most", "such", "into", "about", "over", "there",
    "which", "who", "what", "when", "where", "while", "all", "any", "some", "each",
    # es / de articles and fillers
    "el", "la", "los", "las", "es", "que", "de", "der", "die", "das", "und", "ist",
})

DEFAULT_LEXICON = StanceLexicon(
    stance_terms=_STANCE_TERMS,
    negators=_NEGATORS,
    stop_words=_STOP_WORDS,
)


def load_lexicon(path: Path, base: StanceLexicon = DEFAULT_LEXICON) -> StanceLexicon:
    """Extend ``base`` with the terms listed in a YAML file.

    Expected keys (all optional): ``stance_terms``, ``negators``,
    ``stop_words`` (lists of strings) and ``negation_window`` (int).
    Set ``replace: true`` to discard the base vocabulary instead of extending it.

    Raises FileNotFoundError if the file does not exist.
    """
    if not path.exists():
        raise FileNotFoundError(f"Lexicon file not found: {path}")

    with path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    def _terms(key: str, existing: frozenset[str]) -> frozenset[str]:
        extra = frozenset(str(t).strip().lower() for t in raw.get(key, []) if str(t).strip())
        return extra if raw.get("replace") else existing | extra

    lexicon = replace(
        base,
        stance_terms=_terms("stance_terms", base.stance_terms),
        negators=_terms("negators", base.negators),
        stop_words=_terms("stop_words", base.stop_words),
        negation_window=int(raw.get("negation_window", base.negation_window)),
    )
    logger.info(
        "Lexicon loaded from %s: %d stance terms, %d negators",
        path, len(lexicon.stance_terms), len(lexicon.negators),
    )
    return lexicon
