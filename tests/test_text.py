"""Tests for roundtable/text.py and roundtable/lexicon.py."""

from pathlib import Path

import pytest

from roundtable.lexicon import DEFAULT_LEXICON, load_lexicon
from roundtable.text import (
    are_opposed,
    jaccard,
    keyword_map,
    keyword_stems,
    position_similarity,
    stance_terms,
    stem,
    tokenize,
)


def test_tokenize_keeps_contractions_whole():
    assert tokenize("It ISN'T safe, really.") == ["it", "isn't", "safe", "really"]


def test_tokenize_normalizes_curly_apostrophe():
    assert tokenize("don’t") == ["don't"]


@pytest.mark.parametrize("word, expected", [
    ("tools", "tool"),
    ("stories", "story"),
    ("improves", "improv"),
    ("class", "class"),
    ("dangerous", "dangerous"),
    ("risk", "risk"),
])
def test_stem(word, expected):
    assert stem(word) == expected


def test_stem_leaves_non_ascii_words_alone():
    assert stem("gefährlich") == "gefährlich"


def test_keyword_map_drops_stop_words_and_negators():
    found = keyword_map("The tools are not ready")
    assert set(found) == {"tool", "ready"}
    assert found["tool"] == "tools"


def test_keyword_map_drops_digits_and_short_ascii():
    assert keyword_stems("AI in 2025 is ok") == set()


def test_jaccard_edge_cases():
    assert jaccard(set(), set()) == 1.0
    assert jaccard({"a"}, set()) == 0.0
    assert jaccard({"a", "b"}, {"b", "c"}) == pytest.approx(1 / 3)


def test_stance_terms_detects_negation_within_window():
    assert stance_terms("AI is not dangerous") == {"dangerous": True}
    assert stance_terms("AI is dangerous") == {"dangerous": False}


def test_negation_outside_window_is_ignored():
    # "not" is four words before "safe"
    assert stance_terms("not that this is really safe") == {"safe": False}


def test_opposed_positions_score_below_threshold():
    a, b = "X is dangerous", "X is not dangerous"
    assert are_opposed(a, b)
    assert position_similarity(a, b) < 0.3


def test_identical_positions_score_one():
    text = "Microservices add operational overhead"
    assert position_similarity(text, text) == 1.0


def test_unrelated_positions_score_zero():
    assert position_similarity("Bananas taste sweet", "Kubernetes clusters need monitoring") == 0.0


def test_load_lexicon_extends_default(lexicon_file: Path):
    lexicon = load_lexicon(lexicon_file)
    assert "peligrosa" in lexicon.stance_terms
    assert "schädlich" in lexicon.stance_terms
    assert "jamais" in lexicon.negators
    assert lexicon.negation_window == 4
    assert DEFAULT_LEXICON.stance_terms <= lexicon.stance_terms


def test_load_lexicon_replace(tmp_path: Path):
    path = tmp_path / "lex.yaml"
    path.write_text("replace: true\nstance_terms: [gut]\n", encoding="utf-8")
    lexicon = load_lexicon(path)
    assert lexicon.stance_terms == frozenset({"gut"})
    assert lexicon.negators == frozenset()


def test_load_lexicon_missing_file(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        load_lexicon(tmp_path / "missing.yaml")


def test_custom_lexicon_changes_opposition(lexicon_file: Path):
    lexicon = load_lexicon(lexicon_file)
    assert are_opposed("ça marche jamais peligrosa", "ça marche peligrosa", lexicon)
