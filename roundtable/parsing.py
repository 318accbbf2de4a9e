"""Parse untrusted structured output from analysis agents.

Parsing is an ordered chain of strategies, each a plain function taking the
raw text and returning a ``ConsensusResult`` or ``None``. The first
non-``None`` result wins; when every strategy declines, ``fallback_result``
keeps the raw text as the summary so nothing the model said is lost.
"""

import json
import logging
import re
from collections.abc import Callable, Mapping, Sequence
from dataclasses import replace
from typing import Any

import json_repair
from partial_json_parser import Allow
from partial_json_parser import loads as loads_partial

from roundtable.models import ConsensusResult, GroupthinkWarning, Nuances, PositionCluster, clamp_unit

logger = logging.getLogger(__name__)

ParseStrategy = Callable[[str], ConsensusResult | None]

# Incomplete strings, arrays and objects are accepted; a cut-off number is not
PARTIAL_ALLOW = Allow.STR | Allow.ARR | Allow.OBJ
MAX_LIST_ITEMS = 20
NEUTRAL_AGREEMENT = 0.5

_FENCE_COMPLETE = re.compile(r"```(?:json)?\s*([\s\S]*?)```")
_FENCE_OPEN = re.compile(r"```(?:json)?\s*([\s\S]*)")
_TRAILING_COMMA = re.compile(r",(\s*[}\]])")
_INVISIBLE = re.compile("[\ufeff\u200b-\u200d\u2060]")
_CONTROL = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_AGREEMENT_FIELD = re.compile(r'"agreement_?level"\s*:\s*"?(\d+(?:\.\d+)?)', re.IGNORECASE)
_SUMMARY_FIELD = re.compile(r'"summary"\s*:\s*"((?:[^"\\]|\\.)+)', re.IGNORECASE)


# ---------------------------------------------------------------------------
# Cleaning helpers
# ---------------------------------------------------------------------------

def clean_llm_response(raw: str) -> str:
    """Strip code fences (complete or cut off) and any text before the first '{'."""
    cleaned = raw.strip()

    complete = _FENCE_COMPLETE.search(cleaned)
    if complete and complete.group(1).strip():
        return complete.group(1).strip()

    opened = _FENCE_OPEN.search(cleaned)
    if opened and opened.group(1) and not cleaned.endswith("```"):
        cleaned = opened.group(1).strip()

    start = cleaned.find("{")
    if start > 0:
        cleaned = cleaned[start:]
    return cleaned


def clean_json_text(text: str) -> str:
    """Drop trailing commas, BOM/zero-width and stray control characters before repair."""
    text = _INVISIBLE.sub("", text)
    text = _CONTROL.sub("", text)
    return _TRAILING_COMMA.sub(r"\1", text)


def _repair_loads(text: str) -> Any:
    # json_repair handles single quotes, unquoted keys and missing commas
    try:
        return json_repair.loads(text)
    except (ValueError, RecursionError) as exc:
        logger.debug("JSON repair failed: %s", exc)
        return None


def load_strict_object(raw: str) -> dict[str, Any] | None:
    """Parse the outermost JSON object in ``raw``, or None.

    The object must be closed; truncated output is left to ``load_partial_object``.
    """
    cleaned = clean_llm_response(raw)
    start, end = cleaned.find("{"), cleaned.rfind("}")
    if start == -1 or end <= start:
        return None
    data = _repair_loads(clean_json_text(cleaned[start:end + 1]))
    return data if isinstance(data, dict) else None


def load_partial_object(raw: str) -> dict[str, Any] | None:
    """Parse a possibly truncated JSON object, completing open strings/arrays/objects."""
    cleaned = clean_llm_response(raw)
    start = cleaned.find("{")
    if start == -1:
        return None
    text = clean_json_text(cleaned[start:])
    try:
        data = loads_partial(text, PARTIAL_ALLOW)
    except Exception as exc:  # the parser raises its own MalformedJSON/PartialJSON types
        logger.debug("Partial JSON parse failed, trying repair: %s", exc)
        data = _repair_loads(text)
    return data if isinstance(data, dict) else None


def load_json_object(raw: str) -> dict[str, Any] | None:
    """Strict parse first, then the truncation-tolerant one."""
    return load_strict_object(raw) or load_partial_object(raw)


# ---------------------------------------------------------------------------
# Field extraction
# ---------------------------------------------------------------------------

def _get(data: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in data:
            return data[key]
    return None


def extract_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if value == value else None   # NaN check
    if isinstance(value, str):
        try:
            return float(value.strip().rstrip("%"))
        except ValueError:
            return None
    return None


def extract_string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str) and item][:MAX_LIST_ITEMS]


def extract_clusters(value: Any) -> list[PositionCluster] | None:
    if not isinstance(value, list):
        return None
    clusters = []
    for item in value:
        if not isinstance(item, dict):
            continue
        agent_ids = extract_string_list(_get(item, "agent_ids", "agentIds"))
        if not agent_ids:
            continue
        clusters.append(PositionCluster(
            theme=str(item.get("theme") or "Unknown"),
            agent_ids=agent_ids,
            summary=str(item.get("summary") or ""),
        ))
    return clusters or None


def extract_nuances(value: Any) -> Nuances | None:
    if not isinstance(value, dict):
        return None
    nuances = Nuances(
        partial_agreements=extract_string_list(_get(value, "partial_agreements", "partialAgreements")),
        conditional_positions=extract_string_list(_get(value, "conditional_positions", "conditionalPositions")),
        uncertainties=extract_string_list(value.get("uncertainties")),
    )
    if nuances.partial_agreements or nuances.conditional_positions or nuances.uncertainties:
        return nuances
    return None


def extract_groupthink(value: Any) -> GroupthinkWarning | None:
    """Keep the model's groupthink opinion only when it explicitly says detected=true."""
    if not isinstance(value, dict) or value.get("detected") is not True:
        return None
    indicators = extract_string_list(value.get("indicators"))
    recommendation = value.get("recommendation")
    if not isinstance(recommendation, str) or not recommendation.strip():
        recommendation = "Review the debate for premature consensus"
    return GroupthinkWarning(detected=True, indicators=indicators, recommendation=recommendation)


def _result_from_mapping(data: Mapping[str, Any], agreement: float, summary_default: str,
                         reasoning_default: str) -> ConsensusResult:
    return ConsensusResult(
        agreement_level=clamp_unit(agreement),
        common_ground=extract_string_list(_get(data, "common_ground", "commonGround")),
        disagreement_points=extract_string_list(_get(data, "disagreement_points", "disagreementPoints")),
        summary=str(data.get("summary") or summary_default),
        groupthink_warning=extract_groupthink(_get(data, "groupthink_warning", "groupthinkWarning")),
        clusters=extract_clusters(data.get("clusters")),
        nuances=extract_nuances(data.get("nuances")),
        reasoning=str(data.get("reasoning") or reasoning_default),
    )


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

def parse_strict(raw: str) -> ConsensusResult | None:
    """Complete object, after fence stripping and minor repairs."""
    data = load_strict_object(raw)
    if data is None:
        return None
    agreement = extract_number(_get(data, "agreement_level", "agreementLevel"))
    return _result_from_mapping(
        data,
        agreement if agreement is not None else NEUTRAL_AGREEMENT,
        summary_default="Analysis complete",
        reasoning_default="",
    )


def parse_partial(raw: str) -> ConsensusResult | None:
    """Truncated object; accepted only if it recovered an agreement score."""
    data = load_partial_object(raw)
    if data is None:
        return None
    agreement = extract_number(_get(data, "agreement_level", "agreementLevel"))
    if agreement is None:
        return None
    logger.info("Recovered analysis from truncated output (agreement %.2f)", agreement)
    return _result_from_mapping(
        data,
        agreement,
        summary_default="Partial analysis",
        reasoning_default="Parsed from partial response",
    )


def extract_summary_text(raw: str) -> str | None:
    match = _SUMMARY_FIELD.search(raw)
    if not match:
        return None
    try:
        return json.loads(f'"{match.group(1)}"')
    except json.JSONDecodeError:
        return match.group(1)


def parse_fields(raw: str) -> ConsensusResult | None:
    """Regex out the agreement score (and summary, if present) from raw text."""
    match = _AGREEMENT_FIELD.search(raw)
    if not match:
        return None
    agreement = float(match.group(1))
    if not 0.0 <= agreement <= 1.0:
        return None
    return ConsensusResult(
        agreement_level=agreement,
        summary=extract_summary_text(raw) or raw,
        reasoning="Parsed from partial/malformed response",
    )


def fallback_result(raw: str) -> ConsensusResult:
    """Neutral score with whatever the model said preserved as the summary."""
    return ConsensusResult(
        agreement_level=NEUTRAL_AGREEMENT,
        common_ground=["Unable to determine common ground"],
        summary=extract_summary_text(raw) or raw or "Analysis failed",
        reasoning="Parsed from partial/malformed response",
    )


PARSE_STRATEGIES: tuple[ParseStrategy, ...] = (parse_strict, parse_partial, parse_fields)


def parse_consensus_response(
    raw: str,
    analyzer_id: str,
    strategies: Sequence[ParseStrategy] = PARSE_STRATEGIES,
) -> ConsensusResult:
    """Run ``strategies`` in order; never raises."""
    for strategy in strategies:
        result = strategy(raw)
        if result is not None:
            logger.debug("Analysis output parsed by %s", strategy.__name__)
            return replace(result, analyzer_id=analyzer_id)

    logger.warning(
        "All parsing strategies failed for analysis output (%d chars): %.500s",
        len(raw), raw,
    )
    logger.debug("Full raw analysis output from %s: %s", analyzer_id, raw)
    return replace(fallback_result(raw), analyzer_id=analyzer_id)
