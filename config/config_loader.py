"""Load settings.yaml into typed dataclasses. Validates API keys at startup."""

import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"

PARALLELIZATION_LEVELS = ("none", "last-only", "full")
KEY_POINT_MODES = ("rule", "ai")


@dataclass
class ModelConfig:
    name: str
    sdk: str
    model: str
    api_key_env: str
    timeout_sec: int
    max_tokens: int
    base_url: str | None = None
    display_name: str | None = None


@dataclass
class PromptsConfig:
    system: str
    response: str


@dataclass
class DefaultsConfig:
    rounds: int
    mode: str
    parallelization: str = "none"
    participants: list[str] = field(default_factory=list)


@dataclass
class ExitCriteriaConfig:
    enabled: bool = True
    consensus_threshold: float = 0.9
    convergence_rounds: int = 2
    confidence_threshold: float = 0.85


@dataclass
class AnalysisConfig:
    semantic: bool = True
    preferred_provider: str | None = None
    key_points: str = "rule"
    lexicon_path: Path | None = None


@dataclass
class AppConfig:
    defaults: DefaultsConfig
    models: dict[str, ModelConfig]
    prompts: PromptsConfig
    exit_criteria: ExitCriteriaConfig = field(default_factory=ExitCriteriaConfig)
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)
    available_providers: set[str] = field(default_factory=set)


def _env_float(name: str, current: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return current
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r: not a number", name, raw)
        return current
    if not 0.0 <= value <= 1.0:
        logger.warning("Ignoring %s=%s: must be between 0 and 1", name, raw)
        return current
    return value


def _env_int(name: str, current: int, minimum: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return current
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r: not an integer", name, raw)
        return current
    if value < minimum:
        logger.warning("Ignoring %s=%d: must be at least %d", name, value, minimum)
        return current
    return value


def apply_env_overrides(exit_cfg: ExitCriteriaConfig) -> ExitCriteriaConfig:
    """Overlay ROUNDTABLE_EXIT_* environment variables on the YAML exit settings."""
    enabled = exit_cfg.enabled
    raw_enabled = os.environ.get("ROUNDTABLE_EXIT_ENABLED", "").strip().lower()
    if raw_enabled in ("1", "true", "yes", "on"):
        enabled = True
    elif raw_enabled in ("0", "false", "no", "off"):
        enabled = False
    elif raw_enabled:
        logger.warning("Ignoring ROUNDTABLE_EXIT_ENABLED=%r: expected true/false", raw_enabled)

    return replace(
        exit_cfg,
        enabled=enabled,
        consensus_threshold=_env_float(
            "ROUNDTABLE_EXIT_CONSENSUS_THRESHOLD", exit_cfg.consensus_threshold,
        ),
        convergence_rounds=_env_int(
            "ROUNDTABLE_EXIT_CONVERGENCE_ROUNDS", exit_cfg.convergence_rounds, minimum=2,
        ),
        confidence_threshold=_env_float(
            "ROUNDTABLE_EXIT_CONFIDENCE_THRESHOLD", exit_cfg.confidence_threshold,
        ),
    )


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if settings file missing.
    Logs missing API keys but does not raise; callers check
    available_providers count.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    defaults_raw = raw["defaults"]
    parallelization = str(defaults_raw.get("parallelization", "none"))
    if parallelization not in PARALLELIZATION_LEVELS:
        logger.warning("Unknown parallelization level %r, using 'none'", parallelization)
        parallelization = "none"
    defaults = DefaultsConfig(
        rounds=int(defaults_raw["rounds"]),
        mode=str(defaults_raw["mode"]),
        parallelization=parallelization,
        participants=list(defaults_raw.get("participants", [])),
    )

    prompts_raw = raw["prompts"]
    prompts = PromptsConfig(
        system=str(prompts_raw["system"]),
        response=str(prompts_raw["response"]),
    )

    exit_raw = raw.get("exit_criteria", {})
    exit_cfg = apply_env_overrides(ExitCriteriaConfig(
        enabled=bool(exit_raw.get("enabled", True)),
        consensus_threshold=float(exit_raw.get("consensus_threshold", 0.9)),
        convergence_rounds=int(exit_raw.get("convergence_rounds", 2)),
        confidence_threshold=float(exit_raw.get("confidence_threshold", 0.85)),
    ))

    analysis_raw = raw.get("analysis", {})
    key_points = str(analysis_raw.get("key_points", "rule"))
    if key_points not in KEY_POINT_MODES:
        logger.warning("Unknown key_points mode %r, using 'rule'", key_points)
        key_points = "rule"
    lexicon_path = analysis_raw.get("lexicon_path")
    analysis = AnalysisConfig(
        semantic=bool(analysis_raw.get("semantic", True)),
        preferred_provider=analysis_raw.get("preferred_provider"),
        key_points=key_points,
        lexicon_path=(settings_path.parent / lexicon_path) if lexicon_path else None,
    )

    models: dict[str, ModelConfig] = {}
    available_providers: set[str] = set()

    for provider_name, model_raw in raw["models"].items():
        model_cfg = ModelConfig(
            name=provider_name,
            sdk=model_raw["sdk"],
            model=model_raw["model"],
            api_key_env=model_raw["api_key_env"],
            timeout_sec=int(model_raw["timeout_sec"]),
            max_tokens=int(model_raw["max_tokens"]),
            base_url=model_raw.get("base_url"),
            display_name=model_raw.get("display_name"),
        )
        models[provider_name] = model_cfg

        api_key = os.environ.get(model_raw["api_key_env"], "").strip()
        if api_key:
            available_providers.add(provider_name)
            logger.info("Provider available: %s", provider_name)
        else:
            logger.info(
                "Provider skipped (no API key): %s, set %s in .env",
                provider_name,
                model_raw["api_key_env"],
            )

    return AppConfig(
        defaults=defaults,
        models=models,
        prompts=prompts,
        exit_criteria=exit_cfg,
        analysis=analysis,
        available_providers=available_providers,
    )
