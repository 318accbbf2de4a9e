"""Click CLI: orchestrates config loading, agent selection, the debate, and output."""

import asyncio
import logging
import sys
import time

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from config.config_loader import PARALLELIZATION_LEVELS, AppConfig, load_config
from roundtable.consensus import LexicalConsensusAnalyzer
from roundtable.engine import resolve_pattern
from roundtable.exit_criteria import validate_exit_criteria
from roundtable.healthcheck import run_health_checks
from roundtable.keypoints import KeyPointsExtractor
from roundtable.lexicon import DEFAULT_LEXICON, load_lexicon
from roundtable.models import ExitCriteria, RoundResult
from roundtable.modes import available_modes, get_mode
from roundtable.orchestrator import DebateOrchestrator, NoResponsesError
from roundtable.output import print_debate_summary, print_round_summary
from roundtable.pool import AgentPool
from roundtable.providers.anthropic import AnthropicAgent
from roundtable.providers.base import LLMAgent
from roundtable.providers.gemini import GeminiAgent
from roundtable.providers.openai_provider import OpenAIAgent
from roundtable.providers.xai import XAIAgent
from roundtable.semantic import SemanticConsensusAnalyzer

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

AGENT_CLASSES: dict[str, type[LLMAgent]] = {
    "anthropic": AnthropicAgent,
    "openai": OpenAIAgent,
    "gemini": GeminiAgent,
    "xai": XAIAgent,
}

_MIN_AGENTS = 2


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def _build_pool(config: AppConfig, names: list[str]) -> AgentPool:
    """Instantiate the named agents that have API keys, in the order given."""
    pool = AgentPool()
    for name in names:
        if name not in config.models:
            logger.warning("Model '%s' not in settings, skipping", name)
            continue
        if name not in config.available_providers:
            continue
        model_cfg = config.models[name]
        agent_cls = AGENT_CLASSES.get(model_cfg.sdk)
        if agent_cls is None:
            logger.warning("Model '%s' uses unknown sdk '%s', skipping", name, model_cfg.sdk)
            continue
        try:
            pool.register(agent_cls(model_cfg, config.prompts))
        except Exception as exc:
            logger.warning("Failed to instantiate agent '%s': %s", name, exc)
    return pool


def _check_agents(pool: AgentPool) -> None:
    """Run health checks and print results. Exits if fewer than two agents pass."""
    console.print("\n[bold]Checking agents...[/bold]")
    results = asyncio.run(run_health_checks(pool))

    for name in sorted(results):
        ok, err = results[name]
        if ok:
            console.print(f"  [green]OK  [/green] {name}")
        else:
            short_err = err.splitlines()[0][:120] if err else "unknown error"
            console.print(f"  [red]FAIL[/red] {name}: {short_err}")

    if len(pool.active_agents()) < _MIN_AGENTS:
        console.print("\n[bold red]Error:[/bold red] Fewer than 2 agents passed the health check.")
        sys.exit(1)
    console.print()


def _exit_criteria(config: AppConfig, rounds: int) -> ExitCriteria | None:
    cfg = config.exit_criteria
    if not cfg.enabled:
        return None
    criteria = ExitCriteria(
        max_rounds=rounds,
        consensus_threshold=cfg.consensus_threshold,
        convergence_rounds=cfg.convergence_rounds,
        confidence_threshold=cfg.confidence_threshold,
    )
    errors = validate_exit_criteria(criteria)
    if errors:
        console.print(f"[bold red]Config error:[/bold red] {'; '.join(errors)}")
        sys.exit(1)
    return criteria


async def _run(orchestrator: DebateOrchestrator, topic: str, rounds: int) -> list[RoundResult]:
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    ) as progress:

        def on_round_complete(result: RoundResult) -> None:
            progress.print(
                f"[green]OK[/green] Round {result.round_number} complete ({len(result.responses)} responses)"
            )

        progress.add_task("Running debate rounds...", total=None)
        return await orchestrator.run_debate(topic, rounds, on_round_complete=on_round_complete)


@click.command()
@click.argument("topic")
@click.option("--rounds", default=None, type=int, help="Number of debate rounds (default: from config)")
@click.option("--mode", default=None, type=click.Choice(available_modes()), help="Debate mode (default: from config)")
@click.option("--models", default=None, help="Comma-separated model list (default: participants from config)")
@click.option("--pattern", "parallelization", default=None, type=click.Choice(PARALLELIZATION_LEVELS),
              help="Parallelization override: none keeps the mode's pattern")
@click.option("--no-semantic", is_flag=True, default=False, help="Use lexical consensus analysis only")
@click.option("--skip-health-check", is_flag=True, default=False,
              help="Skip the API connectivity check at startup")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
def main(
    topic: str,
    rounds: int | None,
    mode: str | None,
    models: str | None,
    parallelization: str | None,
    no_semantic: bool,
    skip_health_check: bool,
    verbose: bool,
) -> None:
    """Roundtable -- multi-agent debate with consensus and groupthink analysis.

    \b
    Examples:
      roundtable "Should we use REST or GraphQL?" --rounds 2
      roundtable "Is TypeScript worth it?" --mode devils-advocate
      roundtable "SQL or NoSQL?" --models claude,openai --pattern full
    """
    load_dotenv()
    _setup_logging(verbose)

    try:
        config = load_config()
        policy = get_mode(mode or config.defaults.mode)
        lexicon = load_lexicon(config.analysis.lexicon_path) if config.analysis.lexicon_path else DEFAULT_LEXICON
    except (FileNotFoundError, KeyError, ValueError) as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)

    effective_rounds = rounds if rounds is not None else config.defaults.rounds
    if effective_rounds < 1:
        console.print("[bold red]Error:[/bold red] --rounds must be at least 1.")
        sys.exit(1)
    names = [m.strip() for m in models.split(",")] if models else config.defaults.participants
    pattern = resolve_pattern(policy, parallelization or config.defaults.parallelization)

    pool = _build_pool(config, names)
    if len(pool) < _MIN_AGENTS:
        console.print(
            f"[bold red]Error:[/bold red] Need at least 2 agents, got {len(pool)}. "
            "Check API keys in .env or adjust --models."
        )
        sys.exit(1)

    if not skip_health_check:
        _check_agents(pool)

    lexical = LexicalConsensusAnalyzer(lexicon)
    semantic = None
    if config.analysis.semantic and not no_semantic:
        semantic = SemanticConsensusAnalyzer(pool, config.analysis.preferred_provider, lexical)
    key_points = KeyPointsExtractor(
        pool if config.analysis.key_points == "ai" else None,
        config.analysis.preferred_provider,
    )

    agents = pool.active_agents()
    orchestrator = DebateOrchestrator(
        agents,
        policy,
        pattern=pattern,
        lexical=lexical,
        semantic=semantic,
        key_points=key_points,
        exit_criteria=_exit_criteria(config, effective_rounds),
    )

    console.print(
        f"\n[bold cyan]Roundtable[/bold cyan]: {len(agents)} agents, up to {effective_rounds} rounds "
        f"[{policy.name}, {pattern.value}]"
    )
    console.print(f"Agents: {', '.join(a.name() for a in agents)}")
    console.print(f"Topic: [italic]{topic[:80]}{'...' if len(topic) > 80 else ''}[/italic]\n")

    start = time.monotonic()
    try:
        results = asyncio.run(_run(orchestrator, topic, effective_rounds))
    except NoResponsesError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        sys.exit(1)

    for result in results:
        print_round_summary(result)
    print_debate_summary(results, time.monotonic() - start)


if __name__ == "__main__":
    main()
