"""Rich console output for debate rounds."""

import logging

from rich.console import Console
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from roundtable.models import ConsensusResult, GroupthinkWarning, Response, RoundResult

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)


def _preview(text: str, words: int = 50) -> str:
    """Return first N words of a text."""
    all_words = text.split()
    preview = " ".join(all_words[:words])
    if len(all_words) > words:
        preview += "..."
    return preview


def agreement_style(level: float) -> str:
    if level >= 0.8:
        return "green"
    if level >= 0.5:
        return "yellow"
    return "red"


def _response_panel(response: Response, key_points: list[str]) -> Panel:
    body = Text()
    body.append(response.position, style="bold")
    body.append("\n\n")
    if key_points:
        for point in key_points:
            body.append(f"- {point}\n")
    else:
        body.append(_preview(response.reasoning))
    stance = f" | {response.stance}" if response.stance else ""
    return Panel(
        body,
        title=f"[bold]{response.agent_name}[/bold]",
        subtitle=f"confidence {response.confidence:.0%}{stance}",
        border_style="dim",
    )


def _consensus_table(consensus: ConsensusResult) -> Table:
    table = Table(show_header=False, box=None, padding=(0, 1))
    style = agreement_style(consensus.agreement_level)
    table.add_row("Agreement", f"[{style}]{consensus.agreement_level:.0%}[/{style}] ({consensus.analyzer_id or 'n/a'})")
    for point in consensus.common_ground:
        table.add_row("[green]+[/green]", point)
    for point in consensus.disagreement_points:
        table.add_row("[red]-[/red]", point)
    if consensus.nuances:
        for point in consensus.nuances.partial_agreements + consensus.nuances.conditional_positions:
            table.add_row("[yellow]~[/yellow]", point)
        for point in consensus.nuances.uncertainties:
            table.add_row("[yellow]?[/yellow]", point)
    return table


def _groupthink_line(warning: GroupthinkWarning) -> Text:
    text = Text("Groupthink: ", style="bold red")
    text.append("; ".join(warning.indicators))
    text.append(f"\n{warning.recommendation}", style="italic")
    return text


def print_round_summary(result: RoundResult) -> None:
    """Print responses, consensus, groupthink and exit verdict for one round."""
    console.print(Rule(f"[bold cyan]Round {result.round_number}[/bold cyan]"))
    for response in result.responses:
        console.print(_response_panel(response, result.key_points.get(response.agent_id, [])))

    if result.consensus:
        console.print(_consensus_table(result.consensus))
        console.print(Text(result.consensus.summary, style="dim"))

    if result.groupthink and result.groupthink.detected:
        console.print(_groupthink_line(result.groupthink))

    if result.exit and result.exit.should_exit:
        console.print(f"[bold]Exit:[/bold] {result.exit.reason}: {result.exit.details}")


def print_debate_summary(rounds: list[RoundResult], elapsed_sec: float) -> None:
    """Print one line per round and the final verdict."""
    console.print(Rule("[bold green]Debate Summary[/bold green]"))
    table = Table("Round", "Responses", "Agreement", "Groupthink", "Exit")
    for result in rounds:
        level = result.consensus.agreement_level if result.consensus else 0.0
        style = agreement_style(level)
        table.add_row(
            str(result.round_number),
            str(len(result.responses)),
            f"[{style}]{level:.0%}[/{style}]",
            "yes" if result.groupthink and result.groupthink.detected else "no",
            result.exit.reason or "-" if result.exit else "-",
        )
    console.print(table)
    console.print(Text(f"Duration: {elapsed_sec:.1f}s | Rounds: {len(rounds)}", style="dim"))
