"""Built-in debate modes.

Each mode is a ``ModePolicy``: a prompt builder, an execution pattern and
optional hooks assembled from the small validators and context processors
below. ``get_mode`` returns a fresh policy per call, so per-debate hook state
(the devil's-advocate role table, the red/blue team table) is never shared
between debates.
"""

import logging
import statistics
from collections import Counter
from collections.abc import Callable
from dataclasses import replace

from roundtable.engine import ExecutionPattern, ModeHooks, ModePolicy
from roundtable.models import STANCES, Response, RoundContext, clamp_unit
from roundtable.providers.base import Agent

logger = logging.getLogger(__name__)

Validator = Callable[[Response, RoundContext], Response]
Processor = Callable[[RoundContext, Agent], RoundContext]

MAX_LISTED_POSITIONS = 5
POSITION_PREVIEW = 100


# ---------------------------------------------------------------------------
# Validators
# ---------------------------------------------------------------------------

def clamp_confidence(response: Response, context: RoundContext) -> Response:
    clamped = clamp_unit(response.confidence)
    return response if clamped == response.confidence else replace(response, confidence=clamped)


def fill_required_fields(response: Response, context: RoundContext) -> Response:
    position = response.position if response.position.strip() else "No position provided"
    reasoning = response.reasoning if response.reasoning.strip() else "No reasoning provided"
    if position is response.position and reasoning is response.reasoning:
        return response
    return replace(response, position=position, reasoning=reasoning)


def enforce_stance(stance: str) -> Validator:
    if stance not in STANCES:
        raise ValueError(f"Unknown stance: {stance!r}")

    def validate(response: Response, context: RoundContext) -> Response:
        if response.stance == stance:
            return response
        logger.debug("Stance of %s forced to %s (was %s)", response.agent_id, stance, response.stance)
        return replace(response, stance=stance)

    return validate


def chain_validators(*validators: Validator) -> Validator:
    def validate(response: Response, context: RoundContext) -> Response:
        for validator in validators:
            response = validator(response, context)
        return response

    return validate


DEFAULT_VALIDATOR = chain_validators(fill_required_fields, clamp_confidence)


# ---------------------------------------------------------------------------
# Context processors
# ---------------------------------------------------------------------------

def _label(index: int) -> str:
    # A..Z, then AA, AB, ...
    label = ""
    index += 1
    while index:
        index, rem = divmod(index - 1, 26)
        label = chr(ord("A") + rem) + label
    return label


def anonymize_context(context: RoundContext, agent: Agent | None = None) -> RoundContext:
    """Replace prior responders' names with neutral labels, keeping order."""
    if not context.previous_responses:
        return context
    anonymized = tuple(
        replace(r, agent_id=f"participant-{_label(i).lower()}", agent_name=f"Participant {_label(i)}")
        for i, r in enumerate(context.previous_responses)
    )
    return replace(context, previous_responses=anonymized)


def _key_position(position: str) -> str:
    first = position.strip().split(".")[0].strip()
    if not first:
        return "(No position)"
    return first if len(first) <= POSITION_PREVIEW else first[:POSITION_PREVIEW] + "..."


def round_statistics(responses: tuple[Response, ...]) -> str:
    stance_counts = Counter(r.stance for r in responses if r.stance)
    positions = Counter(_key_position(r.position) for r in responses)
    top = max(positions.values())
    lines = [
        f"- Participants: {len(responses)}",
        f"- Average confidence: {statistics.fmean(r.confidence for r in responses):.1%}",
        f"- Consensus level: {top / len(responses):.1%}",
    ]
    if stance_counts:
        lines.append("- Stance distribution: " + ", ".join(f"{s}={stance_counts.get(s, 0)}" for s in STANCES))
    lines.append("- Position distribution:")
    for position, count in positions.most_common(MAX_LISTED_POSITIONS):
        lines.append(f'  - {count} participant(s): "{position}"')
    return "\n".join(lines)


def add_round_statistics(context: RoundContext, agent: Agent | None = None) -> RoundContext:
    """Append aggregate statistics of the prior responses to the mode prompt."""
    if not context.previous_responses:
        return context
    stats = round_statistics(context.previous_responses)
    return replace(context, mode_prompt=f"{context.mode_prompt or ''}\n\nRound statistics:\n{stats}")


def chain_processors(*processors: Processor) -> Processor:
    def process(context: RoundContext, agent: Agent) -> RoundContext:
        for processor in processors:
            context = processor(context, agent)
        return context

    return process


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------

def _focus(context: RoundContext) -> str:
    return f"\nFocus on: {context.focus_question}" if context.focus_question else ""


def _round_note(context: RoundContext) -> str:
    if context.current_round == 1:
        return "This is the opening round."
    return f"Round {context.current_round}: respond to the arguments made so far."


def collaborative_prompt(context: RoundContext) -> str:
    return (
        "Mode: Collaborative\n"
        "Work with the other participants toward the best answer. Build on strong points, "
        "name the ones you disagree with and say why, and revise your position when persuaded.\n"
        f"{_round_note(context)}{_focus(context)}"
    )


def expert_panel_prompt(context: RoundContext) -> str:
    return (
        "Mode: Expert Panel\n"
        "Answer as an independent domain expert. Ground every claim in evidence or established "
        "practice, state your assumptions and give a calibrated confidence.\n"
        f"{_round_note(context)}{_focus(context)}"
    )


def delphi_prompt(context: RoundContext) -> str:
    if context.previous_responses:
        structure = (
            "Review the anonymized responses and statistics below. State whether you keep or "
            "revise your estimate and why; do not defer to the majority without reasons."
        )
    else:
        structure = (
            "Give your independent estimate with its reasoning. Your answer will be shared "
            "anonymously together with aggregate statistics."
        )
    return f"Mode: Delphi Method\n{structure}\n{_round_note(context)}{_focus(context)}"


def adversarial_prompt(context: RoundContext) -> str:
    return (
        "Mode: Adversarial\n"
        "Critically examine the previous arguments. Identify their weakest assumptions and "
        "counter them with evidence. Concede only what survives scrutiny.\n"
        f"{_round_note(context)}{_focus(context)}"
    )


def devils_advocate_prompt(context: RoundContext) -> str:
    return (
        "Mode: Devil's Advocate\n"
        "Participants hold fixed roles: PRIMARY argues for the proposition, OPPOSITION argues "
        "against it whatever the others say, EVALUATOR weighs both sides.\n"
        f"{_round_note(context)}{_focus(context)}"
    )


def socratic_prompt(context: RoundContext) -> str:
    if context.previous_responses:
        structure = (
            "Question the positions already given rather than stating your own. Examine the "
            "assumptions behind them, ask where their implications lead, and end by inviting the "
            "next participant to answer your sharpest question."
        )
    else:
        structure = (
            "Open the dialogue by reframing the topic as a question. Ask the foundational "
            "questions it depends on and challenge what seems obvious about it."
        )
    focus = (
        f"\nFocus on: {context.focus_question}\nDo not answer this directly; break it into sub-questions."
        if context.focus_question else ""
    )
    return (
        "Mode: Socratic Dialogue\n"
        "Ask at least three probing questions. Do not give direct answers.\n"
        f"{structure}\n{_round_note(context)}{focus}"
    )


def red_team_blue_team_prompt(context: RoundContext) -> str:
    return (
        "Mode: Red Team / Blue Team\n"
        "Participants are split into two teams: RED attacks the proposition, BLUE defends it "
        "with concrete solutions.\n"
        f"{_round_note(context)}{_focus(context)}"
    )


# ---------------------------------------------------------------------------
# Red team / blue team
# ---------------------------------------------------------------------------

TEAM_RED = "RED"
TEAM_BLUE = "BLUE"

TEAM_INSTRUCTIONS = {
    TEAM_RED: (
        "You are on the RED team. Find vulnerabilities, attack vectors, failure modes, hidden "
        "costs and weak assumptions. Do not propose solutions."
    ),
    TEAM_BLUE: (
        "You are on the BLUE team. Propose solutions and safeguards, defend them against the "
        "attacks raised, and explain how the plan stays resilient."
    ),
}

COUNTER_INSTRUCTIONS = {
    TEAM_RED: "The blue team has proposed solutions. Your job: break them.",
    TEAM_BLUE: "The red team has raised attacks. Answer each one with a concrete defense.",
}


def team_for_index(index: int) -> str:
    return TEAM_RED if index % 2 == 0 else TEAM_BLUE


def red_team_blue_team_policy() -> ModePolicy:
    teams: dict[str, str] = {}

    def get_agent_role(agent: Agent, index: int, context: RoundContext) -> str:
        team = team_for_index(index)
        teams[agent.agent_id()] = team
        return team

    def brief_team(context: RoundContext, agent: Agent) -> RoundContext:
        # parallel rounds never call get_agent_role; teams then alternate by first appearance
        team = context.role or teams.get(agent.agent_id()) or team_for_index(len(teams))
        teams.setdefault(agent.agent_id(), team)
        prompt = f"{context.mode_prompt or ''}\n\n{TEAM_INSTRUCTIONS[team]}"
        if any(teams.get(r.agent_id, team) != team for r in context.previous_responses):
            prompt += f"\n{COUNTER_INSTRUCTIONS[team]}"
        return replace(context, role=team, mode_prompt=prompt)

    return ModePolicy(
        name="red-team-blue-team",
        build_prompt=red_team_blue_team_prompt,
        hooks=ModeHooks(
            transform_context=brief_team,
            validate_response=DEFAULT_VALIDATOR,
            get_agent_role=get_agent_role,
        ),
        pattern=ExecutionPattern.PARALLEL,
        description="Alternating RED attackers and BLUE defenders",
    )


# ---------------------------------------------------------------------------
# Devil's advocate roles
# ---------------------------------------------------------------------------

ROLE_PRIMARY = "PRIMARY"
ROLE_OPPOSITION = "OPPOSITION"
ROLE_EVALUATOR = "EVALUATOR"

ROLE_STANCES = {ROLE_PRIMARY: "YES", ROLE_OPPOSITION: "NO", ROLE_EVALUATOR: "NEUTRAL"}

ROLE_INSTRUCTIONS = {
    ROLE_PRIMARY: (
        "You hold the PRIMARY position: argue YES, in favour of the proposition, with three "
        "strong supporting arguments. Do not hedge. Set stance to YES."
    ),
    ROLE_OPPOSITION: (
        "You are the devil's advocate: argue NO, against the position just presented, with three "
        "counter-arguments. Never concede to the previous speaker. Set stance to NO."
    ),
    ROLE_EVALUATOR: (
        "You are the EVALUATOR: weigh the affirmative and opposing arguments on their merits and "
        "say which is stronger and why. Set stance to NEUTRAL."
    ),
}


def devils_advocate_role(index: int) -> str:
    if index == 0:
        return ROLE_PRIMARY
    if index == 1:
        return ROLE_OPPOSITION
    return ROLE_EVALUATOR


def devils_advocate_policy() -> ModePolicy:
    roles: dict[str, str] = {}

    def get_agent_role(agent: Agent, index: int, context: RoundContext) -> str:
        role = devils_advocate_role(index)
        roles[agent.agent_id()] = role
        return role

    def brief_role(context: RoundContext, agent: Agent) -> RoundContext:
        if not context.role:
            return context
        return replace(context, mode_prompt=f"{context.mode_prompt or ''}\n\n{ROLE_INSTRUCTIONS[context.role]}")

    def validate(response: Response, context: RoundContext) -> Response:
        response = DEFAULT_VALIDATOR(response, context)
        role = roles.get(response.agent_id)
        if role is None:
            return response
        return enforce_stance(ROLE_STANCES[role])(response, context)

    return ModePolicy(
        name="devils-advocate",
        build_prompt=devils_advocate_prompt,
        hooks=ModeHooks(transform_context=brief_role, validate_response=validate, get_agent_role=get_agent_role),
        pattern=ExecutionPattern.SEQUENTIAL,
        description="Fixed PRIMARY / OPPOSITION / EVALUATOR roles with enforced stances",
    )


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

def collaborative_policy() -> ModePolicy:
    return ModePolicy(
        name="collaborative",
        build_prompt=collaborative_prompt,
        hooks=ModeHooks(validate_response=DEFAULT_VALIDATOR),
        pattern=ExecutionPattern.PARALLEL,
        description="Participants build on each other toward a shared answer",
    )


def expert_panel_policy() -> ModePolicy:
    return ModePolicy(
        name="expert-panel",
        build_prompt=expert_panel_prompt,
        hooks=ModeHooks(validate_response=DEFAULT_VALIDATOR),
        pattern=ExecutionPattern.PARALLEL,
        description="Independent expert assessments",
    )


def delphi_policy() -> ModePolicy:
    return ModePolicy(
        name="delphi",
        build_prompt=delphi_prompt,
        hooks=ModeHooks(
            transform_context=chain_processors(anonymize_context, add_round_statistics),
            validate_response=DEFAULT_VALIDATOR,
        ),
        pattern=ExecutionPattern.PARALLEL,
        description="Anonymized rounds with aggregate statistics",
    )


def adversarial_policy() -> ModePolicy:
    return ModePolicy(
        name="adversarial",
        build_prompt=adversarial_prompt,
        hooks=ModeHooks(validate_response=DEFAULT_VALIDATOR),
        pattern=ExecutionPattern.SEQUENTIAL,
        description="Each participant attacks the arguments before it",
    )


def socratic_policy() -> ModePolicy:
    return ModePolicy(
        name="socratic",
        build_prompt=socratic_prompt,
        hooks=ModeHooks(validate_response=DEFAULT_VALIDATOR),
        pattern=ExecutionPattern.SEQUENTIAL,
        description="Participants question each other's positions instead of answering",
    )


MODES: dict[str, Callable[[], ModePolicy]] = {
    "collaborative": collaborative_policy,
    "expert-panel": expert_panel_policy,
    "delphi": delphi_policy,
    "adversarial": adversarial_policy,
    "devils-advocate": devils_advocate_policy,
    "socratic": socratic_policy,
    "red-team-blue-team": red_team_blue_team_policy,
}


def available_modes() -> list[str]:
    return list(MODES)


def get_mode(name: str) -> ModePolicy:
    """Return a fresh policy for ``name``.

    Raises:
        ValueError: If the mode is unknown.
    """
    factory = MODES.get(name)
    if factory is None:
        raise ValueError(f"Unknown mode {name!r}. Available: {', '.join(MODES)}")
    return factory()
