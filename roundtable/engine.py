"""Run one debate round across a set of agents.

Three execution patterns are supported:

- PARALLEL: every agent answers concurrently from the same base context.
- SEQUENTIAL: agents answer one at a time, each seeing the responses already
  produced this round.
- LAST_ONLY: every agent but the last answers in parallel, then the last one
  answers with all of those responses visible.

Mode behaviour is injected through a ``ModePolicy`` holding a prompt builder
and optional hook functions. A failing agent is logged and left out; it
never cancels or blocks the others. Output order always follows input order.
"""

import asyncio
import enum
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field, replace

from roundtable.models import Response, RoundContext
from roundtable.providers.base import Agent

logger = logging.getLogger(__name__)

TransformContext = Callable[[RoundContext, Agent], RoundContext]
ValidateResponse = Callable[[Response, RoundContext], Response]
GetAgentRole = Callable[[Agent, int, RoundContext], "str | None"]


class ExecutionPattern(enum.Enum):
    PARALLEL = "parallel"
    SEQUENTIAL = "sequential"
    LAST_ONLY = "last-only"


@dataclass(frozen=True)
class ModeHooks:
    transform_context: TransformContext | None = None
    validate_response: ValidateResponse | None = None
    get_agent_role: GetAgentRole | None = None


def _no_prompt(context: RoundContext) -> str | None:
    return context.mode_prompt


@dataclass(frozen=True)
class ModePolicy:
    name: str
    build_prompt: Callable[[RoundContext], str | None] = _no_prompt
    hooks: ModeHooks = field(default_factory=ModeHooks)
    pattern: ExecutionPattern = ExecutionPattern.PARALLEL
    description: str = ""


NO_POLICY = ModePolicy(name="plain")


def resolve_pattern(policy: ModePolicy, level: str | None) -> ExecutionPattern:
    """Apply a parallelization override to the policy's own pattern.

    ``none`` keeps the policy default, ``last-only`` and ``full`` force
    LAST_ONLY and PARALLEL.
    """
    if level in (None, "", "none"):
        return policy.pattern
    if level == "last-only":
        return ExecutionPattern.LAST_ONLY
    if level == "full":
        return ExecutionPattern.PARALLEL
    raise ValueError(f"Unknown parallelization level: {level!r}")


def _with_prompt(context: RoundContext, policy: ModePolicy) -> RoundContext:
    return replace(context, mode_prompt=policy.build_prompt(context))


async def _run_agent(
    agent: Agent,
    context: RoundContext,
    base: RoundContext,
    hooks: ModeHooks,
) -> Response | None:
    """Invoke one agent; any failure (including in a hook) yields None."""
    try:
        if hooks.transform_context:
            context = hooks.transform_context(context, agent)
        response = await agent.respond(context)
        if hooks.validate_response:
            response = hooks.validate_response(response, base)
        return response
    except Exception as exc:
        logger.warning(
            "Agent %s failed in round %d: %s", agent.agent_id(), base.current_round, exc,
        )
        return None


async def _parallel(agents: Sequence[Agent], base: RoundContext, hooks: ModeHooks) -> list[Response | None]:
    # gather returns results in argument order, so slot i always belongs to agents[i]
    return list(await asyncio.gather(*(_run_agent(a, base, base, hooks) for a in agents)))


async def _sequential(
    agents: Sequence[Agent],
    round_context: RoundContext,
    base: RoundContext,
    policy: ModePolicy,
    seen: Sequence[Response] = (),
    start_index: int = 0,
) -> list[Response | None]:
    hooks = policy.hooks
    accumulated = list(seen)
    slots: list[Response | None] = [None] * len(agents)
    for offset, agent in enumerate(agents):
        index = start_index + offset
        context = _with_prompt(
            replace(round_context, previous_responses=round_context.previous_responses + tuple(accumulated)),
            policy,
        )
        # role is set before transform_context so mode transforms can brief on it
        if hooks.get_agent_role:
            role = hooks.get_agent_role(agent, index, context)
            if role:
                logger.debug("Agent %s plays %s (position %d)", agent.agent_id(), role, index)
                context = replace(context, role=role)
        response = await _run_agent(agent, context, base, hooks)
        slots[offset] = response
        if response is not None:
            accumulated.append(response)
    return slots


async def execute_round(
    agents: Sequence[Agent],
    context: RoundContext,
    pattern: ExecutionPattern,
    policy: ModePolicy = NO_POLICY,
) -> list[Response]:
    """Collect one response per agent that succeeds, in ``agents`` order.

    Returns an empty list when every agent fails; callers decide how to
    report that.
    """
    if not agents:
        return []

    base = _with_prompt(context, policy)
    logger.debug(
        "Round %d: %d agents, %s pattern, mode %s",
        context.current_round, len(agents), pattern.value, policy.name,
    )

    if pattern is ExecutionPattern.PARALLEL:
        slots = await _parallel(agents, base, policy.hooks)
    elif pattern is ExecutionPattern.SEQUENTIAL or len(agents) <= 1:
        slots = await _sequential(agents, context, base, policy)
    else:
        head = await _parallel(agents[:-1], base, policy.hooks)
        tail = await _sequential(
            agents[-1:], context, base, policy,
            seen=[r for r in head if r is not None],
            start_index=len(agents) - 1,
        )
        slots = head + tail

    responses = [r for r in slots if r is not None]
    if len(responses) < len(agents):
        logger.warning(
            "Round %d: %d of %d agents responded", context.current_round, len(responses), len(agents),
        )
    return responses
