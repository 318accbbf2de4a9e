"""Tests for roundtable/engine.py."""

import asyncio
import time
from dataclasses import replace

import pytest

from roundtable.engine import (
    NO_POLICY,
    ExecutionPattern,
    ModeHooks,
    ModePolicy,
    execute_round,
    resolve_pattern,
)
from tests.conftest import StubAgent, failing_agent


def _ids(responses):
    return [r.agent_id for r in responses]


def _seen(agent):
    """Agent ids visible in each context the agent received."""
    return [[r.agent_id for r in c.previous_responses] for c in agent.contexts]


# ---------------------------------------------------------------------------
# Parallel
# ---------------------------------------------------------------------------

async def test_parallel_preserves_input_order_not_completion_order(base_context):
    agents = [StubAgent("slow", delay=0.1), StubAgent("fast", delay=0.0)]
    responses = await execute_round(agents, base_context, ExecutionPattern.PARALLEL)
    assert _ids(responses) == ["slow", "fast"]


async def test_parallel_runs_concurrently(base_context):
    agents = [StubAgent(f"a{i}", delay=0.1) for i in range(4)]
    start = time.monotonic()
    await execute_round(agents, base_context, ExecutionPattern.PARALLEL)
    assert time.monotonic() - start < 0.35


async def test_parallel_isolates_failures(base_context):
    agents = [StubAgent("a"), failing_agent("b"), StubAgent("c")]
    responses = await execute_round(agents, base_context, ExecutionPattern.PARALLEL)
    assert _ids(responses) == ["a", "c"]


async def test_slow_failure_does_not_cancel_others(base_context):
    agents = [failing_agent("a", delay=0.05), StubAgent("b", delay=0.1)]
    responses = await execute_round(agents, base_context, ExecutionPattern.PARALLEL)
    assert _ids(responses) == ["b"]


@pytest.mark.parametrize("pattern", list(ExecutionPattern))
async def test_all_failures_return_empty_list(base_context, pattern):
    agents = [failing_agent("a"), failing_agent("b")]
    assert await execute_round(agents, base_context, pattern) == []


@pytest.mark.parametrize("pattern", list(ExecutionPattern))
async def test_no_agents(base_context, pattern):
    assert await execute_round([], base_context, pattern) == []


async def test_parallel_agents_share_the_base_context(base_context, three_agents):
    await execute_round(three_agents, base_context, ExecutionPattern.PARALLEL)
    contexts = [a.contexts[0] for a in three_agents]
    assert all(c.previous_responses == () for c in contexts)
    assert contexts[0] == contexts[1] == contexts[2]


# ---------------------------------------------------------------------------
# Sequential
# ---------------------------------------------------------------------------

async def test_sequential_accumulates_responses(base_context, three_agents):
    responses = await execute_round(three_agents, base_context, ExecutionPattern.SEQUENTIAL)
    assert _ids(responses) == ["alpha", "beta", "gamma"]
    assert [_seen(a)[0] for a in three_agents] == [[], ["alpha"], ["alpha", "beta"]]


async def test_sequential_appends_after_earlier_rounds(base_context, three_agents):
    earlier = await execute_round(three_agents[:1], base_context, ExecutionPattern.PARALLEL)
    context = replace(base_context, current_round=2, previous_responses=tuple(earlier))
    second = StubAgent("beta")
    await execute_round([StubAgent("alpha"), second], context, ExecutionPattern.SEQUENTIAL)
    assert _seen(second)[0] == ["alpha", "alpha"]


async def test_sequential_skips_failed_agents(base_context):
    last = StubAgent("c")
    agents = [StubAgent("a"), failing_agent("b"), last]
    responses = await execute_round(agents, base_context, ExecutionPattern.SEQUENTIAL)
    assert _ids(responses) == ["a", "c"]
    assert _seen(last)[0] == ["a"]


async def test_sequential_rebuilds_the_mode_prompt(base_context, three_agents):
    policy = ModePolicy(
        name="count",
        build_prompt=lambda c: f"{len(c.previous_responses)} before you",
    )
    await execute_round(three_agents, base_context, ExecutionPattern.SEQUENTIAL, policy)
    assert [a.contexts[0].mode_prompt for a in three_agents] == [
        "0 before you", "1 before you", "2 before you",
    ]


# ---------------------------------------------------------------------------
# Last-only
# ---------------------------------------------------------------------------

async def test_last_only_shows_head_to_last_agent(base_context, three_agents):
    responses = await execute_round(three_agents, base_context, ExecutionPattern.LAST_ONLY)
    assert _ids(responses) == ["alpha", "beta", "gamma"]
    assert _seen(three_agents[0])[0] == []
    assert _seen(three_agents[1])[0] == []
    assert _seen(three_agents[2])[0] == ["alpha", "beta"]


async def test_last_only_with_failed_head_agent(base_context):
    last = StubAgent("c")
    agents = [failing_agent("a"), StubAgent("b"), last]
    responses = await execute_round(agents, base_context, ExecutionPattern.LAST_ONLY)
    assert _ids(responses) == ["b", "c"]
    assert _seen(last)[0] == ["b"]


async def test_last_only_single_agent(base_context):
    agent = StubAgent("solo")
    responses = await execute_round([agent], base_context, ExecutionPattern.LAST_ONLY)
    assert _ids(responses) == ["solo"]


# ---------------------------------------------------------------------------
# Hooks
# ---------------------------------------------------------------------------

async def test_transform_runs_before_the_agent_sees_the_context(base_context, three_agents):
    policy = ModePolicy(
        name="t",
        hooks=ModeHooks(transform_context=lambda c, a: replace(c, focus_question=f"for {a.agent_id()}")),
    )
    await execute_round(three_agents, base_context, ExecutionPattern.PARALLEL, policy)
    assert [a.contexts[0].focus_question for a in three_agents] == [
        "for alpha", "for beta", "for gamma",
    ]


async def test_validate_receives_the_base_context(base_context, three_agents):
    seen_contexts = []

    def validate(response, context):
        seen_contexts.append(context)
        return replace(response, position=response.position.upper())

    policy = ModePolicy(name="v", build_prompt=lambda c: "PROMPT", hooks=ModeHooks(validate_response=validate))
    responses = await execute_round(three_agents, base_context, ExecutionPattern.SEQUENTIAL, policy)

    assert all(r.position.isupper() for r in responses)
    assert all(c.previous_responses == () for c in seen_contexts)
    assert all(c.mode_prompt == "PROMPT" for c in seen_contexts)


async def test_failing_hook_drops_only_that_agent(base_context, three_agents):
    def transform(context, agent):
        if agent.agent_id() == "beta":
            raise RuntimeError("hook exploded")
        return context

    policy = ModePolicy(name="h", hooks=ModeHooks(transform_context=transform))
    responses = await execute_round(three_agents, base_context, ExecutionPattern.PARALLEL, policy)
    assert _ids(responses) == ["alpha", "gamma"]
    assert three_agents[1].contexts == []


async def test_roles_assigned_only_in_sequential_portions(base_context, three_agents):
    calls = []

    def get_role(agent, index, context):
        calls.append((agent.agent_id(), index))
        return f"role-{index}"

    policy = ModePolicy(name="r", hooks=ModeHooks(get_agent_role=get_role))

    await execute_round(three_agents, base_context, ExecutionPattern.PARALLEL, policy)
    assert calls == []
    assert three_agents[0].contexts[0].role is None

    await execute_round(three_agents, base_context, ExecutionPattern.LAST_ONLY, policy)
    assert calls == [("gamma", 2)]
    assert three_agents[2].contexts[-1].role == "role-2"

    calls.clear()
    await execute_round(three_agents, base_context, ExecutionPattern.SEQUENTIAL, policy)
    assert calls == [("alpha", 0), ("beta", 1), ("gamma", 2)]
    assert [a.contexts[-1].role for a in three_agents] == ["role-0", "role-1", "role-2"]


async def test_default_policy_passes_context_through(base_context):
    agent = StubAgent("a")
    await execute_round([agent], base_context, ExecutionPattern.PARALLEL, NO_POLICY)
    assert agent.contexts[0] == base_context


# ---------------------------------------------------------------------------
# Pattern resolution
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("level, expected", [
    (None, ExecutionPattern.SEQUENTIAL),
    ("none", ExecutionPattern.SEQUENTIAL),
    ("last-only", ExecutionPattern.LAST_ONLY),
    ("full", ExecutionPattern.PARALLEL),
])
def test_resolve_pattern(level, expected):
    policy = ModePolicy(name="seq", pattern=ExecutionPattern.SEQUENTIAL)
    assert resolve_pattern(policy, level) is expected


def test_resolve_pattern_rejects_unknown_level():
    with pytest.raises(ValueError, match="Unknown parallelization level"):
        resolve_pattern(NO_POLICY, "half")


async def test_agent_timeout_is_isolated(base_context):
    class Hanging(StubAgent):
        async def respond(self, context):
            raise asyncio.TimeoutError()

    responses = await execute_round([Hanging("h"), StubAgent("ok")], base_context, ExecutionPattern.PARALLEL)
    assert _ids(responses) == ["ok"]
