"""Unit tests for roundtable/healthcheck.py: no real API calls."""

import asyncio

from roundtable.healthcheck import run_health_checks
from roundtable.pool import AgentPool
from roundtable.providers.base import AgentError
from tests.conftest import StubAgent


async def test_all_agents_pass():
    """All agents answer -> all marked ok, no errors."""
    pool = AgentPool([StubAgent("claude"), StubAgent("gemini")])

    results = await run_health_checks(pool)

    assert results == {"claude": (True, ""), "gemini": (True, "")}
    assert len(pool.active_agents()) == 2


async def test_one_agent_fails():
    """An agent that raises returns ok=False with the error message and leaves the active set."""
    grok = StubAgent("grok")
    grok.raw_complete.side_effect = AgentError("grok", "403 Forbidden")
    pool = AgentPool([StubAgent("claude"), grok])

    results = await run_health_checks(pool)

    assert results["claude"] == (True, "")
    ok, err = results["grok"]
    assert ok is False
    assert "403" in err
    assert [a.agent_id() for a in pool.active_agents()] == ["claude"]


async def test_all_agents_fail():
    pool = AgentPool([StubAgent("openai"), StubAgent("gemini")])
    for agent in pool.agents():
        agent.raw_complete.side_effect = Exception(f"{agent.agent_id()} down")

    results = await run_health_checks(pool)

    for name, (ok, err) in results.items():
        assert ok is False
        assert name in err
    assert pool.active_agents() == []


async def test_empty_pool():
    assert await run_health_checks(AgentPool()) == {}


async def test_recovered_agent_is_reactivated():
    agent = StubAgent("claude")
    pool = AgentPool([agent])
    pool.mark_unhealthy("claude", "earlier failure")

    await run_health_checks(pool)

    assert pool.active_agents() == [agent]


async def test_timeout_counts_as_failure(monkeypatch):
    """An agent that hangs past the timeout is marked as failed."""
    import roundtable.healthcheck as hc

    async def hang(*args, **kwargs):
        await asyncio.sleep(9999)

    slow = StubAgent("slow")
    slow.raw_complete.side_effect = hang
    monkeypatch.setattr(hc, "_TIMEOUT_SEC", 0.05)

    results = await run_health_checks(AgentPool([slow]))

    ok, err = results["slow"]
    assert ok is False
    assert "timed out" in err
