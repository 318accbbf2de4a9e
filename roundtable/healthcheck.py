"""Agent health checks: ping each agent before starting a debate."""

import asyncio
import logging

from roundtable.pool import AgentPool
from roundtable.providers.base import Agent

logger = logging.getLogger(__name__)

_PING_PROMPT = "Reply with the word OK only."
_TIMEOUT_SEC = 15.0


async def _check_one(agent: Agent) -> tuple[str, bool, str]:
    """Ping a single agent. Returns (agent_id, ok, error_message)."""
    try:
        await asyncio.wait_for(agent.raw_complete(_PING_PROMPT), timeout=_TIMEOUT_SEC)
        return agent.agent_id(), True, ""
    except TimeoutError:
        return agent.agent_id(), False, f"Health check timed out after {_TIMEOUT_SEC:.0f}s"
    except Exception as exc:
        return agent.agent_id(), False, str(exc)


async def run_health_checks(pool: AgentPool) -> dict[str, tuple[bool, str]]:
    """Ping every registered agent in parallel and record the outcome in ``pool``.

    Returns:
        Dict mapping agent id -> (ok, error_message).
        error_message is "" when ok is True.
    """
    results = await asyncio.gather(*(_check_one(a) for a in pool.agents()))
    for agent_id, ok, err in results:
        if ok:
            pool.mark_healthy(agent_id)
        else:
            pool.mark_unhealthy(agent_id, err)
    healthy = sum(1 for _, ok, _ in results if ok)
    logger.info("Health check: %d/%d agents healthy", healthy, len(results))
    return {agent_id: (ok, err) for agent_id, ok, err in results}
