"""Debate orchestration: one round at a time, then analysis and the exit verdict."""

import logging
import uuid
from collections.abc import Callable, Sequence
from dataclasses import replace

from roundtable.consensus import LexicalConsensusAnalyzer
from roundtable.engine import ExecutionPattern, ModePolicy, execute_round
from roundtable.exit_criteria import check_exit_criteria
from roundtable.groupthink import detect_groupthink
from roundtable.keypoints import KeyPointsExtractor
from roundtable.models import ConsensusResult, ExitCriteria, Response, RoundContext, RoundResult
from roundtable.providers.base import Agent
from roundtable.semantic import SemanticConsensusAnalyzer

logger = logging.getLogger(__name__)

# Quality gate: warn when fewer than this many agents respond in round 1
_MIN_QUALITY_RESPONSES = 3


class NoResponsesError(RuntimeError):
    """Every agent failed in a round."""

    def __init__(self, round_number: int, agent_count: int) -> None:
        self.round_number = round_number
        self.agent_count = agent_count
        super().__init__(f"All {agent_count} agents failed in round {round_number}")


class DebateOrchestrator:
    """Runs rounds for a fixed set of agents under one mode policy.

    Consensus comes from the semantic analyzer when one is given, otherwise
    from the lexical analyzer. Exit criteria are only evaluated when set.
    """

    def __init__(
        self,
        agents: Sequence[Agent],
        policy: ModePolicy,
        pattern: ExecutionPattern | None = None,
        lexical: LexicalConsensusAnalyzer | None = None,
        semantic: SemanticConsensusAnalyzer | None = None,
        key_points: KeyPointsExtractor | None = None,
        exit_criteria: ExitCriteria | None = None,
    ) -> None:
        self._agents = list(agents)
        self._policy = policy
        self._pattern = pattern or policy.pattern
        self._lexical = lexical or LexicalConsensusAnalyzer()
        self._semantic = semantic
        self._key_points = key_points or KeyPointsExtractor()
        self._exit_criteria = exit_criteria

    async def _analyze(self, responses: Sequence[Response], topic: str) -> ConsensusResult:
        if self._semantic is not None:
            return await self._semantic.analyze(responses, topic)
        return self._lexical.analyze(responses)

    async def run_round(self, context: RoundContext, history: Sequence[RoundResult] = ()) -> RoundResult:
        """Execute one round and analyze it.

        Raises:
            NoResponsesError: If no agent produced a response.
        """
        logger.info(
            "Starting round %d/%d with %d agents (%s, %s)",
            context.current_round, context.total_rounds, len(self._agents),
            self._policy.name, self._pattern.value,
        )
        responses = await execute_round(self._agents, context, self._pattern, self._policy)
        if not responses:
            logger.error("All %d agents failed in round %d", len(self._agents), context.current_round)
            raise NoResponsesError(context.current_round, len(self._agents))

        consensus = await self._analyze(responses, context.topic)
        groupthink = detect_groupthink(responses, self._lexical.lexicon)
        if consensus.groupthink_warning is None:
            consensus = replace(consensus, groupthink_warning=groupthink)

        result = RoundResult(
            round_number=context.current_round,
            responses=responses,
            consensus=consensus,
            groupthink=groupthink,
            key_points=await self._key_points.extract_batch(responses),
        )
        if self._exit_criteria is not None:
            result.exit = check_exit_criteria([*history, result], self._exit_criteria, self._lexical.lexicon)

        logger.info(
            "Round %d complete: %d/%d agents responded, agreement %.0f%%",
            context.current_round, len(responses), len(self._agents), consensus.agreement_level * 100,
        )
        return result

    async def run_debate(
        self,
        topic: str,
        num_rounds: int,
        session_id: str | None = None,
        focus_question: str | None = None,
        on_round_complete: Callable[[RoundResult], None] | None = None,
    ) -> list[RoundResult]:
        """Run up to ``num_rounds`` rounds, stopping early when the exit criteria say so.

        Args:
            topic: The question being debated.
            num_rounds: Round budget.
            session_id: Identifier passed through to every context; generated if omitted.
            focus_question: Optional narrower question for every round.
            on_round_complete: Optional callback invoked after each round completes.

        Returns:
            List of RoundResult objects, one per round played.

        Raises:
            NoResponsesError: If all agents fail in a round.
        """
        session_id = session_id or uuid.uuid4().hex
        rounds: list[RoundResult] = []
        previous: tuple[Response, ...] = ()

        for round_num in range(1, num_rounds + 1):
            context = RoundContext(
                session_id=session_id,
                topic=topic,
                mode=self._policy.name,
                current_round=round_num,
                total_rounds=num_rounds,
                previous_responses=previous,
                focus_question=focus_question,
            )
            result = await self.run_round(context, rounds)

            # Quality gate: warn when round 1 has low participation on a large panel
            if (
                round_num == 1
                and len(self._agents) >= _MIN_QUALITY_RESPONSES
                and len(result.responses) < _MIN_QUALITY_RESPONSES
            ):
                logger.warning(
                    "Only %d/%d agents responded in round 1. Debate quality is degraded. "
                    "Consider re-running with longer timeouts or fewer agents.",
                    len(result.responses),
                    len(self._agents),
                )

            rounds.append(result)
            previous = previous + tuple(result.responses)

            if on_round_complete:
                on_round_complete(result)

            if result.exit is not None and result.exit.should_exit:
                logger.info("Stopping after round %d: %s", round_num, result.exit.details)
                break

        return rounds
