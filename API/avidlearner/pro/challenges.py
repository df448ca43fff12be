"""Pro-mode coding challenges: listing, paid hints and judged submissions."""
from __future__ import annotations

import json
import random
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from avidlearner.core.errors import NotFound
from avidlearner.core.logging import DOMAIN_PRO, get_domain_logger
from avidlearner.core.settings import Settings, settings
from avidlearner.engine import tracker
from avidlearner.engine.service import session_engine
from avidlearner.engine.store import SessionStore
from avidlearner.pro.judge import JudgeClient, judge_client
from avidlearner.schemas.pro import (
    HintResponse,
    JudgeFailure,
    ProChallenge,
    ProChallengePublic,
    SubmitChallengeResponse,
)

logger = get_domain_logger(__name__, DOMAIN_PRO)

_challenge_list = TypeAdapter(list[ProChallenge])

DEFAULT_DIFFICULTY = "advanced"
ANY = "any"


def load_challenges(path: str | Path) -> list[ProChallenge]:
    file = Path(path)
    try:
        challenges = _challenge_list.validate_python(json.loads(file.read_text(encoding="utf-8")))
    except (json.JSONDecodeError, ValidationError) as exc:
        raise ValueError(f"{file} is not a JSON array of challenges") from exc
    logger.info("Loaded %d pro challenges from %s", len(challenges), file)
    return challenges


def next_hint(challenge: ProChallenge, index: int) -> tuple[str, int, bool]:
    """Hint at `index`, the next index and whether more remain.

    Once exhausted the last hint repeats.
    """
    hints = challenge.hints
    if index < len(hints):
        return hints[index], index + 1, index + 1 < len(hints)
    if hints:
        return hints[-1], len(hints), False
    return "", 0, False


class ChallengeService:
    def __init__(
        self,
        store: SessionStore,
        *,
        judge: JudgeClient,
        config: Settings = settings,
        rng: random.Random | None = None,
    ):
        self.store = store
        self.judge = judge
        self.config = config
        self.rng = rng or random.Random()
        self._challenges: list[ProChallenge] = []
        self._by_id: dict[str, ProChallenge] = {}

    def replace(self, challenges: list[ProChallenge]) -> None:
        self._challenges = list(challenges)
        self._by_id = {challenge.id: challenge for challenge in self._challenges}

    def __len__(self) -> int:
        return len(self._challenges)

    def get(self, challenge_id: str) -> ProChallenge:
        challenge = self._by_id.get((challenge_id or "").strip())
        if challenge is None:
            raise NotFound(f"challenge '{challenge_id}' not found")
        return challenge

    def pick(self, difficulty: str = "", topic: str = "") -> ProChallengePublic:
        difficulty = (difficulty or "").strip().lower() or DEFAULT_DIFFICULTY
        topic = (topic or "").strip().lower()
        pool = [
            challenge
            for challenge in self._challenges
            if (difficulty == ANY or challenge.difficulty.lower() == difficulty)
            and (not topic or topic == ANY or topic in (t.lower() for t in challenge.topics))
        ]
        if not pool:
            raise NotFound(f"no challenge for difficulty '{difficulty}' and topic '{topic or ANY}'")
        return ProChallengePublic.from_challenge(self.rng.choice(pool))

    async def hint(self, session_id: str, challenge_id: str) -> HintResponse:
        challenge = self.get(challenge_id)
        async with self.store.transaction(session_id) as session:
            tracker.apply_reward(session, coins_delta=-self.config.hint_cost_coins)
            hint, index, has_more = next_hint(challenge, session.hint_index.get(challenge.id, 0))
            session.hint_index[challenge.id] = index
            return HintResponse(
                hint=hint,
                index=index,
                has_more=has_more,
                coins_total=session.coins_total,
                xp_total=session.xp_total,
            )

    async def submit(self, session_id: str, challenge_id: str, code: str) -> SubmitChallengeResponse:
        challenge = self.get(challenge_id)
        if not (code or "").strip():
            return SubmitChallengeResponse(
                passed=False,
                failures=[JudgeFailure(name="compile", output="no code submitted")],
                message="Submit some code first.",
            )

        verdict = await self.judge.judge(challenge.id, code)
        if not verdict.passed:
            logger.info("Challenge %s failed for session %s (%d failures)", challenge.id, session_id, len(verdict.failures))
            return SubmitChallengeResponse(**verdict.model_dump(), message="Some tests failed. Keep going!")

        reward = challenge.reward
        async with self.store.transaction(session_id) as session:
            tracker.apply_reward(session, reward.coins, reward.xp)
            session.coding_score += reward.xp
            logger.info("Challenge %s passed for session %s", challenge.id, session_id)
            return SubmitChallengeResponse(
                passed=True,
                total=verdict.total,
                stdout=verdict.stdout,
                coins_earned=reward.coins,
                coins_total=session.coins_total,
                xp_earned=reward.xp,
                xp_total=session.xp_total,
                message=f"All tests passed! +{reward.coins} coins · +{reward.xp} XP",
            )


challenge_service = ChallengeService(session_engine.store, judge=judge_client)
