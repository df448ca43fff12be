from pydantic import Field

from avidlearner.schemas.base import CamelModel


class ChallengeStarter(CamelModel):
    filename: str = ""
    code: str = ""


class ChallengeReward(CamelModel):
    xp: int = Field(0, ge=0)
    coins: int = Field(0, ge=0)


class ProChallenge(CamelModel):
    id: str
    title: str = ""
    difficulty: str = "advanced"
    topics: list[str] = Field(default_factory=list)
    description: str = ""
    starter: ChallengeStarter = Field(default_factory=ChallengeStarter)
    hints: list[str] = Field(default_factory=list)
    reward: ChallengeReward = Field(default_factory=ChallengeReward)


class ProChallengePublic(CamelModel):
    """Challenge as served to players; hints are bought one at a time."""

    id: str
    title: str
    difficulty: str
    topics: list[str]
    description: str
    starter: ChallengeStarter
    hint_count: int
    reward: ChallengeReward

    @classmethod
    def from_challenge(cls, challenge: ProChallenge) -> "ProChallengePublic":
        return cls(
            id=challenge.id,
            title=challenge.title,
            difficulty=challenge.difficulty,
            topics=list(challenge.topics),
            description=challenge.description,
            starter=challenge.starter,
            hint_count=len(challenge.hints),
            reward=challenge.reward,
        )


class HintRequest(CamelModel):
    id: str = ""


class HintResponse(CamelModel):
    hint: str
    index: int
    has_more: bool
    coins_total: int
    xp_total: int


class SubmitChallengeRequest(CamelModel):
    id: str = ""
    code: str = ""


class JudgeFailure(CamelModel):
    name: str = ""
    output: str = ""


class JudgeVerdict(CamelModel):
    passed: bool = False
    total: int = 0
    failures: list[JudgeFailure] = Field(default_factory=list)
    stdout: str = ""
    stderr: str = ""


class SubmitChallengeResponse(JudgeVerdict):
    coins_earned: int = 0
    coins_total: int = 0
    xp_earned: int = 0
    xp_total: int = 0
    message: str = ""
