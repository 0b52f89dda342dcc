from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Callable, Dict, FrozenSet, List, Mapping, Optional, Tuple

from .text_utils import format_duration


class Difficulty(str, Enum):
    EASY = "Easy"
    HARD = "Hard"

    @classmethod
    def parse(cls, value: str) -> "Difficulty":
        return cls.HARD if value == cls.HARD.value else cls.EASY


class Party(str, Enum):
    DEMOCRAT = "Democrat"
    REPUBLICAN = "Republican"
    INDEPENDENT = "Independent"

    @classmethod
    def coerce(cls, value: object) -> "Party":
        for party in cls:
            if value == party.value:
                return party
        return cls.INDEPENDENT


class Seniority(str, Enum):
    SENIOR = "Senior"
    JUNIOR = "Junior"

    @classmethod
    def coerce(cls, value: object) -> "Seniority":
        for seniority in cls:
            if value == seniority.value:
                return seniority
        return cls.JUNIOR


class TemplateKind(str, Enum):
    STATE_ANY = "state_any"
    STATE_PARTY_ANY = "state_party_any"
    STATE_SENIORITY = "state_seniority"
    PARTY_OF_PORTRAIT = "party_of_portrait"
    STATE_OF_PORTRAIT = "state_of_portrait"
    PORTRAIT_ONLY = "portrait_only"
    STATE_PARTY_SENIORITY = "state_party_seniority"
    PARTY_OF_RANDOM = "party_of_random"
    STATE_OF_RANDOM = "state_of_random"


class Presentation(str, Enum):
    TEXT = "text"  # prompt only
    PORTRAIT = "portrait"  # portrait, name withheld
    HYBRID = "hybrid"  # portrait and name


class AnswerChannel(str, Enum):
    FULL_NAME = "full_name"
    LAST_NAME = "last_name"
    MISSPELLING_CORRECTION = "misspelling_correction"


class Rejection(str, Enum):
    NO_MATCH = "no_match"
    AMBIGUOUS_LAST_NAME = "ambiguous_last_name"
    EXACT_REQUIRED = "exact_required"


class FailureKind(str, Enum):
    UNKNOWN_TEMPLATE = "unknown_template"
    UNSOLVABLE_TEMPLATE = "unsolvable_template"
    DATA_MISSING = "data_missing"
    AMBIGUOUS_ANSWER = "ambiguous_answer"


@dataclass(frozen=True)
class Entity:
    name: str
    state: str
    party: Party
    seniority: Seniority
    portrait: Optional[str] = None


@dataclass(frozen=True)
class Question:
    id: str
    difficulty: Difficulty
    kind: TemplateKind
    template: str
    filled: Mapping[str, str]
    correct_answers: Tuple[str, ...]
    allowed_modes: FrozenSet[AnswerChannel]
    presentation: Presentation = Presentation.TEXT
    portrait: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "filled", MappingProxyType(dict(self.filled)))

    def __hash__(self) -> int:
        return hash(self.id)

    def prompt(self) -> str:
        return render_template(self.template, self.filled)

    @property
    def shows_portrait(self) -> bool:
        return self.presentation is not Presentation.TEXT and bool(self.portrait)


@dataclass(frozen=True)
class GenerationFailure:
    kind: FailureKind
    message: str
    details: Optional[Dict[str, str]] = None


@dataclass(frozen=True)
class Verdict:
    question_id: str
    raw_input: str
    is_correct: bool
    feedback: str
    accepted_as: Optional[AnswerChannel] = None
    matched_answer: Optional[str] = None
    rejection: Optional[Rejection] = None


class SessionFinishedError(RuntimeError):
    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SessionSummary:
    total_questions: int
    correct_answers: int
    incorrect_answers: int
    score: int
    time_taken: str
    answers: List[Verdict]


@dataclass
class QuizSession:
    """One run through a fixed list of questions.

    ``record_answer`` is the only mutation: it appends the verdict, bumps the
    score and moves the cursor. Reaching the last question marks the session
    completed and stamps ``ended_at`` in the same call.
    """

    difficulty: Difficulty
    questions: Tuple[Question, ...]
    clock: Callable[[], datetime] = field(default=_utcnow, repr=False)
    cursor: int = 0
    answers: List[Verdict] = field(default_factory=list)
    score: int = 0
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    completed: bool = False

    def __post_init__(self) -> None:
        self.questions = tuple(self.questions)
        if self.started_at is None:
            self.started_at = self.clock()
        if not self.questions:
            self.completed = True
            self.ended_at = self.started_at

    def current_question(self) -> Optional[Question]:
        if self.completed:
            return None
        return self.questions[self.cursor]

    def record_answer(self, verdict: Verdict) -> None:
        if self.completed:
            raise SessionFinishedError("Session already has an answer for every question")
        current = self.questions[self.cursor]
        if verdict.question_id != current.id:
            raise ValueError(
                f"Verdict is for question {verdict.question_id!r}, current question is {current.id!r}"
            )
        self.answers.append(verdict)
        if verdict.is_correct:
            self.score += 1
        self.cursor += 1
        if self.cursor >= len(self.questions):
            self.completed = True
            self.ended_at = self.clock()

    def summary(self) -> SessionSummary:
        total = len(self.questions)
        correct = sum(1 for a in self.answers if a.is_correct)
        # half-up rounding of the percentage
        score = (200 * correct + total) // (2 * total) if total else 0
        end = self.ended_at or self.clock()
        elapsed = (end - self.started_at).total_seconds() if self.started_at else 0.0
        return SessionSummary(
            total_questions=total,
            correct_answers=correct,
            incorrect_answers=total - correct,
            score=score,
            time_taken=format_duration(elapsed),
            answers=list(self.answers),
        )


@dataclass
class ChatState:
    stage: str = "IDLE"  # IDLE | CHOOSE_MODE | BUILDING | ASKING
    session: Optional[QuizSession] = None
    portraits: Dict[str, bytes] = field(default_factory=dict)

    def reset(self) -> None:
        self.stage = "IDLE"
        self.session = None
        self.portraits.clear()


class SessionStore:
    """Per-user chat state, owned by the running bot."""

    def __init__(self) -> None:
        self._states: Dict[int, ChatState] = {}

    def get(self, user_id: int) -> ChatState:
        if user_id not in self._states:
            self._states[user_id] = ChatState()
        return self._states[user_id]

    def discard(self, user_id: int) -> None:
        self._states.pop(user_id, None)

    def __len__(self) -> int:
        return len(self._states)


class _BlankDefault(dict):
    def __missing__(self, key: str) -> str:
        return ""


def render_template(template: str, values: Mapping[str, str]) -> str:
    return template.format_map(_BlankDefault(values))
