import asyncio
import random
from typing import Callable, Dict, FrozenSet, List, Optional, Sequence, Set, Tuple, TypeVar, Union

from .config import logger
from .models import (
    AnswerChannel,
    Difficulty,
    Entity,
    FailureKind,
    GenerationFailure,
    Party,
    Presentation,
    Question,
    Seniority,
    TemplateKind,
)
from .roster import Roster
from .text_utils import normalize_name

K = TemplateKind

T = TypeVar("T")
Outcome = Union[Question, GenerationFailure]
Filler = Callable[[Difficulty, Roster, random.Random], Outcome]

TEMPLATES: Dict[Difficulty, Tuple[TemplateKind, ...]] = {
    Difficulty.EASY: (
        K.STATE_ANY,
        K.STATE_PARTY_ANY,
        K.STATE_SENIORITY,
        K.PARTY_OF_PORTRAIT,
        K.STATE_OF_PORTRAIT,
    ),
    Difficulty.HARD: (
        K.PORTRAIT_ONLY,
        K.STATE_SENIORITY,
        K.STATE_PARTY_SENIORITY,
        K.PARTY_OF_RANDOM,
        K.STATE_OF_RANDOM,
    ),
}

STATE_PARTY_ATTEMPTS = 30
STATE_SENIORITY_ATTEMPTS = 40
STATE_PARTY_SENIORITY_ATTEMPTS = 50

PARTIES: Tuple[Party, ...] = tuple(Party)
SENIORITIES: Tuple[Seniority, ...] = tuple(Seniority)

_ID_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"


def shuffle_in_place(items: List[T], rng: random.Random) -> None:
    # Fisher–Yates, so a seeded rng replays the same order
    for i in range(len(items) - 1, 0, -1):
        j = rng.randrange(i + 1)
        items[i], items[j] = items[j], items[i]


def pick_random(items: Sequence[T], rng: random.Random) -> Optional[T]:
    if not items:
        return None
    return items[rng.randrange(len(items))]


def make_id(rng: random.Random) -> str:
    return "q_" + "".join(rng.choice(_ID_ALPHABET) for _ in range(7))


def name_modes(difficulty: Difficulty) -> FrozenSet[AnswerChannel]:
    if difficulty is Difficulty.EASY:
        return frozenset(AnswerChannel)
    return frozenset({AnswerChannel.FULL_NAME})


def attribute_modes(difficulty: Difficulty) -> FrozenSet[AnswerChannel]:
    if difficulty is Difficulty.EASY:
        return frozenset({AnswerChannel.FULL_NAME, AnswerChannel.MISSPELLING_CORRECTION})
    return frozenset({AnswerChannel.FULL_NAME})


def _failure(kind: FailureKind, message: str, **details: str) -> GenerationFailure:
    return GenerationFailure(kind=kind, message=message, details=details or None)


# ---------- template fillers ----------


def _state_any(difficulty: Difficulty, roster: Roster, rng: random.Random) -> Outcome:
    by_state = roster.by_state()
    states = [st for st, members in by_state.items() if len(members) >= 1]
    state = pick_random(states, rng)
    if state is None:
        return _failure(FailureKind.UNSOLVABLE_TEMPLATE, "No senators found for any state.")
    matches = by_state[state]
    logger.debug("state_any solvable: %s acceptable answers for %s.", len(matches), state)
    return Question(
        id=make_id(rng),
        difficulty=difficulty,
        kind=K.STATE_ANY,
        template="Name a senator from {state}.",
        filled={"state": state},
        correct_answers=tuple(m.name for m in matches),
        allowed_modes=name_modes(difficulty),
    )


def _state_party_any(difficulty: Difficulty, roster: Roster, rng: random.Random) -> Outcome:
    states = roster.states()
    if states:
        for _ in range(STATE_PARTY_ATTEMPTS):
            state = pick_random(states, rng)
            party = pick_random(PARTIES, rng)
            matches = roster.matching(state=state, party=party)
            if matches:
                logger.debug(
                    "state_party_any solvable: %s acceptable answers (%s, %s).",
                    len(matches), party.value, state,
                )
                return Question(
                    id=make_id(rng),
                    difficulty=difficulty,
                    kind=K.STATE_PARTY_ANY,
                    template="Name a {party} senator from {state}.",
                    filled={"party": party.value, "state": state},
                    correct_answers=tuple(m.name for m in matches),
                    allowed_modes=name_modes(difficulty),
                )
    return _failure(
        FailureKind.UNSOLVABLE_TEMPLATE,
        "Could not find a state+party with at least one match.",
    )


def _state_seniority(difficulty: Difficulty, roster: Roster, rng: random.Random) -> Outcome:
    states = roster.states()
    if states:
        for _ in range(STATE_SENIORITY_ATTEMPTS):
            state = pick_random(states, rng)
            seniority = pick_random(SENIORITIES, rng)
            matches = roster.matching(state=state, seniority=seniority)
            if len(matches) == 1:
                logger.debug("state_seniority unique: 1 match (%s, %s).", seniority.value, state)
                return Question(
                    id=make_id(rng),
                    difficulty=difficulty,
                    kind=K.STATE_SENIORITY,
                    template="Name the {seniority} Senator from {state}.",
                    filled={"seniority": seniority.value, "state": state},
                    correct_answers=(matches[0].name,),
                    allowed_modes=name_modes(difficulty),
                )
    return _failure(
        FailureKind.AMBIGUOUS_ANSWER,
        "Could not enforce uniqueness for state+seniority.",
    )


def _state_party_seniority(difficulty: Difficulty, roster: Roster, rng: random.Random) -> Outcome:
    states = roster.states()
    if states:
        for _ in range(STATE_PARTY_SENIORITY_ATTEMPTS):
            state = pick_random(states, rng)
            party = pick_random(PARTIES, rng)
            seniority = pick_random(SENIORITIES, rng)
            matches = roster.matching(state=state, party=party, seniority=seniority)
            if len(matches) == 1:
                logger.debug(
                    "state_party_seniority unique: 1 match (%s, %s, %s).",
                    party.value, seniority.value, state,
                )
                return Question(
                    id=make_id(rng),
                    difficulty=difficulty,
                    kind=K.STATE_PARTY_SENIORITY,
                    template="Name the {party} {seniority} Senator from {state}.",
                    filled={"party": party.value, "seniority": seniority.value, "state": state},
                    correct_answers=(matches[0].name,),
                    allowed_modes=name_modes(difficulty),
                )
    return _failure(
        FailureKind.AMBIGUOUS_ANSWER,
        "Could not enforce uniqueness for state+party+seniority.",
    )


def _portrait_only(difficulty: Difficulty, roster: Roster, rng: random.Random) -> Outcome:
    senator = pick_random(roster.entities, rng)
    if senator is None or not senator.portrait:
        return _failure(
            FailureKind.DATA_MISSING,
            "Portrait asset not found.",
            senator=senator.name if senator else "unknown",
        )
    # a portrait maps to exactly one senator, so the answer is unique
    logger.debug("portrait_only solvable: 1 match by portrait.")
    return Question(
        id=make_id(rng),
        difficulty=difficulty,
        kind=K.PORTRAIT_ONLY,
        template="Who is this senator?",
        filled={},
        correct_answers=(senator.name,),
        allowed_modes=name_modes(difficulty),
        presentation=Presentation.PORTRAIT,
        portrait=senator.portrait,
    )


def _attribute_question(
    kind: TemplateKind,
    senator: Entity,
    difficulty: Difficulty,
    rng: random.Random,
    presentation: Presentation,
) -> Question:
    asks_party = kind in (K.PARTY_OF_PORTRAIT, K.PARTY_OF_RANDOM)
    if presentation is Presentation.PORTRAIT:
        template = (
            "Which party does this senator belong to?"
            if asks_party
            else "Which state does this senator represent?"
        )
        filled: Dict[str, str] = {}
    else:
        template = "Which party does {name} belong to?" if asks_party else "Which state does {name} represent?"
        filled = {"name": senator.name}
    answer = senator.party.value if asks_party else senator.state
    return Question(
        id=make_id(rng),
        difficulty=difficulty,
        kind=kind,
        template=template,
        filled=filled,
        correct_answers=(answer,),
        allowed_modes=attribute_modes(difficulty),
        presentation=presentation,
        portrait=senator.portrait,
    )


def _of_portrait(kind: TemplateKind) -> Filler:
    def fill(difficulty: Difficulty, roster: Roster, rng: random.Random) -> Outcome:
        senator = pick_random(roster.with_portraits(), rng)
        if senator is None:
            return _failure(FailureKind.DATA_MISSING, "No senator with a portrait found.")
        return _attribute_question(kind, senator, difficulty, rng, Presentation.HYBRID)

    return fill


def _of_random(kind: TemplateKind) -> Filler:
    def fill(difficulty: Difficulty, roster: Roster, rng: random.Random) -> Outcome:
        senator = pick_random(roster.entities, rng)
        if senator is None:
            return _failure(FailureKind.DATA_MISSING, "No senator found.")
        show_portrait = rng.random() < 0.5 and bool(senator.portrait)
        presentation = Presentation.PORTRAIT if show_portrait else Presentation.TEXT
        return _attribute_question(kind, senator, difficulty, rng, presentation)

    return fill


_FILLERS: Dict[TemplateKind, Filler] = {
    K.STATE_ANY: _state_any,
    K.STATE_PARTY_ANY: _state_party_any,
    K.STATE_SENIORITY: _state_seniority,
    K.STATE_PARTY_SENIORITY: _state_party_seniority,
    K.PORTRAIT_ONLY: _portrait_only,
    K.PARTY_OF_PORTRAIT: _of_portrait(K.PARTY_OF_PORTRAIT),
    K.STATE_OF_PORTRAIT: _of_portrait(K.STATE_OF_PORTRAIT),
    K.PARTY_OF_RANDOM: _of_random(K.PARTY_OF_RANDOM),
    K.STATE_OF_RANDOM: _of_random(K.STATE_OF_RANDOM),
}


# ---------- public API ----------


def try_template(kind: TemplateKind, difficulty: Difficulty, roster: Roster, rng: random.Random) -> Outcome:
    filler = _FILLERS.get(kind)
    if filler is None:
        return _failure(FailureKind.UNKNOWN_TEMPLATE, "Unknown template key.", key=str(kind))
    return filler(difficulty, roster, rng)


def generate_question(
    difficulty: Difficulty,
    roster: Roster,
    rng: Optional[random.Random] = None,
) -> Outcome:
    """Build one question for ``difficulty``, or say why none could be built.

    The tier's template kinds are shuffled with ``rng`` and tried in that
    order; the first kind the roster can satisfy wins. Exhausting every kind
    yields an ``unsolvable_template`` failure rather than an exception.
    """
    if rng is None:
        rng = random.Random()
    allowed = list(TEMPLATES[difficulty])
    shuffle_in_place(allowed, rng)

    for kind in allowed:
        outcome = try_template(kind, difficulty, roster, rng)
        if isinstance(outcome, Question):
            logger.debug("Template '%s' accepted.", kind.value)
            return outcome
        logger.debug("Template '%s' rejected: %s (%s)", kind.value, outcome.kind.value, outcome.message)
    return _failure(
        FailureKind.UNSOLVABLE_TEMPLATE,
        "No suitable template could be generated for the current dataset.",
    )


class QuestionPoolError(RuntimeError):
    def __init__(self, requested: int, built: int) -> None:
        super().__init__(f"Built {built} of {requested} questions")
        self.requested = requested
        self.built = built


def _question_key(question: Question) -> Tuple[str, str]:
    return normalize_name(question.prompt()), question.portrait or ""


def _unique_push(pool: List[Question], question: Question, seen: Set[Tuple[str, str]], unique: bool) -> bool:
    if unique:
        key = _question_key(question)
        if key in seen:
            return False
        seen.add(key)
    pool.append(question)
    return True


def build_question_pool(
    difficulty: Difficulty,
    roster: Roster,
    count: int,
    rng: Optional[random.Random] = None,
    max_attempts: Optional[int] = None,
    unique: bool = True,
) -> List[Question]:
    if rng is None:
        rng = random.Random()
    ceiling = max_attempts if max_attempts is not None else count * 5
    pool: List[Question] = []
    seen: Set[Tuple[str, str]] = set()
    repeats: List[Question] = []
    attempts = 0
    while len(pool) < count and attempts < ceiling:
        attempts += 1
        outcome = generate_question(difficulty, roster, rng)
        if not isinstance(outcome, Question):
            # one immediate retry, then let the loop carry on
            outcome = generate_question(difficulty, roster, rng)
        if isinstance(outcome, Question) and not _unique_push(pool, outcome, seen, unique):
            repeats.append(outcome)

    if len(pool) < count and repeats:
        # small rosters run out of distinct prompts; fill with repeats in draw order
        missing = count - len(pool)
        logger.info("Only %s distinct %s questions, reusing %s", len(pool), difficulty.value, min(missing, len(repeats)))
        pool.extend(repeats[:missing])

    if len(pool) < count:
        logger.warning(
            "Question pool short: %s of %s after %s attempts (%s)",
            len(pool), count, attempts, difficulty.value,
        )
        raise QuestionPoolError(requested=count, built=len(pool))
    logger.info("Built %s %s questions in %s attempts", len(pool), difficulty.value, attempts)
    return pool


async def generate_question_pool(
    difficulty: Difficulty,
    roster: Roster,
    count: int,
    rng: Optional[random.Random] = None,
) -> List[Question]:
    return await asyncio.to_thread(build_question_pool, difficulty, roster, count, rng)
