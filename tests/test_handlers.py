import asyncio
from datetime import datetime

import pytest
from aiogram.types import Chat, Message, User

from senate_quiz import handlers
from senate_quiz.generator import QuestionPoolError, name_modes
from senate_quiz.models import (
    Difficulty,
    Presentation,
    Question,
    QuizSession,
    SessionStore,
    TemplateKind,
)
from senate_quiz.roster import Roster

USER_ID = 42


def make_question(qid, answers, presentation=Presentation.TEXT, portrait=None):
    return Question(
        id=qid,
        difficulty=Difficulty.EASY,
        kind=TemplateKind.STATE_ANY,
        template="Name a senator from {state}.",
        filled={"state": "Vermont"},
        correct_answers=tuple(answers),
        allowed_modes=name_modes(Difficulty.EASY),
        presentation=presentation,
        portrait=portrait,
    )


def make_message(text=None):
    user = User.model_construct(id=USER_ID, is_bot=False, first_name="Tester")
    return Message.model_construct(
        message_id=1,
        date=datetime.now(),
        chat=Chat.model_construct(id=USER_ID, type="private"),
        text=text,
        **{"from": user},
    )


class FakeCallback:
    def __init__(self, message, data="mode:Easy"):
        self.message = message
        self.data = data
        self.from_user = User.model_construct(id=USER_ID, is_bot=False, first_name="Tester")
        self.answered = []

    async def answer(self, text=None, **kwargs):
        self.answered.append(text)


@pytest.fixture
def sent(monkeypatch):
    """Everything the bot sends, as ("text" | "photo", body) pairs."""
    out = []

    async def fake_answer(self, text, **kwargs):
        out.append(("text", text))

    async def fake_answer_photo(self, photo, caption=None, **kwargs):
        out.append(("photo", caption))

    monkeypatch.setattr(Message, "answer", fake_answer)
    monkeypatch.setattr(Message, "answer_photo", fake_answer_photo)
    return out


@pytest.fixture
def store():
    return SessionStore()


def texts(sent):
    return [body for _, body in sent]


def asking(store, questions, portraits=None):
    chat = store.get(USER_ID)
    chat.stage = "ASKING"
    chat.session = QuizSession(difficulty=Difficulty.EASY, questions=tuple(questions))
    chat.portraits = dict(portraits or {})
    return chat


class TestStartAndQuit:
    def test_start_offers_modes(self, sent, store):
        asyncio.run(handlers.start(make_message("/start"), store))
        assert store.get(USER_ID).stage == "CHOOSE_MODE"
        assert texts(sent)[-1] == "Pick a difficulty:"

    def test_start_resets_a_running_quiz(self, sent, store):
        asking(store, [make_question("q_a", ["Bernie Sanders"])])
        asyncio.run(handlers.start(make_message("/start"), store))
        chat = store.get(USER_ID)
        assert chat.session is None
        assert chat.stage == "CHOOSE_MODE"

    def test_quit_discards_state(self, sent, store):
        asking(store, [make_question("q_a", ["Bernie Sanders"])])
        asyncio.run(handlers.quit_quiz(make_message("/quit"), store))
        assert len(store) == 0
        assert texts(sent) == ["Quiz discarded. Send /start to play again."]


class TestModeSelection:
    @pytest.fixture
    def pool_calls(self, monkeypatch):
        calls = []

        async def fake_pool(difficulty, roster, count, rng=None):
            calls.append(difficulty)
            await asyncio.sleep(0)
            return [make_question(f"q_{i}", ["Bernie Sanders"]) for i in range(count)]

        async def no_portraits(questions):
            return {}

        monkeypatch.setattr(handlers, "generate_question_pool", fake_pool)
        monkeypatch.setattr(handlers, "prefetch_portraits", no_portraits)
        return calls

    def test_mode_starts_the_quiz(self, sent, store, pool_calls):
        store.get(USER_ID).stage = "CHOOSE_MODE"
        callback = FakeCallback(make_message(), data="mode:Hard")
        asyncio.run(handlers.on_mode(callback, store, Roster(), 3, seed=7))
        chat = store.get(USER_ID)
        assert chat.stage == "ASKING"
        assert chat.session.difficulty is Difficulty.HARD
        assert pool_calls == [Difficulty.HARD]
        assert texts(sent)[-1].startswith("Question 1 of 3:")

    def test_double_tap_builds_one_quiz(self, sent, store, pool_calls):
        store.get(USER_ID).stage = "CHOOSE_MODE"
        message = make_message()

        async def tap_twice():
            await asyncio.gather(
                handlers.on_mode(FakeCallback(message), store, Roster(), 2),
                handlers.on_mode(FakeCallback(message), store, Roster(), 2),
            )

        asyncio.run(tap_twice())
        assert len(pool_calls) == 1
        assert sum(1 for t in texts(sent) if t.startswith("Question 1 of")) == 1
        assert store.get(USER_ID).stage == "ASKING"

    def test_mode_tap_outside_mode_choice_is_ignored(self, sent, store, pool_calls):
        callback = FakeCallback(make_message())
        asyncio.run(handlers.on_mode(callback, store, Roster(), 2))
        assert pool_calls == []
        assert callback.answered == [None]
        assert store.get(USER_ID).stage == "IDLE"

    def test_pool_error_resets_chat(self, sent, store, monkeypatch):
        async def failing_pool(difficulty, roster, count, rng=None):
            raise QuestionPoolError(requested=count, built=0)

        monkeypatch.setattr(handlers, "generate_question_pool", failing_pool)
        store.get(USER_ID).stage = "CHOOSE_MODE"
        asyncio.run(handlers.on_mode(FakeCallback(make_message()), store, Roster(), 5))
        chat = store.get(USER_ID)
        assert chat.stage == "IDLE"
        assert chat.session is None
        assert texts(sent)[-1] == "Could not generate enough questions. Try Easy mode or try again."


class TestReceiveAnswer:
    def test_no_quiz_running(self, sent, store):
        asyncio.run(handlers.receive_answer(make_message("Sanders"), store))
        assert texts(sent) == ["Send /start to begin a quiz."]

    def test_blank_input_is_ignored(self, sent, store):
        chat = asking(store, [make_question("q_a", ["Bernie Sanders"])])
        asyncio.run(handlers.receive_answer(make_message("   "), store))
        assert sent == []
        assert chat.session.cursor == 0

    def test_input_is_stripped_before_grading(self, sent, store):
        chat = asking(store, [make_question("q_a", ["Bernie Sanders"]), make_question("q_b", ["Ted Cruz"])])
        asyncio.run(handlers.receive_answer(make_message("  Sanders \n"), store))
        assert chat.session.answers[0].raw_input == "Sanders"
        assert chat.session.answers[0].is_correct
        assert texts(sent)[0].startswith("✅")

    def test_wrong_answer_reveals_correct_ones(self, sent, store):
        asking(
            store,
            [make_question("q_a", ["Bernie Sanders", "Peter Welch"]), make_question("q_b", ["Ted Cruz"])],
        )
        asyncio.run(handlers.receive_answer(make_message("Mitch McConnell"), store))
        reply = texts(sent)[0]
        assert reply.startswith("❌")
        assert reply.endswith("Correct: Bernie Sanders or Peter Welch")
        assert texts(sent)[1].startswith("Question 2 of 2:")

    def test_last_answer_sends_results_and_resets(self, sent, store):
        chat = asking(store, [make_question("q_a", ["Bernie Sanders"])])
        asyncio.run(handlers.receive_answer(make_message("Sanders"), store))
        out = texts(sent)
        assert any(t.startswith("Score: 100% (1/1)") for t in out)
        assert out[-1] == "Send /start to play again."
        assert chat.stage == "IDLE"
        assert chat.session is None


class TestAskNextQuestion:
    def test_prefetched_portrait_is_sent_as_photo(self, sent, store):
        q = make_question("q_a", ["Bernie Sanders"], Presentation.PORTRAIT, "assets/sanders.jpg")
        chat = asking(store, [q], portraits={"assets/sanders.jpg": b"jpeg"})
        asyncio.run(handlers.ask_next_question(make_message(), chat))
        kind, caption = sent[0]
        assert kind == "photo"
        assert caption.startswith("Question 1 of 1:")

    def test_missing_local_portrait_falls_back_to_text(self, sent, store):
        q = make_question("q_a", ["Bernie Sanders"], Presentation.PORTRAIT, "assets/sanders.jpg")
        chat = asking(store, [q])
        asyncio.run(handlers.ask_next_question(make_message(), chat))
        kind, caption = sent[0]
        assert kind == "text"
        assert caption.endswith("(The portrait is unavailable right now.)")
