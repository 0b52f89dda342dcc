from __future__ import annotations

import random
from typing import List, Optional

from aiogram import F, Router
from aiogram.filters import Command, CommandStart
from aiogram.types import BufferedInputFile, CallbackQuery, Message
from aiogram.utils.keyboard import InlineKeyboardBuilder

from .config import logger
from .generator import QuestionPoolError, generate_question_pool
from .models import ChatState, Difficulty, QuizSession, SessionStore
from .portraits import is_remote, prefetch_portraits
from .results import format_results, pretty_answers
from .roster import Roster
from .validator import validate

router = Router()

TELEGRAM_TEXT_LIMIT = 4000


def _mode_keyboard():
    keyboard = InlineKeyboardBuilder()
    keyboard.button(text="Easy: last names and typos OK", callback_data=f"mode:{Difficulty.EASY.value}")
    keyboard.button(text="Hard: full official names", callback_data=f"mode:{Difficulty.HARD.value}")
    keyboard.adjust(1)
    return keyboard.as_markup()


def split_message(text: str, limit: int = TELEGRAM_TEXT_LIMIT) -> List[str]:
    chunks: List[str] = []
    current = ""
    for line in text.split("\n"):
        candidate = f"{current}\n{line}" if current else line
        if len(candidate) <= limit:
            current = candidate
            continue
        if current:
            chunks.append(current)
        # a single line longer than the limit is cut into limit-sized pieces
        while len(line) > limit:
            chunks.append(line[:limit])
            line = line[limit:]
        current = line
    if current:
        chunks.append(current)
    return chunks


@router.message(CommandStart())
async def start(message: Message, store: SessionStore) -> None:
    user = message.from_user
    if not user:
        return
    chat = store.get(user.id)
    chat.reset()
    await message.answer(
        "Hi! This is the Senate Quiz. I'll describe a senator (or show a portrait) and you type the answer."
    )
    await message.answer("Pick a difficulty:", reply_markup=_mode_keyboard())
    chat.stage = "CHOOSE_MODE"


@router.message(Command("quit"))
async def quit_quiz(message: Message, store: SessionStore) -> None:
    user = message.from_user
    if not user:
        return
    store.discard(user.id)
    await message.answer("Quiz discarded. Send /start to play again.")


@router.callback_query(F.data.startswith("mode:"))
async def on_mode(
    callback: CallbackQuery,
    store: SessionStore,
    roster: Roster,
    question_count: int,
    seed: Optional[int] = None,
) -> None:
    chat = store.get(callback.from_user.id)
    message_obj = callback.message
    if chat.stage != "CHOOSE_MODE" or not isinstance(message_obj, Message):
        await callback.answer()
        return
    chat.stage = "BUILDING"
    difficulty = Difficulty.parse((callback.data or "").split(":", 1)[-1])
    await callback.answer(f"{difficulty.value} mode")
    await message_obj.answer("Building questions…")

    rng = random.Random(seed) if seed is not None else random.Random()
    try:
        questions = await generate_question_pool(difficulty, roster, question_count, rng)
    except QuestionPoolError as exc:
        logger.warning("Pool for user %s failed: %s", callback.from_user.id, exc)
        await message_obj.answer("Could not generate enough questions. Try Easy mode or try again.")
        chat.reset()
        return

    try:
        chat.portraits = await prefetch_portraits(questions)
    except Exception:  # noqa: BLE001
        logger.exception("Portrait prefetch failed")
        chat.portraits = {}

    chat.session = QuizSession(difficulty=difficulty, questions=tuple(questions))
    chat.stage = "ASKING"
    await ask_next_question(message_obj, chat)


async def ask_next_question(message: Message, chat: ChatState) -> None:
    session = chat.session
    if session is None:
        return
    q = session.current_question()
    if q is None:
        await send_results(message, chat)
        return

    caption = f"Question {session.cursor + 1} of {len(session.questions)}:\n\n{q.prompt()}"
    if q.shows_portrait and q.portrait:
        data = chat.portraits.get(q.portrait)
        if data:
            await message.answer_photo(photo=BufferedInputFile(data, filename="portrait.jpg"), caption=caption)
            return
        if is_remote(q.portrait):
            await message.answer_photo(photo=q.portrait, caption=caption)
            return
        logger.warning("No portrait bytes for %s, sending text only", q.portrait)
        caption += "\n\n(The portrait is unavailable right now.)"
    await message.answer(caption)


@router.message(F.text)
async def receive_answer(message: Message, store: SessionStore) -> None:
    user = message.from_user
    if not user:
        return
    chat = store.get(user.id)
    session = chat.session
    if chat.stage != "ASKING" or session is None or session.completed:
        await message.answer("Send /start to begin a quiz.")
        return

    raw = (message.text or "").strip()
    if not raw:
        return
    q = session.current_question()
    if q is None:
        return

    verdict = validate(q, raw)
    session.record_answer(verdict)
    if verdict.is_correct:
        await message.answer(f"✅ {verdict.feedback}")
    else:
        await message.answer(f"❌ {verdict.feedback}\nCorrect: {pretty_answers(q.correct_answers)}")

    if session.completed:
        await send_results(message, chat)
    else:
        await ask_next_question(message, chat)


async def send_results(message: Message, chat: ChatState) -> None:
    session = chat.session
    if session is None:
        return
    for chunk in split_message(format_results(session)):
        await message.answer(chunk)
    await message.answer("Send /start to play again.")
    chat.reset()
