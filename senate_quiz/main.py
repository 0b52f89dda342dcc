import argparse
import asyncio

from aiogram import Bot, Dispatcher

from .config import (
    PORTRAIT_BASE,
    QUESTION_COUNT,
    QUIZ_SEED,
    ROSTER_SOURCE,
    TELEGRAM_BOT_TOKEN,
    logger,
    validate_settings,
)
from .handlers import router
from .models import SessionStore
from .roster import load_roster


async def run_bot(roster_source: str = ROSTER_SOURCE, question_count: int = QUESTION_COUNT) -> None:
    validate_settings()
    roster = await load_roster(roster_source, portrait_base=PORTRAIT_BASE)
    if not roster:
        raise RuntimeError(f"Roster {roster_source} has no usable senators")
    bot = Bot(TELEGRAM_BOT_TOKEN)
    dispatcher = Dispatcher(
        store=SessionStore(),
        roster=roster,
        question_count=question_count,
        seed=QUIZ_SEED,
    )
    dispatcher.include_router(router)
    logger.info("Bot is starting with %s senators, %s questions per quiz", len(roster), question_count)
    await dispatcher.start_polling(bot)


def main() -> None:
    parser = argparse.ArgumentParser(description="Senate quiz bot entrypoint")
    parser.add_argument("--roster", default=ROSTER_SOURCE, help="Senators JSON file path or URL")
    parser.add_argument(
        "--questions",
        type=int,
        default=QUESTION_COUNT,
        help="Questions per quiz",
    )
    args = parser.parse_args()

    try:
        asyncio.run(run_bot(roster_source=args.roster, question_count=max(1, args.questions)))
    except (KeyboardInterrupt, SystemExit):
        logger.info("Bot stopped")


if __name__ == "__main__":
    main()
