from typing import List, Optional

from .config import logger
from .models import AnswerChannel, Difficulty, Question, Rejection, Verdict
from .text_utils import last_name_of, normalize_name, within_misspelling_threshold

CORRECT_FEEDBACK = "Correct."
AMBIGUOUS_FEEDBACK = "Ambiguous last name. Try the full name or include more detail."
EASY_MISS_FEEDBACK = "Not quite. Easy accepts last names and mild misspellings."


def _verdict(
    question: Question,
    raw_input: str,
    channel: Optional[AnswerChannel],
    feedback: str,
    matched: Optional[str] = None,
    rejection: Optional[Rejection] = None,
) -> Verdict:
    return Verdict(
        question_id=question.id,
        raw_input=raw_input,
        is_correct=channel is not None,
        feedback=feedback,
        accepted_as=channel,
        matched_answer=matched,
        rejection=rejection,
    )


def _exact_only(question: Question, raw_input: str, input_norm: str) -> Verdict:
    for answer in question.correct_answers:
        if normalize_name(answer) == input_norm:
            logger.debug("%s: exact match accepted.", question.difficulty.value)
            return _verdict(question, raw_input, AnswerChannel.FULL_NAME, CORRECT_FEEDBACK, answer)

    expected = question.correct_answers[0] if question.correct_answers else ""
    if question.difficulty is Difficulty.HARD:
        feedback = f"Hard mode requires the full official name. Correct answer: '{expected}'."
    else:
        feedback = f"Not quite. Correct answer: '{expected}'."
    logger.debug("%s: input rejected; exact answer required.", question.difficulty.value)
    return _verdict(question, raw_input, None, feedback, rejection=Rejection.EXACT_REQUIRED)


def validate(question: Question, raw_input: str) -> Verdict:
    """Grade ``raw_input`` against ``question`` and explain the outcome.

    Hard questions, and any question that only permits the full answer, need
    an exact match after normalization. Easy questions try, in order: exact
    answer, unique last name, a misspelled full answer, a misspelled last
    name. A last name shared by several accepted answers is rejected as
    ambiguous without trying the misspelling rules.
    """
    modes = question.allowed_modes
    input_norm = normalize_name(raw_input)

    if question.difficulty is Difficulty.HARD or modes <= {AnswerChannel.FULL_NAME}:
        return _exact_only(question, raw_input, input_norm)

    for answer in question.correct_answers:
        if normalize_name(answer) == input_norm:
            logger.debug("Easy: exact full name accepted.")
            return _verdict(question, raw_input, AnswerChannel.FULL_NAME, CORRECT_FEEDBACK, answer)

    last = last_name_of(input_norm)
    allow_last = AnswerChannel.LAST_NAME in modes and bool(last)
    allow_fuzzy = AnswerChannel.MISSPELLING_CORRECTION in modes

    if allow_last:
        by_last: List[str] = [a for a in question.correct_answers if last_name_of(a) == last]
        if len(by_last) == 1:
            logger.debug("Easy: last name accepted.")
            return _verdict(question, raw_input, AnswerChannel.LAST_NAME, CORRECT_FEEDBACK, by_last[0])
        if len(by_last) > 1:
            logger.debug("Easy: ambiguous last name, rejected.")
            return _verdict(
                question, raw_input, None, AMBIGUOUS_FEEDBACK, rejection=Rejection.AMBIGUOUS_LAST_NAME
            )

    if allow_fuzzy:
        for answer in question.correct_answers:
            if within_misspelling_threshold(input_norm, answer):
                logger.debug("Easy: mild misspelling of full name accepted.")
                return _verdict(
                    question, raw_input, AnswerChannel.MISSPELLING_CORRECTION, CORRECT_FEEDBACK, answer
                )

    if allow_fuzzy and allow_last:
        for answer in question.correct_answers:
            if within_misspelling_threshold(last, last_name_of(answer)):
                logger.debug("Easy: mild misspelling of last name accepted.")
                return _verdict(
                    question, raw_input, AnswerChannel.MISSPELLING_CORRECTION, CORRECT_FEEDBACK, answer
                )

    logger.debug("Easy: no match.")
    return _verdict(question, raw_input, None, EASY_MISS_FEEDBACK, rejection=Rejection.NO_MATCH)
