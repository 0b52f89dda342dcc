from __future__ import annotations

from typing import Dict, Sequence

from .models import Difficulty, Question, QuizSession, SessionSummary


def pretty_answers(answers: Sequence[str]) -> str:
    if not answers:
        return "See results"
    if len(answers) == 1:
        return answers[0]
    if len(answers) == 2:
        return f"{answers[0]} or {answers[1]}"
    return ", ".join(answers)


def build_recommendation(summary: SessionSummary, difficulty: Difficulty) -> str:
    accuracy = summary.correct_answers / summary.total_questions if summary.total_questions else 0.0

    if accuracy >= 0.85:
        if difficulty is Difficulty.EASY:
            return "Great result! Try Hard mode: full official names only, and some portraits without a name."
        return "Excellent. You know the Senate better than most of its members."
    if accuracy >= 0.5:
        return (
            "Good progress. Look over the misses below; last names are enough in Easy mode "
            "if you want to practise the states first."
        )
    return "That one was tough. Start with Easy mode and focus on one region of the map at a time."


def format_results(session: QuizSession) -> str:
    summary = session.summary()
    questions: Dict[str, Question] = {q.id: q for q in session.questions}

    lines = [
        f"Score: {summary.score}% ({summary.correct_answers}/{summary.total_questions})",
        f"Time: {summary.time_taken}",
        "",
    ]
    for verdict in summary.answers:
        q = questions.get(verdict.question_id)
        label = q.prompt() if q else verdict.question_id
        status = "✅" if verdict.is_correct else "❌"
        lines.append(f"{status} {label}")
        lines.append(f"Your answer: {verdict.raw_input}")
        if not verdict.is_correct and q:
            lines.append(f"Correct: {q.correct_answers[0]}")
        if verdict.feedback:
            lines.append(verdict.feedback)
        lines.append("")

    lines.append(f"Tip: {build_recommendation(summary, session.difficulty)}")
    return "\n".join(lines)
