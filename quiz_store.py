"""
Storage for generated quizzes and the attempts taken against them.
"""
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from database import Quiz, QuizAttempt, QuizQuestion
from errors import InputValidationError
from models import QuizPayload


def save_quiz(db: Session, payload: QuizPayload) -> Quiz:
    """
    Store a quiz and its questions in one transaction.

    Args:
        db: Database session
        payload: Validated quiz payload; must carry wikipedia_url

    Returns:
        The persisted Quiz row
    """
    if not payload.wikipedia_url:
        raise InputValidationError("wikipedia_url is required")

    quiz = Quiz(
        title=payload.title,
        summary=payload.summary,
        wikipedia_url=payload.wikipedia_url,
        key_entities=payload.key_entities.model_dump(),
        sections=list(payload.sections),
        related_topics=list(payload.related_topics),
    )
    for index, item in enumerate(payload.quiz):
        quiz.questions.append(
            QuizQuestion(
                question=item.question,
                options=list(item.options),
                correct_answer=item.answer,
                difficulty=item.difficulty,
                explanation=item.explanation,
                question_order=index,
            )
        )
    db.add(quiz)
    db.commit()
    db.refresh(quiz)
    return quiz


def get_quiz(db: Session, quiz_id: int) -> Optional[Quiz]:
    return db.get(Quiz, quiz_id)


def list_quizzes(db: Session) -> List[Tuple[Quiz, int]]:
    """All quizzes newest first, each paired with its question count."""
    counts = (
        select(QuizQuestion.quiz_id, func.count(QuizQuestion.id).label("n"))
        .group_by(QuizQuestion.quiz_id)
        .subquery()
    )
    stmt = (
        select(Quiz, func.coalesce(counts.c.n, 0))
        .outerjoin(counts, counts.c.quiz_id == Quiz.id)
        .order_by(Quiz.created_at.desc(), Quiz.id.desc())
    )
    return [(quiz, count) for quiz, count in db.execute(stmt).all()]


def grade_answers(questions: Sequence[QuizQuestion], answers: Sequence[str]) -> Tuple[int, List[Dict[str, Any]]]:
    """Compare answers to questions by position. Returns (score, per-question results)."""
    if len(answers) != len(questions):
        raise InputValidationError(
            f"Expected {len(questions)} answers, got {len(answers)}"
        )
    results = []
    score = 0
    for question, selected in zip(questions, answers):
        correct = selected == question.correct_answer
        score += int(correct)
        results.append(
            {
                "question_order": question.question_order,
                "selected": selected,
                "correct_answer": question.correct_answer,
                "is_correct": correct,
            }
        )
    return score, results


def record_attempt(db: Session, quiz: Quiz, answers: Sequence[str]) -> Tuple[QuizAttempt, List[Dict[str, Any]]]:
    score, results = grade_answers(quiz.questions, answers)
    attempt = QuizAttempt(quiz_id=quiz.id, score=score, total_questions=len(quiz.questions))
    db.add(attempt)
    db.commit()
    db.refresh(attempt)
    return attempt, results


def list_attempts(db: Session, quiz_id: int) -> List[QuizAttempt]:
    stmt = (
        select(QuizAttempt)
        .where(QuizAttempt.quiz_id == quiz_id)
        .order_by(QuizAttempt.completed_at.desc(), QuizAttempt.id.desc())
    )
    return list(db.scalars(stmt).all())


def quiz_to_dict(quiz: Quiz) -> Dict[str, Any]:
    return {
        "id": quiz.id,
        "title": quiz.title,
        "summary": quiz.summary,
        "wikipedia_url": quiz.wikipedia_url,
        "key_entities": quiz.key_entities or {},
        "sections": quiz.sections or [],
        "related_topics": quiz.related_topics or [],
        "quiz": [
            {
                "question": q.question,
                "options": q.options,
                "answer": q.correct_answer,
                "difficulty": q.difficulty,
                "explanation": q.explanation,
                "question_order": q.question_order,
            }
            for q in quiz.questions
        ],
        "created_at": quiz.created_at.isoformat(),
    }


def quiz_summary_to_dict(quiz: Quiz, question_count: int) -> Dict[str, Any]:
    return {
        "id": quiz.id,
        "title": quiz.title,
        "wikipedia_url": quiz.wikipedia_url,
        "question_count": question_count,
        "created_at": quiz.created_at.isoformat(),
    }


def attempt_to_dict(attempt: QuizAttempt, results: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    data = {
        "id": attempt.id,
        "quiz_id": attempt.quiz_id,
        "score": attempt.score,
        "total_questions": attempt.total_questions,
        "percentage": round(100 * attempt.score / attempt.total_questions) if attempt.total_questions else 0,
        "completed_at": attempt.completed_at.isoformat(),
    }
    if results is not None:
        data["results"] = results
    return data
