"""Table-scoped database operations.

Every function returns ``DbResult(data, error)``. Database errors are
rolled back, logged and returned as the error message; they are never
retried. A lookup that finds nothing returns ``DbResult(None, None)``.
"""
import logging
from datetime import datetime
from typing import Any, Callable, NamedTuple, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from . import models
from .analytics import MaterialViewRow, SubmissionRow

logger = logging.getLogger(__name__)


class DbResult(NamedTuple):
    data: Any
    error: Optional[str]


def _run(db: Session, action: str, fn: Callable[[], Any]) -> DbResult:
    try:
        return DbResult(fn(), None)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("%s failed: %s", action, exc)
        return DbResult(None, str(exc))


def _insert(db: Session, obj, action: str) -> DbResult:
    def op():
        db.add(obj)
        db.commit()
        db.refresh(obj)
        return obj
    return _run(db, action, op)


def _update(db: Session, model, row_id: int, fields: dict, action: str) -> DbResult:
    def op():
        obj = db.get(model, row_id)
        if obj is None:
            return None
        for key, value in fields.items():
            setattr(obj, key, value)
        db.commit()
        db.refresh(obj)
        return obj
    return _run(db, action, op)


def _delete(db: Session, model, row_id: int, action: str) -> DbResult:
    def op():
        obj = db.get(model, row_id)
        if obj is None:
            return None
        db.delete(obj)
        db.commit()
        return row_id
    return _run(db, action, op)


# --- Profiles ---

def get_profile(db: Session, profile_id: int) -> DbResult:
    return _run(db, "get_profile", lambda: db.get(models.Profile, profile_id))


def get_profile_by_email(db: Session, email: str) -> DbResult:
    return _run(db, "get_profile_by_email",
                lambda: db.query(models.Profile).filter(models.Profile.email == email).first())


def create_profile(db: Session, email: str, password_hash: str, role: str,
                   full_name: Optional[str] = None) -> DbResult:
    profile = models.Profile(email=email, password_hash=password_hash, role=role, full_name=full_name)
    return _insert(db, profile, "create_profile")


def update_profile(db: Session, profile_id: int, **fields) -> DbResult:
    return _update(db, models.Profile, profile_id, fields, "update_profile")


def get_students(db: Session) -> DbResult:
    return _run(db, "get_students",
                lambda: db.query(models.Profile).filter(models.Profile.role == "student")
                .order_by(models.Profile.id).all())


# --- Materials ---

def get_materials(db: Session) -> DbResult:
    return _run(db, "get_materials",
                lambda: db.query(models.Material)
                .order_by(models.Material.created_at.desc(), models.Material.id.desc()).all())


def get_material(db: Session, material_id: int) -> DbResult:
    return _run(db, "get_material", lambda: db.get(models.Material, material_id))


def create_material(db: Session, title: str, teacher_id: int, description: Optional[str] = None,
                    file_url: Optional[str] = None, file_type: Optional[str] = None) -> DbResult:
    material = models.Material(title=title, description=description, file_url=file_url,
                               file_type=file_type, teacher_id=teacher_id)
    return _insert(db, material, "create_material")


def update_material(db: Session, material_id: int, **fields) -> DbResult:
    return _update(db, models.Material, material_id, fields, "update_material")


def delete_material(db: Session, material_id: int) -> DbResult:
    return _delete(db, models.Material, material_id, "delete_material")


# --- Quizzes ---

def get_quizzes(db: Session) -> DbResult:
    return _run(db, "get_quizzes",
                lambda: db.query(models.Quiz)
                .order_by(models.Quiz.created_at.desc(), models.Quiz.id.desc()).all())


def get_quiz(db: Session, quiz_id: int) -> DbResult:
    return _run(db, "get_quiz", lambda: db.get(models.Quiz, quiz_id))


def create_quiz(db: Session, title: str, teacher_id: int, description: Optional[str] = None) -> DbResult:
    return _insert(db, models.Quiz(title=title, description=description, teacher_id=teacher_id), "create_quiz")


def update_quiz(db: Session, quiz_id: int, **fields) -> DbResult:
    return _update(db, models.Quiz, quiz_id, fields, "update_quiz")


def delete_quiz(db: Session, quiz_id: int) -> DbResult:
    return _delete(db, models.Quiz, quiz_id, "delete_quiz")


def get_quiz_questions(db: Session, quiz_id: int) -> DbResult:
    return _run(db, "get_quiz_questions",
                lambda: db.query(models.QuizQuestion).filter(models.QuizQuestion.quiz_id == quiz_id)
                .order_by(models.QuizQuestion.position, models.QuizQuestion.id).all())


def create_quiz_question(db: Session, quiz_id: int, question_text: str, question_type: str,
                         position: int = 0) -> DbResult:
    question = models.QuizQuestion(quiz_id=quiz_id, question_text=question_text,
                                   question_type=question_type, position=position)
    return _insert(db, question, "create_quiz_question")


def get_quiz_options(db: Session, question_id: int) -> DbResult:
    return _run(db, "get_quiz_options",
                lambda: db.query(models.QuizOption).filter(models.QuizOption.question_id == question_id)
                .order_by(models.QuizOption.id).all())


def create_quiz_option(db: Session, question_id: int, option_text: str, is_correct: bool) -> DbResult:
    option = models.QuizOption(question_id=question_id, option_text=option_text, is_correct=is_correct)
    return _insert(db, option, "create_quiz_option")


# --- Submissions ---

def create_quiz_submission(db: Session, quiz_id: int, student_id: int, score: int,
                           completed: bool = True) -> DbResult:
    submission = models.QuizSubmission(quiz_id=quiz_id, student_id=student_id, score=score, completed=completed)
    return _insert(db, submission, "create_quiz_submission")


def get_submission(db: Session, submission_id: int) -> DbResult:
    return _run(db, "get_submission", lambda: db.get(models.QuizSubmission, submission_id))


def get_student_submissions(db: Session, student_id: int) -> DbResult:
    return _run(db, "get_student_submissions",
                lambda: db.query(models.QuizSubmission)
                .options(joinedload(models.QuizSubmission.student), joinedload(models.QuizSubmission.quiz))
                .filter(models.QuizSubmission.student_id == student_id)
                .order_by(models.QuizSubmission.created_at.desc()).all())


def get_quiz_submissions(db: Session, quiz_id: int) -> DbResult:
    return _run(db, "get_quiz_submissions",
                lambda: db.query(models.QuizSubmission)
                .options(joinedload(models.QuizSubmission.student), joinedload(models.QuizSubmission.quiz))
                .filter(models.QuizSubmission.quiz_id == quiz_id)
                .order_by(models.QuizSubmission.created_at.desc()).all())


def create_quiz_answer(db: Session, submission_id: int, question_id: int,
                       selected_option_id: Optional[int] = None, text_answer: Optional[str] = None,
                       is_correct: Optional[bool] = None) -> DbResult:
    answer = models.QuizAnswer(submission_id=submission_id, question_id=question_id,
                               selected_option_id=selected_option_id, text_answer=text_answer,
                               is_correct=is_correct)
    return _insert(db, answer, "create_quiz_answer")


def get_submission_answers(db: Session, submission_id: int) -> DbResult:
    return _run(db, "get_submission_answers",
                lambda: db.query(models.QuizAnswer).filter(models.QuizAnswer.submission_id == submission_id)
                .order_by(models.QuizAnswer.id).all())


# --- Material views ---

def record_material_view(db: Session, material_id: int, student_id: int,
                         viewed_at: Optional[datetime] = None) -> DbResult:
    """Upsert keyed by (material_id, student_id); a repeat view only moves viewed_at."""
    def op():
        view = db.query(models.MaterialView).filter(
            models.MaterialView.material_id == material_id,
            models.MaterialView.student_id == student_id,
        ).first()
        if view is None:
            view = models.MaterialView(material_id=material_id, student_id=student_id)
            db.add(view)
        view.viewed_at = viewed_at or datetime.utcnow()
        db.commit()
        db.refresh(view)
        return view
    return _run(db, "record_material_view", op)


def get_material_views(db: Session, material_id: int) -> DbResult:
    return _run(db, "get_material_views",
                lambda: db.query(models.MaterialView).filter(models.MaterialView.material_id == material_id)
                .order_by(models.MaterialView.viewed_at.desc()).all())


# --- AI questions ---

def create_ai_question(db: Session, student_id: int, question: str) -> DbResult:
    return _insert(db, models.AIQuestion(student_id=student_id, question=question), "create_ai_question")


def update_ai_question_answer(db: Session, ai_question_id: int, answer: str) -> DbResult:
    return _update(db, models.AIQuestion, ai_question_id, {"answer": answer}, "update_ai_question_answer")


def get_student_ai_questions(db: Session, student_id: int) -> DbResult:
    return _run(db, "get_student_ai_questions",
                lambda: db.query(models.AIQuestion).filter(models.AIQuestion.student_id == student_id)
                .order_by(models.AIQuestion.created_at.desc(), models.AIQuestion.id.desc()).all())


# --- Joined rows for analytics ---

def get_submission_rows(db: Session, since: Optional[datetime] = None,
                        student_id: Optional[int] = None) -> DbResult:
    """Submissions joined with student name, quiz title and answer correctness."""
    def op():
        query = (
            db.query(models.QuizSubmission, models.Profile, models.Quiz)
            .join(models.Profile, models.Profile.id == models.QuizSubmission.student_id)
            .join(models.Quiz, models.Quiz.id == models.QuizSubmission.quiz_id)
        )
        if since is not None:
            query = query.filter(models.QuizSubmission.created_at >= since)
        if student_id is not None:
            query = query.filter(models.QuizSubmission.student_id == student_id)

        rows = []
        for submission, profile, quiz in query.order_by(models.QuizSubmission.created_at).all():
            rows.append(SubmissionRow(
                student_id=submission.student_id,
                student_name=profile.full_name or profile.email,
                quiz_id=submission.quiz_id,
                quiz_title=quiz.title or "Unknown Quiz",
                score=submission.score,
                completed=bool(submission.completed),
                created_at=submission.created_at,
                answers_correct=[bool(a.is_correct) for a in submission.answers],
            ))
        return rows
    return _run(db, "get_submission_rows", op)


def get_material_view_rows(db: Session, since: Optional[datetime] = None,
                           student_id: Optional[int] = None) -> DbResult:
    """Material views joined with student name and material title/type."""
    def op():
        query = (
            db.query(models.MaterialView, models.Profile, models.Material)
            .join(models.Profile, models.Profile.id == models.MaterialView.student_id)
            .join(models.Material, models.Material.id == models.MaterialView.material_id)
        )
        if since is not None:
            query = query.filter(models.MaterialView.viewed_at >= since)
        if student_id is not None:
            query = query.filter(models.MaterialView.student_id == student_id)

        return [
            MaterialViewRow(
                student_id=view.student_id,
                student_name=profile.full_name or profile.email,
                material_id=view.material_id,
                material_title=material.title or "Unknown Material",
                material_type=material.file_type or "unknown",
                viewed_at=view.viewed_at,
            )
            for view, profile, material in query.order_by(models.MaterialView.viewed_at).all()
        ]
    return _run(db, "get_material_view_rows", op)
