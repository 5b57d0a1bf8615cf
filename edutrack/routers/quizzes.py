import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from .. import crud, models, schemas
from ..core.security import get_current_user, require_student, require_teacher
from ..database import get_db
from ..errors import QuizValidationError
from ..quizzes import create_quiz_with_questions, submit_quiz

logger = logging.getLogger(__name__)

router = APIRouter(
    tags=["quizzes"]
)


def _get_quiz_or_404(db: Session, quiz_id: int) -> models.Quiz:
    quiz, error = crud.get_quiz(db, quiz_id)
    if error:
        raise HTTPException(status_code=500, detail=error)
    if quiz is None:
        raise HTTPException(status_code=404, detail="Quiz not found")
    return quiz


def _owned_quiz(db: Session, quiz_id: int, teacher: models.Profile) -> models.Quiz:
    quiz = _get_quiz_or_404(db, quiz_id)
    if quiz.teacher_id != teacher.id:
        raise HTTPException(status_code=403, detail="You can only change your own quizzes")
    return quiz


# --- QUIZZES ---
@router.get("/quizzes", response_model=List[schemas.QuizSummary])
def read_quizzes(user: models.Profile = Depends(get_current_user), db: Session = Depends(get_db)):
    quizzes, error = crud.get_quizzes(db)
    if error:
        raise HTTPException(status_code=500, detail="Failed to load quizzes")
    return quizzes


@router.get("/quizzes/{quiz_id}", response_model=schemas.Quiz)
def read_quiz(quiz_id: int, user: models.Profile = Depends(get_current_user), db: Session = Depends(get_db)):
    quiz = schemas.Quiz.model_validate(_get_quiz_or_404(db, quiz_id))
    if user.role != "teacher":
        for question in quiz.questions:
            for option in question.options:
                option.is_correct = None
    return quiz


@router.post("/quizzes", status_code=201)
def create_quiz(
    payload: schemas.QuizCreate,
    teacher: models.Profile = Depends(require_teacher),
    db: Session = Depends(get_db),
):
    try:
        report = create_quiz_with_questions(db, payload, teacher.id)
    except QuizValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if not report.ok:
        raise HTTPException(status_code=500, detail=report.as_dict())

    logger.info("Quiz %s created by %s with %d questions", report.result.id, teacher.email, len(payload.questions))
    return {
        "quiz": schemas.Quiz.model_validate(report.result),
        "report": report.as_dict(),
    }


@router.put("/quizzes/{quiz_id}", response_model=schemas.QuizSummary)
def update_quiz(
    quiz_id: int,
    payload: schemas.QuizUpdate,
    teacher: models.Profile = Depends(require_teacher),
    db: Session = Depends(get_db),
):
    _owned_quiz(db, quiz_id, teacher)
    fields = payload.model_dump(exclude_unset=True)
    if "title" in fields and not (fields["title"] or "").strip():
        raise HTTPException(status_code=400, detail="Please enter a quiz title")

    quiz, error = crud.update_quiz(db, quiz_id, **fields)
    if error:
        raise HTTPException(status_code=500, detail=f"Failed to update quiz: {error}")
    return quiz


@router.delete("/quizzes/{quiz_id}")
def delete_quiz(
    quiz_id: int,
    teacher: models.Profile = Depends(require_teacher),
    db: Session = Depends(get_db),
):
    _owned_quiz(db, quiz_id, teacher)
    _, error = crud.delete_quiz(db, quiz_id)
    if error:
        raise HTTPException(status_code=500, detail=f"Failed to delete quiz: {error}")
    return {"message": "Quiz deleted", "id": quiz_id}


# --- SUBMISSIONS ---
@router.post("/quizzes/{quiz_id}/submit")
def submit(
    quiz_id: int,
    payload: schemas.SubmissionCreate,
    student: models.Profile = Depends(require_student),
    db: Session = Depends(get_db),
):
    quiz = _get_quiz_or_404(db, quiz_id)
    try:
        report = submit_quiz(db, quiz, student.id, payload)
    except QuizValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if not report.ok:
        raise HTTPException(status_code=500, detail=report.as_dict())

    submission = report.result
    return {
        "score": submission.score,
        "submission": schemas.Submission.model_validate(submission),
    }


@router.get("/quizzes/{quiz_id}/submissions", response_model=List[schemas.Submission])
def read_quiz_submissions(
    quiz_id: int,
    teacher: models.Profile = Depends(require_teacher),
    db: Session = Depends(get_db),
):
    _get_quiz_or_404(db, quiz_id)
    submissions, error = crud.get_quiz_submissions(db, quiz_id)
    if error:
        raise HTTPException(status_code=500, detail=error)
    return submissions


@router.get("/submissions/mine", response_model=List[schemas.Submission])
def read_my_submissions(student: models.Profile = Depends(require_student), db: Session = Depends(get_db)):
    submissions, error = crud.get_student_submissions(db, student.id)
    if error:
        raise HTTPException(status_code=500, detail=error)
    return submissions


@router.get("/submissions/{submission_id}/answers", response_model=List[schemas.Answer])
def read_submission_answers(
    submission_id: int,
    user: models.Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    submission, error = crud.get_submission(db, submission_id)
    if error:
        raise HTTPException(status_code=500, detail=error)
    if submission is None:
        raise HTTPException(status_code=404, detail="Submission not found")
    if user.role != "teacher" and submission.student_id != user.id:
        raise HTTPException(status_code=403, detail="Not your submission")

    answers, error = crud.get_submission_answers(db, submission_id)
    if error:
        raise HTTPException(status_code=500, detail=error)
    return answers
