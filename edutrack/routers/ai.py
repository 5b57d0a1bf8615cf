import logging
from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session

from .. import crud, models, schemas
from ..ai.service import AIService
from ..core.security import get_current_user, require_student, require_teacher
from ..database import get_db
from ..dependencies import get_ai_service
from ..errors import QuizValidationError
from ..exports import generated_quiz_filename, generated_quiz_to_json
from ..quizzes import create_quiz_with_questions, draft_from_generated

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/ai",
    tags=["ai"]
)

MAX_QUESTIONS = 20
DEFAULT_QUESTIONS = 5


@router.get("/status")
def ai_status(user: models.Profile = Depends(get_current_user), ai: AIService = Depends(get_ai_service)):
    return ai.configuration_status()


@router.post("/ask")
def ask(
    payload: schemas.AskRequest,
    student: models.Profile = Depends(require_student),
    db: Session = Depends(get_db),
    ai: AIService = Depends(get_ai_service),
):
    """Log the student's question, ask the providers, then store the answer."""
    question = payload.question.strip()
    if not question:
        raise HTTPException(status_code=400, detail="Please enter a question")

    ai_question, error = crud.create_ai_question(db, student.id, question)
    if error:
        raise HTTPException(status_code=500, detail=f"Failed to save question: {error}")

    response = ai.explain_concept(question, payload.subject, payload.grade_level)
    if response.success:
        saved, error = crud.update_ai_question_answer(db, ai_question.id, response.content)
        if error:
            logger.error("Could not store answer for AI question %s: %s", ai_question.id, error)
        else:
            ai_question = saved

    return {
        "question": schemas.AIQuestion.model_validate(ai_question),
        "response": response.as_dict(),
    }


@router.get("/questions", response_model=List[schemas.AIQuestion])
def read_ai_questions(student: models.Profile = Depends(require_student), db: Session = Depends(get_db)):
    questions, error = crud.get_student_ai_questions(db, student.id)
    if error:
        raise HTTPException(status_code=500, detail=error)
    return questions


# --- QUIZ GENERATION ---
@router.post("/quiz/preview")
def generate_quiz_preview(
    payload: schemas.QuizGenerateRequest,
    user: models.Profile = Depends(get_current_user),
    ai: AIService = Depends(get_ai_service),
):
    """
    Generates questions with the configured providers and returns them (does not save to DB).
    """
    topic = payload.topic.strip()
    if not topic:
        raise HTTPException(status_code=400, detail="Please enter a topic")

    # Limits
    count = payload.num_questions
    if count > MAX_QUESTIONS:
        count = MAX_QUESTIONS
    if count < 1:
        count = DEFAULT_QUESTIONS

    if payload.subject:
        topic = f"{payload.subject}: {topic}"

    result = ai.generate_quiz(topic, count, payload.difficulty)
    if not result.success:
        raise HTTPException(status_code=502, detail=result.as_dict())
    return result.as_dict()


@router.post("/quiz/export")
def export_generated_quiz(payload: schemas.GeneratedQuizExport, user: models.Profile = Depends(get_current_user)):
    if not payload.questions:
        raise HTTPException(status_code=400, detail="No questions to export")

    now = datetime.utcnow()
    return Response(
        content=generated_quiz_to_json(payload, now),
        media_type="application/json",
        headers={"Content-Disposition": f"attachment; filename={generated_quiz_filename(payload.topic, now)}"},
    )


@router.post("/quiz/save", status_code=201)
def save_generated_quiz(
    payload: schemas.GeneratedQuizSave,
    teacher: models.Profile = Depends(require_teacher),
    db: Session = Depends(get_db),
):
    try:
        draft = draft_from_generated(payload.title, payload.description, payload.questions)
        report = create_quiz_with_questions(db, draft, teacher.id)
    except QuizValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if not report.ok:
        raise HTTPException(status_code=500, detail=report.as_dict())
    return {
        "quiz": schemas.Quiz.model_validate(report.result),
        "report": report.as_dict(),
    }
