import logging
from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from . import crud, schemas
from .errors import QuizValidationError
from .pipeline import PipelineAborted, PipelineReport, StepPipeline
from .utils import round_half_up

logger = logging.getLogger(__name__)

MULTIPLE_CHOICE = "multiple_choice"
SHORT_ANSWER = "short_answer"


def validate_quiz_draft(quiz: schemas.QuizCreate) -> None:
    """Raise QuizValidationError with a user-facing message for the first problem found."""
    if not quiz.title.strip():
        raise QuizValidationError("Please enter a quiz title")

    if not quiz.questions:
        raise QuizValidationError("Please add at least one question")

    for question in quiz.questions:
        if not question.text.strip():
            raise QuizValidationError("All questions must have text")

        if question.question_type != MULTIPLE_CHOICE:
            continue

        if len(question.options) < 2:
            raise QuizValidationError("Multiple choice questions must have at least 2 options")

        if sum(1 for o in question.options if o.is_correct) != 1:
            raise QuizValidationError("Each multiple choice question must have exactly one correct answer")

        if any(not o.text.strip() for o in question.options):
            raise QuizValidationError("All options must have text")


def calculate_score(questions: Iterable, answers: Dict[int, schemas.AnswerIn]) -> int:
    """Percentage of questions answered correctly, rounded half up.

    Only multiple-choice answers can be correct; short answers always count
    against the score.
    """
    questions = list(questions)
    if not questions:
        return 0

    correct = 0
    for question in questions:
        answer = answers.get(question.id)
        if answer is None or question.question_type != MULTIPLE_CHOICE or answer.selected_option_id is None:
            continue
        selected = next((o for o in question.options if o.id == answer.selected_option_id), None)
        if selected is not None and selected.is_correct:
            correct += 1

    return round_half_up(correct / len(questions) * 100)


def _answers_by_question(questions: List, submission: schemas.SubmissionCreate) -> Dict[int, schemas.AnswerIn]:
    by_id = {q.id: q for q in questions}
    answers = {}
    for answer in submission.answers:
        question = by_id.get(answer.question_id)
        if question is None:
            raise QuizValidationError(f"Question {answer.question_id} is not part of this quiz")
        if answer.selected_option_id is not None and \
                answer.selected_option_id not in {o.id for o in question.options}:
            raise QuizValidationError(f"Option {answer.selected_option_id} does not belong to question {question.id}")
        answers[answer.question_id] = answer
    return answers


def create_quiz_with_questions(db: Session, quiz: schemas.QuizCreate, teacher_id: int) -> PipelineReport:
    """Insert quiz, then each question, then each of its options.

    Inserts are not wrapped in one transaction; a failure part way leaves
    the earlier rows in place and the report names them.
    """
    validate_quiz_draft(quiz)

    pipeline = StepPipeline("create_quiz")
    try:
        db_quiz = pipeline.run("insert quiz", crud.create_quiz, db,
                               title=quiz.title.strip(), description=quiz.description, teacher_id=teacher_id)
        for q_num, question in enumerate(quiz.questions, 1):
            db_question = pipeline.run(f"insert question {q_num}", crud.create_quiz_question, db,
                                       quiz_id=db_quiz.id, question_text=question.text.strip(),
                                       question_type=question.question_type, position=q_num)
            if question.question_type != MULTIPLE_CHOICE:
                continue
            for o_num, option in enumerate(question.options, 1):
                pipeline.run(f"insert option {q_num}.{o_num}", crud.create_quiz_option, db,
                             question_id=db_question.id, option_text=option.text.strip(),
                             is_correct=option.is_correct)
        db.refresh(db_quiz)
        pipeline.report.result = db_quiz
    except PipelineAborted:
        pass
    return pipeline.report


def submit_quiz(db: Session, quiz, student_id: int, submission: schemas.SubmissionCreate) -> PipelineReport:
    """Score the answers, insert the submission, then one row per answer given."""
    questions = list(quiz.questions)
    if not questions:
        raise QuizValidationError("This quiz has no questions")
    answers = _answers_by_question(questions, submission)
    score = calculate_score(questions, answers)

    pipeline = StepPipeline("submit_quiz")
    try:
        db_submission = pipeline.run("insert submission", crud.create_quiz_submission, db,
                                     quiz_id=quiz.id, student_id=student_id, score=score, completed=True)
        for question in questions:
            answer = answers.get(question.id)
            if answer is None:
                continue
            if question.question_type == MULTIPLE_CHOICE and answer.selected_option_id is not None:
                selected = next(o for o in question.options if o.id == answer.selected_option_id)
                pipeline.run(f"insert answer {question.id}", crud.create_quiz_answer, db,
                             submission_id=db_submission.id, question_id=question.id,
                             selected_option_id=selected.id, is_correct=bool(selected.is_correct))
            elif question.question_type == SHORT_ANSWER and (answer.text_answer or "").strip():
                pipeline.run(f"insert answer {question.id}", crud.create_quiz_answer, db,
                             submission_id=db_submission.id, question_id=question.id,
                             text_answer=answer.text_answer.strip())
        db.refresh(db_submission)
        pipeline.report.result = db_submission
    except PipelineAborted:
        pass
    return pipeline.report


def draft_from_generated(title: str, description: Optional[str], questions: List) -> schemas.QuizCreate:
    """Turn AI-generated questions (four options + correct index) into a quiz draft."""
    return schemas.QuizCreate(
        title=title,
        description=description,
        questions=[
            schemas.QuestionCreate(
                text=q.question,
                question_type=MULTIPLE_CHOICE,
                options=[
                    schemas.OptionCreate(text=text, is_correct=(i == q.correctAnswer))
                    for i, text in enumerate(q.options)
                ],
            )
            for q in questions
        ],
    )
