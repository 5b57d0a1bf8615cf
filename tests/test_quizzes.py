from types import SimpleNamespace

import pytest

from edutrack import crud, models, schemas
from edutrack.ai.quiz_parser import GeneratedQuestion
from edutrack.crud import DbResult
from edutrack.errors import QuizValidationError
from edutrack.quizzes import (
    calculate_score,
    create_quiz_with_questions,
    draft_from_generated,
    submit_quiz,
    validate_quiz_draft,
)


def mc(text, options, correct):
    return schemas.QuestionCreate(
        text=text,
        question_type="multiple_choice",
        options=[schemas.OptionCreate(text=o, is_correct=(i == correct)) for i, o in enumerate(options)],
    )


def short(text):
    return schemas.QuestionCreate(text=text, question_type="short_answer")


@pytest.fixture()
def teacher(db_session):
    profile, _ = crud.create_profile(db_session, "t@example.com", "hash", "teacher", "Teacher")
    return profile


@pytest.fixture()
def student(db_session):
    profile, _ = crud.create_profile(db_session, "s@example.com", "hash", "student", "Student")
    return profile


@pytest.mark.parametrize("draft, message", [
    (schemas.QuizCreate(title=" ", questions=[short("Q")]), "Please enter a quiz title"),
    (schemas.QuizCreate(title="T", questions=[]), "Please add at least one question"),
    (schemas.QuizCreate(title="T", questions=[short(" ")]), "All questions must have text"),
    (schemas.QuizCreate(title="T", questions=[mc("Q", ["A"], 0)]),
     "Multiple choice questions must have at least 2 options"),
    (schemas.QuizCreate(title="T", questions=[mc("Q", ["A", "B"], None)]),
     "Each multiple choice question must have exactly one correct answer"),
    (schemas.QuizCreate(title="T", questions=[mc("Q", ["A", "", "C"], 0)]), "All options must have text"),
])
def test_validate_quiz_draft_rejects(draft, message):
    with pytest.raises(QuizValidationError, match=message):
        validate_quiz_draft(draft)


def test_two_correct_options_rejected():
    question = mc("Q", ["A", "B", "C"], 0)
    question.options[1].is_correct = True

    with pytest.raises(QuizValidationError):
        validate_quiz_draft(schemas.QuizCreate(title="T", questions=[question]))


def _question(qid, correct_option=None, option_ids=(), question_type="multiple_choice"):
    options = [SimpleNamespace(id=oid, is_correct=(oid == correct_option)) for oid in option_ids]
    return SimpleNamespace(id=qid, question_type=question_type, options=options)


def test_calculate_score_rounds_half_up():
    questions = [_question(1, 11, (11, 12)), _question(2, 21, (21, 22)), _question(3, question_type="short_answer"),
                 _question(4, 41, (41, 42)), _question(5, 51, (51, 52)), _question(6, 61, (61, 62)),
                 _question(7, 71, (71, 72)), _question(8, 81, (81, 82))]
    answers = {
        1: schemas.AnswerIn(question_id=1, selected_option_id=11),
        2: schemas.AnswerIn(question_id=2, selected_option_id=22),
        3: schemas.AnswerIn(question_id=3, text_answer="anything"),
        4: schemas.AnswerIn(question_id=4, selected_option_id=41),
        5: schemas.AnswerIn(question_id=5, selected_option_id=51),
    }

    # 3 of 8 correct = 37.5
    assert calculate_score(questions, answers) == 38
    assert calculate_score(questions, answers) == calculate_score(questions, answers)


def test_calculate_score_without_questions():
    assert calculate_score([], {}) == 0


def test_create_quiz_with_questions(db_session, teacher):
    draft = schemas.QuizCreate(title=" Fractions ", description="Week 3",
                               questions=[mc("1/2 + 1/2?", ["1", "2"], 0), short("Explain a fraction")])

    report = create_quiz_with_questions(db_session, draft, teacher.id)

    assert report.ok
    quiz = report.result
    assert quiz.title == "Fractions"
    assert [q.question_text for q in quiz.questions] == ["1/2 + 1/2?", "Explain a fraction"]
    assert [o.is_correct for o in quiz.questions[0].options] == [True, False]
    assert quiz.questions[1].options == []
    assert [s.name for s in report.steps] == [
        "insert quiz", "insert question 1", "insert option 1.1", "insert option 1.2", "insert question 2",
    ]


def test_create_quiz_reports_partial_failure(db_session, teacher, monkeypatch):
    monkeypatch.setattr(crud, "create_quiz_option", lambda *a, **kw: DbResult(None, "disk full"))
    draft = schemas.QuizCreate(title="Broken", questions=[mc("Q", ["A", "B"], 1)])

    report = create_quiz_with_questions(db_session, draft, teacher.id)

    assert not report.ok
    assert report.result is None
    assert report.failed_step == "insert option 1.1"
    assert report.error == "disk full"
    assert [s.name for s in report.created()] == ["insert quiz", "insert question 1"]
    # earlier inserts are left in place
    assert db_session.query(models.Quiz).filter_by(title="Broken").count() == 1
    assert db_session.query(models.QuizQuestion).count() == 1


def test_invalid_draft_writes_nothing(db_session, teacher):
    with pytest.raises(QuizValidationError):
        create_quiz_with_questions(db_session, schemas.QuizCreate(title="T", questions=[]), teacher.id)
    assert db_session.query(models.Quiz).count() == 0


def test_submit_scores_half_when_short_answer_left_blank(db_session, teacher, student):
    draft = schemas.QuizCreate(title="Mixed", questions=[mc("Pick B", ["A", "B", "C"], 1), short("Why?")])
    quiz = create_quiz_with_questions(db_session, draft, teacher.id).result
    choice, written = quiz.questions
    option_b = choice.options[1]

    report = submit_quiz(db_session, quiz, student.id, schemas.SubmissionCreate(answers=[
        schemas.AnswerIn(question_id=choice.id, selected_option_id=option_b.id),
        schemas.AnswerIn(question_id=written.id, text_answer="   "),
    ]))

    assert report.ok
    submission = report.result
    assert submission.score == 50
    assert submission.completed is True
    answers, _ = crud.get_submission_answers(db_session, submission.id)
    assert len(answers) == 1
    assert answers[0].selected_option_id == option_b.id
    assert answers[0].is_correct is True


def test_submit_rejects_foreign_question_and_option(db_session, teacher, student):
    quiz = create_quiz_with_questions(
        db_session, schemas.QuizCreate(title="One", questions=[mc("Q", ["A", "B"], 0)]), teacher.id).result
    question = quiz.questions[0]

    with pytest.raises(QuizValidationError, match="not part of this quiz"):
        submit_quiz(db_session, quiz, student.id,
                    schemas.SubmissionCreate(answers=[schemas.AnswerIn(question_id=9999, selected_option_id=1)]))
    with pytest.raises(QuizValidationError, match="does not belong"):
        submit_quiz(db_session, quiz, student.id,
                    schemas.SubmissionCreate(answers=[schemas.AnswerIn(question_id=question.id,
                                                                      selected_option_id=9999)]))


def test_submit_rejects_quiz_without_questions(db_session, teacher, student):
    quiz, _ = crud.create_quiz(db_session, "Empty", teacher.id)

    with pytest.raises(QuizValidationError):
        submit_quiz(db_session, quiz, student.id, schemas.SubmissionCreate(answers=[]))


def test_draft_from_generated():
    generated = [GeneratedQuestion(question="2+2?", options=["3", "4", "5", "6"], correctAnswer=1,
                                   explanation="Addition")]

    draft = draft_from_generated("Math", None, generated)

    assert draft.questions[0].text == "2+2?"
    assert [o.is_correct for o in draft.questions[0].options] == [False, True, False, False]
    validate_quiz_draft(draft)
