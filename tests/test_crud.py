from datetime import datetime, timedelta

from sqlalchemy.exc import OperationalError

from edutrack import crud, models


def _setup(db):
    teacher, _ = crud.create_profile(db, "t@example.com", "hash", "teacher")
    student, _ = crud.create_profile(db, "s@example.com", "hash", "student", "Sam")
    material, _ = crud.create_material(db, "Notes", teacher.id, file_url="/uploads/materials/1/notes.pdf",
                                       file_type="application/pdf")
    return teacher, student, material


def test_repeat_view_updates_single_row(db_session):
    _, student, material = _setup(db_session)
    first = datetime(2024, 1, 1, 9, 0)
    later = first + timedelta(days=2)

    crud.record_material_view(db_session, material.id, student.id, viewed_at=first)
    view, error = crud.record_material_view(db_session, material.id, student.id, viewed_at=later)

    assert error is None
    assert view.viewed_at == later
    views, _ = crud.get_material_views(db_session, material.id)
    assert len(views) == 1
    assert views[0].viewed_at == later


def test_lookup_miss_returns_empty_result(db_session):
    assert crud.get_quiz(db_session, 404) == (None, None)
    assert crud.update_material(db_session, 404, title="x") == (None, None)
    assert crud.delete_quiz(db_session, 404) == (None, None)


def test_database_error_is_returned_not_raised(db_session, monkeypatch):
    def broken_commit():
        raise OperationalError("INSERT", {}, Exception("database is locked"))

    monkeypatch.setattr(db_session, "commit", broken_commit)

    data, error = crud.create_quiz(db_session, "Q", teacher_id=1)

    assert data is None
    assert "database is locked" in error


def test_duplicate_email_is_an_error(db_session):
    crud.create_profile(db_session, "dup@example.com", "hash", "student")

    data, error = crud.create_profile(db_session, "dup@example.com", "hash", "student")

    assert data is None
    assert error
    # session is usable after the rollback
    assert crud.get_profile_by_email(db_session, "dup@example.com").data is not None


def test_delete_material_cascades_views(db_session):
    _, student, material = _setup(db_session)
    material_id = material.id
    crud.record_material_view(db_session, material_id, student.id)

    assert crud.delete_material(db_session, material_id) == (material_id, None)
    assert db_session.query(models.MaterialView).count() == 0


def test_joined_rows(db_session):
    teacher, student, material = _setup(db_session)
    quiz, _ = crud.create_quiz(db_session, "Algebra", teacher.id)
    submission, _ = crud.create_quiz_submission(db_session, quiz.id, student.id, score=100)
    crud.create_quiz_answer(db_session, submission.id, question_id=1, selected_option_id=2, is_correct=True)
    crud.record_material_view(db_session, material.id, student.id)

    rows, error = crud.get_submission_rows(db_session, student_id=student.id)
    assert error is None
    assert rows[0].student_name == "Sam"
    assert rows[0].quiz_title == "Algebra"
    assert rows[0].answers_correct == [True]

    views, _ = crud.get_material_view_rows(db_session, since=datetime.utcnow() - timedelta(days=1))
    assert views[0].material_title == "Notes"
    assert views[0].material_type == "application/pdf"

    old, _ = crud.get_material_view_rows(db_session, since=datetime.utcnow() + timedelta(days=1))
    assert old == []


def test_ai_question_log(db_session):
    _, student, _ = _setup(db_session)
    question, _ = crud.create_ai_question(db_session, student.id, "What is a prime?")
    crud.update_ai_question_answer(db_session, question.id, "A number with two divisors.")

    history, _ = crud.get_student_ai_questions(db_session, student.id)

    assert [(q.question, q.answer) for q in history] == [("What is a prime?", "A number with two divisors.")]
