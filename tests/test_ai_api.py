import json

GENERATED = [{
    "question": "What is 2+2?",
    "options": ["3", "4", "5", "6"],
    "correctAnswer": 1,
    "explanation": "Basic addition",
}]


def test_status(student_client):
    status = student_client.get("/api/ai/status").json()

    assert status["available"] == ["gemini"]
    assert status["has_any_provider"] is True


def test_ask_logs_question_and_answer(student_client, fake_provider):
    fake_provider.content = "Gravity pulls masses together."

    res = student_client.post("/api/ai/ask", json={"question": "What is gravity?", "subject": "Physics"})

    assert res.status_code == 200
    body = res.json()
    assert body["response"]["success"] is True
    assert body["question"]["answer"] == "Gravity pulls masses together."
    assert "Subject: Physics" in fake_provider.prompts[0]

    history = student_client.get("/api/ai/questions").json()
    assert [(q["question"], q["answer"]) for q in history] == [("What is gravity?", "Gravity pulls masses together.")]


def test_ask_keeps_question_when_providers_fail(student_client, fake_provider):
    fake_provider.error = RuntimeError("timeout")

    body = student_client.post("/api/ai/ask", json={"question": "Why is the sky blue?"}).json()

    assert body["response"]["provider"] == "all_failed"
    assert body["question"]["answer"] is None
    assert len(student_client.get("/api/ai/questions").json()) == 1


def test_ask_is_for_students(teacher_client):
    assert teacher_client.post("/api/ai/ask", json={"question": "Hi"}).status_code == 403


def test_preview_clamps_count_and_prefixes_subject(teacher_client, fake_provider):
    res = teacher_client.post("/api/ai/quiz/preview", json={
        "topic": "Fractions", "num_questions": 50, "difficulty": "hard", "subject": "Math",
    })

    assert res.status_code == 200
    body = res.json()
    assert body["provider"] == "gemini"
    assert len(body["questions"]) == 1
    assert 'Generate 20 multiple choice questions about "Math: Fractions" with hard difficulty level.' \
        in fake_provider.prompts[0]

    teacher_client.post("/api/ai/quiz/preview", json={"topic": "Fractions", "num_questions": 0})
    assert "Generate 5 multiple choice questions" in fake_provider.prompts[1]


def test_preview_parse_failure(teacher_client, fake_provider):
    fake_provider.content = "not json"

    res = teacher_client.post("/api/ai/quiz/preview", json={"topic": "Fractions"})

    assert res.status_code == 502
    assert res.json()["detail"]["error"] == "Failed to parse quiz questions from AI response"


def test_export_downloads_json(teacher_client):
    res = teacher_client.post("/api/ai/quiz/export", json={
        "topic": "Basic Math", "subject": "Math", "provider": "gemini", "questions": GENERATED,
    })

    assert res.status_code == 200
    assert res.headers["content-disposition"].startswith("attachment; filename=quiz-basic-math-")
    payload = json.loads(res.content)
    assert payload["numberOfQuestions"] == 1
    assert payload["questions"][0]["options"][1] == "4"


def test_save_generated_quiz(teacher_client, student_client):
    res = teacher_client.post("/api/ai/quiz/save", json={"title": "Generated", "questions": GENERATED})

    assert res.status_code == 201, res.text
    quiz = res.json()["quiz"]
    assert [o["is_correct"] for o in quiz["questions"][0]["options"]] == [False, True, False, False]
    assert student_client.post("/api/ai/quiz/save",
                               json={"title": "Nope", "questions": GENERATED}).status_code == 403


def test_save_rejects_malformed_questions(teacher_client):
    bad = [dict(GENERATED[0], correctAnswer=7)]

    assert teacher_client.post("/api/ai/quiz/save", json={"title": "Bad", "questions": bad}).status_code == 422
