import csv
import io
import json
from datetime import datetime

import openpyxl

from edutrack.ai.quiz_parser import GeneratedQuestion
from edutrack.analytics import ClassMetrics, StudentStats
from edutrack.exports import (
    STATS_HEADERS,
    generated_quiz_filename,
    generated_quiz_to_json,
    stats_to_csv,
    stats_to_json,
    stats_to_xlsx,
)
from edutrack.schemas import GeneratedQuizExport

WHEN = datetime(2024, 5, 1, 8, 30)

STATS = [
    StudentStats(1, "Ana", 3, 2, 85.5, 4, WHEN, "High"),
    StudentStats(2, "Ben, Jr.", 0, 0, 0, 0, None, "Low"),
]
METRICS = ClassMetrics(total_students=2, active_students=1, average_score=85.5, completion_rate=66.67,
                       total_quizzes=2, total_materials=3)


def test_csv_export():
    rows = list(csv.reader(io.StringIO(stats_to_csv(STATS))))

    assert rows[0] == STATS_HEADERS
    assert rows[1] == ["Ana", "3", "2", "85.5", "4", "2024-05-01", "High"]
    assert rows[2][0] == "Ben, Jr."
    assert rows[2][5] == "No activity"


def test_json_export():
    payload = json.loads(stats_to_json(STATS, METRICS, 30, WHEN))

    assert payload["time_range"] == 30
    assert payload["timestamp"] == "2024-05-01T08:30:00"
    assert payload["metrics"]["completion_rate"] == 66.67
    assert payload["student_stats"][0]["student_name"] == "Ana"
    assert payload["student_stats"][1]["last_activity"] is None


def test_xlsx_export():
    wb = openpyxl.load_workbook(stats_to_xlsx(STATS, METRICS))

    sheet = wb["Student Progress"]
    assert [c.value for c in sheet[1]] == STATS_HEADERS
    assert sheet.cell(row=2, column=1).value == "Ana"
    assert sheet.cell(row=1, column=1).font.bold
    assert wb["Class Metrics"].cell(row=1, column=1).value == "Total Students"
    assert wb["Class Metrics"].cell(row=1, column=2).value == 2


def test_generated_quiz_export():
    export = GeneratedQuizExport(
        topic="Solar System",
        subject="Science",
        provider="gemini",
        questions=[GeneratedQuestion(question="Largest planet?", options=["Mars", "Jupiter", "Venus", "Earth"],
                                     correctAnswer=1, explanation="Jupiter is the largest.")],
    )

    payload = json.loads(generated_quiz_to_json(export, WHEN))

    assert payload["numberOfQuestions"] == 1
    assert payload["generatedAt"] == "2024-05-01T08:30:00"
    assert payload["questions"][0]["correctAnswer"] == 1
    assert generated_quiz_filename("Solar System", WHEN).startswith("quiz-solar-system-")
    assert generated_quiz_filename("  ", WHEN).startswith("quiz-quiz-")
