import csv
import io
import json
import re
from dataclasses import asdict
from datetime import datetime
from typing import List

import openpyxl
from fastapi.encoders import jsonable_encoder

from .analytics import ClassMetrics, StudentStats

STATS_HEADERS = [
    "Student",
    "Total Quizzes",
    "Completed Quizzes",
    "Average Score",
    "Materials Viewed",
    "Last Activity",
    "Engagement",
]

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _stats_row(s: StudentStats) -> list:
    return [
        s.student_name,
        s.total_quizzes,
        s.completed_quizzes,
        s.average_score,
        s.materials_viewed,
        s.last_activity.strftime("%Y-%m-%d") if s.last_activity else "No activity",
        s.engagement_level,
    ]


def stats_to_csv(stats: List[StudentStats]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(STATS_HEADERS)
    for s in stats:
        writer.writerow(_stats_row(s))
    return buffer.getvalue()


def stats_to_json(stats: List[StudentStats], metrics: ClassMetrics, time_range: int,
                  timestamp: datetime) -> str:
    payload = {
        "timestamp": timestamp,
        "time_range": time_range,
        "metrics": asdict(metrics),
        "student_stats": [asdict(s) for s in stats],
    }
    return json.dumps(jsonable_encoder(payload), indent=2)


def stats_to_xlsx(stats: List[StudentStats], metrics: ClassMetrics) -> io.BytesIO:
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = "Student Progress"

    for col_num, header in enumerate(STATS_HEADERS, 1):
        cell = ws.cell(row=1, column=col_num, value=header)
        cell.font = openpyxl.styles.Font(bold=True)
        ws.column_dimensions[openpyxl.utils.get_column_letter(col_num)].width = 20

    for row_idx, s in enumerate(stats, 2):
        for col_idx, value in enumerate(_stats_row(s), 1):
            ws.cell(row=row_idx, column=col_idx, value=value)

    summary = wb.create_sheet("Class Metrics")
    for row_idx, (key, value) in enumerate(asdict(metrics).items(), 1):
        summary.cell(row=row_idx, column=1, value=key.replace("_", " ").title()).font = openpyxl.styles.Font(bold=True)
        summary.cell(row=row_idx, column=2, value=value)

    buffer = io.BytesIO()
    wb.save(buffer)
    buffer.seek(0)
    return buffer


def generated_quiz_filename(topic: str, timestamp: datetime) -> str:
    slug = re.sub(r"\s+", "-", topic.strip()).lower() or "quiz"
    slug = re.sub(r"[^a-z0-9_-]", "", slug) or "quiz"
    return f"quiz-{slug}-{int(timestamp.timestamp() * 1000)}.json"


def generated_quiz_to_json(export, timestamp: datetime) -> str:
    payload = {
        "topic": export.topic,
        "subject": export.subject,
        "difficulty": export.difficulty,
        "numberOfQuestions": len(export.questions),
        "generatedAt": timestamp.isoformat(),
        "provider": export.provider,
        "questions": [q.model_dump() for q in export.questions],
    }
    return json.dumps(payload, indent=2, ensure_ascii=False)
