import io
import logging
from dataclasses import asdict
from datetime import datetime, timedelta
from typing import List, Literal, Tuple

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from .. import analytics, crud, models
from ..core.security import get_current_user, require_teacher
from ..database import get_db
from ..exports import XLSX_MEDIA_TYPE, stats_to_csv, stats_to_json, stats_to_xlsx

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/analytics",
    tags=["analytics"]
)

DEFAULT_TIME_RANGE = 30


def _student_row(profile: models.Profile) -> analytics.StudentRow:
    return analytics.StudentRow(id=profile.id, email=profile.email, full_name=profile.full_name)


def _fetch(db: Session, since: datetime, student_id=None) -> Tuple[list, list]:
    submissions, error = crud.get_submission_rows(db, since=since, student_id=student_id)
    if error:
        raise HTTPException(status_code=500, detail="Failed to load quiz submissions")
    views, error = crud.get_material_view_rows(db, since=since, student_id=student_id)
    if error:
        raise HTTPException(status_code=500, detail="Failed to load material views")
    return submissions, views


def _students(db: Session) -> List[analytics.StudentRow]:
    profiles, error = crud.get_students(db)
    if error:
        raise HTTPException(status_code=500, detail="Failed to load students")
    return [_student_row(p) for p in profiles]


def _student_analytics(db: Session, user: models.Profile, student_id: int, time_range: int,
                       now: datetime) -> analytics.StudentAnalytics:
    if user.role != "teacher" and user.id != student_id:
        raise HTTPException(status_code=403, detail="You can only view your own analytics")

    profile, error = crud.get_profile(db, student_id)
    if error:
        raise HTTPException(status_code=500, detail=error)
    if profile is None or profile.role != "student":
        raise HTTPException(status_code=404, detail="Student not found")

    submissions, views = _fetch(db, now - timedelta(days=time_range), student_id)
    return analytics.student_analytics(_student_row(profile), submissions, views, now)


@router.get("/students/{student_id}")
def read_student_analytics(
    student_id: int,
    time_range: int = Query(DEFAULT_TIME_RANGE, ge=1),
    user: models.Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    result = _student_analytics(db, user, student_id, time_range, datetime.utcnow())
    return asdict(result)


@router.get("/students/{student_id}/recommendations")
def read_recommendations(
    student_id: int,
    time_range: int = Query(DEFAULT_TIME_RANGE, ge=1),
    user: models.Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    now = datetime.utcnow()
    result = _student_analytics(db, user, student_id, time_range, now)
    return {"student_id": student_id, "recommendations": analytics.student_recommendations(result, now)}


@router.get("/class")
def read_class_analytics(
    time_range: int = Query(DEFAULT_TIME_RANGE, ge=1),
    teacher: models.Profile = Depends(require_teacher),
    db: Session = Depends(get_db),
):
    students = _students(db)
    submissions, views = _fetch(db, datetime.utcnow() - timedelta(days=time_range))
    return asdict(analytics.class_analytics(students, submissions, views))


def _dashboard(db: Session, time_range: int, now: datetime):
    students = _students(db)
    submissions, views = _fetch(db, now - timedelta(days=time_range))
    stats = analytics.student_stats_table(students, submissions, views, now)
    metrics = analytics.class_metrics(students, stats, submissions, views)
    return stats, metrics


@router.get("/students")
def read_student_progress(
    time_range: int = Query(DEFAULT_TIME_RANGE, ge=1),
    teacher: models.Profile = Depends(require_teacher),
    db: Session = Depends(get_db),
):
    stats, metrics = _dashboard(db, time_range, datetime.utcnow())
    return {
        "time_range": time_range,
        "metrics": asdict(metrics),
        "student_stats": [asdict(s) for s in stats],
    }


@router.get("/export")
def export_student_progress(
    format: Literal["csv", "json", "xlsx"] = "csv",
    time_range: int = Query(DEFAULT_TIME_RANGE, ge=1),
    teacher: models.Profile = Depends(require_teacher),
    db: Session = Depends(get_db),
):
    now = datetime.utcnow()
    stats, metrics = _dashboard(db, time_range, now)
    filename = f"student-progress-{now.strftime('%Y-%m-%d')}.{format}"
    headers = {"Content-Disposition": f"attachment; filename={filename}"}
    logger.info("Exporting progress for %d students as %s", len(stats), format)

    if format == "xlsx":
        return StreamingResponse(stats_to_xlsx(stats, metrics), media_type=XLSX_MEDIA_TYPE, headers=headers)
    if format == "json":
        body = stats_to_json(stats, metrics, time_range, now)
        return StreamingResponse(io.BytesIO(body.encode("utf-8")), media_type="application/json", headers=headers)

    body = stats_to_csv(stats)
    return StreamingResponse(io.BytesIO(body.encode("utf-8")), media_type="text/csv", headers=headers)
