"""Student and class analytics.

Everything here is a pure function over rows that were already fetched and
joined with names and titles. Time-dependent results take ``now`` so they
stay deterministic.
"""
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Optional

from edutrack.utils import round_half_up

STREAK_LOOKBACK_DAYS = 30
TREND_WINDOW = 3
TREND_THRESHOLD = 5


@dataclass
class StudentRow:
    id: int
    email: str
    full_name: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.full_name or self.email


@dataclass
class SubmissionRow:
    student_id: int
    quiz_id: int
    score: Optional[int]
    completed: bool
    created_at: datetime
    student_name: str = ""
    quiz_title: str = "Unknown Quiz"
    answers_correct: List[bool] = field(default_factory=list)


@dataclass
class MaterialViewRow:
    student_id: int
    material_id: int
    viewed_at: datetime
    student_name: str = ""
    material_title: str = "Unknown Material"
    material_type: str = "unknown"


@dataclass
class QuizAnalytics:
    quiz_id: int
    quiz_title: str
    score: int
    completed: bool
    attempt_date: datetime
    questions_correct: int
    total_questions: int


@dataclass
class MaterialAnalytics:
    material_id: int
    material_title: str
    material_type: str
    viewed_at: datetime


@dataclass
class StudentOverallStats:
    total_quizzes_taken: int
    total_quizzes_completed: int
    average_score: float
    best_score: int
    worst_score: int
    total_materials_viewed: int
    engagement_score: int
    progress_trend: str
    last_active_date: datetime
    streak_days: int
    completion_rate: float


@dataclass
class StudentAnalytics:
    student_id: int
    student_name: str
    email: str
    quiz_data: List[QuizAnalytics]
    material_data: List[MaterialAnalytics]
    overall_stats: StudentOverallStats


@dataclass
class StudentRanking:
    student_id: int
    student_name: str
    average_score: float
    completion_rate: float
    engagement_level: str


@dataclass
class QuizStatistics:
    quiz_id: int
    quiz_title: str
    total_attempts: int
    completed_attempts: int
    average_score: float
    difficulty_level: str


@dataclass
class MaterialPopularity:
    material_id: int
    material_title: str
    total_views: int
    unique_viewers: int


@dataclass
class EngagementTrend:
    date: date
    active_users: int
    quiz_attempts: int
    material_views: int
    total_engagement_score: int


@dataclass
class PerformanceDistribution:
    excellent: int = 0  # 90-100
    good: int = 0  # 70-89
    average: int = 0  # 50-69
    needs_improvement: int = 0  # 0-49


@dataclass
class ClassAnalytics:
    total_students: int
    active_students: int
    average_class_score: float
    top_performers: List[StudentRanking]
    struggling_students: List[StudentRanking]
    quiz_statistics: List[QuizStatistics]
    material_popularity: List[MaterialPopularity]
    engagement_trends: List[EngagementTrend]
    performance_distribution: PerformanceDistribution


@dataclass
class StudentStats:
    student_id: int
    student_name: str
    total_quizzes: int
    completed_quizzes: int
    average_score: float
    materials_viewed: int
    last_activity: Optional[datetime]
    engagement_level: str


@dataclass
class ClassMetrics:
    total_students: int
    active_students: int
    average_score: float
    completion_rate: float
    total_quizzes: int
    total_materials: int


def _mean(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0


# --- Student level ---

def process_quiz_data(submissions: Iterable[SubmissionRow]) -> List[QuizAnalytics]:
    return [
        QuizAnalytics(
            quiz_id=s.quiz_id,
            quiz_title=s.quiz_title or "Unknown Quiz",
            score=s.score or 0,
            completed=bool(s.completed),
            attempt_date=s.created_at,
            questions_correct=sum(1 for correct in s.answers_correct if correct),
            total_questions=len(s.answers_correct),
        )
        for s in submissions
    ]


def process_material_data(views: Iterable[MaterialViewRow]) -> List[MaterialAnalytics]:
    return [
        MaterialAnalytics(
            material_id=v.material_id,
            material_title=v.material_title or "Unknown Material",
            material_type=v.material_type or "unknown",
            viewed_at=v.viewed_at,
        )
        for v in views
    ]


def _activity_dates(quiz_data: List[QuizAnalytics], material_data: List[MaterialAnalytics]) -> List[datetime]:
    return [q.attempt_date for q in quiz_data] + [m.viewed_at for m in material_data]


def calculate_consistency_score(quiz_data: List[QuizAnalytics], material_data: List[MaterialAnalytics]) -> float:
    """Share of days with activity across the span of activity, capped at 1."""
    activities = sorted(_activity_dates(quiz_data, material_data))
    if len(activities) < 2:
        return 0

    span_days = (activities[-1] - activities[0]).total_seconds() / 86400
    active_days = len({d.date() for d in activities})
    return min(active_days / span_days, 1) if span_days > 0 else 0


def calculate_engagement_score(quiz_data: List[QuizAnalytics], material_data: List[MaterialAnalytics]) -> int:
    """Weighted 0-100 score: quizzes 40, materials 30, completion 20, consistency 10."""
    score = min(len(quiz_data) / 10 * 40, 40)
    score += min(len(material_data) / 15 * 30, 30)

    if quiz_data:
        completed = sum(1 for q in quiz_data if q.completed)
        score += completed / len(quiz_data) * 20

    score += calculate_consistency_score(quiz_data, material_data) * 10
    return round_half_up(max(0, min(score, 100)))


def calculate_progress_trend(scores: List[int]) -> str:
    if len(scores) < TREND_WINDOW:
        return "stable"
    recent = scores[-TREND_WINDOW:]
    earlier = scores[:-TREND_WINDOW]
    if not earlier:
        return "stable"

    recent_avg = _mean(recent)
    earlier_avg = _mean(earlier)
    if recent_avg > earlier_avg + TREND_THRESHOLD:
        return "improving"
    if recent_avg < earlier_avg - TREND_THRESHOLD:
        return "declining"
    return "stable"


def calculate_streak_days(activity_dates: List[datetime], now: datetime) -> int:
    """Consecutive active days walking back from the latest activity."""
    if not activity_dates:
        return 0

    active_days = {d.date() for d in activity_dates}
    floor = (now - timedelta(days=STREAK_LOOKBACK_DAYS)).date()
    current = max(activity_dates).date()

    streak = 0
    while current >= floor and current in active_days:
        streak += 1
        current -= timedelta(days=1)
    return streak


def calculate_overall_stats(quiz_data: List[QuizAnalytics], material_data: List[MaterialAnalytics],
                            now: datetime) -> StudentOverallStats:
    completed = sorted((q for q in quiz_data if q.completed), key=lambda q: q.attempt_date)
    scores = [q.score for q in completed if q.score > 0]
    completion_rate = len(completed) / len(quiz_data) * 100 if quiz_data else 0

    activities = _activity_dates(quiz_data, material_data)

    return StudentOverallStats(
        total_quizzes_taken=len(quiz_data),
        total_quizzes_completed=len(completed),
        average_score=round_half_up(_mean(scores), 2),
        best_score=max(scores) if scores else 0,
        worst_score=min(scores) if scores else 0,
        total_materials_viewed=len(material_data),
        engagement_score=calculate_engagement_score(quiz_data, material_data),
        progress_trend=calculate_progress_trend(scores),
        last_active_date=max(activities) if activities else now,
        streak_days=calculate_streak_days(activities, now),
        completion_rate=round_half_up(completion_rate, 2),
    )


def student_analytics(student: StudentRow, submissions: List[SubmissionRow],
                      views: List[MaterialViewRow], now: datetime) -> StudentAnalytics:
    quiz_data = process_quiz_data(s for s in submissions if s.student_id == student.id)
    material_data = process_material_data(v for v in views if v.student_id == student.id)
    return StudentAnalytics(
        student_id=student.id,
        student_name=student.display_name,
        email=student.email,
        quiz_data=quiz_data,
        material_data=material_data,
        overall_stats=calculate_overall_stats(quiz_data, material_data, now),
    )


def student_recommendations(analytics: StudentAnalytics, now: datetime, limit: int = 5) -> List[str]:
    stats = analytics.overall_stats
    recommendations = []

    if stats.average_score < 70:
        recommendations.append("Consider reviewing fundamental concepts before attempting advanced quizzes")
        recommendations.append("Schedule regular study sessions to improve understanding")

    if stats.completion_rate < 80:
        recommendations.append("Focus on completing started quizzes to improve learning outcomes")

    if stats.engagement_score < 50:
        recommendations.append("Increase interaction with course materials for better engagement")
        recommendations.append("Join study groups or discussion forums")

    if (now - stats.last_active_date).days > 7:
        recommendations.append("Re-engage with the course - it's been a while since your last activity")

    if len(analytics.material_data) < 3:
        recommendations.append("Explore more study materials to enhance your understanding")

    return recommendations[:limit]


# --- Class level ---

def calculate_active_students(submissions: List[SubmissionRow], views: List[MaterialViewRow]) -> int:
    return len({s.student_id for s in submissions} | {v.student_id for v in views})


def _scored(submissions: List[SubmissionRow]) -> List[SubmissionRow]:
    return [s for s in submissions if s.completed and s.score is not None]


def calculate_average_class_score(submissions: List[SubmissionRow]) -> float:
    return round_half_up(_mean([s.score for s in _scored(submissions)]), 2)


def _engagement_level(average_score: float, completion_rate: float) -> str:
    if average_score >= 80 and completion_rate >= 0.8:
        return "high"
    if average_score >= 60 and completion_rate >= 0.6:
        return "medium"
    return "low"


def rank_students(students: List[StudentRow], submissions: List[SubmissionRow]) -> List[StudentRanking]:
    rankings = []
    for student in students:
        attempts = [s for s in submissions if s.student_id == student.id]
        completed = [s for s in attempts if s.completed]
        average = _mean([s.score or 0 for s in completed])
        completion_rate = len(completed) / max(len(attempts), 1)
        rankings.append(StudentRanking(
            student_id=student.id,
            student_name=student.display_name,
            average_score=round_half_up(average, 2),
            completion_rate=round_half_up(completion_rate, 2),
            engagement_level=_engagement_level(average, completion_rate),
        ))
    return rankings


def top_performers(rankings: List[StudentRanking], limit: int = 5) -> List[StudentRanking]:
    ranked = [r for r in rankings if r.average_score > 0]
    return sorted(ranked, key=lambda r: r.average_score, reverse=True)[:limit]


def struggling_students(rankings: List[StudentRanking], limit: int = 5) -> List[StudentRanking]:
    ranked = [
        StudentRanking(r.student_id, r.student_name, r.average_score, r.completion_rate, "low")
        for r in rankings if 0 < r.average_score < 60
    ]
    return sorted(ranked, key=lambda r: r.average_score)[:limit]


def _difficulty(average_score: float) -> str:
    if average_score >= 80:
        return "easy"
    if average_score < 60:
        return "hard"
    return "medium"


def calculate_quiz_statistics(submissions: List[SubmissionRow]) -> List[QuizStatistics]:
    groups: Dict[int, List[SubmissionRow]] = OrderedDict()
    for s in submissions:
        groups.setdefault(s.quiz_id, []).append(s)

    stats = []
    for quiz_id, group in groups.items():
        average = _mean([s.score for s in _scored(group)])
        stats.append(QuizStatistics(
            quiz_id=quiz_id,
            quiz_title=group[0].quiz_title or "Unknown Quiz",
            total_attempts=len(group),
            completed_attempts=sum(1 for s in group if s.completed),
            average_score=round_half_up(average, 2),
            difficulty_level=_difficulty(average),
        ))
    return stats


def calculate_material_popularity(views: List[MaterialViewRow]) -> List[MaterialPopularity]:
    groups: Dict[int, List[MaterialViewRow]] = OrderedDict()
    for v in views:
        groups.setdefault(v.material_id, []).append(v)

    return [
        MaterialPopularity(
            material_id=material_id,
            material_title=group[0].material_title or "Unknown Material",
            total_views=len(group),
            unique_viewers=len({v.student_id for v in group}),
        )
        for material_id, group in groups.items()
    ]


def calculate_engagement_trends(submissions: List[SubmissionRow], views: List[MaterialViewRow]) -> List[EngagementTrend]:
    users: Dict[date, set] = {}
    attempts: Dict[date, int] = {}
    view_counts: Dict[date, int] = {}

    for s in submissions:
        day = s.created_at.date()
        users.setdefault(day, set()).add(s.student_id)
        attempts[day] = attempts.get(day, 0) + 1
    for v in views:
        day = v.viewed_at.date()
        users.setdefault(day, set()).add(v.student_id)
        view_counts[day] = view_counts.get(day, 0) + 1

    trends = []
    for day in sorted(users):
        active = len(users[day])
        quiz_attempts = attempts.get(day, 0)
        material_views = view_counts.get(day, 0)
        trends.append(EngagementTrend(
            date=day,
            active_users=active,
            quiz_attempts=quiz_attempts,
            material_views=material_views,
            total_engagement_score=active * 10 + quiz_attempts * 5 + material_views * 2,
        ))
    return trends


def calculate_performance_distribution(submissions: List[SubmissionRow]) -> PerformanceDistribution:
    scores = [s.score for s in _scored(submissions)]
    if not scores:
        return PerformanceDistribution()

    total = len(scores)

    def pct(count):
        return round_half_up(count / total * 100)

    return PerformanceDistribution(
        excellent=pct(sum(1 for s in scores if s >= 90)),
        good=pct(sum(1 for s in scores if 70 <= s < 90)),
        average=pct(sum(1 for s in scores if 50 <= s < 70)),
        needs_improvement=pct(sum(1 for s in scores if s < 50)),
    )


def class_analytics(students: List[StudentRow], submissions: List[SubmissionRow],
                    views: List[MaterialViewRow]) -> ClassAnalytics:
    rankings = rank_students(students, submissions)
    return ClassAnalytics(
        total_students=len(students),
        active_students=calculate_active_students(submissions, views),
        average_class_score=calculate_average_class_score(submissions),
        top_performers=top_performers(rankings),
        struggling_students=struggling_students(rankings),
        quiz_statistics=calculate_quiz_statistics(submissions),
        material_popularity=calculate_material_popularity(views),
        engagement_trends=calculate_engagement_trends(submissions, views),
        performance_distribution=calculate_performance_distribution(submissions),
    )


# --- Teacher dashboard table ---

def student_stats_table(students: List[StudentRow], submissions: List[SubmissionRow],
                        views: List[MaterialViewRow], now: datetime) -> List[StudentStats]:
    table = []
    for student in students:
        quizzes = [s for s in submissions if s.student_id == student.id]
        materials = [v for v in views if v.student_id == student.id]
        completed = [s for s in quizzes if s.completed]

        activity = [s.created_at for s in quizzes] + [v.viewed_at for v in materials]
        last_activity = max(activity) if activity else None
        days_idle = (now - last_activity).days if last_activity else None

        level = "Low"
        if days_idle is not None and days_idle <= 3 and (completed or len(materials) > 2):
            level = "High"
        elif days_idle is not None and days_idle <= 7 and (completed or materials):
            level = "Medium"

        table.append(StudentStats(
            student_id=student.id,
            student_name=student.display_name,
            total_quizzes=len(quizzes),
            completed_quizzes=len(completed),
            average_score=round_half_up(_mean([s.score or 0 for s in completed]), 2),
            materials_viewed=len(materials),
            last_activity=last_activity,
            engagement_level=level,
        ))
    return table


def class_metrics(students: List[StudentRow], stats: List[StudentStats], submissions: List[SubmissionRow],
                  views: List[MaterialViewRow]) -> ClassMetrics:
    completed = [s for s in submissions if s.completed]
    completion_rate = len(completed) / len(submissions) * 100 if submissions else 0
    return ClassMetrics(
        total_students=len(students),
        active_students=sum(1 for s in stats if s.engagement_level != "Low"),
        average_score=round_half_up(_mean([s.score or 0 for s in completed]), 2),
        completion_rate=round_half_up(completion_rate, 2),
        total_quizzes=len({s.quiz_id for s in submissions}),
        total_materials=len({v.material_id for v in views}),
    )
