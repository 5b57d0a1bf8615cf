from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from edutrack.ai.quiz_parser import GeneratedQuestion


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# --- Profiles ---

class ProfileBase(BaseModel):
    email: str
    full_name: Optional[str] = None


class ProfileCreate(ProfileBase):
    password: str = Field(min_length=6, max_length=72)
    role: Literal["student", "teacher"] = "student"

    @field_validator("password")
    @classmethod
    def fits_bcrypt(cls, value: str) -> str:
        # bcrypt only reads the first 72 bytes
        if len(value.encode("utf-8")) > 72:
            raise ValueError("Password must be at most 72 bytes")
        return value


class LoginRequest(BaseModel):
    email: str
    password: str


class ProfileUpdate(BaseModel):
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None


class Profile(ORMModel):
    id: int
    email: str
    role: str
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None


# --- Materials ---

class MaterialUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None


class Material(ORMModel):
    id: int
    title: str
    description: Optional[str] = None
    file_url: Optional[str] = None
    file_type: Optional[str] = None
    teacher_id: int
    created_at: Optional[datetime] = None


class MaterialView(ORMModel):
    id: int
    material_id: int
    student_id: int
    viewed_at: datetime


# --- Quizzes ---

class OptionCreate(BaseModel):
    text: str
    is_correct: bool = False


class QuestionCreate(BaseModel):
    text: str
    question_type: Literal["multiple_choice", "short_answer"] = "multiple_choice"
    options: List[OptionCreate] = []


class QuizCreate(BaseModel):
    title: str
    description: Optional[str] = None
    questions: List[QuestionCreate]


class QuizUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None


class Option(ORMModel):
    id: int
    question_id: int
    option_text: str
    # Hidden (None) when a student loads the quiz
    is_correct: Optional[bool] = None


class Question(ORMModel):
    id: int
    quiz_id: int
    question_text: str
    question_type: str
    options: List[Option] = []


class QuizSummary(ORMModel):
    id: int
    title: str
    description: Optional[str] = None
    teacher_id: int
    created_at: Optional[datetime] = None


class Quiz(QuizSummary):
    questions: List[Question] = []


# --- Submissions ---

class AnswerIn(BaseModel):
    question_id: int
    selected_option_id: Optional[int] = None
    text_answer: Optional[str] = None


class SubmissionCreate(BaseModel):
    answers: List[AnswerIn]


class Submission(ORMModel):
    id: int
    quiz_id: int
    student_id: int
    score: Optional[int] = None
    completed: bool
    created_at: Optional[datetime] = None
    student_name: Optional[str] = None
    student_email: Optional[str] = None
    quiz_title: Optional[str] = None


class Answer(ORMModel):
    id: int
    submission_id: int
    question_id: int
    selected_option_id: Optional[int] = None
    text_answer: Optional[str] = None
    is_correct: Optional[bool] = None


# --- AI ---

class AskRequest(BaseModel):
    question: str
    subject: Optional[str] = None
    grade_level: Optional[str] = None


class AIQuestion(ORMModel):
    id: int
    student_id: int
    question: str
    answer: Optional[str] = None
    created_at: Optional[datetime] = None


class QuizGenerateRequest(BaseModel):
    topic: str
    num_questions: int = 5
    difficulty: str = "medium"
    subject: Optional[str] = None


class GeneratedQuizExport(BaseModel):
    topic: str
    subject: Optional[str] = None
    difficulty: str = "medium"
    provider: Optional[str] = None
    questions: List[GeneratedQuestion]


class GeneratedQuizSave(BaseModel):
    title: str
    description: Optional[str] = None
    questions: List[GeneratedQuestion]
