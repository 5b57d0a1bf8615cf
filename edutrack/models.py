from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from .database import Base


def utcnow():
    return datetime.utcnow()


class Profile(Base):
    __tablename__ = "profiles"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)
    role = Column(String, default="student")  # 'student', 'teacher'
    full_name = Column(String, nullable=True)
    avatar_url = Column(String, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    materials = relationship("Material", back_populates="teacher")
    quizzes = relationship("Quiz", back_populates="teacher")


class Material(Base):
    __tablename__ = "materials"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, index=True)
    description = Column(Text, nullable=True)
    file_url = Column(String, nullable=True)
    file_type = Column(String, nullable=True)
    teacher_id = Column(Integer, ForeignKey("profiles.id"))
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    teacher = relationship("Profile", back_populates="materials")
    views = relationship("MaterialView", back_populates="material", cascade="all, delete-orphan")


class Quiz(Base):
    __tablename__ = "quizzes"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, index=True)
    description = Column(Text, nullable=True)
    teacher_id = Column(Integer, ForeignKey("profiles.id"))
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    teacher = relationship("Profile", back_populates="quizzes")
    questions = relationship(
        "QuizQuestion", back_populates="quiz", cascade="all, delete-orphan",
        order_by="QuizQuestion.position",
    )
    submissions = relationship("QuizSubmission", back_populates="quiz", cascade="all, delete-orphan")


class QuizQuestion(Base):
    __tablename__ = "quiz_questions"

    id = Column(Integer, primary_key=True, index=True)
    quiz_id = Column(Integer, ForeignKey("quizzes.id"))
    question_text = Column(Text)
    question_type = Column(String, default="multiple_choice")  # multiple_choice, short_answer
    position = Column(Integer, default=0)
    created_at = Column(DateTime, default=utcnow)

    quiz = relationship("Quiz", back_populates="questions")
    options = relationship(
        "QuizOption", back_populates="question", cascade="all, delete-orphan",
        order_by="QuizOption.id",
    )


class QuizOption(Base):
    __tablename__ = "quiz_options"

    id = Column(Integer, primary_key=True, index=True)
    question_id = Column(Integer, ForeignKey("quiz_questions.id"))
    option_text = Column(String)
    is_correct = Column(Boolean, default=False)

    question = relationship("QuizQuestion", back_populates="options")


class QuizSubmission(Base):
    __tablename__ = "quiz_submissions"

    id = Column(Integer, primary_key=True, index=True)
    quiz_id = Column(Integer, ForeignKey("quizzes.id"))
    student_id = Column(Integer, ForeignKey("profiles.id"))
    score = Column(Integer, nullable=True)
    completed = Column(Boolean, default=False)
    created_at = Column(DateTime, default=utcnow, index=True)

    quiz = relationship("Quiz", back_populates="submissions")
    student = relationship("Profile")
    answers = relationship("QuizAnswer", back_populates="submission", cascade="all, delete-orphan")

    @property
    def student_name(self):
        if self.student is None:
            return None
        return self.student.full_name or self.student.email

    @property
    def student_email(self):
        return self.student.email if self.student else None

    @property
    def quiz_title(self):
        return self.quiz.title if self.quiz else None


class QuizAnswer(Base):
    __tablename__ = "quiz_answers"

    id = Column(Integer, primary_key=True, index=True)
    submission_id = Column(Integer, ForeignKey("quiz_submissions.id"))
    question_id = Column(Integer, index=True)
    selected_option_id = Column(Integer, nullable=True)
    text_answer = Column(Text, nullable=True)
    is_correct = Column(Boolean, nullable=True)  # only set for multiple choice

    submission = relationship("QuizSubmission", back_populates="answers")


class MaterialView(Base):
    __tablename__ = "material_views"
    __table_args__ = (UniqueConstraint("material_id", "student_id", name="uq_material_view"),)

    id = Column(Integer, primary_key=True, index=True)
    material_id = Column(Integer, ForeignKey("materials.id"))
    student_id = Column(Integer, ForeignKey("profiles.id"))
    viewed_at = Column(DateTime, default=utcnow, index=True)

    material = relationship("Material", back_populates="views")
    student = relationship("Profile")


class AIQuestion(Base):
    __tablename__ = "ai_questions"

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("profiles.id"))
    question = Column(Text)
    answer = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow)
