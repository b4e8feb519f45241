# models/test.py
from pydantic import BaseModel, Field
from datetime import datetime
from typing import List, Literal, Optional, Union

QuestionDifficulty = Literal["easy", "medium", "hard"]
TestDifficulty = Literal["beginner", "intermediate", "advanced"]


class QuestionIn(BaseModel):
    id: Optional[str] = None  # Kept on update so stored results still resolve
    question: str = Field(..., min_length=1)
    options: List[str] = Field(..., min_length=2)
    # Either the literal option text or an option index; stored as text
    correctAnswer: Union[int, str]
    difficulty: QuestionDifficulty = "medium"
    category: str = Field(..., min_length=1)
    explanation: str = ""


class TestCreate(BaseModel):
    title: str = Field(..., min_length=3, max_length=100)
    description: str = Field(..., min_length=1, max_length=1000)
    duration: int = Field(..., ge=1)  # minutes
    totalMarks: int = Field(..., ge=1)
    passingMarks: int = Field(..., ge=0)
    questions: List[QuestionIn] = Field(..., min_length=1)
    isActive: bool = True
    tags: List[str] = []
    difficultyLevel: TestDifficulty = "intermediate"


class TestUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=3, max_length=100)
    description: Optional[str] = Field(None, min_length=1, max_length=1000)
    duration: Optional[int] = Field(None, ge=1)
    totalMarks: Optional[int] = Field(None, ge=1)
    passingMarks: Optional[int] = Field(None, ge=0)
    questions: Optional[List[QuestionIn]] = Field(None, min_length=1)
    isActive: Optional[bool] = None
    tags: Optional[List[str]] = None
    difficultyLevel: Optional[TestDifficulty] = None


class AnswerIn(BaseModel):
    questionId: str = Field(..., min_length=1)
    selectedOption: str


class TestSubmission(BaseModel):
    answers: List[AnswerIn] = Field(..., min_length=1)
    startTime: datetime
    duration: Optional[int] = Field(None, ge=0)  # seconds reported by the client


def public_question(question: dict) -> dict:
    """Question as shown while a test is being taken: no correct answer."""
    return {key: value for key, value in question.items() if key != "correctAnswer"}
