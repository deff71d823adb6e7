from datetime import datetime
from typing import Dict, List, Optional
from pydantic import BaseModel, Field


class OptionIn(BaseModel):
    option_text: str
    is_correct: bool = False


class QuestionIn(BaseModel):
    question_text: str
    options: List[OptionIn]
    points: int = 1
    explanation: Optional[str] = None


class QuizUpsert(BaseModel):
    title: str
    description: Optional[str] = None
    pass_percentage: Optional[int] = Field(default=None, ge=0, le=100)
    time_limit_minutes: Optional[int] = Field(default=None, gt=0)
    # omitted on updates that only touch quiz settings
    questions: Optional[List[QuestionIn]] = None


class OptionRead(BaseModel):
    id: int
    option_text: str
    option_order: int

    class Config:
        from_attributes = True


class OptionManageRead(OptionRead):
    is_correct: bool


class QuestionRead(BaseModel):
    id: int
    question_text: str
    question_order: int
    points: int
    options: List[OptionRead]

    class Config:
        from_attributes = True


class QuestionManageRead(QuestionRead):
    explanation: Optional[str] = None
    options: List[OptionManageRead]


class AttemptRead(BaseModel):
    id: int
    quiz_id: int
    lesson_id: int
    score: int
    total_points: int
    percentage: int
    passed: bool
    completed_at: datetime
    time_spent_seconds: Optional[int] = None

    class Config:
        from_attributes = True


class QuizRead(BaseModel):
    id: int
    lesson_id: int
    title: str
    description: Optional[str] = None
    pass_percentage: int
    time_limit_minutes: Optional[int] = None
    questions: List[QuestionRead]
    attempt_count: int = 0
    last_attempt: Optional[AttemptRead] = None


class QuizManageRead(BaseModel):
    id: int
    lesson_id: int
    title: str
    description: Optional[str] = None
    pass_percentage: int
    time_limit_minutes: Optional[int] = None
    questions: List[QuestionManageRead]
    attempt_count: int = 0


class AnswerIn(BaseModel):
    question_id: int
    option_id: Optional[int] = None


class QuizSubmission(BaseModel):
    answers: List[AnswerIn]
    time_spent_seconds: Optional[int] = Field(default=None, ge=0)


class QuestionResultRead(BaseModel):
    question_id: int
    selected_option_id: Optional[int] = None
    correct_option_id: int
    is_correct: bool
    points_earned: int
    explanation: Optional[str] = None


class SubmissionResult(BaseModel):
    attempt: AttemptRead
    score: int
    total_points: int
    percentage: int
    passed: bool
    results: List[QuestionResultRead]


class SessionAnswer(BaseModel):
    question_id: int
    option_id: int


class SessionRead(BaseModel):
    id: str
    state: str
    lesson_id: int
    quiz_id: int
    remaining_seconds: Optional[int] = None
    expired: bool = False
    answers: Dict[int, int]
    result: Optional[SubmissionResult] = None
