from datetime import datetime
from pydantic import BaseModel


class SummaryRead(BaseModel):
    lesson_id: int
    summary: str
    generated_at: datetime


class QuestionAsk(BaseModel):
    question: str


class LessonQuestionRead(BaseModel):
    id: int
    lesson_id: int
    question: str
    answer: str
    created_at: datetime

    class Config:
        from_attributes = True
