from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class NoteUpdate(BaseModel):
    content: str  # HTML from the rich text editor


class NoteRead(BaseModel):
    id: int
    lesson_id: int
    content: str
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
