from pydantic import BaseModel, field_validator
from tables_sync.core.schemas import Timestamp


class CommentCreate(BaseModel):
    body: str

    @field_validator("body")
    @classmethod
    def body_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Comment cannot be empty")
        return value


class CommentResponse(BaseModel):
    id: str
    card_id: str
    body: str
    author_name: str
    created_at: Timestamp

    class Config:
        from_attributes = True
