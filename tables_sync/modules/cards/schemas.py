from pydantic import BaseModel, field_validator
from typing import Optional
from datetime import datetime
from enum import Enum
from tables_sync.config.settings import settings
from tables_sync.core.schemas import Timestamp


class CardStatus(str, Enum):
    ACTIVE = "active"
    DISCUSSED = "discussed"


class CardCreate(BaseModel):
    title: Optional[str] = None
    body: str
    link_url: Optional[str] = None


class CardUpdate(BaseModel):
    title: Optional[str] = None
    body: Optional[str] = None
    link_url: Optional[str] = None
    status: Optional[CardStatus] = None

    class Config:
        use_enum_values = True


class CardResponse(BaseModel):
    id: str
    table_id: str
    title: Optional[str] = None
    body: str
    link_url: Optional[str] = None
    author_name: str
    status: CardStatus = CardStatus.ACTIVE
    created_at: Timestamp
    source_reflection_id: Optional[str] = None
    source_prompt: Optional[str] = None

    class Config:
        from_attributes = True
        use_enum_values = True


class ExcerptShare(BaseModel):
    """An excerpt of a reflection to post as a card, optionally led by a question."""
    excerpt: str
    question: Optional[str] = None
    title: Optional[str] = None

    @field_validator("excerpt")
    @classmethod
    def excerpt_long_enough(cls, value: str) -> str:
        value = value.strip()
        if len(value) < settings.excerpt_min_length:
            raise ValueError(f"Excerpt must be at least {settings.excerpt_min_length} characters")
        return value

    @field_validator("question")
    @classmethod
    def trim_question(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip()[:settings.ask_max_length]
        return value or None

    @property
    def is_long(self) -> bool:
        return len(self.excerpt) > settings.excerpt_soft_max_length

    @property
    def body(self) -> str:
        if self.question:
            return f"Question: {self.question}\n\n{self.excerpt}"
        return self.excerpt


def garden_card_title(created_at: datetime) -> str:
    return f"From my Garden · {created_at.strftime('%b')} {created_at.day}, {created_at.year}"
