from pydantic import BaseModel, field_validator
from typing import Optional
from enum import Enum
from tables_sync.core.schemas import Timestamp


class ReflectionType(str, Enum):
    QUICK_WIN = "quick_win"
    DEEP_REFLECTION = "deep_reflection"


class ReflectionCreate(BaseModel):
    body: str
    prompt: Optional[str] = None
    reflection_type: ReflectionType = ReflectionType.DEEP_REFLECTION

    @field_validator("body")
    @classmethod
    def body_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Reflection cannot be empty")
        return value

    class Config:
        use_enum_values = True


class ReflectionResponse(BaseModel):
    id: str
    user_id: str
    body: str
    prompt: Optional[str] = None
    reflection_type: ReflectionType
    created_at: Timestamp
    updated_at: Timestamp

    @property
    def is_quick_win(self) -> bool:
        return self.reflection_type == ReflectionType.QUICK_WIN

    class Config:
        from_attributes = True
        use_enum_values = True
