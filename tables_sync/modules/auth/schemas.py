from pydantic import BaseModel, EmailStr
from typing import Optional
from tables_sync.core.schemas import Timestamp


class SignInRequest(BaseModel):
    email: EmailStr
    password: str


class SignUpRequest(BaseModel):
    email: EmailStr
    password: str
    display_name: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    @property
    def effective_display_name(self) -> str:
        if self.first_name:
            if self.last_name:
                return f"{self.first_name} {self.last_name}"
            return self.first_name
        return self.display_name


class ProfileResponse(BaseModel):
    id: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    has_completed_onboarding: Optional[bool] = False
    created_at: Optional[Timestamp] = None

    class Config:
        from_attributes = True
