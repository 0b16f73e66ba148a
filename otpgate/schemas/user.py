from pydantic import BaseModel
from typing import Optional
from otpgate.schemas.enums import UserRole

# ------------------ USER CREATION ------------------
class UserCreate(BaseModel):
    name: str
    email: str
    password: str
    phone: Optional[str] = None  # international format, used for SMS delivery

# ------------------ USER OUTPUT ------------------
class UserOut(BaseModel):
    id: int
    name: str
    email: str
    phone: Optional[str] = None
    role: Optional[UserRole] = UserRole.USER

    class Config:
        from_attributes = True
