from pydantic import BaseModel, EmailStr

# ---------------- LOGIN ----------------
class LoginRequest(BaseModel):
    email: EmailStr
    password: str
