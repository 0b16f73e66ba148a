# otpgate/routers/auth.py
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from otpgate.database.database import get_db
from otpgate.models.models import User
from otpgate.schemas import auth as auth_schemas
from otpgate.schemas import tokens as token_schemas
from otpgate.schemas.user import UserOut
from otpgate.utils import security
from otpgate.utils.security import get_current_user

router = APIRouter(prefix="/auth", tags=["Auth"])

# ---------------- LOGIN ----------------
@router.post("/login", response_model=token_schemas.Token)
def login(request: auth_schemas.LoginRequest, db: Session = Depends(get_db)):
    user = security.authenticate_user(db, request.email, request.password)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    return {"access_token": security.issue_access_token(user), "token_type": "bearer"}


# ---------------- CURRENT USER ----------------
@router.get("/me", response_model=UserOut)
def me(current_user: User = Depends(get_current_user)):
    return current_user
