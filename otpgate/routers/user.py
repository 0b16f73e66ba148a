from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from typing import List

from otpgate.database.database import get_db
from otpgate.schemas.user import UserCreate, UserOut
from otpgate.crud import crud
from otpgate.utils.security import require_staff

router = APIRouter(
    prefix="/users",
    tags=["Users"],
    dependencies=[Depends(require_staff)],
)

# --------------------- Create (admin only) ---------------------
@router.post("/", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def create_user(user: UserCreate, db: Session = Depends(get_db)):
    """Admin route: register an account holder whose transactions can be staged."""
    try:
        return crud.create_user(db, user)
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=400, detail="User with that email already exists")

# --------------------- List (admin only) ---------------------
@router.get("/", response_model=List[UserOut])
def get_users(db: Session = Depends(get_db)):
    """Retrieve all users (admin only)."""
    return crud.get_users(db)
