# schemas/tokens.py
from pydantic import BaseModel

# ------------------ ACCESS TOKEN ------------------
class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
