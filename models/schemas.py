# models/schemas.py
from pydantic import BaseModel
from typing import Optional

class Identity(BaseModel):
    """Who is signed in. Passed explicitly into every sync call."""
    user_id: str
    email: Optional[str] = None
    access_token: Optional[str] = None

class ProfileResponse(BaseModel):
    id: str
    name: str
    email: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

class ProfileUpdate(BaseModel):
    """For profile updates"""
    name: Optional[str] = None
