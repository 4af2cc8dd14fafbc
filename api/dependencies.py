# api/dependencies.py
from fastapi import Depends, Header
from typing import Optional

from models.schemas import Identity
from services.supabase_service import SupabaseService, get_supabase_service

def bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    parts = authorization.split(' ')
    if len(parts) != 2 or parts[0].lower() != 'bearer' or not parts[1]:
        return None
    return parts[1]

async def get_current_identity(
    authorization: Optional[str] = Header(None),
    supabase_service: SupabaseService = Depends(get_supabase_service),
) -> Identity:
    """Resolve the caller from `Authorization: Bearer <token>`"""
    return await supabase_service.authenticate(bearer_token(authorization))
