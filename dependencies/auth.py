from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel
from supabase import Client

from core.supabase_client import get_supabase_client


bearer_scheme = HTTPBearer(auto_error=False)


# ============================================================
# Current User Model
# ============================================================
class CurrentUser(BaseModel):
    id: str                         # Supabase Auth UID (= users.id)
    email: str
    name: Optional[str] = None
    phone: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.name or self.email.split("@")[0]


# ============================================================
# AUTH DECODING (Supabase validates the access token)
# ============================================================
def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> CurrentUser:
    """
    Resolve the bearer token issued by Supabase Auth (web session or the
    mobile token exchange) into the calling user. Sign-in itself happens
    in the clients against Supabase directly.
    """
    unauthorized = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Unauthorized",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if credentials is None or not credentials.credentials:
        raise unauthorized

    client: Client = get_supabase_client()
    if not client:
        raise HTTPException(500, "Supabase client not configured")

    try:
        auth_resp = client.auth.get_user(credentials.credentials)
    except Exception:
        raise unauthorized

    if not auth_resp or not auth_resp.user or not auth_resp.user.email:
        raise unauthorized

    auth_user = auth_resp.user
    metadata = auth_user.user_metadata or {}

    return CurrentUser(
        id=auth_user.id,
        email=auth_user.email,
        name=metadata.get("name") or metadata.get("full_name"),
        phone=metadata.get("phone"),
    )
