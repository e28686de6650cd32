# sub4/security.py
import hmac

from fastapi import Header, HTTPException, status
from .config import settings

def require_cron(authorization: str | None = Header(None)):
    expected = f"Bearer {settings.CRON_SECRET}"
    if not authorization or not hmac.compare_digest(authorization.encode(), expected.encode()):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
