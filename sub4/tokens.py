import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .config import settings
from .encryption import decrypt_token, encrypt_token
from .errors import NotAuthorized, NotFound, PersistenceError
from .models import Member
from .schemas import TokenResponse
from .strava import refresh_token
from .utils_time import as_utc, utcnow

logger = logging.getLogger(__name__)

def store_tokens(member: Member, token: TokenResponse) -> None:
    """Encrypt and attach a token grant to `member`. Caller commits."""
    member.strava_access_token = encrypt_token(token.access_token)
    member.strava_refresh_token = encrypt_token(token.refresh_token)
    member.token_expires_at = datetime.fromtimestamp(token.expires_at, tz=timezone.utc)

async def get_valid_token(db: Session, member_id: int) -> str:
    """
    Plaintext access token for `member_id`, refreshed through Strava when it
    expires within TOKEN_REFRESH_BUFFER_SECONDS. Refresh failures propagate.
    """
    member = db.get(Member, member_id)
    if member is None:
        raise NotFound(f"Member not found: {member_id}")
    if member.is_deauthorized:
        raise NotAuthorized(f"Member {member_id} has deauthorized - no valid tokens")

    buffer = timedelta(seconds=settings.TOKEN_REFRESH_BUFFER_SECONDS)
    if as_utc(member.token_expires_at) > utcnow() + buffer:
        return decrypt_token(member.strava_access_token)

    logger.info("Refreshing Strava token for member %s", member_id)
    new = await refresh_token(decrypt_token(member.strava_refresh_token))
    store_tokens(member, new)
    try:
        db.add(member)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError(f"Failed to update tokens: {e}") from e
    return new.access_token
