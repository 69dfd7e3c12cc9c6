"""
Auth service: register / login / refresh / logout over stateless JWTs.

No session state is kept server side.  Refresh re-reads the user so the new
access token carries the role as currently stored; logout only records the
event, and tokens issued earlier stay valid until they expire.
"""
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from cms.exceptions import ConflictError, InvalidCredentialsError, InvalidTokenError, NotFoundError
from cms.schemas import AccessToken, TokenPair
from cms.security import DUMMY_HASH, hash_password, issue_access_token, issue_tokens, verify_password
from cms.services import user_service

logger = logging.getLogger(__name__)


async def register(db: AsyncSession, email: str, password: str) -> TokenPair:
    """
    Create a USER account and return its first token pair.

    Raises ``ConflictError`` (before anything is written) when the email
    is already registered.
    """
    if await user_service.find_by_email(db, email) is not None:
        raise ConflictError(f"User with email {email} already exists")
    user = await user_service.create_user(db, email, hash_password(password))
    logger.info("Registered user %s", user.id)
    return issue_tokens(user.id, user.email, user.role)


async def login(db: AsyncSession, email: str, password: str) -> TokenPair:
    """
    Exchange valid credentials for a token pair.

    An unknown email and a wrong password fail identically with
    ``InvalidCredentialsError``; bcrypt runs in both cases.
    """
    user = await user_service.find_by_email(db, email)
    if user is None:
        verify_password(password, DUMMY_HASH)
        logger.info("Login failed for unknown email")
        raise InvalidCredentialsError()
    if not verify_password(password, user.password):
        logger.info("Login failed for user %s", user.id)
        raise InvalidCredentialsError()
    return issue_tokens(user.id, user.email, user.role)


async def refresh(db: AsyncSession, user_id: str) -> AccessToken:
    """Issue a new access token reflecting the user's current email and role."""
    try:
        user = await user_service.find_one(db, user_id)
    except NotFoundError as exc:
        raise InvalidTokenError("Token subject no longer exists") from exc
    return AccessToken(access_token=issue_access_token(user.id, user.email, user.role))


async def logout(user_id: str) -> None:
    logger.info("User %s logged out", user_id)
