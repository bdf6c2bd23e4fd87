import logging
import re
from datetime import timedelta
from typing import Optional

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..errors import Conflict, Internal, InvalidInput, Unauthorized
from ..models.user import User

logger = logging.getLogger(__name__)

USERNAME_RE = re.compile(r"[A-Za-z0-9_-]{3,50}")
EMAIL_RE = re.compile(r"[^@\s]+@[^@\s]+\.[^@\s]+")
MIN_PASSWORD_LENGTH = 6
TOKEN_SALT = "auth-token"
DEFAULT_TOKEN_TTL = timedelta(hours=72)


def validate_username(username) -> bool:
    return isinstance(username, str) and bool(USERNAME_RE.fullmatch(username))


class Authenticator:
    """
    Registration, credential checks and signed bearer tokens.

    Tokens are stateless: they carry the user id and their signing time,
    and are rejected once older than ``token_ttl``.
    """

    def __init__(self, session, secret_key: str, token_ttl: timedelta = DEFAULT_TOKEN_TTL):
        self.session = session
        self.token_ttl = token_ttl
        self.serializer = URLSafeTimedSerializer(secret_key, salt=TOKEN_SALT)

    def register(self, username, email, password) -> User:
        if not validate_username(username):
            raise InvalidInput(
                "username must be 3-50 characters of letters, digits, underscore or hyphen"
            )
        if isinstance(email, str):
            email = email.strip()
        if not isinstance(email, str) or len(email) > 255 or not EMAIL_RE.fullmatch(email):
            raise InvalidInput("email address is invalid")
        if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
            raise InvalidInput(f"password must be at least {MIN_PASSWORD_LENGTH} characters")

        try:
            if self.session.query(User).filter_by(username=username).first():
                raise Conflict("username is already taken")
            if self.session.query(User).filter_by(email=email).first():
                raise Conflict("email is already registered")
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise Internal("failed to check existing accounts") from exc

        user = User(username=username, email=email)
        user.set_password(password)
        self.session.add(user)
        try:
            self.session.commit()
        except IntegrityError as exc:
            # Lost a race against a concurrent signup with the same username/email
            self.session.rollback()
            raise Conflict("username or email is already registered") from exc
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise Internal("failed to create user") from exc

        logger.info("Registered user id=%s username=%s", user.id, user.username)
        return user

    def authenticate(self, email, password) -> User:
        if not isinstance(email, str) or not isinstance(password, str):
            raise Unauthorized("invalid email or password")
        email = email.strip()
        try:
            user = self.session.query(User).filter_by(email=email).first()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise Internal("failed to look up user") from exc
        # Same answer for unknown email and wrong password
        if user is None or not user.check_password(password):
            logger.info("Failed login for email=%s", email)
            raise Unauthorized("invalid email or password")
        return user

    def login(self, email, password) -> str:
        return self.issue_token(self.authenticate(email, password))

    def issue_token(self, user: User) -> str:
        return self.serializer.dumps({"user_id": user.id})

    def verify_token(self, token: str) -> int:
        """Return the user id carried by a valid, unexpired token."""
        if not token:
            raise Unauthorized("missing token")
        try:
            data = self.serializer.loads(token, max_age=int(self.token_ttl.total_seconds()))
        except SignatureExpired as exc:
            raise Unauthorized("token has expired") from exc
        except BadSignature as exc:
            raise Unauthorized("invalid token") from exc

        user_id = data.get("user_id") if isinstance(data, dict) else None
        if not isinstance(user_id, int):
            raise Unauthorized("invalid token")
        return user_id

    def user_for_token(self, token: str) -> Optional[User]:
        user_id = self.verify_token(token)
        user = self.session.get(User, user_id)
        if user is None:
            raise Unauthorized("invalid token")
        return user
