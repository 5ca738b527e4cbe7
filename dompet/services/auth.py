from datetime import timedelta

from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import or_
from sqlalchemy.orm import Session

from dompet.core.clock import utcnow
from dompet.core.config import settings
from dompet.models.household import Household
from dompet.models.user import HouseholdRole, User
from dompet.schemas.auth import TokenData

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


class AuthService:
    """Service for handling authentication operations"""

    @staticmethod
    def verify_password(plain_password: str, hashed_password: str) -> bool:
        """Verify a password against its hash"""
        return pwd_context.verify(plain_password, hashed_password)

    @staticmethod
    def get_password_hash(password: str) -> str:
        """Hash a password"""
        return pwd_context.hash(password)

    @staticmethod
    def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
        """Create a JWT access token"""
        to_encode = data.copy()
        expire = utcnow() + (
            expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
        )
        to_encode.update({"exp": expire})
        return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

    @staticmethod
    def verify_token(token: str) -> TokenData | None:
        """Verify and decode a JWT token"""
        if not token or not isinstance(token, str):
            return None
        try:
            payload = jwt.decode(
                token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM]
            )
        except JWTError:
            return None

        user_id = payload.get("sub")
        if user_id is None:
            return None
        return TokenData(
            user_id=user_id,
            email=payload.get("email"),
            username=payload.get("username"),
        )

    @staticmethod
    def authenticate_user(db: Session, email: str, password: str) -> User | None:
        """Authenticate a user by email and password"""
        user = db.query(User).filter(User.email == email).first()
        if not user:
            return None
        if not AuthService.verify_password(password, user.hashed_password):
            return None
        return user

    @staticmethod
    def create_user(
        db: Session,
        email: str,
        username: str,
        password: str,
        full_name: str | None = None,
        household_name: str | None = None,
    ) -> User:
        """Create a new user together with the household they own.

        The household starts without a subscription; the client is routed to
        the plan picker by the `subscribe` action on the first gated call.
        """
        household = Household(name=household_name or f"{full_name or username}'s Household")
        db.add(household)
        db.flush()

        user = User(
            email=email,
            username=username,
            hashed_password=AuthService.get_password_hash(password),
            full_name=full_name,
            household_id=household.id,
            household_role=HouseholdRole.OWNER,
            is_active=True,
            is_verified=False,  # Verified through the email flow
        )
        db.add(user)
        db.flush()

        household.created_by = user.id
        db.commit()
        db.refresh(user)
        return user

    @staticmethod
    def get_user_by_email_or_username(db: Session, identifier: str) -> User | None:
        """Get user by email or username"""
        return (
            db.query(User)
            .filter(or_(User.email == identifier, User.username == identifier))
            .first()
        )
