"""
Authentication Service

Handles panel login, invite-code signup and invite code issuing.
"""

import re
from datetime import datetime, timedelta
from typing import Optional, Dict, Any, Tuple, List
from sqlalchemy.orm import Session

from models import User, InviteCode, USER_STATUS_INACTIVE
from auth_utils import (
    hash_password,
    verify_password,
    create_access_token,
    decode_access_token,
    generate_invite_code,
)

USERNAME_PATTERN = re.compile(r'^[A-Za-z0-9_.-]{3,32}$')
MIN_PASSWORD_LENGTH = 6
DAYS_PER_MONTH = 30


class AuthenticationError(Exception):
    """Custom exception for authentication errors"""
    pass


class AuthService:
    """Service for handling authentication operations"""

    def __init__(self, db: Session):
        self.db = db

    def login(self, username: str, password: str) -> Tuple[User, str]:
        """
        Authenticate user and generate access token

        Args:
            username: Account name
            password: Plain text password

        Returns:
            Tuple of (User object, JWT token)

        Raises:
            AuthenticationError: If credentials are invalid
        """
        user = self.db.query(User).filter(User.username == username).first()

        if not user or not verify_password(password, user.password_hash):
            raise AuthenticationError("Invalid username or password")

        return user, self._issue_token(user)

    def signup(self, invite_code: str, username: str, password: str) -> Tuple[User, str]:
        """
        Register a new user by consuming an invite code

        The invite code decides the new account's quota and expiry.

        Args:
            invite_code: Unused invite code
            username: Desired account name
            password: Plain text password

        Returns:
            Tuple of (User object, JWT token)

        Raises:
            AuthenticationError: If the code is invalid or validation fails
        """
        if not USERNAME_PATTERN.match(username or ""):
            raise AuthenticationError("Username must be 3-32 letters, digits, '.', '_' or '-'")

        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise AuthenticationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

        code = self.db.query(InviteCode).filter(
            InviteCode.code == invite_code,
            InviteCode.available == True
        ).first()
        if not code:
            raise AuthenticationError("Invalid invite code")

        existing_user = self.db.query(User).filter(User.username == username).first()
        if existing_user:
            raise AuthenticationError("Username already registered")

        user = User(
            username=username,
            password_hash=hash_password(password),
            status=USER_STATUS_INACTIVE,
            package_used=0.0,
            package_limit=code.package_limit,
            expired=datetime.utcnow() + timedelta(days=DAYS_PER_MONTH * code.available_months),
        )
        code.available = False

        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)

        return user, self._issue_token(user)

    def create_invite_codes(self, count: int, package_limit: int, available_months: int) -> List[InviteCode]:
        """
        Issue new invite codes

        Args:
            count: Number of codes to create
            package_limit: Quota granted by each code (GB)
            available_months: Validity granted by each code

        Returns:
            Created InviteCode rows
        """
        codes = [
            InviteCode(
                code=generate_invite_code(),
                package_limit=package_limit,
                available_months=available_months,
                available=True,
            )
            for _ in range(count)
        ]
        self.db.add_all(codes)
        self.db.commit()
        return codes

    def verify_token(self, token: str) -> Optional[Dict[str, Any]]:
        """
        Verify and decode JWT token

        Args:
            token: JWT token string

        Returns:
            Token payload if valid, None otherwise
        """
        return decode_access_token(token)

    def _issue_token(self, user: User) -> str:
        return create_access_token({"sub": str(user.id), "username": user.username})
