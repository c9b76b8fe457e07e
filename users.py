import logging
import re
from datetime import date
from typing import Optional

from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel

from auth import hash_password, verify_password
from errors import Conflict, Inactive, Unauthenticated, UserNotFound, ValidationError
from schemas import User, utcnow

logger = logging.getLogger(__name__)

PHONE_RE = re.compile(r"^\d{10}$")

MIN_PASSWORD_LENGTH = 8
MIN_NEW_PASSWORD_LENGTH = 6
MIN_NAME_LENGTH = 2


class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    real_name: Optional[str] = None
    phone: Optional[str] = None
    birthday: Optional[str] = None


class UserStore:
    def __init__(self, db):
        self.collection = db["user"]

    def find_by_id(self, user_id: str) -> Optional[User]:
        doc = self.collection.get(user_id)
        return User(**doc) if doc else None

    def find_by_email(self, email: str) -> Optional[User]:
        doc = self.collection.find_one(email=email.strip().lower())
        return User(**doc) if doc else None

    def get(self, user_id: str) -> User:
        user = self.find_by_id(user_id)
        if user is None:
            raise UserNotFound()
        return user

    def _save(self, user: User) -> User:
        user.updated_at = utcnow()
        self.collection.put(user.id, user.model_dump())
        return user

    def register(self, email: str, password: str, name: str) -> User:
        if not email or not password or not name:
            raise ValidationError("Email, password and name are required")
        email = email.strip().lower()
        try:
            validate_email(email, check_deliverability=False)
        except EmailNotValidError:
            raise ValidationError("Please enter a valid email address")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
        if len(name.strip()) < MIN_NAME_LENGTH:
            raise ValidationError(f"Name must be at least {MIN_NAME_LENGTH} characters")

        with self.collection.lock():
            if self.find_by_email(email):
                raise Conflict("Email already registered")
            user = User(email=email, password_hash=hash_password(password), name=name.strip())
            self.collection.put(user.id, user.model_dump())
        logger.info("Registered user %s", user.id)
        return user

    def login(self, email: str, password: str) -> User:
        user = self.find_by_email(email or "")
        if user is None:
            raise Unauthenticated("Invalid email or password")
        if not user.is_active:
            raise Inactive("Your account has been disabled, please contact support")
        if not verify_password(password, user.password_hash):
            raise Unauthenticated("Invalid email or password")
        return user

    def update_profile(self, user_id: str, changes: ProfileUpdate) -> User:
        # None means "leave alone"; empty strings clear optional fields
        fields = {k: v for k, v in changes.model_dump().items() if v is not None}
        if "name" in fields:
            if not fields["name"].strip():
                raise ValidationError("Name cannot be blank")
            fields["name"] = fields["name"].strip()
        if fields.get("phone", "").strip():
            fields["phone"] = fields["phone"].strip()
            if not PHONE_RE.match(fields["phone"]):
                raise ValidationError("Phone number must be exactly 10 digits")
        if fields.get("birthday", "").strip():
            fields["birthday"] = fields["birthday"].strip()
            try:
                date.fromisoformat(fields["birthday"])
            except ValueError:
                raise ValidationError("Birthday must use the YYYY-MM-DD format")

        with self.collection.lock():
            user = self.get(user_id)
            for key, value in fields.items():
                setattr(user, key, value)
            return self._save(user)

    def change_password(self, user_id: str, current_password: str, new_password: str) -> User:
        if not current_password or not new_password:
            raise ValidationError("Current and new password are required")
        if len(new_password) < MIN_NEW_PASSWORD_LENGTH:
            raise ValidationError(f"New password must be at least {MIN_NEW_PASSWORD_LENGTH} characters")
        with self.collection.lock():
            user = self.get(user_id)
            if not verify_password(current_password, user.password_hash):
                raise ValidationError("Current password is incorrect")
            user.password_hash = hash_password(new_password)
            user.password_updated_at = utcnow()
            return self._save(user)

    def set_avatar(self, user_id: str, avatar: str) -> User:
        with self.collection.lock():
            user = self.get(user_id)
            user.avatar = avatar
            return self._save(user)
