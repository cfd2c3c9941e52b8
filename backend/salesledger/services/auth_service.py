# Overview: Service-layer operations for authentication; password hashing and account creation.

"""
Authentication Service

WHY: Every sale and product is attributed to the user who created it, so
accounts must be real and passwords must be stored safely. Uses bcrypt for
password hashing and validates password strength.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor BCRYPT_ROUNDS, 12 by default)
- Minimum 8 characters; upper, lower, digit and special char required
- Session tokens managed separately (see session_service.py)
- Login accepts either the username or the email address
"""

import re

import bcrypt
from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import ValidationError
from ..models import User
from ..permissions import Role
from salesledger.time_utils import utcnow


EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""

    def __init__(self, message: str, field: str = "password"):
        super().__init__("Validation failed", errors={field: [message]})


def validate_password_strength(password: str, field: str = "password") -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character (!@#$%^&*(),.'":{}|<>)

    Raises PasswordValidationError if requirements not met.
    """
    if not isinstance(password, str) or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long", field)

    if not re.search(r"[A-Z]", password):
        raise PasswordValidationError("Password must contain at least one uppercase letter", field)

    if not re.search(r"[a-z]", password):
        raise PasswordValidationError("Password must contain at least one lowercase letter", field)

    if not re.search(r"\d", password):
        raise PasswordValidationError("Password must contain at least one digit", field)

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>_\-]", password):
        raise PasswordValidationError("Password must contain at least one special character", field)


def hash_password(password: str, field: str = "password") -> str:
    """
    Hash password using bcrypt.

    Password is validated for strength before hashing. The cost factor comes
    from BCRYPT_ROUNDS so tests can run with a cheap one.
    """
    validate_password_strength(password, field)
    rounds = int(current_app.config.get("BCRYPT_ROUNDS", 12))
    hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds))
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    WHY timing-safe: bcrypt.checkpw() prevents timing attacks automatically.
    A malformed stored hash verifies as False.
    """
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def _require_text(errors: dict, field: str, value, max_length: int = 255) -> str | None:
    if not isinstance(value, str) or not value.strip():
        errors.setdefault(field, []).append(f"The {field} field is required.")
        return None
    value = value.strip()
    if len(value) > max_length:
        errors.setdefault(field, []).append(f"The {field} may not be greater than {max_length} characters.")
        return None
    return value


def validate_account_fields(username, name, email) -> tuple[str, str, str]:
    """Check presence, length and email shape; raise one field-keyed ValidationError."""
    errors: dict[str, list[str]] = {}
    username = _require_text(errors, "username", username, 64)
    name = _require_text(errors, "name", name)
    email = _require_text(errors, "email", email)
    if email and not EMAIL_PATTERN.match(email):
        errors.setdefault("email", []).append("The email must be a valid email address.")
    if errors:
        raise ValidationError("Validation failed", errors=errors)
    return username, name, email.lower()


def ensure_unique_identity(username: str, email: str, exclude_user_id: int | None = None) -> None:
    errors: dict[str, list[str]] = {}
    query = db.session.query(User)
    if exclude_user_id is not None:
        query = query.filter(User.id != exclude_user_id)

    if username and query.filter(User.username == username).first():
        errors["username"] = ["The username has already been taken."]
    if email and query.filter(db.func.lower(User.email) == email.lower()).first():
        errors["email"] = ["The email has already been taken."]
    if errors:
        raise ValidationError("Validation failed", errors=errors)


def create_user(
    username: str,
    name: str,
    email: str,
    password: str,
    role: Role = Role.USER,
    password_confirmation: str | None = None,
    require_confirmation: bool = False,
) -> User:
    """
    Create new user with bcrypt password hashing.

    Raises ValidationError (field-keyed) if any field is missing, the
    username or email is taken, the password is weak, or the confirmation
    does not match. The caller decides whether role may be anything other
    than USER (see user_service.create_user for the admin path).
    """
    username, name, email = validate_account_fields(username, name, email)
    if require_confirmation and password != password_confirmation:
        raise ValidationError.for_field("password", "The password confirmation does not match.")

    ensure_unique_identity(username, email)
    password_hash = hash_password(password)

    user = User(
        username=username,
        name=name,
        email=email,
        password_hash=password_hash,
        role=Role.parse(role),
        is_active=True,
    )

    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        # Lost a race with a concurrent registration for the same username/email
        db.session.rollback()
        raise ValidationError.for_field("username", "The username or email has already been taken.")
    return user


def authenticate(login: str, password: str) -> User | None:
    """
    Authenticate user by username or email and password.

    Returns User if credentials valid and the account is active, None otherwise.
    Updates last_login_at timestamp on successful authentication.
    """
    if not login or not password:
        return None

    login = login.strip()
    user = db.session.query(User).filter(
        db.or_(User.username == login, db.func.lower(User.email) == login.lower()),
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None


def change_password(user: User, current_password: str, new_password: str, confirmation: str | None) -> User:
    """
    Replace the user's password after verifying the current one.

    Wrong current password is a 422 keyed on current_password. The caller
    revokes the user's other sessions afterwards.
    """
    if not verify_password(current_password or "", user.password_hash):
        raise ValidationError.for_field("current_password", "The current password is incorrect.")
    if new_password != confirmation:
        raise ValidationError.for_field("new_password", "The new password confirmation does not match.")
    if verify_password(new_password or "", user.password_hash):
        raise ValidationError.for_field("new_password", "The new password must differ from the current one.")

    user.password_hash = hash_password(new_password, field="new_password")
    db.session.commit()
    return user
