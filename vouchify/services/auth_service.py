"""
Authentication service — signup and login business logic.

Signup flow:
  1. Check if email is already registered
  2. Hash the password with Argon2id
  3. Create the User with the MEMBER role
  4. Return a JWT token so the user is immediately logged in

Login flow:
  1. Look up user by email
  2. Verify password against stored hash
  3. Return a JWT token

Login returns the same error for "wrong password", "email not found" and
"account deactivated" so valid emails can't be enumerated.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from vouchify.exceptions import DuplicateEmailError, InvalidCredentialsError
from vouchify.models.user import User, UserRole
from vouchify.security import hash_password, verify_password, create_access_token


async def signup(
    db: AsyncSession,
    email: str,
    password: str,
    display_name: str,
) -> tuple[User, str]:
    """
    Register a new member.

    Returns:
        Tuple of (User instance, JWT token string).

    Raises:
        DuplicateEmailError: If the email is already registered.
    """
    result = await db.execute(select(User).where(User.email == email))
    if result.scalar_one_or_none():
        raise DuplicateEmailError(email)

    user = User(
        email=email,
        hashed_password=hash_password(password),
        display_name=display_name,
        role=UserRole.MEMBER,
    )
    db.add(user)
    await db.flush()

    # "sub" (subject) is the standard claim for user identity
    token = create_access_token(data={"sub": str(user.id)})
    return user, token


async def login(
    db: AsyncSession,
    email: str,
    password: str,
) -> tuple[User, str]:
    """
    Authenticate a user and return a JWT token.

    Raises:
        InvalidCredentialsError: If email doesn't exist, the password is
                                 wrong, or the account is deactivated.
    """
    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()

    if not user:
        raise InvalidCredentialsError()

    if not verify_password(password, user.hashed_password):
        raise InvalidCredentialsError()

    if not user.is_active:
        raise InvalidCredentialsError()

    token = create_access_token(data={"sub": str(user.id)})
    return user, token
