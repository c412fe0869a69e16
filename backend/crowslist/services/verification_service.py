"""
Crowslist Backend — Email Verification Service
================================================

What:  Issues and consumes one-time email verification tokens.
Why:   Login is gated on proof that the registrant controls the institutional
       mailbox. Until an email backend exists the token is logged (and, in
       development, returned to the client) instead of mailed.
How:   Each token is an `email_verifications` row in the PENDING state
       (verified = False). Consuming a token is one conditioned UPDATE:

           UPDATE email_verifications SET verified = 1
            WHERE id = :id AND verified = 0

       Two requests racing with the same token cannot both see a changed
       row, so a token is consumed exactly once.
Who:   Called by AuthService (register, verify_email, resend, login check).

State machine:
    PENDING ──consume(email, code)──▶ VERIFIED (terminal)

    A consumed, unknown, or mismatched (email, code) pair all fail with the
    same ValidationError, so a replayed token gives no signal.
"""

import logging
import secrets
from typing import Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from crowslist.exceptions import ValidationError
from crowslist.models import EmailVerification, User

logger = logging.getLogger(__name__)

INVALID_CODE_MESSAGE = "Invalid verification code"


def generate_verification_code() -> str:
    """64 hex characters (256 bits) from the OS CSPRNG."""
    return secrets.token_hex(32)


class VerificationService:
    """Stateless; every method takes the request's AsyncSession."""

    async def issue(self, db: AsyncSession, user: User) -> str:
        """
        Add a PENDING token for `user` to the current transaction.

        The row is flushed, not committed: during registration it commits
        together with the user row, or not at all.
        """
        code = generate_verification_code()
        db.add(EmailVerification(user_id=user.id, verification_code=code, verified=False))
        await db.flush()
        # Stand-in for the verification email
        logger.info("Verification code for %s: %s", user.email, code)
        return code

    async def consume(self, db: AsyncSession, email: str, code: str) -> Tuple[int, str]:
        """
        Move the PENDING token matching (email, code) to VERIFIED.

        Returns:
            (user_id, email) of the verified user.

        Raises:
            ValidationError: no PENDING token matches the pair.
        """
        if not email or not code:
            raise ValidationError(message=INVALID_CODE_MESSAGE, field="verificationCode")

        result = await db.execute(
            select(EmailVerification.id, User.id, User.email)
            .join(User, EmailVerification.user_id == User.id)
            .where(
                User.email == email,
                EmailVerification.verification_code == code,
                EmailVerification.verified == False,  # noqa: E712
            )
            .limit(1)
        )
        row = result.first()
        if row is None:
            raise ValidationError(message=INVALID_CODE_MESSAGE, field="verificationCode")

        verification_id, user_id, user_email = row
        flipped = await db.execute(
            update(EmailVerification)
            .where(
                EmailVerification.id == verification_id,
                EmailVerification.verified == False,  # noqa: E712
            )
            .values(verified=True)
        )
        if flipped.rowcount == 0:
            # Consumed by a concurrent request between the SELECT and here
            raise ValidationError(message=INVALID_CODE_MESSAGE, field="verificationCode")

        logger.info("Email verified for user %d", user_id)
        return user_id, user_email

    async def is_verified(self, db: AsyncSession, user_id: int) -> bool:
        result = await db.execute(
            select(EmailVerification.id)
            .where(
                EmailVerification.user_id == user_id,
                EmailVerification.verified == True,  # noqa: E712
            )
            .limit(1)
        )
        return result.first() is not None

    async def reissue(self, db: AsyncSession, email: str) -> Optional[str]:
        """
        Issue a fresh token for an existing, still-unverified account.

        Returns None when there is nothing to do (unknown email, or the
        account is already verified). Earlier PENDING tokens stay valid.
        """
        result = await db.execute(select(User).where(User.email == email))
        user = result.scalar_one_or_none()
        if user is None:
            logger.info("Verification reissue requested for unknown email")
            return None
        if await self.is_verified(db, user.id):
            logger.info("Verification reissue skipped: user %d already verified", user.id)
            return None
        return await self.issue(db, user)


verification_service = VerificationService()
