"""
Crowslist Backend — Email Verification Model
==============================================

What:  One row per issued verification token.
How:   State lives in the `verified` flag:

           PENDING (verified = False) ──verify_email()──▶ VERIFIED (verified = True)

       VERIFIED is terminal; nothing ever sets the flag back. A user may have
       several rows (registration + reissues); any one VERIFIED row means the
       email is verified.
"""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from crowslist.database import Base
from crowslist.models.types import IntFlag, utcnow


class EmailVerification(Base):
    """A verification token issued to one user."""

    __tablename__ = "email_verifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    # 64 hex chars = 256 bits from secrets.token_hex(32)
    verification_code: Mapped[str] = mapped_column(String(128), nullable=False)

    verified: Mapped[bool] = mapped_column(
        IntFlag, nullable=False, default=False, server_default=text("0")
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        Index("idx_email_verifications_user_id", "user_id"),
    )

    def __repr__(self) -> str:
        state = "verified" if self.verified else "pending"
        return f"<EmailVerification(id={self.id}, user_id={self.user_id}, {state})>"
