# session_auth/models/session.py
import sqlalchemy as sa
from sqlalchemy.orm import relationship
from session_auth.utils.database import Base

class SessionRecord(Base):
    """Server-side mirror of an issued session token, kept for revocation."""
    __tablename__ = "sessions"
    # Same value as the token's "sid" claim
    id = sa.Column(sa.String(64), primary_key=True)
    user_id = sa.Column(sa.Uuid(as_uuid=True), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    expires_at = sa.Column(sa.DateTime(timezone=True), nullable=False)
    created_at = sa.Column(sa.DateTime(timezone=True), server_default=sa.func.now())

    user = relationship("User", back_populates="sessions")
