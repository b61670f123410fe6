# session_auth/models/user.py
import sqlalchemy as sa
import uuid
from sqlalchemy.orm import relationship
from session_auth.utils.database import Base

class User(Base):
    __tablename__ = "users"
    id = sa.Column(sa.Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = sa.Column(sa.String(255), unique=True, nullable=False, index=True)
    password_hash = sa.Column(sa.String(512), nullable=False)
    # Shown back to the user at reset time, so stored as plain text
    secret_question = sa.Column(sa.String(255), nullable=False)
    # bcrypt hash of the answer (server doesn't store plaintext)
    secret_answer_hash = sa.Column(sa.String(512), nullable=False)
    created_at = sa.Column(sa.DateTime(timezone=True), server_default=sa.func.now())
    updated_at = sa.Column(sa.DateTime(timezone=True), server_default=sa.func.now(), onupdate=sa.func.now())

    sessions = relationship("SessionRecord", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)
