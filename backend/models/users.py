# backend/models/users.py
from sqlalchemy import Column, String, Boolean, DateTime, func
from database import Base, new_id


# Represents a customer account with login credentials and email verification state
class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String, unique=True, nullable=False, index=True)  # Always stored lower-cased
    password_hash = Column(String, nullable=False)
    role = Column(String, nullable=False, default="customer")

    # Email confirmation: only the SHA-256 of the token sent by mail is stored
    email_verified = Column(Boolean, nullable=False, default=False)
    email_token_hash = Column(String, nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
