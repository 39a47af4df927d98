"""
SQLAlchemy ORM Models

Tables backing the social sign-in flow: users, their provider accounts,
browser sessions and one-off verification values.
"""

import uuid

from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship, declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


def generate_id():
    return uuid.uuid4().hex


class User(Base):
    __tablename__ = 'users'

    id = Column(String(32), primary_key=True, default=generate_id)
    name = Column(String, nullable=False, default='')
    email = Column(String, unique=True, nullable=False)
    email_verified = Column(Boolean, nullable=False, default=False)
    image = Column(String)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    sessions = relationship("Session", back_populates="user", cascade="all, delete-orphan")
    accounts = relationship("Account", back_populates="user", cascade="all, delete-orphan")


class Session(Base):
    __tablename__ = 'sessions'

    id = Column(String(32), primary_key=True, default=generate_id)
    token = Column(String, unique=True, nullable=False)
    user_id = Column(String(32), ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    expires_at = Column(DateTime, nullable=False)
    ip_address = Column(String)
    user_agent = Column(Text)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="sessions")


class Account(Base):
    __tablename__ = 'accounts'

    id = Column(String(32), primary_key=True, default=generate_id)
    provider_id = Column(String, nullable=False)  # e.g. 'google'
    account_id = Column(String, nullable=False)  # provider's subject id
    user_id = Column(String(32), ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    access_token = Column(Text)
    refresh_token = Column(Text)
    id_token = Column(Text)
    access_token_expires_at = Column(DateTime)
    scope = Column(String)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="accounts")


class Verification(Base):
    __tablename__ = 'verifications'

    id = Column(String(32), primary_key=True, default=generate_id)
    identifier = Column(String, nullable=False)
    value = Column(Text, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
