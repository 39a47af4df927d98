"""
Database Configuration and Management (SQLAlchemy)

Handles engine setup, sessions and the queries behind the sign-in flow.
"""

import json
import logging
import secrets
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path

from sqlalchemy import create_engine, select, delete
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker
from config.models import Base, User, Session, Account, Verification

logger = logging.getLogger(__name__)

engine = None
SessionLocal = sessionmaker(autocommit=False, autoflush=False)


def utcnow():
    """Naive UTC timestamp, matching how DateTime columns are stored."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def init_engine(database_url, echo=False):
    """
    Create the engine for database_url and bind the session factory to it.

    Args:
        database_url (str): SQLAlchemy database URL
        echo (bool): Log emitted SQL

    Returns:
        sqlalchemy.engine.Engine: The new engine
    """
    global engine

    connect_args = {}
    url = make_url(database_url)
    if url.get_backend_name() == 'sqlite':
        connect_args['check_same_thread'] = False
        # Ensure the database directory exists
        if url.database and url.database != ':memory:':
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)

    if engine is not None:
        engine.dispose()
    engine = create_engine(database_url, echo=echo, pool_pre_ping=True, connect_args=connect_args)
    SessionLocal.configure(bind=engine)
    logger.info(f"Database engine ready: {engine.url.render_as_string(hide_password=True)}")
    return engine


def get_db_session():
    """
    Get a new database session.

    Returns:
        sqlalchemy.orm.Session: Database session
    """
    if engine is None:
        raise RuntimeError("Database engine not initialized; call init_engine() first")
    return SessionLocal()


@contextmanager
def transaction():
    """Yield a session whose work is committed on success and rolled back on error."""
    session = get_db_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_database():
    """
    Initialize the database with all required tables.
    """
    logger.info("Initializing database...")
    try:
        Base.metadata.create_all(bind=engine)
        logger.info("Database initialized successfully!")
    except Exception as e:
        logger.error(f"Error initializing database: {e}")
        raise


def _user_dict(user):
    return {
        'id': user.id,
        'name': user.name,
        'email': user.email,
        'email_verified': user.email_verified,
        'image': user.image,
        'created_at': user.created_at
    }


def upsert_social_account(provider_id, profile, token):
    """
    Create or update the user and provider account for a social sign-in.

    Args:
        provider_id (str): Provider name, e.g. 'google'
        profile (dict): OpenID userinfo claims (sub, email, name, picture, email_verified)
        token (dict): OAuth token response

    Returns:
        str: ID of the signed-in user
    """
    email = (profile.get('email') or '').strip().lower()
    if not email:
        raise ValueError("Provider did not return an email address")
    account_id = str(profile['sub'])

    expires_at = None
    if token.get('expires_at'):
        expires_at = datetime.fromtimestamp(token['expires_at'], timezone.utc).replace(tzinfo=None)

    try:
        with transaction() as session:
            account = session.execute(
                select(Account).where(
                    Account.provider_id == provider_id,
                    Account.account_id == account_id
                )
            ).scalar_one_or_none()

            if account is not None:
                # Known provider account: keep it with its user, follow email changes
                user = account.user
                if user.email != email:
                    taken = session.execute(select(User.id).where(User.email == email)).scalar_one_or_none()
                    if taken is None:
                        logger.info(f"Updating email for user {user.id}: {user.email} -> {email}")
                        user.email = email
                    else:
                        logger.warning(f"Not moving user {user.id} to {email}: address belongs to user {taken}")
            else:
                user = session.execute(select(User).where(User.email == email)).scalar_one_or_none()
                if user is None:
                    user = User(email=email)
                    session.add(user)
                    logger.info(f"Created user: {email}")
                    session.flush()
                account = Account(provider_id=provider_id, account_id=account_id, user_id=user.id)
                session.add(account)

            user.name = profile.get('name') or user.name or ''
            user.image = profile.get('picture') or user.image
            user.email_verified = bool(profile.get('email_verified', user.email_verified))

            account.access_token = token.get('access_token')
            account.refresh_token = token.get('refresh_token') or account.refresh_token
            account.id_token = token.get('id_token')
            account.access_token_expires_at = expires_at
            account.scope = token.get('scope')
            session.flush()

            return user.id
    except Exception as e:
        logger.error(f"Error saving {provider_id} account for {email}: {e}")
        raise


def create_session(user_id, max_age, ip_address=None, user_agent=None):
    """
    Open a new browser session for a user.

    Args:
        user_id (str): User ID
        max_age (int): Session lifetime in seconds
        ip_address (str, optional): Client address
        user_agent (str, optional): Client user agent

    Returns:
        str: The session token to place in the cookie
    """
    token = secrets.token_urlsafe(32)
    try:
        with transaction() as session:
            session.add(Session(
                token=token,
                user_id=user_id,
                expires_at=utcnow() + timedelta(seconds=max_age),
                ip_address=ip_address,
                user_agent=user_agent
            ))
        logger.info(f"Created session for user {user_id}")
        return token
    except Exception as e:
        logger.error(f"Error creating session for user {user_id}: {e}")
        raise


def get_session_user(token):
    """
    Resolve a session token to its user.

    Returns:
        dict or None: User data if the session exists and has not expired
    """
    if not token:
        return None
    session = get_db_session()
    try:
        row = session.execute(
            select(Session, User)
            .join(User, Session.user_id == User.id)
            .where(Session.token == token)
        ).first()
        if row is None:
            return None
        auth_session, user = row
        if auth_session.expires_at <= utcnow():
            return None
        return _user_dict(user)
    except Exception as e:
        logger.error(f"Error fetching session: {e}")
        return None
    finally:
        session.close()


def delete_session(token):
    """
    Delete a session by token.

    Returns:
        bool: True if a session was removed
    """
    if not token:
        return False
    session = get_db_session()
    try:
        result = session.execute(delete(Session).where(Session.token == token))
        session.commit()
        return result.rowcount > 0
    except Exception as e:
        logger.error(f"Error deleting session: {e}")
        session.rollback()
        return False
    finally:
        session.close()


def delete_expired_sessions():
    """
    Delete sessions and verification values that have expired.

    Returns:
        int: Number of sessions removed
    """
    session = get_db_session()
    try:
        now = utcnow()
        result = session.execute(delete(Session).where(Session.expires_at <= now))
        session.execute(delete(Verification).where(Verification.expires_at <= now))
        session.commit()

        if result.rowcount > 0:
            logger.info(f"Cleaned up {result.rowcount} expired sessions")
        return result.rowcount
    except Exception as e:
        logger.error(f"Error cleaning up expired sessions: {e}")
        session.rollback()
        return 0
    finally:
        session.close()


class VerificationCache:
    """
    Key/value store over the verifications table.

    Authlib keeps OAuth state (nonce, redirect uri, PKCE verifier) here between
    the sign-in redirect and the provider callback.
    """

    default_timeout = 600

    def get(self, key):
        session = get_db_session()
        try:
            row = session.execute(
                select(Verification).where(Verification.identifier == key)
            ).scalar_one_or_none()
            if row is None or row.expires_at <= utcnow():
                return None
            return row.value
        finally:
            session.close()

    def set(self, key, value, timeout=None):
        if not isinstance(value, str):
            value = json.dumps(value)
        expires_at = utcnow() + timedelta(seconds=timeout or self.default_timeout)
        with transaction() as session:
            session.execute(delete(Verification).where(Verification.identifier == key))
            session.add(Verification(identifier=key, value=value, expires_at=expires_at))

    def delete(self, key):
        with transaction() as session:
            session.execute(delete(Verification).where(Verification.identifier == key))
