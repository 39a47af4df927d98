"""
Application Settings

Validates the environment variables the web app needs and exposes them as an
immutable Settings object built once at startup.
"""

import logging
from typing import Annotated

from dotenv import load_dotenv
from pydantic import AfterValidator, AnyHttpUrl, Field, PositiveInt, ValidationError, field_validator
from pydantic_settings import BaseSettings
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

logger = logging.getLogger(__name__)

APP_NAME = "aptitude-ucat-style-test"


class ConfigError(Exception):
    """Raised when one or more environment variables are invalid."""


def _strip_trailing_slash(url):
    return str(url).rstrip('/')


# Stored as a plain string without the trailing slash
HttpUrlString = Annotated[AnyHttpUrl, AfterValidator(_strip_trailing_slash)]


class Settings(BaseSettings):
    """Web app configuration, read from the environment (case-insensitive)."""

    # Database
    database_url: str

    # Auth
    auth_url: HttpUrlString
    public_auth_url: HttpUrlString
    auth_secret: str = Field(min_length=1)

    # Social providers
    google_client_id: str
    google_client_secret: str

    # Optional
    secure_cookies: bool = True
    session_max_age_days: PositiveInt = 7

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
        "frozen": True,
    }

    @field_validator('database_url')
    @classmethod
    def check_database_url(cls, value):
        try:
            make_url(value)
        except ArgumentError:
            raise ValueError("Invalid database URL")
        return value

    @property
    def session_max_age(self):
        """Session lifetime in seconds."""
        return self.session_max_age_days * 24 * 60 * 60

    @classmethod
    def from_env(cls, environ=None):
        """
        Build settings from the environment.

        Args:
            environ (Mapping, optional): Variables to read instead of the
                process environment (plus .env file).

        Returns:
            Settings: Validated settings

        Raises:
            ConfigError: If any variable is missing or malformed
        """
        try:
            if environ is None:
                load_dotenv()
                return cls()
            return cls.model_validate({name.lower(): value for name, value in environ.items()})
        except ValidationError as e:
            for error in e.errors():
                name = str(error['loc'][0]).upper() if error['loc'] else 'SETTINGS'
                if error['type'] == 'missing':
                    message = f"{name} is required"
                else:
                    message = error['msg']
                logger.error(f"{name}: {message}")
            raise ConfigError("Invalid environment variables") from e
