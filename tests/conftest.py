"""
Shared fixtures: settings pointing at a throwaway sqlite database, the app
and its test client.
"""

import sys
from pathlib import Path

import pytest

# Add project root to path
sys.path.append(str(Path(__file__).parent.parent))

from config.settings import Settings
from webapp.app import create_app


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'test.db'}",
        auth_url="http://localhost:3000",
        public_auth_url="http://localhost:3000",
        auth_secret="test-secret",
        google_client_id="client-id",
        google_client_secret="client-secret",
        secure_cookies=False,
    )


@pytest.fixture
def app(settings):
    app = create_app(settings)
    app.config['TESTING'] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def google(app):
    """The registered Google OAuth client, for monkeypatching network calls."""
    return app.extensions['oauth'].create_client('google')
