"""
Authentication Routes

Google sign-in through Authlib, the OAuth callback that opens a session,
and sign-out.
"""

import logging

from authlib.integrations.base_client import OAuthError
from authlib.integrations.flask_client import OAuth
from flask import Blueprint, abort, current_app, redirect, request

from config.database import (
    VerificationCache,
    create_session,
    delete_session,
    upsert_social_account
)
from webapp.access import SECURE_COOKIE_PREFIX, SESSION_COOKIE_NAME, get_session_token

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')

GOOGLE_METADATA_URL = 'https://accounts.google.com/.well-known/openid-configuration'
SUPPORTED_PROVIDERS = ('google',)
CALLBACK_URL = '/dashboard'


def init_auth(app, settings):
    """Register the OAuth client and auth routes on the Flask app."""
    oauth = OAuth(app, cache=VerificationCache())
    oauth.register(
        name='google',
        client_id=settings.google_client_id,
        client_secret=settings.google_client_secret,
        server_metadata_url=GOOGLE_METADATA_URL,
        client_kwargs={'scope': 'openid email profile'}
    )
    app.extensions['oauth'] = oauth
    app.register_blueprint(auth_bp)
    return oauth


def _client(provider):
    return current_app.extensions['oauth'].create_client(provider)


def _absolute(path):
    return request.host_url.rstrip('/') + request.script_root + path


def _clear_session_cookie(response):
    # Both names count as a session, whichever SECURE_COOKIES was set when it was issued
    name = f"{current_app.config['ACCESS'].cookie_prefix}.{SESSION_COOKIE_NAME}"
    response.delete_cookie(SECURE_COOKIE_PREFIX + name, path='/', secure=True, httponly=True, samesite='Lax')
    response.delete_cookie(name, path='/', httponly=True, samesite='Lax')
    return response


@auth_bp.route('/sign-in/<provider>', methods=['GET', 'POST'])
def sign_in(provider):
    """Send the browser to the provider's consent screen."""
    if provider not in SUPPORTED_PROVIDERS:
        abort(404)
    settings = current_app.config['SETTINGS']
    redirect_uri = f"{settings.auth_url}/api/auth/callback/{provider}"
    return _client(provider).authorize_redirect(redirect_uri, prompt='select_account')


@auth_bp.route('/callback/<provider>')
def callback(provider):
    """Finish the OAuth exchange, persist the account and open a session."""
    if provider not in SUPPORTED_PROVIDERS:
        abort(404)
    settings = current_app.config['SETTINGS']
    config = current_app.config['ACCESS']

    try:
        token = _client(provider).authorize_access_token()
        profile = token.get('userinfo') or _client(provider).userinfo(token=token)
        user_id = upsert_social_account(provider, profile, token)
        session_token = create_session(
            user_id,
            settings.session_max_age,
            ip_address=request.remote_addr,
            user_agent=request.headers.get('User-Agent')
        )
    except OAuthError as e:
        logger.warning(f"{provider} sign-in failed: {e.error} {e.description or ''}".rstrip())
        return redirect(_absolute('/'))
    except Exception as e:
        logger.error(f"Error completing {provider} sign-in: {e}")
        return redirect(_absolute('/'))

    response = redirect(_absolute(CALLBACK_URL))
    response.set_cookie(
        config.session_cookie_name,
        session_token,
        max_age=settings.session_max_age,
        path='/',
        secure=config.secure_cookies,
        httponly=True,
        samesite='Lax'
    )
    return response


@auth_bp.route('/sign-out', methods=['POST'])
def sign_out():
    """Drop the current session and send the browser home."""
    token = get_session_token(request.cookies, current_app.config['ACCESS'])
    if delete_session(token):
        logger.info("Signed out session")
    return _clear_session_cookie(redirect(_absolute('/')))
