"""
Flask Application Factory

Creates and configures the Flask application instance.
"""

import logging
from pathlib import Path

from flask import Flask, redirect, render_template, request

from config.database import get_session_user, init_database, init_engine
from config.settings import APP_NAME
from webapp.access import AccessConfig, AccessRouter, get_session_token, has_session_indicator, is_excluded
from webapp.routes.auth import init_auth

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent / "templates"


def build_access_config(settings):
    """Access settings for this app: protected routes and the session cookie prefix."""
    return AccessConfig(cookie_prefix=APP_NAME, secure_cookies=settings.secure_cookies)


def create_app(settings, access_config=None, create_tables=True):
    """
    Create and configure the Flask application.

    Args:
        settings (Settings): Validated environment settings
        access_config (AccessConfig, optional): Route classification; built
            from settings when omitted
        create_tables (bool): Create missing database tables on startup

    Returns:
        Flask: The configured application
    """
    app = Flask(__name__, template_folder=str(TEMPLATE_DIR))
    app.secret_key = settings.auth_secret
    app.config['SETTINGS'] = settings
    app.config['ACCESS'] = access_config or build_access_config(settings)
    app.config['SESSION_COOKIE_SECURE'] = settings.secure_cookies

    init_engine(settings.database_url)
    if create_tables:
        init_database()

    init_auth(app, settings)
    router = AccessRouter(app.config['ACCESS'])
    logger.info(f"Protected routes: {', '.join(app.config['ACCESS'].protected_routes)}")

    @app.context_processor
    def inject_auth_base():
        return {'auth_base': settings.public_auth_url}

    @app.before_request
    def check_access():
        """Redirect signed-in users away from home and anonymous users away from protected pages."""
        config = app.config['ACCESS']
        if is_excluded(request.path, config):
            return None

        decision = router.decide(request.path, has_session_indicator(request.cookies, config))
        if decision.is_continue:
            return None
        return redirect(request.host_url.rstrip('/') + request.script_root + decision.redirect_to, code=307)

    @app.route('/')
    def home():
        """Landing page with the sign-in button."""
        return render_template('home.html')

    @app.route('/dashboard')
    def dashboard():
        """Signed-in area."""
        token = get_session_token(request.cookies, app.config['ACCESS'])
        user = get_session_user(token)
        return render_template('dashboard.html', user=user)

    return app
