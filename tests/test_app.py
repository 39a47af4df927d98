"""Request-level behaviour: the access check, pages and the sign-in flow."""

from urllib.parse import parse_qs, urlparse

from authlib.integrations.base_client import OAuthError
from flask import redirect
from sqlalchemy import func, select

from config.database import create_session, get_db_session, get_session_user, upsert_social_account
from config.models import Verification

COOKIE = "aptitude-ucat-style-test.session_token"

PROFILE = {
    'sub': '42',
    'email': 'grace@example.com',
    'email_verified': True,
    'name': 'Grace Hopper',
}


def sign_in_user(client):
    user_id = upsert_social_account('google', PROFILE, {'access_token': 'a'})
    token = create_session(user_id, max_age=3600)
    client.set_cookie(COOKIE, token)
    return token


def test_home_shows_sign_in(client):
    response = client.get('/')
    assert response.status_code == 200
    assert b'Please sign in to continue.' in response.data
    assert b'/api/auth/sign-in/google' in response.data


def test_anonymous_dashboard_redirects_home(client):
    response = client.get('/dashboard')
    assert response.status_code == 307
    assert response.headers['Location'] == 'http://localhost/'


def test_anonymous_nested_dashboard_redirects_home(client):
    response = client.get('/dashboard/settings?tab=profile')
    assert response.status_code == 307
    assert response.headers['Location'] == 'http://localhost/'


def test_signed_in_home_redirects_to_dashboard(client):
    sign_in_user(client)
    response = client.get('/')
    assert response.status_code == 307
    assert response.headers['Location'] == 'http://localhost/dashboard'


def test_signed_in_dashboard_renders_user(client):
    sign_in_user(client)
    response = client.get('/dashboard')
    assert response.status_code == 200
    assert b'Dashboard' in response.data
    assert b'Signed in as Grace Hopper' in response.data


def test_cookie_presence_is_enough_to_pass(client):
    client.set_cookie(COOKIE, 'not-a-real-session')
    response = client.get('/dashboard')
    assert response.status_code == 200
    assert b'Signed in as' not in response.data


def test_unprotected_path_passes_through(client):
    assert client.get('/about').status_code == 404


def test_excluded_paths_skip_the_access_check(client):
    # No route exists for these; a 404 proves no redirect happened
    assert client.get('/dashboard/chart.png').status_code == 404
    assert client.get('/api/unknown').status_code == 404


def test_sign_in_redirects_to_google(client, google, monkeypatch):
    calls = {}

    def fake_authorize_redirect(redirect_uri, **kwargs):
        calls['redirect_uri'] = redirect_uri
        calls['kwargs'] = kwargs
        return redirect('https://accounts.google.com/o/oauth2/v2/auth')

    monkeypatch.setattr(google, 'authorize_redirect', fake_authorize_redirect)

    response = client.post('/api/auth/sign-in/google')
    assert response.status_code == 302
    assert response.headers['Location'].startswith('https://accounts.google.com/')
    assert calls['redirect_uri'] == 'http://localhost:3000/api/auth/callback/google'
    assert calls['kwargs'] == {'prompt': 'select_account'}


def test_sign_in_unknown_provider(client):
    assert client.post('/api/auth/sign-in/github').status_code == 404
    assert client.get('/api/auth/callback/github').status_code == 404


def test_callback_opens_session(client, google, monkeypatch):
    token = {
        'access_token': 'access',
        'id_token': 'id',
        'expires_at': 2000000000,
        'userinfo': PROFILE,
    }
    monkeypatch.setattr(google, 'authorize_access_token', lambda **kwargs: token)

    response = client.get('/api/auth/callback/google?code=abc&state=xyz')
    assert response.status_code == 302
    assert response.headers['Location'] == 'http://localhost/dashboard'

    set_cookie = response.headers.get('Set-Cookie')
    assert set_cookie.startswith(f'{COOKIE}=')
    assert 'HttpOnly' in set_cookie
    assert 'SameSite=Lax' in set_cookie

    session_token = set_cookie.split(';', 1)[0].split('=', 1)[1]
    assert get_session_user(session_token)['email'] == 'grace@example.com'

    dashboard = client.get('/dashboard')
    assert dashboard.status_code == 200
    assert b'Grace Hopper' in dashboard.data


def test_callback_failure_returns_home_without_cookie(client, google, monkeypatch):
    def denied(**kwargs):
        raise OAuthError(error='access_denied', description='user cancelled')

    monkeypatch.setattr(google, 'authorize_access_token', denied)

    response = client.get('/api/auth/callback/google?error=access_denied')
    assert response.status_code == 302
    assert response.headers['Location'] == 'http://localhost/'
    assert 'Set-Cookie' not in response.headers or COOKIE not in response.headers['Set-Cookie']


def test_sign_out_clears_session(client):
    token = sign_in_user(client)

    response = client.post('/api/auth/sign-out')
    assert response.status_code == 302
    assert response.headers['Location'] == 'http://localhost/'
    cleared = response.headers.getlist('Set-Cookie')
    assert any(header.startswith(f'{COOKIE}=;') for header in cleared)
    assert get_session_user(token) is None

    after = client.get('/dashboard')
    assert after.status_code == 307
    assert after.headers['Location'] == 'http://localhost/'


def test_sign_out_without_session(client):
    response = client.post('/api/auth/sign-out')
    assert response.status_code == 302
    assert response.headers['Location'] == 'http://localhost/'


GOOGLE_METADATA = {
    'issuer': 'https://accounts.google.com',
    'authorization_endpoint': 'https://accounts.google.com/o/oauth2/v2/auth',
    'token_endpoint': 'https://oauth2.googleapis.com/token',
    'userinfo_endpoint': 'https://openidconnect.googleapis.com/v1/userinfo',
    'jwks_uri': 'https://www.googleapis.com/oauth2/v3/certs',
}


def verification_count():
    session = get_db_session()
    try:
        return session.execute(select(func.count()).select_from(Verification)).scalar_one()
    finally:
        session.close()


def use_offline_metadata(google):
    google.server_metadata.update(GOOGLE_METADATA)
    google.server_metadata['_loaded_at'] = 1


def test_sign_in_state_is_found_again_on_callback(client, google, monkeypatch):
    use_offline_metadata(google)
    exchanged = {}

    def fake_fetch_access_token(**kwargs):
        exchanged.update(kwargs)
        return {'access_token': 'access', 'token_type': 'Bearer', 'expires_in': 3600}

    monkeypatch.setattr(google, 'fetch_access_token', fake_fetch_access_token)
    monkeypatch.setattr(google, 'userinfo', lambda **kwargs: PROFILE)

    response = client.post('/api/auth/sign-in/google')
    assert response.status_code == 302
    location = urlparse(response.headers['Location'])
    assert location.netloc == 'accounts.google.com'
    query = parse_qs(location.query)
    assert query['prompt'] == ['select_account']
    assert query['redirect_uri'] == ['http://localhost:3000/api/auth/callback/google']
    state = query['state'][0]
    assert verification_count() == 1

    callback = client.get(f'/api/auth/callback/google?code=the-code&state={state}')
    assert callback.status_code == 302
    assert callback.headers['Location'] == 'http://localhost/dashboard'
    assert exchanged['code'] == 'the-code'
    assert exchanged['redirect_uri'] == 'http://localhost:3000/api/auth/callback/google'
    assert verification_count() == 0

    cookie = client.get_cookie(COOKIE)
    assert cookie is not None
    assert get_session_user(cookie.value)['email'] == 'grace@example.com'


def test_callback_with_unknown_state_is_rejected(client, google, monkeypatch):
    use_offline_metadata(google)
    monkeypatch.setattr(google, 'fetch_access_token', lambda **kwargs: {'access_token': 'access'})
    monkeypatch.setattr(google, 'userinfo', lambda **kwargs: PROFILE)

    client.post('/api/auth/sign-in/google')
    response = client.get('/api/auth/callback/google?code=the-code&state=forged')

    assert response.status_code == 302
    assert response.headers['Location'] == 'http://localhost/'
    assert client.get_cookie(COOKIE) is None


def test_sign_out_clears_both_cookie_names(client):
    sign_in_user(client)

    response = client.post('/api/auth/sign-out')
    cleared = [header.split('=', 1)[0] for header in response.headers.getlist('Set-Cookie')]
    assert COOKIE in cleared
    assert f'__Secure-{COOKIE}' in cleared


def test_redirect_keeps_mount_prefix(client):
    response = client.get('/dashboard', base_url='http://localhost/aptitude')
    assert response.status_code == 307
    assert response.headers['Location'] == 'http://localhost/aptitude/'
