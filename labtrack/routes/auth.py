"""
Sign-in flow against the external identity provider.

/auth/login remembers which role the user picked on the landing page, issues
a one-time nonce and hands off to the provider. The provider posts a signed
ID token back to /auth/callback; the token is verified and bound to that
nonce before its email is checked against the institutional domain.
"""

import logging
import secrets
from urllib.parse import urlencode

from flask import Blueprint, current_app, jsonify, redirect, request, session, url_for

from labtrack.decorators import current_user, login_required
from labtrack.extensions import get_manager
from labtrack.modules.identity_resolver import InvalidCredentialError, Role

auth_bp = Blueprint('auth', __name__, url_prefix='/auth')
logger = logging.getLogger(__name__)


def _request_body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else request.form


@auth_bp.route('/login', methods=['GET'])
def login():
    role_key = current_app.config['PREFERRED_ROLE_SESSION_KEY']
    requested = request.args.get('role')

    if requested:
        role = Role.parse(requested)
        if role is None:
            return jsonify({'success': False, 'error': f'Unknown role: {requested}'}), 400
        session[role_key] = role.value
    else:
        session.pop(role_key, None)

    nonce = secrets.token_urlsafe(24)
    session[current_app.config['AUTH_NONCE_SESSION_KEY']] = nonce

    params = urlencode({
        'client_id': current_app.config['IDENTITY_PROVIDER_CLIENT_ID'],
        'response_type': 'id_token',
        'response_mode': 'form_post',
        'scope': 'openid email profile',
        'redirect_uri': url_for('auth.callback', _external=True),
        'nonce': nonce,
    })
    return redirect(f"{current_app.config['IDENTITY_PROVIDER_URL']}?{params}")


@auth_bp.route('/callback', methods=['POST'])
def callback():
    """Verify the provider's ID token and sign the user in."""
    body = _request_body()
    role_key = current_app.config['PREFERRED_ROLE_SESSION_KEY']
    nonce = session.pop(current_app.config['AUTH_NONCE_SESSION_KEY'], None)

    try:
        claims = get_manager('token_verifier').verify(
            body.get('id_token') or body.get('credential'),
            nonce
        )
    except InvalidCredentialError as e:
        logger.warning(f"Rejected sign-in callback: {str(e)}")
        return jsonify({'success': False, 'error': str(e)}), 401

    result = get_manager('identity_resolver').resolve(
        claims.get('email'),
        name=claims.get('name'),
        user_id=claims.get('sub'),
        preferred_role=session.get(role_key)
    )

    if not result['success']:
        session.clear()
        return jsonify({'success': False, 'error': result['error']}), 403

    user = result['user']
    session['user'] = user.to_dict()
    session[role_key] = user.role.value

    logger.info(f"User {user.email} signed in as {user.role.value}")
    return jsonify({
        'success': True,
        'user': user.to_dict(),
        'redirect': url_for('dashboard.dashboard')
    })


@auth_bp.route('/me', methods=['GET'])
@login_required
def me():
    return jsonify({'success': True, 'user': current_user().to_dict()})


@auth_bp.route('/logout', methods=['GET', 'POST'])
def logout():
    user = current_user()
    session.clear()
    if user:
        logger.info(f"User {user.email} signed out")
    return redirect(url_for('index'))
