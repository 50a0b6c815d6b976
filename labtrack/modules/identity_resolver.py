"""
Identity Resolver Module - Lab Room Usage Tracker

This module turns an identity asserted by the external sign-in provider into
the tracker's own user record. It enforces the institutional email domain,
decides between the professor and admin roles, and registers professors in the
teacher registry the first time they sign in. It also hosts the demo login
used by the sample front end.

Features:
- Institutional domain allow-list
- Pluggable role policy (preferred role, admin prefix, demo admin address)
- Display-name fallback from the email local part
- Teacher auto-registration on first professor sign-in
- Demo email/password authentication with fixed accounts
- Provider ID token verification (signature, audience, issuer, expiry, nonce)
"""

from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Tuple
import logging

from jose import JWTError, jwt
from werkzeug.security import generate_password_hash, check_password_hash


class Role(str, Enum):
    PROFESSOR = 'professor'
    ADMIN = 'admin'

    @classmethod
    def parse(cls, value: Any) -> Optional['Role']:
        """Return the matching role, or None for anything unrecognised."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


@dataclass
class User:
    """Signed-in user as seen by the rest of the application."""
    id: str
    email: str
    role: Role
    name: str

    def to_dict(self) -> Dict[str, str]:
        data = asdict(self)
        data['role'] = self.role.value
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'User':
        return cls(
            id=str(data['id']),
            email=data['email'],
            role=Role(data['role']),
            name=data['name'],
        )


def default_role_policy(email: str, preferred_role: Optional[Role] = None,
                        admin_prefix: str = 'admin',
                        demo_admin_email: str = 'example@neu.edu.ph') -> Role:
    """
    Pick the role for an institutional email.

    A preferred role chosen at sign-in wins; otherwise addresses whose local
    part starts with the admin prefix, and the demo admin address, are admins;
    everyone else is a professor.
    """
    if preferred_role is not None:
        return preferred_role

    if email.startswith(admin_prefix) or email == demo_admin_email:
        return Role.ADMIN

    return Role.PROFESSOR


class IdentityResolver:
    """
    Maps external identities (email, display name) onto internal users.
    """

    def __init__(self, institutional_domain: str, access_denied_message: str,
                 teacher_manager=None,
                 role_policy: Optional[Callable[[str, Optional[Role]], Role]] = None):
        """
        Args:
            institutional_domain (str): Required email suffix, e.g. '@neu.edu.ph'
            access_denied_message (str): Message returned on domain rejection
            teacher_manager: Optional TeacherManager for auto-registration
            role_policy: Callable (email, preferred_role) -> Role
        """
        self.institutional_domain = institutional_domain
        self.access_denied_message = access_denied_message
        self.teacher_manager = teacher_manager
        self.role_policy = role_policy or default_role_policy
        self.logger = logging.getLogger(__name__)

    def is_institutional(self, email: Optional[str]) -> bool:
        return bool(email) and email.endswith(self.institutional_domain)

    def resolve(self, email: Optional[str], name: Optional[str] = None,
                user_id: Optional[str] = None,
                preferred_role: Optional[Any] = None) -> Dict[str, Any]:
        """
        Validate an external identity and build the internal user.

        Args:
            email (str): Email claim from the identity provider
            name (str): Display name claim, may be empty
            user_id (str): Subject id from the identity provider
            preferred_role: Role cached at sign-in time, if any

        Returns:
            Dict[str, Any]: {'success': True, 'user': User} or
            {'success': False, 'error': message, 'error_type': 'access_denied'}
        """
        email = (email or '').strip()

        if not self.is_institutional(email):
            self.logger.warning(f"Rejected sign-in from non-institutional address: {email or '<none>'}")
            return {
                'success': False,
                'error': self.access_denied_message,
                'error_type': 'access_denied'
            }

        role = self.role_policy(email, Role.parse(preferred_role) if preferred_role else None)
        local_part = email.split('@')[0]

        user = User(
            id=str(user_id) if user_id else email,
            email=email,
            role=role,
            name=(name or '').strip() or local_part,
        )

        if user.role == Role.PROFESSOR and self.teacher_manager is not None:
            self.teacher_manager.ensure_registered(user.name, user.email)

        self.logger.info(f"Resolved {email} as {user.role.value}")
        return {'success': True, 'user': user}


class DemoAuthenticator:
    """
    Email/password login against a fixed in-memory account table.
    Every listed account accepts the same demo password.
    """

    def __init__(self, users: Mapping[str, Mapping[str, str]], password: str):
        self.users = dict(users)
        self._password_hash = generate_password_hash(password)
        self.logger = logging.getLogger(__name__)

    def authenticate(self, payload: Any) -> Tuple[int, Dict[str, Any]]:
        """
        Check a login request body.

        Returns:
            Tuple[int, Dict[str, Any]]: HTTP status and response body
        """
        try:
            email = payload.get('email') if payload else None
            password = payload.get('password') if payload else None

            if not email or not password:
                return 400, {'message': 'Email and password are required'}

            if not check_password_hash(self._password_hash, password):
                self.logger.warning(f"Demo login failed for {email}: bad password")
                return 401, {'message': 'Invalid credentials'}

            user = self.users.get(email)
            if not user:
                self.logger.warning(f"Demo login failed for {email}: unknown account")
                return 401, {'message': 'Invalid credentials'}

            self.logger.info(f"Demo login succeeded for {email}")
            return 200, {**user, 'email': email}

        except (AttributeError, TypeError) as e:
            self.logger.error(f"Login error: {str(e)}")
            return 500, {'message': 'Login failed'}


class InvalidCredentialError(ValueError):
    """Raised when a sign-in callback carries no verifiable provider credential."""


class ProviderTokenVerifier:
    """
    Verifies the ID token the identity provider signs for a completed sign-in.

    The token must be signed with the configured key, addressed to this
    application (audience), issued by the configured issuer when one is set,
    unexpired, and carry the nonce issued when the sign-in was started.
    """

    def __init__(self, key: Any, algorithms, audience: Optional[str] = None,
                 issuer: Optional[str] = None):
        """
        Args:
            key: Shared secret (HS*) or public key / JWK set (RS*, ES*)
            algorithms: Accepted signing algorithms
            audience (str): Expected 'aud' claim, the application's client id
            issuer (str): Expected 'iss' claim, optional
        """
        self.key = key
        self.algorithms = list(algorithms)
        self.audience = audience
        self.issuer = issuer
        self.logger = logging.getLogger(__name__)

    def verify(self, credential: Any, nonce: Optional[str]) -> Dict[str, Any]:
        """
        Check a provider ID token and return its claims.

        Args:
            credential (str): Compact-serialized ID token
            nonce (str): Nonce issued by /auth/login for this session

        Raises:
            InvalidCredentialError: if the token is missing, forged, expired,
            addressed elsewhere, or not bound to the session's nonce
        """
        if not isinstance(credential, str) or not credential:
            raise InvalidCredentialError('Missing identity provider credential')

        try:
            claims = jwt.decode(
                credential,
                self.key,
                algorithms=self.algorithms,
                audience=self.audience,
                issuer=self.issuer,
                options={'require_aud': self.audience is not None, 'require_exp': True}
            )
        except JWTError as e:
            self.logger.warning(f"Identity provider credential rejected: {str(e)}")
            raise InvalidCredentialError('Invalid identity provider credential') from e

        if not nonce or claims.get('nonce') != nonce:
            self.logger.warning("Identity provider credential rejected: nonce mismatch")
            raise InvalidCredentialError('Sign-in was not started from this session')

        return claims
