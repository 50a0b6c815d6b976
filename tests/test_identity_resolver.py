"""Tests for sign-in identity resolution and the demo login."""

from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from labtrack.modules.identity_resolver import (
    DemoAuthenticator, IdentityResolver, InvalidCredentialError, ProviderTokenVerifier, Role, User,
    default_role_policy,
)
from labtrack.modules.teacher_manager import TeacherManager

DENIED = 'Access Restricted: Only @neu.edu.ph emails are allowed.'


@pytest.fixture
def teachers(db_manager):
    return TeacherManager(db_manager)


@pytest.fixture
def resolver(teachers):
    return IdentityResolver('@neu.edu.ph', DENIED, teacher_manager=teachers)


class TestRolePolicy:
    def test_admin_prefix(self):
        """Local part starting with 'admin' resolves to admin."""
        assert default_role_policy('admin@neu.edu.ph') == Role.ADMIN
        assert default_role_policy('admin.jane@neu.edu.ph') == Role.ADMIN

    def test_demo_admin_address(self):
        assert default_role_policy('example@neu.edu.ph') == Role.ADMIN

    def test_everyone_else_is_professor(self):
        assert default_role_policy('jdoe@neu.edu.ph') == Role.PROFESSOR

    def test_preferred_role_wins(self):
        """A role picked at sign-in overrides the address rules both ways."""
        assert default_role_policy('jdoe@neu.edu.ph', Role.ADMIN) == Role.ADMIN
        assert default_role_policy('admin@neu.edu.ph', Role.PROFESSOR) == Role.PROFESSOR

    def test_role_parse(self):
        assert Role.parse('Admin') == Role.ADMIN
        assert Role.parse(Role.PROFESSOR) == Role.PROFESSOR
        assert Role.parse('student') is None


class TestIdentityResolver:
    def test_admin_without_cached_role(self, resolver):
        result = resolver.resolve('admin@neu.edu.ph')
        assert result['success']
        assert result['user'].role == Role.ADMIN

    def test_non_institutional_email_rejected(self, resolver):
        result = resolver.resolve('someone@gmail.com', name='Someone')
        assert not result['success']
        assert result['error'] == DENIED
        assert 'user' not in result

    def test_missing_email_rejected(self, resolver):
        assert not resolver.resolve(None)['success']

    def test_lookalike_domain_rejected(self, resolver):
        assert not resolver.resolve('jdoe@neu.edu.ph.evil.com')['success']

    def test_name_falls_back_to_local_part(self, resolver):
        user = resolver.resolve('jdoe@neu.edu.ph')['user']
        assert user.name == 'jdoe'
        assert user.id == 'jdoe@neu.edu.ph'

    def test_display_name_and_id_kept(self, resolver):
        user = resolver.resolve('jdoe@neu.edu.ph', name='Jane Doe', user_id='abc123')['user']
        assert user.name == 'Jane Doe'
        assert user.id == 'abc123'

    def test_professor_auto_registered(self, resolver, teachers):
        resolver.resolve('jdoe@neu.edu.ph', name='Jane Doe')
        teacher = teachers.find_teacher(email='jdoe@neu.edu.ph')
        assert teacher is not None
        assert teacher.name == 'Jane Doe'
        assert teacher.department == 'Unassigned'
        assert teacher.id.startswith('T-')

    def test_auto_registration_happens_once(self, resolver, teachers):
        resolver.resolve('jdoe@neu.edu.ph', name='Jane Doe')
        before = len(teachers.get_all_teachers())
        resolver.resolve('jdoe@neu.edu.ph', name='Jane Doe')
        assert len(teachers.get_all_teachers()) == before

    def test_admin_not_registered_as_teacher(self, resolver, teachers):
        resolver.resolve('admin@neu.edu.ph')
        assert teachers.find_teacher(email='admin@neu.edu.ph') is None

    def test_custom_role_policy(self, teachers):
        resolver = IdentityResolver('@neu.edu.ph', DENIED, role_policy=lambda email, preferred: Role.ADMIN)
        assert resolver.resolve('jdoe@neu.edu.ph')['user'].role == Role.ADMIN

    def test_user_dict_round_trip(self):
        user = User(id='1', email='jdoe@neu.edu.ph', role=Role.PROFESSOR, name='Jane')
        assert user.to_dict()['role'] == 'professor'
        assert User.from_dict(user.to_dict()) == user


class TestDemoAuthenticator:
    @pytest.fixture
    def authenticator(self):
        return DemoAuthenticator({
            'prof@lab.edu': {'id': '1', 'role': 'professor', 'name': 'Dr. Smith'},
        }, 'password')

    def test_valid_credentials(self, authenticator):
        status, body = authenticator.authenticate({'email': 'prof@lab.edu', 'password': 'password'})
        assert status == 200
        assert body == {'id': '1', 'role': 'professor', 'name': 'Dr. Smith', 'email': 'prof@lab.edu'}

    def test_missing_fields(self, authenticator):
        status, body = authenticator.authenticate({'email': 'prof@lab.edu'})
        assert status == 400
        assert body['message'] == 'Email and password are required'

    def test_wrong_password(self, authenticator):
        status, _ = authenticator.authenticate({'email': 'prof@lab.edu', 'password': 'nope'})
        assert status == 401

    def test_unknown_user(self, authenticator):
        status, body = authenticator.authenticate({'email': 'who@lab.edu', 'password': 'password'})
        assert status == 401
        assert body['message'] == 'Invalid credentials'

    def test_malformed_body(self, authenticator):
        status, body = authenticator.authenticate(['not', 'a', 'dict'])
        assert status == 500
        assert body['message'] == 'Login failed'


class TestProviderTokenVerifier:
    KEY = 'provider-secret'

    @pytest.fixture
    def verifier(self):
        return ProviderTokenVerifier(self.KEY, ['HS256'], audience='labtrack',
                                     issuer='https://accounts.example.com')

    def token(self, key=KEY, **overrides):
        claims = {
            'sub': '42',
            'email': 'jdoe@neu.edu.ph',
            'nonce': 'n-1',
            'aud': 'labtrack',
            'iss': 'https://accounts.example.com',
            'exp': datetime.now(timezone.utc) + timedelta(minutes=5),
        }
        claims.update(overrides)
        return jwt.encode({k: v for k, v in claims.items() if v is not None}, key, algorithm='HS256')

    def test_valid_token(self, verifier):
        claims = verifier.verify(self.token(), 'n-1')
        assert claims['email'] == 'jdoe@neu.edu.ph'
        assert claims['sub'] == '42'

    @pytest.mark.parametrize('credential', [None, '', {'email': 'jdoe@neu.edu.ph'}, 'not-a-jwt'])
    def test_missing_or_malformed_credential(self, verifier, credential):
        with pytest.raises(InvalidCredentialError):
            verifier.verify(credential, 'n-1')

    def test_wrong_signing_key(self, verifier):
        with pytest.raises(InvalidCredentialError):
            verifier.verify(self.token(key='someone-else'), 'n-1')

    def test_wrong_audience(self, verifier):
        with pytest.raises(InvalidCredentialError):
            verifier.verify(self.token(aud='other-app'), 'n-1')

    def test_missing_audience(self, verifier):
        with pytest.raises(InvalidCredentialError):
            verifier.verify(self.token(aud=None), 'n-1')

    def test_wrong_issuer(self, verifier):
        with pytest.raises(InvalidCredentialError):
            verifier.verify(self.token(iss='https://evil.example.com'), 'n-1')

    def test_expired(self, verifier):
        expired = datetime.now(timezone.utc) - timedelta(minutes=5)
        with pytest.raises(InvalidCredentialError):
            verifier.verify(self.token(exp=expired), 'n-1')

    @pytest.mark.parametrize('nonce', [None, '', 'n-2'])
    def test_nonce_must_match(self, verifier, nonce):
        with pytest.raises(InvalidCredentialError, match='not started from this session'):
            verifier.verify(self.token(), nonce)
