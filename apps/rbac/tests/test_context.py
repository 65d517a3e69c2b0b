"""
Tests for identity resolution: bearer tokens to AccessContext.
"""
import uuid
from datetime import timedelta

import jwt
import pytest
from django.conf import settings
from django.test import RequestFactory

from apps.rbac.context import (
    NIL_USER_ID, AccessContext, current_user_id, decode_token,
)
from apps.rbac.services import AuthService


def _token(claims, secret=None):
    return jwt.encode(claims, secret or settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


class TestCurrentUserId:

    def test_none_context_yields_nil(self):
        assert current_user_id(None) == NIL_USER_ID

    def test_anonymous_context_yields_nil(self):
        assert current_user_id(AccessContext.anonymous()) == NIL_USER_ID

    def test_user_context_yields_subject(self):
        user_id = uuid.uuid4()
        assert current_user_id(AccessContext.for_user(user_id)) == user_id

    def test_nil_identity_is_not_authenticated(self):
        assert not AccessContext.anonymous().is_authenticated
        assert AccessContext.for_user(uuid.uuid4()).is_authenticated


@pytest.mark.django_db
class TestTokenDecoding:

    def test_valid_token_resolves_user(self, make_user):
        user = make_user()
        context = AccessContext.from_token(AuthService.generate_jwt(user))

        assert context.user_id == user.pk
        assert context.claims['email'] == user.email
        assert not context.is_service

    def test_expired_token_yields_nil(self, make_user):
        token = AuthService.generate_jwt(make_user(), expires_in=timedelta(seconds=-10))
        assert decode_token(token) is None
        assert AccessContext.from_token(token).user_id == NIL_USER_ID

    def test_wrong_signature_yields_nil(self):
        token = _token({'sub': str(uuid.uuid4()), 'exp': 4102444800}, secret='x' * 40)
        assert AccessContext.from_token(token).user_id == NIL_USER_ID

    def test_token_without_expiry_is_rejected(self):
        token = _token({'sub': str(uuid.uuid4())})
        assert decode_token(token) is None

    def test_garbage_token_yields_nil(self):
        assert AccessContext.from_token('not-a-jwt').user_id == NIL_USER_ID
        assert AccessContext.from_token(None).user_id == NIL_USER_ID

    def test_non_uuid_subject_yields_nil(self):
        token = _token({'sub': 'alice', 'exp': 4102444800})
        assert AccessContext.from_token(token).user_id == NIL_USER_ID

    def test_user_id_claim_is_accepted(self):
        user_id = uuid.uuid4()
        token = _token({'user_id': str(user_id), 'exp': 4102444800})
        assert AccessContext.from_token(token).user_id == user_id

    def test_service_role_claim_marks_service_principal(self):
        context = AccessContext.from_token(AuthService.generate_service_token())
        assert context.is_service
        assert context.user_id == NIL_USER_ID


class TestFromRequest:

    def test_reads_bearer_business_header_and_metadata(self):
        user_id = uuid.uuid4()
        business_id = uuid.uuid4()
        request = RequestFactory().get(
            '/v1/access/me',
            HTTP_AUTHORIZATION=f"Bearer {_token({'sub': str(user_id), 'exp': 4102444800})}",
            HTTP_X_BUSINESS_ID=str(business_id),
            HTTP_USER_AGENT='pytest',
            REMOTE_ADDR='10.0.0.7',
        )
        request.request_id = 'req-1'

        context = AccessContext.from_request(request)

        assert context.user_id == user_id
        assert context.preferred_business_id == business_id
        assert context.user_agent == 'pytest'
        assert context.ip_address == '10.0.0.7'
        assert context.request_id == 'req-1'

    def test_missing_header_is_anonymous(self):
        context = AccessContext.from_request(RequestFactory().get('/'))
        assert context.user_id == NIL_USER_ID
        assert context.preferred_business_id is None

    def test_non_bearer_scheme_is_anonymous(self):
        request = RequestFactory().get('/', HTTP_AUTHORIZATION='Basic dXNlcjpwYXNz')
        assert AccessContext.from_request(request).user_id == NIL_USER_ID

    def test_malformed_business_header_pins_nil(self):
        request = RequestFactory().get('/', HTTP_X_BUSINESS_ID='not-a-uuid')
        assert AccessContext.from_request(request).preferred_business_id == NIL_USER_ID

    def test_forwarded_for_wins_over_remote_addr(self):
        request = RequestFactory().get('/', HTTP_X_FORWARDED_FOR='203.0.113.5, 10.0.0.1', REMOTE_ADDR='10.0.0.1')
        assert AccessContext.from_request(request).ip_address == '203.0.113.5'
