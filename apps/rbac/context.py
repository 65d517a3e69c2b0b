"""
Request-scoped access context.

An ``AccessContext`` carries the verified identity of one caller plus the
request metadata forwarded to audit records. It is built once per request
(or per task) and passed explicitly to every authorization entry point.
"""
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import jwt
from django.conf import settings

logger = logging.getLogger(__name__)

# Identity used when no valid token is present. Matches no membership.
NIL_USER_ID = uuid.UUID('00000000-0000-0000-0000-000000000000')


def parse_uuid(value) -> Optional[uuid.UUID]:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError, AttributeError):
        return None


def decode_token(token: str) -> Optional[Dict[str, Any]]:
    """
    Verify a bearer token and return its claims, or None if invalid.

    Expired tokens, bad signatures and malformed tokens all yield None.
    """
    if not token:
        return None
    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
            options={'require': ['exp']},
        )
    except jwt.ExpiredSignatureError:
        logger.debug("Bearer token expired")
        return None
    except jwt.InvalidTokenError as e:
        logger.debug(f"Invalid bearer token: {e}")
        return None


def client_ip(request) -> Optional[str]:
    """Extract client IP from request."""
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        return x_forwarded_for.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR')


@dataclass
class AccessContext:
    """
    Explicit permission context for one caller.

    ``user_id`` is always a UUID; anonymous callers get ``NIL_USER_ID``.
    ``memo`` caches membership lookups for the lifetime of the context so
    repeated checks inside one request see a stable answer.
    """
    user_id: uuid.UUID = NIL_USER_ID
    claims: Dict[str, Any] = field(default_factory=dict)
    is_service: bool = False
    preferred_business_id: Optional[uuid.UUID] = None
    ip_address: Optional[str] = None
    user_agent: str = ''
    request_id: Optional[str] = None
    memo: Dict[Any, Any] = field(default_factory=dict, repr=False, compare=False)

    @property
    def is_authenticated(self) -> bool:
        return self.user_id != NIL_USER_ID

    def clear_memo(self):
        """Forget cached membership lookups (after this context changed memberships)."""
        self.memo.clear()

    @classmethod
    def anonymous(cls, **meta) -> 'AccessContext':
        return cls(**meta)

    @classmethod
    def for_user(cls, user_or_id, business_id=None, **meta) -> 'AccessContext':
        """Context for a known user (tasks, management commands, tests)."""
        user_id = parse_uuid(getattr(user_or_id, 'pk', user_or_id)) or NIL_USER_ID
        return cls(
            user_id=user_id,
            preferred_business_id=parse_uuid(business_id) if business_id else None,
            **meta
        )

    @classmethod
    def service(cls, **meta) -> 'AccessContext':
        """Context for the trusted backend service principal."""
        return cls(is_service=True, claims={'role': settings.AUTHZ_SERVICE_ROLE}, **meta)

    @classmethod
    def from_claims(cls, claims, **meta) -> 'AccessContext':
        """
        Build a context from verified claims.

        The subject comes from ``sub`` (or ``user_id``). A non-UUID subject
        resolves to the nil identity.
        """
        claims = claims or {}
        is_service = claims.get('role') == settings.AUTHZ_SERVICE_ROLE
        user_id = parse_uuid(claims.get('sub') or claims.get('user_id')) or NIL_USER_ID
        return cls(user_id=user_id, claims=dict(claims), is_service=is_service, **meta)

    @classmethod
    def from_token(cls, token, **meta) -> 'AccessContext':
        """Verify ``token`` and build a context. Never raises."""
        return cls.from_claims(decode_token(token), **meta)

    @classmethod
    def from_request(cls, request) -> 'AccessContext':
        """
        Build a context from an HTTP request.

        Reads ``Authorization: Bearer``, ``X-Business-ID``, client IP, user
        agent and the request id set by RequestIDMiddleware.
        """
        token = None
        auth_header = request.META.get('HTTP_AUTHORIZATION', '')
        if auth_header.startswith('Bearer '):
            token = auth_header[7:].strip()

        # A malformed header pins the nil id so it matches no business
        business_header = request.META.get('HTTP_X_BUSINESS_ID')
        meta = {
            'preferred_business_id': (parse_uuid(business_header) or NIL_USER_ID) if business_header else None,
            'ip_address': client_ip(request),
            'user_agent': request.META.get('HTTP_USER_AGENT', ''),
            'request_id': getattr(request, 'request_id', None) or request.META.get('HTTP_X_REQUEST_ID'),
        }
        return cls.from_token(token, **meta)


def current_user_id(context: Optional[AccessContext]) -> uuid.UUID:
    """Caller's user id, or ``NIL_USER_ID`` when there is no identity."""
    if context is None:
        return NIL_USER_ID
    return context.user_id or NIL_USER_ID
