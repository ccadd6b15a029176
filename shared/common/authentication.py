# shared/common/authentication.py
"""
JWT Authentication

The token is the identity/role provider of the services: it carries the
user id, display name and role claims that the workflow checks against.
"""

import jwt
import logging
from datetime import datetime, timezone
from typing import Optional, Dict, Any, Tuple
from django.conf import settings
from rest_framework import authentication, exceptions
from rest_framework.request import Request

from .constants import primary_role

logger = logging.getLogger(__name__)


class JWTAuthentication(authentication.BaseAuthentication):
    """
    JWT Token Authentication for API requests.
    """

    keyword = 'Bearer'

    def authenticate(self, request: Request) -> Optional[Tuple[Any, Dict]]:
        auth_header = authentication.get_authorization_header(request)

        if not auth_header:
            return None

        try:
            auth_parts = auth_header.decode('utf-8').split()
        except UnicodeDecodeError:
            raise exceptions.AuthenticationFailed('Invalid token header encoding')

        if len(auth_parts) != 2:
            raise exceptions.AuthenticationFailed('Invalid token header format')

        if auth_parts[0].lower() != self.keyword.lower():
            return None

        token = auth_parts[1]
        return self.authenticate_token(token)

    def authenticate_token(self, token: str) -> Tuple[Any, Dict]:
        """Validate and decode JWT token"""
        try:
            payload = jwt.decode(
                token,
                settings.JWT_SETTINGS['VERIFYING_KEY'],
                algorithms=[settings.JWT_SETTINGS['ALGORITHM']],
                issuer=settings.JWT_SETTINGS['ISSUER'],
                options={
                    'require': ['exp', 'iat', 'sub', 'iss'],
                    'verify_exp': True,
                    'verify_iat': True,
                    'verify_iss': True,
                }
            )
        except jwt.ExpiredSignatureError:
            raise exceptions.AuthenticationFailed('Token has expired')
        except jwt.InvalidTokenError as e:
            logger.warning(f"Invalid token: {e}")
            raise exceptions.AuthenticationFailed('Invalid token')

        return (TokenUser(payload), payload)

    def authenticate_header(self, request: Request) -> str:
        return self.keyword


class TokenUser:
    """
    User object created from JWT token payload.
    Provides a consistent interface for accessing user data.
    """

    def __init__(self, payload: Dict):
        self.payload = payload
        self.id = payload.get('sub')
        self.user_id = payload.get('sub')
        self.email = payload.get('email')
        self.name = payload.get('name') or payload.get('email') or ''
        self.organization_id = payload.get('organization_id')
        self.roles = payload.get('roles', [])
        self.is_active = True
        self.is_authenticated = True
        self.is_anonymous = False

    def __str__(self) -> str:
        return f"TokenUser({self.email})"

    @property
    def role(self) -> Optional[str]:
        """Effective role used by the workflow checks."""
        return primary_role(self.roles)

    def has_role(self, role: str) -> bool:
        """Check if user has a specific role"""
        return role in self.roles


class JWTTokenGenerator:
    """
    Generate JWT tokens for authentication.
    """

    @staticmethod
    def generate_access_token(
        user_id: str,
        email: str,
        roles: list,
        name: str = None,
        organization_id: str = None,
        extra_claims: Dict = None
    ) -> str:
        """Generate an access token"""
        now = datetime.now(timezone.utc)

        payload = {
            'sub': str(user_id),
            'email': email,
            'name': name,
            'organization_id': str(organization_id) if organization_id else None,
            'roles': roles,
            'iat': now,
            'exp': now + settings.JWT_SETTINGS['ACCESS_TOKEN_LIFETIME'],
            'iss': settings.JWT_SETTINGS['ISSUER'],
            'type': 'access',
        }

        if extra_claims:
            payload.update(extra_claims)

        return jwt.encode(
            payload,
            settings.JWT_SETTINGS['SIGNING_KEY'],
            algorithm=settings.JWT_SETTINGS['ALGORITHM']
        )
