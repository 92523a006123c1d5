# services/tradebook/intel/auth.py
"""Session authentication for the Tradebook service.

Users log in with a username/password from the configured user table
(TRADEBOOK_USERS) and receive an app session JWT, set as the ``tb_session``
cookie and also returned in the login response for API clients.

The session JWT has this structure:
{
    "iat": 1234567890,
    "exp": 1234567890,
    "user": {
        "id": "user_demo",
        "username": "demo",
        "name": "Demo User"
    }
}
"""

import hmac
import json
import time
from functools import wraps
from typing import Any, Dict, Optional

import jwt
from aiohttp import web


SESSION_COOKIE = 'tb_session'
DEFAULT_MAX_AGE = 86400


def parse_users(raw) -> Dict[str, Dict[str, Any]]:
    """Parse the TRADEBOOK_USERS table (JSON string or dict)."""
    if not raw:
        return {}
    if isinstance(raw, str):
        raw = json.loads(raw)
    users = {}
    for username, entry in raw.items():
        if not entry.get('password') or not entry.get('user_id'):
            raise ValueError(f"user '{username}' needs password and user_id")
        users[username] = entry
    return users


class TradebookAuth:
    """Handles login, session JWT issue/validation and user resolution."""

    def __init__(self, config: Dict[str, Any]):
        """
        Initialize auth handler.

        Args:
            config: Service config containing APP_SESSION_SECRET,
                SESSION_MAX_AGE and TRADEBOOK_USERS
        """
        self.app_session_secret = config.get('APP_SESSION_SECRET', '')
        self.max_age = int(config.get('SESSION_MAX_AGE') or DEFAULT_MAX_AGE)
        self.users = parse_users(config.get('TRADEBOOK_USERS'))

    def authenticate(self, username: str, password: str) -> Optional[Dict[str, Any]]:
        """
        Check credentials against the user table.

        Returns:
            Public user dict or None
        """
        entry = self.users.get(username)
        if not entry:
            return None
        if not hmac.compare_digest(str(entry['password']), str(password)):
            return None
        return {
            'id': entry['user_id'],
            'username': username,
            'name': entry.get('name') or username,
        }

    def issue_session(self, user: Dict[str, Any]) -> str:
        """Sign a session token for an authenticated user."""
        if not self.app_session_secret:
            raise RuntimeError('APP_SESSION_SECRET is not configured')
        now = int(time.time())
        payload = {
            'iat': now,
            'exp': now + self.max_age,
            'user': {
                'id': user['id'],
                'username': user['username'],
                'name': user.get('name'),
            },
        }
        return jwt.encode(payload, self.app_session_secret, algorithm='HS256')

    def decode_app_session(self, token: str) -> Optional[Dict[str, Any]]:
        """
        Decode and validate an app session JWT.

        Returns:
            Decoded payload or None if invalid
        """
        if not token or not self.app_session_secret:
            return None

        try:
            return jwt.decode(
                token,
                self.app_session_secret,
                algorithms=['HS256']
            )
        except jwt.ExpiredSignatureError:
            return None
        except jwt.InvalidTokenError:
            return None

    def get_user_from_session(self, token: str) -> Optional[Dict[str, Any]]:
        payload = self.decode_app_session(token)
        if not payload:
            return None

        user = payload.get('user') or {}
        if not user.get('id'):
            return None
        return {
            'id': user['id'],
            'username': user.get('username'),
            'name': user.get('name'),
        }

    def extract_token(self, request: web.Request) -> Optional[str]:
        """
        Extract the session token from a request.

        Checks:
        1. Authorization header (Bearer token)
        2. tb_session cookie
        """
        auth_header = request.headers.get('Authorization', '')
        if auth_header.startswith('Bearer '):
            return auth_header[7:]

        return request.cookies.get(SESSION_COOKIE)

    async def get_request_user(self, request: web.Request) -> Optional[Dict[str, Any]]:
        token = self.extract_token(request)
        if not token:
            return None
        return self.get_user_from_session(token)

    def set_session_cookie(self, response: web.Response, token: str):
        response.set_cookie(
            SESSION_COOKIE, token,
            max_age=self.max_age, path='/', httponly=True, samesite='Lax',
        )

    def clear_session_cookie(self, response: web.Response):
        response.del_cookie(SESSION_COOKIE, path='/')


def require_auth(handler):
    """
    Decorator to require authentication on a route handler.

    Adds request['user'] with the authenticated user.
    Returns 401 if not authenticated.
    """
    @wraps(handler)
    async def wrapper(self, request: web.Request) -> web.Response:
        user = await self.auth.get_request_user(request)
        if not user:
            return self._error_response('Authentication required', 401)

        request['user'] = user
        return await handler(self, request)

    return wrapper


def optional_auth(handler):
    """
    Decorator to optionally authenticate a route handler.

    Adds request['user'] with the authenticated user or None.
    """
    @wraps(handler)
    async def wrapper(self, request: web.Request) -> web.Response:
        request['user'] = await self.auth.get_request_user(request)
        return await handler(self, request)

    return wrapper
