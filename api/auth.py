"""
Перевірка облікових даних для запитів, що змінюють стан пристрою.
"""

import hmac
from enum import Enum
from typing import Any, Dict, Optional

from flask import Request


class AuthResult(Enum):
    """Результат перевірки запиту."""
    OK = 'ok'
    MISSING = 'missing'
    INVALID = 'invalid'


class AuthChecker:
    """Basic або token автентифікація згідно з секцією auth конфігурації."""

    def __init__(self, auth_config: Optional[Dict[str, Any]] = None):
        """
        Args:
            auth_config: Секція 'auth' (mode, username, password, token)
        """
        auth_config = auth_config or {}
        self.mode = auth_config.get('mode', 'basic')
        self.username = str(auth_config.get('username', 'admin'))
        self.password = str(auth_config.get('password', 'admin123'))
        self.token = str(auth_config.get('token') or '')

    def check(self, request: Request) -> AuthResult:
        if self.mode == 'token':
            return self._check_token(request)
        return self._check_basic(request)

    def _check_basic(self, request: Request) -> AuthResult:
        if not request.headers.get('Authorization'):
            return AuthResult.MISSING
        auth = request.authorization
        if auth is None or auth.type != 'basic':
            return AuthResult.INVALID
        if _same(auth.username or '', self.username) and _same(auth.password or '', self.password):
            return AuthResult.OK
        return AuthResult.INVALID

    def _check_token(self, request: Request) -> AuthResult:
        token = request.headers.get('X-Auth-Token')
        if token is None:
            header = request.headers.get('Authorization', '')
            if header.lower().startswith('bearer '):
                token = header[7:].strip()
            elif header:
                return AuthResult.INVALID
        if not token:
            return AuthResult.MISSING
        return AuthResult.OK if _same(token, self.token) else AuthResult.INVALID


def _same(given: str, expected: str) -> bool:
    return hmac.compare_digest(given.encode('utf-8'), expected.encode('utf-8'))
