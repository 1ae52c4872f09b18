"""
Legacy token authentication.

Older clients send ``Authorization: Token <key>`` with the key issued at
login; newer ones use the JWT ``Bearer`` header handled by simplejwt.
"""
from __future__ import annotations

from rest_framework import authentication


class TokenAuthentication(authentication.TokenAuthentication):
    keyword = 'Token'
