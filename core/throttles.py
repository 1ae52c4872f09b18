"""
Rate limits for unauthenticated entry points.

Function based views cannot carry ``throttle_scope``, so the scoped
limits from ``DEFAULT_THROTTLE_RATES`` are exposed as classes and
attached with ``@throttle_classes``.
"""
from rest_framework.throttling import AnonRateThrottle


class LoginRateThrottle(AnonRateThrottle):
    scope = 'login'


class PublicFormRateThrottle(AnonRateThrottle):
    scope = 'public_form'
