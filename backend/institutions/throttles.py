from __future__ import annotations

from django.conf import settings
from rest_framework.throttling import SimpleRateThrottle


class SignupIPRateThrottle(SimpleRateThrottle):
    scope = "signup_ip"

    def get_cache_key(self, request, view):
        ident = self.get_ident(request)
        if not ident:
            return None
        return self.cache_format % {"scope": self.scope, "ident": ident}

    def get_rate(self):
        explicit = str(getattr(settings, "SIGNUP_IP_THROTTLE_RATE", "") or "").strip()
        if explicit:
            return explicit
        return super().get_rate()
