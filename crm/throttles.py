from rest_framework.throttling import SimpleRateThrottle


class ClientIPThrottle(SimpleRateThrottle):
    """Rate limit by client address, whether or not a token was sent."""

    def get_cache_key(self, request, view):
        return self.cache_format % {'scope': self.scope, 'ident': self.get_ident(request)}


class LoginThrottle(ClientIPThrottle):
    scope = 'login'


class EnquiryThrottle(ClientIPThrottle):
    scope = 'enquiry'


class WebhookThrottle(ClientIPThrottle):
    scope = 'webhook'
