from django.http import JsonResponse


class RetiredModuleMiddleware:
    """Return 410 for endpoints of modules this backend no longer serves."""
    RETIRED_PREFIXES = (
        '/api/stocks',
        '/api/blog',
        '/api/job',
        '/api/calculator',
        '/api/seo',
        '/api/marketing/sms',
        '/api/agent/work-session',
    )

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        path = request.path or ''
        if any(path.startswith(p) for p in self.RETIRED_PREFIXES):
            return JsonResponse(
                {'success': False, 'error': {'code': 'retired', 'message': 'This module has been retired.'}},
                status=410,
            )
        return self.get_response(request)
