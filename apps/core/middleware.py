"""
Core middleware for request processing.
"""
import uuid
import logging
from django.utils.deprecation import MiddlewareMixin

logger = logging.getLogger(__name__)


class RequestIDMiddleware(MiddlewareMixin):
    """
    Attach a request_id to each request for tracing.

    The inbound ``X-Request-ID`` header is reused when present, otherwise a
    new UUID is generated. The id is echoed back on the response.
    """

    def process_request(self, request):
        request.request_id = request.META.get('HTTP_X_REQUEST_ID') or str(uuid.uuid4())

    def process_response(self, request, response):
        if hasattr(request, 'request_id'):
            response['X-Request-ID'] = request.request_id
        return response
