# MIDDLEWARE DE LOGGING DE PETICIONES
# Asigna un request_id a cada petición, registra método, ruta, estado y duración

import time
import json
import uuid
import logging
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from certhub.api.v1.endpoints.metrics import observe_request
from certhub.core.logging_config import log_api_request

logger = logging.getLogger('certhub.requests')


def generate_request_id() -> str:
    return f'req_{uuid.uuid4().hex[:12]}'


class RequestTrackingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get('X-Request-ID') or generate_request_id()
        request.state.request_id = request_id
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception:
            logger.error(
                f'Unhandled error on {request.method} {request.url.path}',
                exc_info=True,
                extra={'request_id': request_id},
            )
            response = Response(
                content=json.dumps({'error': 'Internal server error', 'request_id': request_id}),
                status_code=500,
                media_type='application/json'
            )

        elapsed = time.perf_counter() - started
        route = request.scope.get('route')
        endpoint = getattr(route, 'path', request.url.path)

        response.headers['X-Request-ID'] = request_id
        observe_request(request.method, endpoint, response.status_code, elapsed)
        log_api_request(
            logger,
            method=request.method,
            endpoint=endpoint,
            status_code=response.status_code,
            response_time_ms=round(elapsed * 1000, 2),
            request_id=request_id,
        )
        return response
