from fastapi import APIRouter, Response
from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
import time

router = APIRouter()

# Métricas de Prometheus para el API
certhub_api_requests_total = Counter(
    'certhub_api_requests_total',
    'Total CertHub API requests',
    ['method', 'endpoint', 'status']
)

certhub_api_request_duration_seconds = Histogram(
    'certhub_api_request_duration_seconds',
    'CertHub API request duration in seconds',
    ['method', 'endpoint']
)

# Métricas del sistema
system_uptime_seconds = Gauge(
    'system_uptime_seconds',
    'System uptime in seconds'
)

start_time = time.time()


def observe_request(method: str, endpoint: str, status_code: int, duration_seconds: float) -> None:
    """Registra una petición HTTP en los contadores del API."""
    certhub_api_requests_total.labels(method=method, endpoint=endpoint, status=str(status_code)).inc()
    certhub_api_request_duration_seconds.labels(method=method, endpoint=endpoint).observe(duration_seconds)


@router.get("/metrics", include_in_schema=False)
def get_metrics():
    """
    Endpoint de métricas para Prometheus.
    No incluido en la documentación de la API.
    """
    # Actualizar uptime
    system_uptime_seconds.set(time.time() - start_time)

    # Generar métricas en formato Prometheus
    return Response(
        generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )
