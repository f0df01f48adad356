# certhub/main.py
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from certhub.api.v1.endpoints import health, metrics, my_exams, exams
from certhub.core.config import ExamEngineConfig, settings
from certhub.core.logging_config import setup_logging
from certhub.db.session import SessionLocal
from certhub.services.expiry_sweeper import ExpirySweeper
from middleware.request_logging import RequestTrackingMiddleware
import logging

# Configurar logging al inicio de la aplicacion
setup_logging()
logger = logging.getLogger('certhub')


@asynccontextmanager
async def lifespan(app: FastAPI):
    sweeper = None
    if settings.EXPIRY_SWEEP_ENABLED:
        sweeper = ExpirySweeper(
            SessionLocal,
            interval_seconds=settings.EXPIRY_SWEEP_INTERVAL_SECONDS,
            batch_size=settings.EXPIRY_SWEEP_BATCH_SIZE,
            config=ExamEngineConfig.from_settings(settings),
        )
        sweeper.start()

    yield

    if sweeper is not None:
        await sweeper.stop()


app = FastAPI(
    title='CertHub Exams API',
    description='''
    ## Motor de exámenes de certificación

    **Servicios Disponibles:**
    - **Health Check**: Monitoreo de estado de la base de datos
    - **My Exams**: Exámenes cronometrados del alumno (inicio, respuestas, envío)
    - **Exam Reports**: Reportes de intentos para administradores
    - **Metrics**: Métricas Prometheus

    **Reglas del examen:**
    - El examen solo se habilita con todas las capacitaciones asignadas completadas
    - La fecha límite la impone el servidor; al vencer, el intento se envía solo
    - Cada intento se califica exactamente una vez
    ''',
    version='1.0.0',
    openapi_url='/openapi.json',
    docs_url='/docs',
    redoc_url='/redoc',
    lifespan=lifespan
)

logger.info('CertHub Exams API starting up')

# Configurar CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

# Request tracking: X-Request-ID, log por petición y métricas HTTP
app.add_middleware(RequestTrackingMiddleware)

# Incluir rutas
app.include_router(health.router, prefix='/api/v1', tags=['Health Check'])
app.include_router(my_exams.router, prefix='/api/v1/my-exams', tags=['My Exams'])
app.include_router(exams.router, prefix='/api/v1/exams', tags=['Exam Reports'])
app.include_router(metrics.router, tags=['Metrics'])


@app.get('/')
async def root():
    return {
        'message': 'CertHub Exams API',
        'status': 'operativo',
        'version': '1.0.0',
        'docs': '/docs',
        'available_services': ['health', 'my-exams', 'exams', 'metrics'],
    }


if __name__ == '__main__':
    import uvicorn
    uvicorn.run(app, host='0.0.0.0', port=8000)
