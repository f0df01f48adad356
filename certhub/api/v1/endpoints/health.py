# certhub/api/v1/endpoints/health.py
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from sqlalchemy import text

from certhub.core.clock import Clock
from certhub.core.deps import get_clock
from certhub.db.session import get_db

router = APIRouter()


@router.get("/health", summary="Verifica el estado del servicio")
def check_health(db: Session = Depends(get_db), clock: Clock = Depends(get_clock)):
    """
    Endpoint de Health Check.
    Verifica que la API está activa y la conexión a base de datos.
    """
    health_status = {
        "status": "ok",
        "timestamp": clock.now().isoformat(),
        "services": {
            "database": {"status": "unknown"},
        }
    }

    # Verificar conexión a base de datos
    try:
        db.execute(text("SELECT 1"))
        health_status["services"]["database"] = {"status": "healthy"}
    except Exception as e:
        health_status["services"]["database"] = {"status": "unhealthy", "error": str(e)}
        health_status["status"] = "unhealthy"
        raise HTTPException(status_code=503, detail=health_status)

    return health_status
