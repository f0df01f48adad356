# certhub/services/expiry_sweeper.py
"""
Barrido periódico de intentos vencidos.

Es solo una optimización: la expiración perezosa del controlador ya garantiza
que ningún intento vencido se reporte en curso. El barrido cierra los intentos
abandonados para que los reportes muestren su calificación sin esperar a que
el alumno regrese.
"""
import asyncio
import logging
from typing import Callable, Optional

from sqlalchemy.orm import Session

from certhub.core.clock import Clock
from certhub.core.config import ExamEngineConfig
from certhub.services.exam_attempt_service import ExamAttemptService

logger = logging.getLogger(__name__)


class ExpirySweeper:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        interval_seconds: int = 60,
        batch_size: int = 200,
        clock: Optional[Clock] = None,
        config: Optional[ExamEngineConfig] = None,
    ):
        self.session_factory = session_factory
        self.interval_seconds = interval_seconds
        self.batch_size = batch_size
        self.clock = clock
        self.config = config
        self._task: Optional[asyncio.Task] = None

    def run_once(self) -> int:
        """Ejecuta un barrido completo en una sesión propia (bloqueante)."""
        db = self.session_factory()
        try:
            service = ExamAttemptService(db, clock=self.clock, config=self.config)
            return service.sweep_expired(limit=self.batch_size)
        finally:
            db.close()

    async def _loop(self) -> None:
        while True:
            try:
                await asyncio.to_thread(self.run_once)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.error("Error en el barrido de intentos vencidos", exc_info=True)
            await asyncio.sleep(self.interval_seconds)

    def start(self) -> None:
        if self._task is None:
            logger.info(f"Expiry sweeper started (every {self.interval_seconds}s)")
            self._task = asyncio.create_task(self._loop())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Expiry sweeper stopped")
