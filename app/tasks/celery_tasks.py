"""
Ledger Reports - Celery Tasks

Background tasks for report builds and scheduled maintenance.
"""

import asyncio
import logging
from typing import Any, Dict

from celery import shared_task

from app.config import settings

logger = logging.getLogger(__name__)


def run_async(coro):
    """Helper to run async functions in Celery tasks."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


# ===========================================
# REPORT TASKS
# ===========================================

@shared_task(name='app.tasks.celery_tasks.build_general_ledger_task')
def build_general_ledger_task(ticket: str, payload: Dict[str, Any]) -> Dict[str, Any]:
    """Build one report ticket on a worker."""
    return run_async(_build_general_ledger(ticket, payload))


async def _build_general_ledger(ticket: str, payload: Dict[str, Any]) -> Dict[str, Any]:
    """Async implementation of a report build."""
    from app.database import create_session_factory
    from app.schemas.general_ledger import GeneralLedgerRequest
    from app.services.report_job_service import create_report_job_service

    # Engines are bound to the loop they were created on; each task gets its own
    engine, session_factory = create_session_factory(settings.database_url_async)
    service = create_report_job_service(session_factory, settings)
    try:
        request = GeneralLedgerRequest.model_validate(payload)
        await service.run(ticket, request)
        state = await service.store.get(ticket)
    finally:
        await service.store.close()
        await engine.dispose()

    if state is None:
        return {"ticket": ticket, "status": "expired"}
    return {"ticket": ticket, "status": state.status.value, "message": state.message}


# ===========================================
# MAINTENANCE TASKS
# ===========================================

@shared_task(name='app.tasks.celery_tasks.prune_report_artifacts_task')
def prune_report_artifacts_task() -> Dict[str, Any]:
    """Delete report files older than the retention window."""
    from app.services.report_storage import ReportStorage

    removed = ReportStorage.from_settings(settings).prune()
    logger.info(f"Report retention sweep removed {removed} files")
    return {"removed": removed}
