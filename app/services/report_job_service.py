"""
Ledger Reports - Report Job Service

Asynchronous report tickets:
- start() validates a request, stores the initial ticket state and hands the
  run to a dispatcher, returning the ticket immediately
- run() is the background body: assemble, render, store, then exactly one
  terminal status write
- status() / download() / view() only read the ticket state

Dispatchers:
- BackgroundReportDispatcher: one asyncio task per ticket in this process
- CeleryReportDispatcher: one Celery task per ticket on a worker
"""

import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Optional, Set, Union

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import Settings, get_settings
from app.schemas.general_ledger import GeneralLedgerRequest, ReportFormat, TicketStatus
from app.services.opening_balance import OpeningBalanceResolver
from app.services.report_assembler import GeneralLedgerAssembler
from app.services.report_renderer import DocumentRenderer, LedgerDocumentRenderer
from app.services.report_storage import ReportStorage
from app.services.ticket_store import (
    ReportArtifact,
    TicketState,
    TicketStore,
    create_ticket_store,
)
from app.utils.error_handling import (
    AppException,
    InvalidAccountRangeException,
    InvalidDateRangeException,
    InvalidTenantException,
    ReportFailedException,
    ReportNotReadyException,
    ReportValidationException,
    TicketNotFoundException,
    TicketStateException,
    TicketStoreException,
)

logger = logging.getLogger(__name__)

PROGRESS_RENDERING = 86
ARTIFACT_BASE_NAME = "general-ledger"
BUILD_TASK_NAME = "app.tasks.celery_tasks.build_general_ledger_task"

ReportRunner = Callable[[str, GeneralLedgerRequest], Awaitable[None]]


@dataclass(frozen=True)
class ArtifactDownload:
    content: bytes
    filename: str
    content_type: str
    inline: bool


# ===========================================
# DISPATCHERS
# ===========================================

class ReportDispatcher(ABC):
    """Schedules ReportJobService.run for a ticket."""

    @abstractmethod
    async def dispatch(self, ticket: str, request: GeneralLedgerRequest, runner: ReportRunner) -> None:
        ...

    async def shutdown(self) -> None:
        return None


class BackgroundReportDispatcher(ReportDispatcher):
    """Runs each ticket as an asyncio task on the current event loop."""

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()

    async def dispatch(self, ticket: str, request: GeneralLedgerRequest, runner: ReportRunner) -> None:
        task = asyncio.create_task(runner(ticket, request), name=f"report-{ticket}")
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Report task {task.get_name()} crashed: {exc!r}", exc_info=exc)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every scheduled ticket to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        await self.drain()


class CeleryReportDispatcher(ReportDispatcher):
    """Sends each ticket to a Celery worker."""

    async def dispatch(self, ticket: str, request: GeneralLedgerRequest, runner: ReportRunner) -> None:
        from app.celery_app import celery_app

        await asyncio.to_thread(
            celery_app.send_task,
            BUILD_TASK_NAME,
            args=[ticket, request.model_dump(mode="json")],
        )


# ===========================================
# SERVICE
# ===========================================

def validate_report_request(request: Union[GeneralLedgerRequest, Dict[str, Any]]) -> GeneralLedgerRequest:
    """Coerce and check a report request; raises ReportValidationException subclasses."""
    if not isinstance(request, GeneralLedgerRequest):
        try:
            request = GeneralLedgerRequest.model_validate(request)
        except ValidationError as exc:
            errors = [
                {"field": ".".join(str(loc) for loc in error["loc"]), "message": error["msg"]}
                for error in exc.errors()
            ]
            raise ReportValidationException(
                "Invalid report request",
                details={"errors": errors},
            ) from exc

    if request.tenant_id is None or request.tenant_id <= 0:
        raise InvalidTenantException(request.tenant_id)
    if request.date_range.start > request.date_range.end:
        raise InvalidDateRangeException(
            request.date_range.start.isoformat(),
            request.date_range.end.isoformat(),
        )
    if not request.account_range.start or not request.account_range.end:
        raise InvalidAccountRangeException()
    return request


class ReportJobService:
    """Starts, tracks and serves general ledger report tickets."""

    def __init__(
        self,
        store: TicketStore,
        storage: ReportStorage,
        session_factory: async_sessionmaker[AsyncSession],
        dispatcher: Optional[ReportDispatcher] = None,
        renderer: Optional[DocumentRenderer] = None,
        resolver: Optional[OpeningBalanceResolver] = None,
    ):
        self.store = store
        self.storage = storage
        self.session_factory = session_factory
        self.dispatcher = dispatcher
        self.renderer = renderer or LedgerDocumentRenderer()
        self.resolver = resolver or OpeningBalanceResolver()

    # =========================================================================
    # CALLER OPERATIONS
    # =========================================================================

    async def start(self, request: Union[GeneralLedgerRequest, Dict[str, Any]]) -> str:
        """Validate, create the ticket and schedule the run. Returns the ticket id."""
        request = validate_report_request(request)
        if self.dispatcher is None:
            raise RuntimeError("ReportJobService has no dispatcher configured")
        ticket = str(uuid.uuid4())

        state = TicketState(
            ticket=ticket,
            status=TicketStatus.RUNNING,
            progress=0,
            message="queued",
            params=request.model_dump(mode="json"),
        )
        await self.store.put(state, create=True)
        logger.info(
            f"Report ticket {ticket} queued: company {request.tenant_id}, "
            f"accounts {request.account_range.start}-{request.account_range.end}, "
            f"{request.date_range.start} to {request.date_range.end}"
        )

        try:
            await self.dispatcher.dispatch(ticket, request, self.run)
        except Exception:
            # Nothing will ever finish this ticket
            logger.exception(f"Report ticket {ticket} could not be dispatched")
            await self.store.delete(ticket)
            raise
        return ticket

    async def status(self, ticket: str) -> TicketState:
        state = await self.store.get(ticket)
        if state is None:
            raise TicketNotFoundException(ticket)
        return state

    async def _finished_artifact(self, ticket: str) -> ReportArtifact:
        state = await self.status(ticket)
        if state.status is TicketStatus.RUNNING:
            raise ReportNotReadyException(ticket, state.progress)
        if state.status is TicketStatus.FAILED:
            raise ReportFailedException(ticket, state.message)
        if state.artifact is None:
            raise ReportNotReadyException(ticket, state.progress)
        return state.artifact

    async def download(self, ticket: str) -> ArtifactDownload:
        """The finished file as an attachment."""
        artifact = await self._finished_artifact(ticket)
        return ArtifactDownload(
            content=self.storage.read(artifact.relative_path),
            filename=artifact.download_name,
            content_type=artifact.content_type,
            inline=False,
        )

    async def view(self, ticket: str) -> ArtifactDownload:
        """The finished file for in-browser display; only PDFs are shown inline."""
        artifact = await self._finished_artifact(ticket)
        return ArtifactDownload(
            content=self.storage.read(artifact.relative_path),
            filename=artifact.download_name,
            content_type=artifact.content_type,
            inline=artifact.format == ReportFormat.PDF.value,
        )

    # =========================================================================
    # JOB OPERATIONS
    # =========================================================================

    async def set_status(
        self,
        ticket: str,
        status: TicketStatus,
        progress: int,
        message: str,
        artifact: Optional[ReportArtifact] = None,
    ) -> Optional[TicketState]:
        """
        Overwrite the ticket state.

        Returns None without writing when the state already expired.
        Raises TicketStateException once the ticket is done or failed.
        """
        current = await self.store.get(ticket)
        if current is None:
            logger.warning(f"Ticket {ticket} expired before status update to {status.value}")
            return None
        if current.status.is_terminal:
            raise TicketStateException(ticket, current.status.value)

        updated = current.model_copy(update={
            "status": status,
            "progress": max(0, min(int(progress), 100)),
            "message": message,
            "artifact": artifact if artifact is not None else current.artifact,
            "updated_at": datetime.utcnow(),
        })
        if not await self.store.put(updated):
            logger.warning(f"Ticket {ticket} expired during status update")
            return None
        return updated

    async def _progress(self, ticket: str, progress: int, message: str) -> None:
        await self.set_status(ticket, TicketStatus.RUNNING, progress, message)

    async def _build(self, ticket: str, request: GeneralLedgerRequest) -> ReportArtifact:
        async def progress(value: int, message: str) -> None:
            await self._progress(ticket, value, message)

        async with self.session_factory() as session:
            assembler = GeneralLedgerAssembler(session, resolver=self.resolver)
            report = await assembler.assemble(request, progress=progress)

        await progress(PROGRESS_RENDERING, "Rendering file...")
        document = await asyncio.to_thread(
            self.renderer.render,
            report,
            request.format,
            request.orientation,
            request.report_type,
        )

        relative_path = self.storage.target_for(ARTIFACT_BASE_NAME, document.format.value)
        self.storage.save(relative_path, document.content)
        return ReportArtifact(
            disk=self.storage.disk,
            relative_path=relative_path,
            download_name=document.filename,
            format=document.format.value,
            content_type=document.content_type,
        )

    async def _finish(
        self,
        ticket: str,
        status: TicketStatus,
        message: str,
        artifact: Optional[ReportArtifact] = None,
    ) -> bool:
        try:
            written = await self.set_status(ticket, status, 100, message, artifact=artifact)
        except TicketStoreException:
            logger.exception(f"Report job {ticket} could not record {status.value}")
            return False
        return written is not None

    async def run(self, ticket: str, request: GeneralLedgerRequest) -> None:
        """Background body of a ticket; always ends with one terminal write."""
        try:
            artifact = await self._build(ticket, request)
        except TicketStoreException:
            logger.exception(f"Report job {ticket} lost its ticket store")
            return
        except Exception as exc:
            message = exc.message if isinstance(exc, AppException) else (str(exc) or type(exc).__name__)
            logger.exception(f"Report job failed (ticket={ticket}): {message}")
            await self._finish(ticket, TicketStatus.FAILED, message)
            return

        if await self._finish(ticket, TicketStatus.DONE, "Done", artifact=artifact):
            logger.info(f"Report job {ticket} finished: {artifact.relative_path}")

        try:
            self.prune_artifacts()
        except OSError as exc:
            logger.warning(f"Report retention sweep failed after ticket {ticket}: {exc}")

    def prune_artifacts(self) -> int:
        """Delete report files past the retention window."""
        return self.storage.prune()

    async def close(self) -> None:
        if self.dispatcher is not None:
            await self.dispatcher.shutdown()
        await self.store.close()


def create_report_job_service(
    session_factory: async_sessionmaker[AsyncSession],
    config: Optional[Settings] = None,
    store: Optional[TicketStore] = None,
) -> ReportJobService:
    """Wire the service from configuration."""
    config = config or get_settings()
    mode = config.report_dispatch_mode.lower()
    if mode == "celery":
        dispatcher: ReportDispatcher = CeleryReportDispatcher()
    elif mode == "background":
        dispatcher = BackgroundReportDispatcher()
    else:
        raise ValueError(f"Unknown report dispatch mode: {config.report_dispatch_mode}")

    return ReportJobService(
        store=store or create_ticket_store(config),
        storage=ReportStorage.from_settings(config),
        session_factory=session_factory,
        dispatcher=dispatcher,
        resolver=OpeningBalanceResolver(
            baseline_date=config.baseline_date,
            retained_earnings_code=config.retained_earnings_account_code,
            pnl_threshold=config.pnl_account_threshold,
        ),
    )
