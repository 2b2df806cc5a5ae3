"""
Ledger Reports - General Ledger Router

Ticket-based API for general ledger and trial balance reports:
- POST a request, receive a ticket
- poll the ticket's status
- download or view the rendered file once it is done
"""

import io
from typing import List

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import get_report_job_service
from app.schemas.general_ledger import (
    AccountOption,
    GeneralLedgerRequest,
    TicketResponse,
    TicketStatusResponse,
)
from app.services.report_assembler import GeneralLedgerAssembler
from app.services.report_job_service import ArtifactDownload, ReportJobService


router = APIRouter(prefix="/api/v1/reports/general-ledger", tags=["General Ledger"])


def _file_response(download: ArtifactDownload) -> StreamingResponse:
    disposition = "inline" if download.inline else "attachment"
    return StreamingResponse(
        io.BytesIO(download.content),
        media_type=download.content_type,
        headers={
            "Content-Disposition": f'{disposition}; filename="{download.filename}"'
        }
    )


@router.get(
    "/accounts",
    response_model=List[AccountOption],
    summary="List accounts for the range pickers",
)
async def list_accounts(
    tenant_id: int = Query(..., description="Company ID"),
    db: AsyncSession = Depends(get_db),
):
    """Active accounts of a company, naturally ordered by code."""
    accounts = await GeneralLedgerAssembler(db).list_accounts(tenant_id)
    return [
        AccountOption(
            acct_code=account.acct_code,
            acct_desc=account.acct_desc,
            label=f"{account.acct_code} - {account.acct_desc}",
        )
        for account in accounts
    ]


@router.post(
    "",
    response_model=TicketResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Start a report",
)
async def start_report(
    request: GeneralLedgerRequest,
    service: ReportJobService = Depends(get_report_job_service),
):
    """Queue a general ledger or trial balance build and return its ticket."""
    ticket = await service.start(request)
    return TicketResponse(ticket=ticket)


@router.get(
    "/{ticket}/status",
    response_model=TicketStatusResponse,
    summary="Poll a report ticket",
)
async def report_status(
    ticket: str,
    service: ReportJobService = Depends(get_report_job_service),
):
    state = await service.status(ticket)
    return TicketStatusResponse(
        ticket=state.ticket,
        status=state.status,
        progress=state.progress,
        message=state.message,
        download_name=state.artifact.download_name if state.artifact else None,
        updated_at=state.updated_at,
    )


@router.get("/{ticket}/download", summary="Download a finished report")
async def download_report(
    ticket: str,
    service: ReportJobService = Depends(get_report_job_service),
):
    return _file_response(await service.download(ticket))


@router.get("/{ticket}/view", summary="View a finished report")
async def view_report(
    ticket: str,
    service: ReportJobService = Depends(get_report_job_service),
):
    """PDFs open inline; spreadsheets are always sent as attachments."""
    return _file_response(await service.view(ticket))
