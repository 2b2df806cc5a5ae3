"""
Ledger Reports - FastAPI Dependencies

Shared dependencies for database sessions and the report job service.
"""

from fastapi import Request

from app.database import get_async_session
from app.services.report_job_service import ReportJobService

__all__ = ["get_async_session", "get_report_job_service"]


def get_report_job_service(request: Request) -> ReportJobService:
    """The ReportJobService created in the application lifespan."""
    return request.app.state.report_job_service
