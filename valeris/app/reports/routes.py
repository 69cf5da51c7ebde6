import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field

from valeris.app.api.auth import AuthUser, current_user, get_supabase
from valeris.app.common.errors import ValerisError
from valeris.app.reports.generator import ReportService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reports", tags=["reports"])


class ReportRequest(BaseModel):
    reportType: str
    startDate: str
    endDate: str
    parameters: Dict[str, Any] = Field(default_factory=dict)


@router.post("")
def generate_report(
    body: ReportRequest,
    user: AuthUser = Depends(current_user),
    client=Depends(get_supabase),
):
    try:
        return ReportService(client).generate(
            user.id, body.reportType, body.startDate, body.endDate, body.parameters
        )
    except (ValerisError, ValueError):
        raise
    except Exception as e:
        logger.error(f"Report generation failed for {user.id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to generate report")


@router.get("")
def list_reports(user: AuthUser = Depends(current_user), client=Depends(get_supabase)):
    return ReportService(client).list_reports(user.id)


@router.get("/{report_id}/download", response_class=PlainTextResponse)
def download_report(
    report_id: str,
    user: AuthUser = Depends(current_user),
    client=Depends(get_supabase),
):
    text = ReportService(client).download(user.id, report_id)
    return PlainTextResponse(
        text,
        headers={"Content-Disposition": f'attachment; filename="report-{report_id}.txt"'},
    )
