import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile, status

from envwatch.dependencies.auth import require_admin_if_enabled
from envwatch.exceptions import ReportError
from envwatch.schemas.report import ReportCreated, ReportList, ReportOut, StatusUpdate
from envwatch.workflow import ReportWorkflow

logger = logging.getLogger(__name__)

router = APIRouter()


def get_workflow(request: Request) -> ReportWorkflow:
    return request.app.state.workflow


@router.post("/reports", response_model=ReportCreated, status_code=status.HTTP_201_CREATED)
async def create_report(
    latitude: float = Form(...),
    longitude: float = Form(...),
    description: str = Form(...),
    address: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    workflow: ReportWorkflow = Depends(get_workflow),
):
    try:
        image_data = await image.read() if image else None
        logger.info("Report received at (%s, %s), image %s bytes",
                    latitude, longitude, len(image_data) if image_data else 0)
        created = await workflow.submit_report(image_data, latitude, longitude, description, address)
        report = created.report
        return ReportCreated(
            ticket_id=report.ticket_id,
            message="Laporan diterima",
            data=report,
            image_url=report.image_url,
            ai_result=report.ai_analysis,
            category=report.category,
        )
    except ReportError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception:
        logger.exception("Error creating report")
        raise HTTPException(status_code=500, detail="Error creating report")


@router.get("/reports", response_model=ReportList)
async def get_reports(workflow: ReportWorkflow = Depends(get_workflow), admin=Depends(require_admin_if_enabled)):
    try:
        reports = await workflow.list_reports()
        logger.info("Returning %d reports", len(reports))
        return ReportList(data=reports)
    except Exception:
        logger.exception("Error listing reports")
        raise HTTPException(status_code=500, detail="Error listing reports")


@router.get("/reports/{ticket_id}", response_model=ReportOut)
async def get_report(ticket_id: str, workflow: ReportWorkflow = Depends(get_workflow)):
    try:
        return ReportOut(data=await workflow.get_by_ticket(ticket_id))
    except ReportError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception:
        logger.exception("Error fetching report %s", ticket_id)
        raise HTTPException(status_code=500, detail="Error fetching report")


@router.patch("/reports/{report_id}/status", response_model=ReportOut)
async def update_report_status(
    report_id: str,
    update: StatusUpdate,
    workflow: ReportWorkflow = Depends(get_workflow),
    admin=Depends(require_admin_if_enabled),
):
    try:
        updated = await workflow.update_report(report_id, status=update.status, category=update.category)
        return ReportOut(data=updated)
    except ReportError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception:
        logger.exception("Error updating report %s", report_id)
        raise HTTPException(status_code=500, detail="Error updating report")
