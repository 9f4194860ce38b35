"""Form storage and submission endpoints."""

from typing import Any, Dict

from fastapi import APIRouter, Depends, Query, Request, Body
from fastapi.responses import PlainTextResponse

from orchestrator import FormAgentOrchestrator
from schemas.forms import FormDraft, SubmissionInfo
from ..dependencies import get_orchestrator
from ..models import SaveFormRequest, SubmitRequest

router = APIRouter(prefix="/api/forms", tags=["forms"])


def _summary(form: FormDraft) -> Dict[str, Any]:
    return {
        "id": form.form_id,
        "title": form.title,
        "description": form.description,
        "fields_count": len(form.fields),
        "created_at": form.created_at,
        "url": f"/forms/{form.form_id}",
        "share_url": f"/forms/share/{form.form_id}",
    }


@router.post("/save")
def save_form(request: SaveFormRequest, orchestrator: FormAgentOrchestrator = Depends(get_orchestrator)):
    """Guardrail-checked save; blocking issues are rejected with 400."""
    draft = FormDraft(
        title=request.title,
        description=request.description,
        fields=request.fields,
        settings=request.settings,
        integrations=request.integrations,
    )
    outcome = orchestrator.save_form(
        draft, user_id=request.user_id, conversation_id=request.conversation_id
    )
    return {
        "success": True,
        "message": "Form saved successfully",
        "form": _summary(outcome["form"]),
        "warnings": outcome["warnings"],
        "validation_issues": outcome["validation_issues"],
        "disclaimers": outcome["disclaimers"],
    }


@router.get("/user/{user_id}")
def user_forms(
    user_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    orchestrator: FormAgentOrchestrator = Depends(get_orchestrator)
):
    forms, pagination = orchestrator.form_store.list_user_forms(user_id, page, limit, sort_order)
    return {
        "success": True,
        "forms": [
            {**_summary(f), "analytics": f.analytics, "updated_at": f.updated_at}
            for f in forms
        ],
        "pagination": pagination,
    }


@router.get("/{form_id}")
def get_form(form_id: str, orchestrator: FormAgentOrchestrator = Depends(get_orchestrator)):
    return {"success": True, "form": orchestrator.form_store.get_form(form_id, count_view=True)}


@router.put("/{form_id}")
def update_form(
    form_id: str,
    updates: Dict[str, Any] = Body(...),
    orchestrator: FormAgentOrchestrator = Depends(get_orchestrator)
):
    form = orchestrator.update_form(form_id, updates)
    return {"success": True, "message": "Form updated successfully", "form": _summary(form)}


@router.delete("/{form_id}")
def delete_form(form_id: str, orchestrator: FormAgentOrchestrator = Depends(get_orchestrator)):
    removed = orchestrator.form_store.delete_form(form_id)
    return {"success": True, "message": "Form deleted successfully", "submissions_removed": removed}


@router.post("/{form_id}/submit")
def submit_form(
    form_id: str,
    request: SubmitRequest,
    http_request: Request,
    orchestrator: FormAgentOrchestrator = Depends(get_orchestrator)
):
    info = SubmissionInfo(
        ip_address=http_request.client.host if http_request.client else None,
        user_agent=http_request.headers.get("user-agent"),
        referrer=http_request.headers.get("referer"),
    )
    submission = orchestrator.submit_form(form_id, request.data, info)
    return {
        "success": True,
        "message": "Form submitted successfully",
        "submission_id": submission.submission_id,
    }


@router.get("/{form_id}/submissions")
def list_submissions(
    form_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
    orchestrator: FormAgentOrchestrator = Depends(get_orchestrator)
):
    orchestrator.form_store.get_form(form_id)
    submissions, pagination = orchestrator.form_store.list_submissions(form_id, page, limit)
    return {"success": True, "submissions": submissions, "pagination": pagination}


@router.get("/{form_id}/export")
def export_form(
    form_id: str,
    format: str = Query("json", pattern="^(json|csv)$"),
    orchestrator: FormAgentOrchestrator = Depends(get_orchestrator)
):
    data = orchestrator.form_store.export_form(form_id, format)
    if format == "csv":
        return PlainTextResponse(
            data,
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="form_{form_id}_submissions.csv"'}
        )
    return data
