"""AI endpoints: chat, generation and content helpers."""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException

from orchestrator import FormAgentOrchestrator
from ..dependencies import get_orchestrator, require_ai
from ..models import (
    ChatRequest,
    GenerateFormRequest,
    BulkGenerateRequest,
    TitleRequest,
    DescriptionRequest,
    ModerationRequest,
    AnalysisRequest,
    OptimizeRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ai", tags=["ai"])


@router.get("/config")
def ai_config(orchestrator: FormAgentOrchestrator = Depends(get_orchestrator)):
    return {"success": True, "config": orchestrator.ai_client.get_provider_info()}


@router.post("/chat")
def chat(request: ChatRequest, orchestrator: FormAgentOrchestrator = Depends(get_orchestrator)):
    reply = orchestrator.chat(
        request.message,
        conversation_id=request.conversation_id,
        user_id=request.user_id,
        form_data=request.form_data,
        language=request.language
    )
    return reply.model_dump(mode="json")


@router.post("/generate-form")
def generate_form(request: GenerateFormRequest, orchestrator: FormAgentOrchestrator = Depends(get_orchestrator)):
    """Tiered generation; the template tier answers when the model cannot."""
    outcome = orchestrator.generate_form(
        request.description,
        request.requirements,
        conversation_id=request.conversation_id,
        user_id=request.user_id
    )

    saved_form = None
    if request.auto_save:
        draft = outcome["generated_form"].to_draft()
        draft.settings.update({
            "generation_prompt": request.description,
            "generation_requirements": request.requirements,
        })
        saved_form = orchestrator.save_form(draft, user_id=request.user_id)["form"]

    return {
        "success": True,
        "message": "Form generated successfully",
        "generated_form": outcome["generated_form"],
        "saved_form": saved_form,
        "validation_issues": outcome["validation"].issues,
        "warnings": outcome["compliance_warnings"],
        "metadata": {
            "generated_at": datetime.now().isoformat(),
            "generated_by": outcome["generated_by"],
            "provider": orchestrator.settings.ai_provider,
            "auto_saved": request.auto_save,
        },
    }


@router.post("/bulk-generate")
def bulk_generate(request: BulkGenerateRequest, orchestrator: FormAgentOrchestrator = Depends(require_ai)):
    try:
        outcome = orchestrator.bulk_generate(request.requests, user_id=request.user_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if request.auto_save:
        for result in outcome["results"]:
            try:
                result["saved_form"] = orchestrator.save_form(
                    result["generated_form"].to_draft(), user_id=request.user_id
                )["form"]
            except ValueError as e:
                result["saved_form"] = None
                outcome["errors"].append({"index": result["index"], "error": str(e)})

    return {
        "success": True,
        "results": outcome["results"],
        "errors": outcome["errors"],
        "metadata": {
            "total_requests": len(request.requests),
            "success_count": len(outcome["results"]),
            "error_count": len(outcome["errors"]),
            "generated_at": datetime.now().isoformat(),
        },
    }


@router.post("/generate-title")
def generate_title(request: TitleRequest, orchestrator: FormAgentOrchestrator = Depends(get_orchestrator)):
    return {
        "success": True,
        "title": orchestrator.generate_title(request.description, request.tone),
        "metadata": {"generated_at": datetime.now().isoformat(), "tone": request.tone},
    }


@router.post("/generate-description")
def generate_description(request: DescriptionRequest, orchestrator: FormAgentOrchestrator = Depends(get_orchestrator)):
    return {
        "success": True,
        "description": orchestrator.generate_description(request.title, request.purpose),
        "metadata": {"generated_at": datetime.now().isoformat()},
    }


@router.post("/moderate-content")
def moderate_content(request: ModerationRequest, orchestrator: FormAgentOrchestrator = Depends(get_orchestrator)):
    return {"success": True, "moderation": orchestrator.moderate_content(request.content)}


@router.post("/analyze-submissions/{form_id}")
def analyze_submissions(
    form_id: str,
    request: AnalysisRequest,
    orchestrator: FormAgentOrchestrator = Depends(get_orchestrator)
):
    analysis = orchestrator.analyze_submissions(form_id, request.analysis_type)
    return {
        "success": True,
        "analysis": analysis,
        "analysis_type": request.analysis_type,
        "submission_count": analysis.total_submissions,
    }


@router.post("/optimize-form/{form_id}")
def optimize_form(
    form_id: str,
    request: OptimizeRequest,
    orchestrator: FormAgentOrchestrator = Depends(require_ai)
):
    form = orchestrator.form_store.get_form(form_id)
    return {
        "success": True,
        "original_form": form,
        "optimization": orchestrator.optimize_form(form, request.goals),
    }
