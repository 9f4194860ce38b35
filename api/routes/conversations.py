"""Conversation history endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import PlainTextResponse

from orchestrator import FormAgentOrchestrator
from ..dependencies import get_orchestrator
from ..models import PreferencesRequest

router = APIRouter(prefix="/api/conversations", tags=["conversations"])


@router.get("/stats")
def system_stats(orchestrator: FormAgentOrchestrator = Depends(get_orchestrator)):
    return {"success": True, "stats": orchestrator.history.get_system_stats()}


@router.post("/maintenance/archive")
def archive(days: int = Query(30, ge=1), orchestrator: FormAgentOrchestrator = Depends(get_orchestrator)):
    archived = orchestrator.archive(days)
    return {"success": True, "archived": archived, "days": days}


@router.get("/user/{user_id}")
def user_conversations(
    user_id: str,
    limit: int = Query(10, ge=1, le=100),
    orchestrator: FormAgentOrchestrator = Depends(get_orchestrator)
):
    history = orchestrator.history.get_user_conversation_history(user_id, limit)
    return {"success": True, "conversations": history, "count": len(history)}


@router.get("/{conversation_id}/context")
def conversation_context(
    conversation_id: str,
    max_tokens: int = Query(None, ge=0),
    orchestrator: FormAgentOrchestrator = Depends(get_orchestrator)
):
    context = orchestrator.history.get_conversation_context(conversation_id, max_tokens)
    return {"success": True, "context": context}


@router.get("/{conversation_id}/greeting")
def greeting(
    conversation_id: str,
    user_id: str = "anonymous",
    orchestrator: FormAgentOrchestrator = Depends(get_orchestrator)
):
    return {"success": True, "greeting": orchestrator.greeting(conversation_id, user_id)}


@router.get("/{conversation_id}/quality")
def quality(conversation_id: str, orchestrator: FormAgentOrchestrator = Depends(get_orchestrator)):
    return {"success": True, "quality": orchestrator.history.analyze_conversation_quality(conversation_id)}


@router.put("/{conversation_id}/preferences")
def update_preferences(
    conversation_id: str,
    request: PreferencesRequest,
    orchestrator: FormAgentOrchestrator = Depends(get_orchestrator)
):
    preferences = orchestrator.history.update_user_preferences(conversation_id, request.preferences)
    return {"success": True, "preferences": preferences}


@router.get("/{conversation_id}/export")
def export(
    conversation_id: str,
    format: str = "json",
    orchestrator: FormAgentOrchestrator = Depends(get_orchestrator)
):
    try:
        data = orchestrator.history.export_conversation_data(conversation_id, format)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if format == "csv":
        return PlainTextResponse(
            data,
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="conversation_{conversation_id}.csv"'}
        )
    return data
