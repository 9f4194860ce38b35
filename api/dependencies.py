"""FastAPI dependencies."""

from fastapi import HTTPException, Request

from orchestrator import FormAgentOrchestrator, AIServiceUnavailable


def get_orchestrator(request: Request) -> FormAgentOrchestrator:
    """Dependency to get the orchestrator instance"""
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(status_code=503, detail="Service not initialized")
    return orchestrator


def require_ai(request: Request) -> FormAgentOrchestrator:
    """Like get_orchestrator, but 503 when the AI client is disabled."""
    orchestrator = get_orchestrator(request)
    try:
        orchestrator.require_ai()
    except AIServiceUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))
    return orchestrator
