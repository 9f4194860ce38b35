"""Health endpoints."""

import platform
from datetime import datetime

from fastapi import APIRouter, Depends

from orchestrator import FormAgentOrchestrator
from utils.config_validator import validate_ai_config, run_ai_config_test
from ..dependencies import get_orchestrator

SERVICE_NAME = "FormAgent AI"
VERSION = "1.0.0"

router = APIRouter(tags=["health"])


@router.get("/health")
def health():
    return {
        "status": "ok",
        "timestamp": datetime.now().isoformat(),
        "service": SERVICE_NAME,
        "version": VERSION,
    }


@router.get("/health/detailed")
def health_detailed(test_ai: bool = False, orchestrator: FormAgentOrchestrator = Depends(get_orchestrator)):
    """Configuration validation, AI health and storage stats."""
    settings = orchestrator.settings
    validation = validate_ai_config(settings)

    return {
        "status": "ok",
        "timestamp": datetime.now().isoformat(),
        "service": SERVICE_NAME,
        "version": VERSION,
        "environment": {
            "python_version": platform.python_version(),
            "platform": platform.platform(),
        },
        "ai_configuration": {
            "provider": settings.ai_provider,
            "has_api_key": bool(settings.get_llm_api_key()),
            "has_endpoint": bool(settings.azure_endpoint),
            "has_deployment": bool(settings.azure_deployment),
            "validation": {
                "is_valid": validation.is_valid,
                "errors": validation.errors,
                "warnings": validation.warnings,
            },
            "health": orchestrator.ai_client.health_check().model_dump() if test_ai else None,
        },
        "storage": {
            "conversations": orchestrator.repository.stats(),
            "forms": orchestrator.form_store.stats(),
        },
    }


@router.post("/health/test-ai")
def test_ai(orchestrator: FormAgentOrchestrator = Depends(get_orchestrator)):
    return {
        "timestamp": datetime.now().isoformat(),
        "ai_test": run_ai_config_test(orchestrator.settings),
    }
