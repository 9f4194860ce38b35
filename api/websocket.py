"""WebSocket chat and form-editor events.

Clients send ``{"event": <name>, "data": {...}}`` and receive replies in the
same envelope. Handlers run in the threadpool; each connection is served
in order.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from starlette.concurrency import run_in_threadpool

from orchestrator import FormAgentOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter()

Envelope = Dict[str, Any]


def _now() -> str:
    return datetime.now().isoformat()


def _error(event: str, error: str, exc: Exception = None) -> Envelope:
    data = {"success": False, "error": error, "timestamp": _now()}
    if exc is not None:
        data["message"] = str(exc)
    return {"event": event, "data": data}


def handle_chat(orchestrator: FormAgentOrchestrator, data: Dict[str, Any]) -> List[Envelope]:
    message = data.get("message")
    if not message:
        return [_error("chat-error", "Message is required")]

    try:
        reply = orchestrator.chat(
            message,
            conversation_id=data.get("conversation_id"),
            user_id=data.get("user_id") or "anonymous",
            form_data=data.get("form_data"),
            language=data.get("language") or "Vietnamese"
        )
    except Exception as e:
        logger.exception("Failed to process chat message")
        return [_error("chat-error", "Failed to process chat message", e)]

    envelopes = []
    if reply.form_actions:
        envelopes.append({
            "event": "form-actions",
            "data": {
                "actions": [a.model_dump(exclude_none=True) for a in reply.form_actions],
                "timestamp": _now(),
            },
        })

    readiness = (reply.form_context or {}).get("readiness")
    envelopes.append({
        "event": "chat-response",
        "data": {
            **reply.model_dump(mode="json"),
            "metadata": {
                "has_form_actions": bool(reply.form_actions),
                "form_readiness": readiness,
            },
            "timestamp": _now(),
        },
    })
    return envelopes


def handle_form_status(orchestrator: FormAgentOrchestrator, data: Dict[str, Any]) -> List[Envelope]:
    form_data = data.get("form_data")
    if not form_data:
        return [_error("form-status-error", "No form data provided")]
    try:
        status = orchestrator.form_status(form_data, data.get("query") or "status")
    except Exception as e:
        logger.exception("Failed to analyze form status")
        return [_error("form-status-error", "Failed to analyze form status", e)]
    return [{"event": "form-status-response", "data": {"success": True, **status, "timestamp": _now()}}]


def handle_form_manipulation(orchestrator: FormAgentOrchestrator, data: Dict[str, Any]) -> List[Envelope]:
    form_data = data.get("form_data")
    if not form_data:
        return [_error("form-manipulation-error", "No form data provided")]
    try:
        result = orchestrator.manipulate_form(data.get("action") or "", data.get("params") or {}, form_data)
    except Exception as e:
        logger.error(f"Failed to manipulate form: {e}")
        return [_error("form-manipulation-error", "Failed to manipulate form", e)]
    return [{"event": "form-manipulation-response", "data": {"success": True, **result, "timestamp": _now()}}]


def handle_form_save(orchestrator: FormAgentOrchestrator, data: Dict[str, Any]) -> List[Envelope]:
    form_data = data.get("form_data")
    if not form_data:
        return [_error("form-save-error", "No form data provided")]
    try:
        result = orchestrator.prepare_form_save(form_data, bool(data.get("confirm_save")))
    except Exception as e:
        logger.exception("Failed to process form save")
        return [_error("form-save-error", "Failed to process form save", e)]
    event = result.pop("event")
    return [{"event": event, "data": result}]


def handle_greeting(orchestrator: FormAgentOrchestrator, data: Dict[str, Any]) -> List[Envelope]:
    conversation_id = data.get("conversation_id") or "default"
    greeting = orchestrator.greeting(conversation_id, data.get("user_id") or "anonymous")
    return [{"event": "greeting", "data": {**greeting, "conversation_id": conversation_id}}]


HANDLERS = {
    "chat-with-form-context": handle_chat,
    "form-status-query": handle_form_status,
    "form-manipulation": handle_form_manipulation,
    "form-save": handle_form_save,
    "get-greeting": handle_greeting,
}


@router.websocket("/ws/chat")
async def chat_socket(websocket: WebSocket):
    await websocket.accept()
    orchestrator: FormAgentOrchestrator = websocket.app.state.orchestrator
    logger.info("WebSocket client connected")

    try:
        while True:
            try:
                payload = await websocket.receive_json()
            except ValueError:
                await websocket.send_json(_error("error", "Invalid JSON payload"))
                continue
            event = payload.get("event") if isinstance(payload, dict) else None
            handler = HANDLERS.get(event)
            if handler is None:
                await websocket.send_json(_error("error", f"Unknown event: {event}"))
                continue

            data = payload.get("data") or {}
            if not isinstance(data, dict):
                await websocket.send_json(_error("error", "Event data must be an object"))
                continue
            for envelope in await run_in_threadpool(handler, orchestrator, data):
                await websocket.send_json(envelope)
    except WebSocketDisconnect:
        logger.info("WebSocket client disconnected")
