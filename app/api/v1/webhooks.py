import json
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request

from app.core.dependencies import Services, get_services
from app.core.errors import InterviewError
from app.core.security import SIGNATURE_HEADER, verify_signature
from app.schemas.provider import AssistantMessage, TurnResponse, WebhookAck
from app.services.question_generator import InterviewPhase

logger = structlog.get_logger()

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


async def verified_body(request: Request, services: Services = Depends(get_services)) -> bytes:
    body = await request.body()
    secret = services.settings.VAPI_WEBHOOK_SECRET
    if not secret:
        logger.warning("webhook_signature_not_checked", path=request.url.path)
        return body
    if not verify_signature(body, request.headers.get(SIGNATURE_HEADER, ""), secret):
        logger.warning("webhook_signature_invalid", path=request.url.path)
        raise HTTPException(status_code=401, detail="Invalid signature")
    return body


@router.post("/vapi/{session_ref}", response_model=WebhookAck)
async def vapi_webhook(
    session_ref: str,
    body: bytes = Depends(verified_body),
    services: Services = Depends(get_services),
):
    try:
        payload = json.loads(body or b"{}")
    except ValueError:
        logger.warning("webhook_invalid_json", session_ref=session_ref)
        return WebhookAck(accepted=True)

    return await services.webhooks.handle(session_ref, payload)


@router.post(
    "/vapi/{session_id}/turn",
    response_model=TurnResponse,
    dependencies=[Depends(verified_body)],
)
async def vapi_next_turn(
    session_id: UUID,
    services: Services = Depends(get_services),
):
    try:
        turn = await services.orchestrator.next_turn(session_id)
    except InterviewError as e:
        logger.warning("turn_failed", session_id=str(session_id), code=e.code, error=e.message)
        return TurnResponse(
            assistant=AssistantMessage(content=""),
            state=InterviewPhase.CONCLUDING.value,
            end_call=True,
            discarded=True,
        )

    return TurnResponse(
        assistant=AssistantMessage(content=turn.text),
        state=turn.phase.value,
        end_call=turn.end_call,
        discarded=turn.discarded,
    )
