from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, status

from app.core.dependencies import Services, get_services
from app.core.errors import (
    AssistantConfigError,
    ConfigurationError,
    InterviewError,
    InvalidTransitionError,
    SessionNotFoundError,
    VoiceProviderError,
)
from app.core.rate_limit import START_SESSION_LIMIT, limiter
from app.schemas.interview import (
    AnalysisResult,
    SessionCreate,
    SessionResponse,
    StartSessionRequest,
    TransitionResponse,
)
from app.schemas.provider import ProviderCallConfig

logger = structlog.get_logger()

router = APIRouter(prefix="/sessions", tags=["sessions"])


def _http_error(e: InterviewError) -> HTTPException:
    if isinstance(e, SessionNotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(e, InvalidTransitionError):
        code = status.HTTP_409_CONFLICT
    elif isinstance(e, AssistantConfigError):
        code = status.HTTP_400_BAD_REQUEST
    elif isinstance(e, ConfigurationError):
        code = status.HTTP_422_UNPROCESSABLE_ENTITY
    elif isinstance(e, VoiceProviderError):
        code = status.HTTP_502_BAD_GATEWAY
    else:
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return HTTPException(
        status_code=code,
        detail={"code": e.code, "message": e.message, **e.details},
    )


@router.post("", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def create_session(data: SessionCreate, services: Services = Depends(get_services)):
    try:
        return await services.orchestrator.create_session(data)
    except InterviewError as e:
        raise _http_error(e) from e


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(session_id: UUID, services: Services = Depends(get_services)):
    session = await services.repo.get_session(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return session


@router.post("/{session_id}/start", response_model=ProviderCallConfig)
@limiter.limit(START_SESSION_LIMIT)
async def start_session(
    request: Request,
    session_id: UUID,
    data: StartSessionRequest,
    services: Services = Depends(get_services),
):
    try:
        return await services.orchestrator.start_session(
            session_id, data.candidate_name, data.position
        )
    except InterviewError as e:
        logger.warning("session_start_failed", session_id=str(session_id), code=e.code, error=e.message)
        raise _http_error(e) from e


@router.post("/{session_id}/cancel", response_model=TransitionResponse)
async def cancel_session(session_id: UUID, services: Services = Depends(get_services)):
    try:
        result = await services.orchestrator.cancel_session(session_id)
    except InterviewError as e:
        raise _http_error(e) from e
    return TransitionResponse(session_id=session_id, status=result.status, changed=result.applied)


@router.get("/{session_id}/results", response_model=AnalysisResult)
async def get_session_results(session_id: UUID, services: Services = Depends(get_services)):
    try:
        return await services.pipeline.get_session_results(session_id)
    except InterviewError as e:
        raise _http_error(e) from e
