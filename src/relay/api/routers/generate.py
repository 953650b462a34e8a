from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from ...config import Settings
from ...domain.errors import GenerationError, UpstreamFailure
from ...domain.generation_models import ErrorResponse, GenerateRequest
from ...infrastructure.session_store import SessionStore
from ...observability.metrics import LIVE_SESSIONS
from ...services.model_gateway import ModelGateway
from ...services.prompts import build_contents, model_config_for, parse_artifact
from ...services.streaming import ResponseChannel, StreamRelay, relay_response_body
from ..dependencies import get_model_gateway, get_session_store, get_settings_dep


LOG = logging.getLogger("relay.api")

router = APIRouter(prefix="/generate", tags=["generate"])


@router.post(
    "/{artifact}",
    response_class=StreamingResponse,
    responses={
        200: {"content": {"text/plain": {}}, "description": "Generated document, streamed"},
        400: {"model": ErrorResponse},
        429: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def generate_artifact(
    artifact: str,
    req: GenerateRequest,
    store: SessionStore = Depends(get_session_store),
    gateway: ModelGateway = Depends(get_model_gateway),
    settings: Settings = Depends(get_settings_dep),
) -> StreamingResponse:
    LOG.info("generate_requested", extra={"artifact": artifact})
    artifact_type = parse_artifact(artifact)

    answers = req.user_answers.model_dump(by_alias=True)
    session_id, history = store.get_or_create(req.session_id, answers)
    LIVE_SESSIONS.set(store.count())
    if req.previous_context or req.options:
        # session history already carries the earlier artifacts
        LOG.debug("generate_extras_ignored", extra={"session_id": session_id})

    contents = build_contents(artifact_type, req.user_answers, history)
    LOG.info(
        "generate_prompt_built",
        extra={"artifact": artifact_type.value, "session_id": session_id, "prior_turns": len(history)},
    )

    try:
        upstream = await gateway.open(contents, model_config_for(artifact_type))
    except GenerationError:
        raise
    except Exception as exc:
        LOG.exception("generate_open_failed", extra={"artifact": artifact_type.value})
        raise UpstreamFailure(str(exc) or exc.__class__.__name__) from exc

    relay = StreamRelay(
        artifact=artifact_type,
        session_id=session_id,
        prompt=contents[-1].text,
        store=store,
        channel=ResponseChannel(settings.channel_buffer_size),
        progress_interval=settings.progress_log_seconds,
    )
    headers = {
        "X-Session-ID": session_id,
        "X-Content-Type-Options": "nosniff",
        "Cache-Control": "no-cache, no-transform",
        "X-Accel-Buffering": "no",
    }
    return StreamingResponse(
        relay_response_body(relay, upstream),
        media_type="text/plain; charset=utf-8",
        headers=headers,
    )
