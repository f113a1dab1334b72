import logging

from fastapi import APIRouter, Depends, status
from fastapi.concurrency import run_in_threadpool

from app.schemas.push import PushSendRequest
from app.services.audience_resolver import AudienceResolver, selector_from_request
from app.services.auth_middleware import require_api_secret
from app.services.dispatch_engine import DispatchEngine
from app.services.push_service import get_audience_resolver, get_dispatch_engine
from app.utils.response import create_response, handle_exception

router = APIRouter(prefix="/push", tags=["Push"], dependencies=[Depends(require_api_secret)])
logger = logging.getLogger(__name__)


@router.post("/send")
async def send_push(
    body: PushSendRequest,
    resolver: AudienceResolver = Depends(get_audience_resolver),
    engine: DispatchEngine = Depends(get_dispatch_engine),
):
    try:
        payload = body.to_payload()
        selector = selector_from_request(body)
        logger.info("Push requested: title=%s selector=%s", payload.title, type(selector).__name__)

        tokens = await run_in_threadpool(resolver.resolve, selector)
        result = await engine.dispatch(tokens, payload)

        logger.info(
            "Push finished: sent=%s failed=%s total=%s skipped=%s",
            result.sent,
            result.failed,
            result.total_tokens,
            result.skipped,
        )
        return create_response(
            message="No device tokens for the selected audience" if result.skipped else "Notification sent",
            data=result.model_dump(by_alias=True, exclude_none=True),
            status_code=status.HTTP_200_OK,
        )
    except Exception as exc:
        return handle_exception(exc)
