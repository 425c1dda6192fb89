import json

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError as PydanticValidationError
from starlette.datastructures import UploadFile
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.formparsers import MultiPartException

from realeyes.config import Settings
from realeyes.core.deps import get_reconciler, get_settings
from realeyes.core.rate_limit import limiter, request_rate_limit
from realeyes.errors import ValidationError
from realeyes.schemas.feedback import FeedbackIn, FeedbackOut
from realeyes.services.feedback import FeedbackOutcome, FeedbackReconciler
from realeyes.services.jwt import resolve_user_id
from realeyes.services.metrics import record_feedback

router = APIRouter(tags=["feedback"])


async def _read_body(request: Request) -> FeedbackIn:
    content_type = (request.headers.get("content-type") or "").lower()
    try:
        if content_type.startswith(("multipart/form-data", "application/x-www-form-urlencoded")):
            form = await request.form()
            data = {k: v for k, v in form.multi_items() if not isinstance(v, UploadFile)}
        else:
            data = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError, MultiPartException, StarletteHTTPException) as e:
        raise ValidationError("Malformed request body") from e

    if not isinstance(data, dict):
        raise ValidationError("Expected a JSON object")
    try:
        return FeedbackIn.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError("Malformed request body", details=str(e)) from e


# Method: submit_feedback()
@router.post("/submit-feedback", response_model=FeedbackOut, response_model_exclude_none=True)
@limiter.limit(request_rate_limit)
async def submit_feedback(
    request: Request,
    reconciler: FeedbackReconciler = Depends(get_reconciler),
    settings: Settings = Depends(get_settings),
):
    body = await _read_body(request)
    user_id = resolve_user_id(
        request.headers.get("authorization"),
        body.userId if isinstance(body.userId, (str, int)) else None,
        settings.JWT_SECRET,
    )
    result = await reconciler.submit(body.imageHash, user_id, body.feedbackType, body.comment)
    record_feedback(result.outcome.value)

    return FeedbackOut(
        message=result.message,
        imageHash=result.entry.image_hash,
        userId=result.entry.user_id,
        feedbackType=result.entry.vote_type.value,
        previousFeedback=result.previous.value if result.outcome == FeedbackOutcome.UPDATED else None,
    )
