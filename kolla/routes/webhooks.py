"""
Webhook and callback receivers.

Two inbound channels report transcoding outcomes:

- /api/process/callback: the first-party worker, authenticated with a
  shared secret in the x-job-secret header.
- /api/transcoding/webhook: the configured provider's webhook, parsed and
  authenticated by the provider itself.

Neither requires a user token.
"""

import hmac
import json
import logging
from dataclasses import asdict

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import ValidationError

from kolla.models.webhook import ProcessCallback, CallbackAck
from kolla.auth import get_settings, get_transcoding
from kolla.utils.audit_log import log_rejected_callback

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Webhooks"])


def _secret_matches(expected: str, supplied: str) -> bool:
    # An unset secret rejects everything
    if not expected or not supplied:
        return False
    return hmac.compare_digest(expected.encode(), supplied.encode())


def _decode_body(raw_body: bytes):
    """JSON when it parses, otherwise the raw text."""
    text = raw_body.decode("utf-8", errors="replace")
    try:
        return json.loads(text)
    except ValueError:
        return text


@router.post("/process/callback")
async def process_callback(
    request: Request,
    settings=Depends(get_settings),
    transcoding=Depends(get_transcoding)
):
    """
    Receive the transcode worker's completion report.

    Unknown clips and out-of-order reports are logged and acknowledged so
    the worker does not retry them.
    """
    if not _secret_matches(settings.job_shared_secret, request.headers.get("x-job-secret", "")):
        log_rejected_callback("process_callback", request, reason="bad job secret")
        return JSONResponse(status_code=401, content={"error": "Unauthorized"})

    try:
        body = ProcessCallback.model_validate(await request.json())
    except (ValueError, ValidationError) as e:
        logger.warning(f"Malformed process callback: {e}")
        return JSONResponse(status_code=400, content={"error": "Invalid callback payload"})

    try:
        await transcoding.handle_callback(
            body.clip_id,
            failed=body.failed,
            reason=body.reason,
            hls_prefix_value=body.hls_prefix,
            duration_s=body.duration_s,
            width=body.width,
            height=body.height
        )
    except Exception as e:
        logger.error(f"Process callback error for clip {body.clip_id}: {e}")
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    return CallbackAck().model_dump()


@router.post("/transcoding/webhook")
async def transcoding_webhook(
    request: Request,
    transcoding=Depends(get_transcoding)
):
    """
    Receive a status webhook from the transcoding provider.

    Always answers OK for deliveries it chooses to drop, so providers
    do not retry them.
    """
    raw_body = await request.body()
    payload = _decode_body(raw_body)
    headers = {key.lower(): value for key, value in request.headers.items()}

    try:
        clip = await transcoding.handle_webhook(payload, headers, raw_body)
    except Exception as e:
        logger.error(f"Transcoding webhook error: {e}")
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    if clip is not None:
        logger.info(f"Webhook updated clip {clip['id']} to {clip['status']}")
    return PlainTextResponse("OK")


@router.get("/transcoding/webhook")
async def transcoding_webhook_ready():
    return PlainTextResponse("Webhook endpoint ready")


@router.get("/transcoding/test")
async def transcoding_test_info(transcoding=Depends(get_transcoding)):
    """Report which provider is configured and where it should send webhooks."""
    return {
        "provider": transcoding.provider.name,
        "webhookUrl": transcoding.settings.webhook_url,
    }


@router.post("/transcoding/test")
async def transcoding_test_parse(
    request: Request,
    transcoding=Depends(get_transcoding)
):
    """
    Parse a sample webhook with the configured provider.

    Echoes the parsed result without touching any clip.
    """
    raw_body = await request.body()
    payload = _decode_body(raw_body)
    headers = {key.lower(): value for key, value in request.headers.items()}

    parsed = transcoding.provider.parse_webhook(payload, headers, raw_body)
    if parsed is None:
        return {"provider": transcoding.provider.name, "parsed": None}

    result = asdict(parsed)
    result["status"] = parsed.status.value
    return {"provider": transcoding.provider.name, "parsed": result}
