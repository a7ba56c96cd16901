# leadhook/routes/webhooks.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from leadhook.core.exceptions import ServiceUnavailableError
from leadhook.schemas.lead import ErrorResponse, LeadCreatedResponse
from leadhook.services.access import cors_headers, preflight_headers
from leadhook.services.lead_ingest import IncomingRequest, IngestionPipeline
from leadhook.services.rate_limiter import resolve_client_ip

router = APIRouter(prefix="/leads", tags=["webhooks"])


def get_pipeline(request: Request) -> IngestionPipeline:
    pipeline = getattr(request.app.state, "pipeline", None)
    if pipeline is None:
        raise ServiceUnavailableError(message="Ingestion pipeline is not initialised")
    return pipeline


@router.options("/webhook", include_in_schema=False)
async def webhook_preflight(request: Request) -> JSONResponse:
    """CORS preflight. Answered without credentials or gate checks."""
    return JSONResponse(
        content={},
        status_code=status.HTTP_200_OK,
        headers=preflight_headers(request.headers.get("origin")),
    )


@router.post(
    "/webhook",
    status_code=status.HTTP_201_CREATED,
    response_model=LeadCreatedResponse,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        429: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
    summary="Receive a signed lead submission",
)
async def receive_lead(
    request: Request,
    pipeline: IngestionPipeline = Depends(get_pipeline),
) -> JSONResponse:
    # Signature covers the raw bytes, so the body is read unparsed
    body = await request.body()
    origin = request.headers.get("origin")

    incoming = IncomingRequest(
        body=body,
        origin=origin,
        api_key=request.headers.get("x-api-key"),
        signature=request.headers.get("x-signature"),
        timestamp=request.headers.get("x-timestamp"),
        client_ip=resolve_client_ip(request.headers),
        user_agent=request.headers.get("user-agent"),
    )

    result = await pipeline.ingest(incoming)

    headers = cors_headers(origin, result.origin_allowed)
    headers.update(result.headers)

    return JSONResponse(
        content=result.body,
        status_code=result.status_code,
        headers=headers,
    )
