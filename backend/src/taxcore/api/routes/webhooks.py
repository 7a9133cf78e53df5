"""
Webhook endpoints.

Receives invoice notifications from the mail automation (n8n) and turns
them into draft invoices. Authenticated with a shared secret in the
x-api-key header.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Header, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from taxcore.api.dependencies import get_ingestion_service, get_session
from taxcore.api.schemas import IncomingInvoiceResponse, WebhookErrorResponse
from taxcore.errors import TaxCoreError
from taxcore.services.ingestion import InvoiceIngestionService, parse_payload, payload_summary

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])


def _error_response(status_code: int, error: str, details: str | None = None) -> JSONResponse:
    body = WebhookErrorResponse(error=error, details=details)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


@router.post(
    "/incoming-invoice",
    response_model=IncomingInvoiceResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        200: {"model": IncomingInvoiceResponse, "description": "Idempotent replay of an earlier request"},
        400: {"model": WebhookErrorResponse, "description": "Invalid JSON or missing fields"},
        401: {"model": WebhookErrorResponse, "description": "Missing or wrong x-api-key"},
        500: {"model": WebhookErrorResponse, "description": "Configuration or dependency failure"},
    },
)
async def incoming_invoice(
    request: Request,
    service: Annotated[InvoiceIngestionService, Depends(get_ingestion_service)],
    session: Annotated[AsyncSession, Depends(get_session)],
    x_api_key: Annotated[str | None, Header()] = None,
    idempotency_key: Annotated[str | None, Header()] = None,
) -> JSONResponse:
    """
    Create a draft invoice from a webhook notification.

    **Body:** `{sender, subject, date, amount?}`. The amount is taken as
    VAT-inclusive at 21%; the invoice is due 14 days after its date.

    Send an `Idempotency-Key` header to make retries safe.
    """
    try:
        service.authenticate(x_api_key)
        payload = parse_payload(await request.body())
        logger.info(f"Incoming invoice webhook: {payload_summary(payload)}")

        created = await service.ingest(session, payload, idempotency_key=idempotency_key)

    except TaxCoreError as e:
        if e.status_code >= 500:
            logger.error(f"Webhook failed [{e.code}]: {e}")
        else:
            logger.info(f"Webhook rejected [{e.code}]: {e}")
        return _error_response(e.status_code, e.message, e.details)

    except Exception as e:
        logger.exception(f"Webhook error: {e}")
        return _error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Internal server error",
            str(e),
        )

    body = IncomingInvoiceResponse(
        invoice_id=created.invoice_id,
        invoice_number=created.invoice_number,
    )
    return JSONResponse(
        status_code=status.HTTP_200_OK if created.replayed else status.HTTP_201_CREATED,
        content=body.model_dump(),
    )


@router.api_route(
    "/incoming-invoice",
    methods=["GET", "PUT", "PATCH", "DELETE", "OPTIONS"],
    include_in_schema=False,
)
async def incoming_invoice_method_not_allowed() -> JSONResponse:
    """Only POST is accepted."""
    response = _error_response(status.HTTP_405_METHOD_NOT_ALLOWED, "Method not allowed")
    response.headers["Allow"] = "POST"
    return response
