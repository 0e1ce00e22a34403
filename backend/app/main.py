from __future__ import annotations

from datetime import datetime
from functools import lru_cache
from typing import Annotated, Any

from fastapi import Body, Depends, FastAPI, Header, Query, Request, Response
from fastapi.responses import JSONResponse
from loguru import logger

from . import schemas
from .core.config import settings
from .db import get_db, init_db
from .domain import AuthenticationError, ErrorCode, TicketingError
from .services.event_service import EventService
from .services.order_service import OrderService
from .services.payments import PaymentProvider, build_provider
from .services.report_service import ReportService

app = FastAPI(title="Ticketing API", version="0.1.0", debug=settings.debug)

_ERROR_STATUS: dict[ErrorCode, int] = {
    ErrorCode.VALIDATION_FAILED: 400,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.ALREADY_PROCESSED: 404,
    ErrorCode.PRICE_MISMATCH: 409,
    ErrorCode.INSUFFICIENT_INVENTORY: 409,
    ErrorCode.PROVIDER_ERROR: 502,
    ErrorCode.CONSISTENCY_ERROR: 500,
    ErrorCode.UNAUTHENTICATED: 401,
}
_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    status: {"model": schemas.ErrorResponse} for status in sorted(set(_ERROR_STATUS.values()))
}


@app.on_event("startup")
def on_startup() -> None:
    """Initialize database connections when the API boots."""

    init_db()


@app.exception_handler(TicketingError)
def handle_ticketing_error(request: Request, exc: TicketingError) -> JSONResponse:
    status_code = _ERROR_STATUS.get(exc.code, 400)
    if status_code >= 500:
        logger.error("{} {} failed: {}", request.method, request.url.path, exc)
    else:
        logger.info("{} {} rejected: {}", request.method, request.url.path, exc)
    return JSONResponse(status_code=status_code, content=exc.to_dict())


@app.get("/healthz", tags=["system"])
def healthcheck() -> dict[str, str]:
    """Basic readiness check consumed by infrastructure monitors."""

    return {"status": "ok"}


@lru_cache
def _payment_provider() -> PaymentProvider:
    """Build the configured provider once; it caches its own access token."""

    return build_provider(settings)


def _buyer_id(x_buyer_id: Annotated[str | None, Header()] = None) -> str:
    """Resolve the authenticated buyer supplied by the upstream auth layer."""

    if not x_buyer_id or not x_buyer_id.strip():
        raise AuthenticationError("Missing buyer identity")
    return x_buyer_id.strip()


def _event_service(db=Depends(get_db)) -> EventService:
    return EventService(db)


def _order_service(
    db=Depends(get_db), provider: PaymentProvider = Depends(_payment_provider)
) -> OrderService:
    """Provide the purchase orchestrator wired with a session and provider."""

    return OrderService(db, provider)


def _report_service(db=Depends(get_db)) -> ReportService:
    return ReportService(db)


# ----------------------------------------------------------------------
# Events


@app.post(
    "/events",
    response_model=schemas.EventCreated,
    status_code=201,
    tags=["events"],
    responses=_ERROR_RESPONSES,
)
def create_event(
    payload: Annotated[dict[str, Any], Body()],
    service: EventService = Depends(_event_service),
):
    """Create an event from a raw submission in any supported pricing format."""

    return service.create_event(payload)


@app.get("/events/featured", response_model=list[schemas.EventDetail], tags=["events"])
def featured_events(service: EventService = Depends(_event_service)):
    """List upcoming events soonest first, with ticket types and price range."""

    return service.featured_events()


@app.get(
    "/events/{event_id}",
    response_model=schemas.EventDetail,
    tags=["events"],
    responses=_ERROR_RESPONSES,
)
def get_event(event_id: str, service: EventService = Depends(_event_service)):
    return service.get_event(event_id)


@app.put(
    "/events/{event_id}",
    response_model=schemas.EventDetail,
    tags=["events"],
    responses=_ERROR_RESPONSES,
)
def update_event(
    event_id: str,
    payload: Annotated[dict[str, Any], Body()],
    service: EventService = Depends(_event_service),
):
    """Update event fields; pricing is replaced wholesale when supplied."""

    return service.update_event(event_id, payload)


@app.delete(
    "/events/{event_id}", status_code=204, tags=["events"], responses=_ERROR_RESPONSES
)
def delete_event(event_id: str, service: EventService = Depends(_event_service)) -> Response:
    service.delete_event(event_id)
    return Response(status_code=204)


@app.get(
    "/events/{event_id}/buyers",
    response_model=schemas.EventBuyersReport,
    tags=["events"],
    responses=_ERROR_RESPONSES,
)
def event_buyers(event_id: str, service: ReportService = Depends(_report_service)):
    """Summarize settled sales for an event, grouped by ticket type."""

    return service.event_buyers(event_id)


# ----------------------------------------------------------------------
# Payments


@app.post(
    "/payments/orders",
    response_model=schemas.PurchaseResponse,
    tags=["payments"],
    responses=_ERROR_RESPONSES,
)
def create_order(
    request: schemas.PurchaseRequest,
    buyer_id: str = Depends(_buyer_id),
    service: OrderService = Depends(_order_service),
):
    """Open a provider order and record a pending purchase."""

    receipt = service.create_purchase(
        event_id=request.event_id,
        ticket_type_id=request.ticket_type,
        ticket_count=request.ticket_count,
        client_price=request.price_per_ticket,
        buyer_id=buyer_id,
    )
    return schemas.PurchaseResponse(
        transaction_id=receipt.transaction_id,
        approval_url=receipt.approval_url,
        order_details=schemas.OrderSummary(**receipt.order_summary),
    )


@app.get(
    "/payments/complete-order",
    response_model=schemas.CompletionResponse,
    tags=["payments"],
    responses=_ERROR_RESPONSES,
)
def complete_order(
    token: Annotated[str | None, Query(description="Provider order reference")] = None,
    service: OrderService = Depends(_order_service),
):
    """Capture an approved order; serves both the buyer redirect and provider webhooks."""

    receipt = service.complete_purchase(token)
    return schemas.CompletionResponse(
        message=receipt.message,
        transaction_id=receipt.transaction_id,
        ticket_details=schemas.CompletedTicketDetails(**receipt.ticket_details),
        payment_details=schemas.PaymentConfirmation(**receipt.payment_details),
    )


@app.get(
    "/payments/cancel-order",
    response_model=schemas.CancellationResponse,
    tags=["payments"],
    responses=_ERROR_RESPONSES,
)
def cancel_order(
    token: Annotated[str | None, Query(description="Provider order reference")] = None,
    service: OrderService = Depends(_order_service),
):
    receipt = service.cancel_purchase(token)
    return schemas.CancellationResponse(
        message=receipt.message, transaction_id=receipt.transaction_id
    )


@app.get(
    "/payments/history",
    response_model=schemas.PaymentHistory,
    tags=["payments"],
    responses=_ERROR_RESPONSES,
)
def payment_history(
    *,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int | None, Query(ge=1, le=settings.history_max_limit)] = None,
    status: Annotated[str | None, Query(description="Transaction status filter")] = None,
    event_id: Annotated[str | None, Query(description="Restrict to one event")] = None,
    buyer_id: str = Depends(_buyer_id),
    service: ReportService = Depends(_report_service),
):
    """List the caller's transactions, newest first."""

    return service.list_history(
        buyer_id, page=page, limit=limit, status=status, event_id=event_id
    )


@app.get(
    "/payments/statistics",
    response_model=schemas.PaymentStatistics,
    tags=["payments"],
    responses=_ERROR_RESPONSES,
)
def payment_statistics(
    *,
    start_date: Annotated[datetime | None, Query(description="Inclusive lower bound")] = None,
    end_date: Annotated[datetime | None, Query(description="Inclusive upper bound")] = None,
    buyer_id: str = Depends(_buyer_id),
    service: ReportService = Depends(_report_service),
):
    return service.payment_statistics(buyer_id, start=start_date, end=end_date)


@app.get(
    "/payments/transactions/{transaction_id}",
    response_model=schemas.TransactionDetail,
    tags=["payments"],
    responses=_ERROR_RESPONSES,
)
def get_transaction(
    transaction_id: str,
    buyer_id: str = Depends(_buyer_id),
    service: ReportService = Depends(_report_service),
):
    return service.get_transaction(transaction_id, buyer_id)
