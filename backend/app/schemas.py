from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import AliasChoices, BaseModel, Field


class TicketType(BaseModel):
    ticket_type_id: str
    name: str
    price: Decimal
    available: int
    description: str = ""

    model_config = {"from_attributes": True}


class PriceRange(BaseModel):
    min: Decimal
    max: Decimal


class EventBase(BaseModel):
    event_id: str
    title: str
    location: str | None = None
    address: str | None = None
    category: str | None = None
    description: str | None = None
    organiser: str | None = None
    image_url: str | None = None
    event_date: datetime | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class EventDetail(EventBase):
    ticket_types: list[TicketType] = Field(default_factory=list)
    total_available: int = 0
    price_range: PriceRange | None = None


class EventNotification(BaseModel):
    kind: str
    event_id: str
    title: str
    message: str
    ticket_type_count: int
    created_at: datetime

    model_config = {"from_attributes": True}


class EventCreated(BaseModel):
    event: EventDetail
    notification: EventNotification


# ----------------------------------------------------------------------
# Purchases


class PurchaseRequest(BaseModel):
    event_id: str | None = Field(
        default=None, validation_alias=AliasChoices("event_id", "eventId", "ticketId")
    )
    ticket_type: str | None = Field(
        default=None, validation_alias=AliasChoices("ticket_type", "ticketType")
    )
    ticket_count: Any = Field(
        default=None, validation_alias=AliasChoices("ticket_count", "ticketCount")
    )
    price_per_ticket: Any = Field(
        default=None, validation_alias=AliasChoices("price_per_ticket", "pricePerTicket")
    )


class OrderSummary(BaseModel):
    event_title: str
    ticket_type: str
    ticket_type_name: str
    ticket_count: int
    price_per_ticket: Decimal
    total_amount: Decimal
    available_after_purchase: int


class PurchaseResponse(BaseModel):
    transaction_id: str
    approval_url: str | None = None
    order_details: OrderSummary


class CompletedTicketDetails(BaseModel):
    event_title: str | None = None
    ticket_type: str
    ticket_type_name: str
    ticket_count: int
    total_amount: Decimal
    remaining_tickets: int


class PaymentConfirmation(BaseModel):
    payment_id: str
    status: str
    completed_at: datetime


class CompletionResponse(BaseModel):
    message: str
    transaction_id: str
    ticket_details: CompletedTicketDetails
    payment_details: PaymentConfirmation


class CancellationResponse(BaseModel):
    message: str
    transaction_id: str | None = None


# ----------------------------------------------------------------------
# Reporting


class TicketDetails(BaseModel):
    event_title: str | None = None
    event_location: str | None = None
    event_address: str | None = None
    event_date: datetime | None = None
    event_image: str | None = None
    event_category: str | None = None
    ticket_type: str
    ticket_type_name: str
    price_per_ticket: Decimal
    ticket_count: int
    total_amount: Decimal


class TransactionRecord(BaseModel):
    transaction_id: str
    buyer_id: str
    event_id: str
    ticket_type_id: str
    ticket_type_name: str
    ticket_count: int
    unit_price: Decimal
    amount: Decimal
    status: str
    payment_status: str | None = None
    payment_method: str | None = None
    provider_order_ref: str | None = None
    provider_payment_ref: str | None = None
    payment_details: dict[str, Any] | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class TransactionView(TransactionRecord):
    ticket_details: TicketDetails
    payment_method_label: str
    formatted_amount: str
    formatted_date: str
    can_refund: bool = False


class TransactionDetail(TransactionView):
    is_upcoming: bool = False


class Pagination(BaseModel):
    current_page: int
    total_pages: int
    total_transactions: int
    has_next_page: bool
    has_prev_page: bool
    items_per_page: int


class TicketTypeSpend(BaseModel):
    count: int = 0
    total_spent: Decimal = Decimal("0.00")
    transactions: int = 0


class HistorySummary(BaseModel):
    total_spent: Decimal
    total_tickets: int
    total_events: int
    completed_transactions: int
    ticket_type_breakdown: dict[str, TicketTypeSpend] = Field(default_factory=dict)


class AppliedFilters(BaseModel):
    applied_status: str
    applied_event_id: str


class PaymentHistory(BaseModel):
    transactions: list[TransactionView]
    pagination: Pagination
    summary: HistorySummary
    filters: AppliedFilters


class StatisticsOverview(BaseModel):
    total_transactions: int = 0
    total_amount: Decimal = Decimal("0.00")
    total_tickets: int = 0
    completed_transactions: int = 0
    completed_amount: Decimal = Decimal("0.00")
    completed_tickets: int = 0


class TicketTypeStatistic(BaseModel):
    ticket_type_name: str
    count: int
    total_amount: Decimal
    transactions: int
    average_price: Decimal


class MonthlyStatistic(BaseModel):
    year: int
    month: int
    count: int
    total_amount: Decimal
    transactions: int


class StatisticsPeriod(BaseModel):
    start_date: str
    end_date: str


class PaymentStatistics(BaseModel):
    overview: StatisticsOverview
    ticket_type_breakdown: list[TicketTypeStatistic]
    monthly_breakdown: list[MonthlyStatistic]
    period: StatisticsPeriod


class TicketTypeSales(BaseModel):
    name: str
    count: int
    revenue: Decimal
    average_price: Decimal


class BuyerRow(BaseModel):
    buyer_id: str
    ticket_count: int
    ticket_type: str
    ticket_type_name: str
    price_per_ticket: Decimal
    amount: Decimal
    purchase_date: datetime
    transaction_id: str


class EventBuyersReport(BaseModel):
    event_title: str
    total_tickets_sold: int
    total_revenue: Decimal
    average_ticket_price: Decimal
    ticket_type_summary: dict[str, TicketTypeSales]
    total_ticket_type_options: int
    buyers: list[BuyerRow]


class ErrorResponse(BaseModel):
    code: str
    message: str
    details: dict[str, Any] = Field(default_factory=dict)
    transaction_id: str | None = None
