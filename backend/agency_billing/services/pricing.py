from __future__ import annotations

from decimal import Decimal
from typing import Optional

from agency_billing.models.client import Client
from agency_billing.models.enums import ServiceType


ZERO = Decimal("0.00")

SERVICE_PRICE_FIELDS: dict[ServiceType, str] = {
    ServiceType.POSTER_DESIGN: "poster_design_price",
    ServiceType.VIDEO_EDITING: "video_editing_price",
    ServiceType.AI_VIDEO: "ai_video_price",
    ServiceType.DOCUMENT_EDITING: "document_editing_price",
    ServiceType.OTHER_WORK: "other_work_price",
}


def parse_service_type(label: Optional[str]) -> Optional[ServiceType]:
    if not label:
        return None
    try:
        return ServiceType(label)
    except ValueError:
        return None


def resolve_price(client: Client, service_type: Optional[str]) -> Decimal:
    """Flat unit price for a service on this client, ZERO when it is not billable."""
    parsed = parse_service_type(service_type)
    if parsed is None:
        return ZERO
    price = getattr(client, SERVICE_PRICE_FIELDS[parsed])
    if price is None or Decimal(price) <= ZERO:
        return ZERO
    return Decimal(price)

