from __future__ import annotations

from decimal import Decimal

import pytest

from agency_billing.models.client import Client
from agency_billing.models.enums import ServiceType
from agency_billing.services.pricing import ZERO, parse_service_type, resolve_price


@pytest.fixture()
def priced_client():
    return Client(
        name="Priced",
        email="priced@example.com",
        poster_design_price=Decimal("500.00"),
        video_editing_price=Decimal("1200.50"),
        ai_video_price=Decimal("0.00"),
        document_editing_price=None,
        other_work_price=Decimal("75.00"),
    )


@pytest.mark.parametrize(
    ("label", "expected"),
    [
        ("Poster Design", Decimal("500.00")),
        ("Video Editing", Decimal("1200.50")),
        ("Other Work", Decimal("75.00")),
    ],
)
def test_resolve_price_known_service(priced_client, label, expected):
    assert resolve_price(priced_client, label) == expected


@pytest.mark.parametrize("label", ["AI Video", "Document Editing"])
def test_zero_or_unset_price_is_not_billable(priced_client, label):
    assert resolve_price(priced_client, label) == ZERO


@pytest.mark.parametrize("label", [None, "", "poster design", "Logo Design"])
def test_unknown_label_resolves_to_zero(priced_client, label):
    assert resolve_price(priced_client, label) == ZERO


def test_parse_service_type():
    assert parse_service_type("AI Video") is ServiceType.AI_VIDEO
    assert parse_service_type("Animation") is None
