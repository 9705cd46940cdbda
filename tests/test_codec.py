from __future__ import annotations

import pytest

from page_pipeline.codec import compress, decompress
from page_pipeline.errors import ValidationError
from page_pipeline.page_data import BusinessData, IntentData, PageData, SeoData, UpdateData


def _page_data(**business) -> PageData:
    return PageData(
        business=BusinessData(name="Joe's Pizza", address_city="Seattle", address_state="WA", **business),
        update=UpdateData(content_text="Half-price pies", update_category="special"),
        seo=SeoData(title="Half-price pies - Joe's Pizza", description="Deals"),
        intent=IntentData(type="direct", file_path="/us/wa/seattle/joes-pizza/x-1a2b3c4d/direct", slug="x-direct"),
    )


def test_compress_uses_short_keys_and_drops_absent_fields():
    compact = compress(_page_data())

    assert compact["b"] == {"n": "Joe's Pizza", "c": "Seattle", "s": "WA"}
    assert compact["u"] == {"t": "Half-price pies", "cat": "special"}
    assert compact["i"]["filePath"].endswith("/direct")
    assert "f" not in compact


def test_compress_does_not_write_read_time_defaults():
    compact = compress(_page_data())

    assert "country" not in compact["b"]
    assert "pm" not in compact["b"]


def test_decompress_fills_country_and_payment_defaults():
    page_data = decompress(compress(_page_data()))

    assert page_data.business.name == "Joe's Pizza"
    assert page_data.business.country == "US"
    assert page_data.business.payment_methods == ["Cash", "Credit Card"]
    assert page_data.intent.type == "direct"


def test_decompress_keeps_explicit_values():
    page_data = decompress(compress(_page_data(country="CA", payment_methods=["Cash"])))

    assert page_data.business.country == "CA"
    assert page_data.business.payment_methods == ["Cash"]


def test_decompress_ignores_unknown_keys():
    page_data = decompress({"b": {"n": "Joe's Pizza", "zz": 1}, "extra": True})

    assert page_data.business.name == "Joe's Pizza"
    assert page_data.update is None


@pytest.mark.parametrize("payload", [None, "not an object", ["b"]])
def test_decompress_rejects_non_objects(payload):
    with pytest.raises(ValidationError):
        decompress(payload)


def test_decompress_rejects_malformed_sections():
    with pytest.raises(ValidationError):
        decompress({"b": "Joe's Pizza"})


def _full_page_data() -> PageData:
    return PageData(
        business=BusinessData(
            name="Joe's Pizza",
            address_city="Vancouver",
            address_state="BC",
            address_street="123 Granville St",
            zip_code="V6C 1T2",
            country="CA",
            phone="6045550142",
            phone_country_code="+1",
            email="hello@joes.example.com",
            website="https://joes.example.com",
            description="Wood-fired pizza by the slice.",
            primary_category="restaurant",
            services=["Dine-in", "Takeout"],
            specialties=["Margherita"],
            hours="Mon-Sun 11am-10pm",
            structured_hours={"monday": {"open": "11:00", "close": "22:00"}},
            price_positioning="$$",
            payment_methods=["Debit", "Interac"],
            service_area="Downtown Vancouver",
            service_area_details={"radius_km": 5},
            awards=["Best Slice 2024"],
            certifications=["FoodSafe"],
            latitude=49.2827,
            longitude=-123.1207,
            languages_spoken=["English", "French"],
            accessibility_features=["Wheelchair accessible"],
            parking_info="Street parking",
            enhanced_parking_info={"type": "street", "free": False},
            review_summary={"rating": 4.7, "count": 212},
            status_override="open",
            business_faqs=[{"question": "Do you deliver?", "answer": "Within 5 km."}],
            featured_items=[{"name": "Margherita", "price": "14"}],
            social_media={"instagram": "joespizza"},
            established_year=1998,
        ),
        update=UpdateData(
            content_text="Half-price pies",
            created_at="2026-10-19T15:00:00+00:00",
            expires_at="2026-10-20T15:00:00+00:00",
            special_hours_today={"open": "10:00", "close": "23:00"},
            deal_terms="Dine-in only",
            update_category="special",
            update_faqs=[{"question": "Is it every day?", "answer": "Tuesdays only."}],
        ),
        seo=SeoData(title="Half-price pies - Joe's Pizza", description="Deals in Vancouver"),
        intent=IntentData(
            type="local",
            file_path="/ca/bc/vancouver/joes-pizza/half-price-pies-1a2b3c4d/local",
            slug="half-price-pies-local",
            page_variant="local-v1",
        ),
        faqs=[{"question": "Where are you?", "answer": "Granville St."}],
    )


def test_round_trip_preserves_every_field():
    page_data = _full_page_data()

    assert decompress(compress(page_data)) == page_data
