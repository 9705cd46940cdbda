from __future__ import annotations

import uuid

import pytest

from page_pipeline.paths import (
    business_base_path,
    business_slug_from_path,
    normalize_path,
    page_file_path,
    semantic_slug,
    slugify,
    storage_key,
)


def test_slugify_collapses_punctuation():
    assert slugify("Joe's Pizza & Grill!") == "joe-s-pizza-grill"
    assert slugify("") == "item"
    assert slugify("!!!") == "item"


@pytest.mark.parametrize(
    "content, expected",
    [
        ("We are closed until Dec 26 for the holidays", "closed-until-dec-26"),
        ("Closing early today", "closing-early-today"),
        ("Temporarily closed until further notice", "temporarily-closed"),
        ("Weekend special on large pies", "special-promotion"),
        ("Live music event on Friday", "upcoming-event"),
        ("New holiday hours this week", "hours-update"),
        ("Fresh menu for fall", "menu-update"),
        ("Now hiring delivery drivers downtown", "now-hiring-delivery-drivers"),
    ],
)
def test_semantic_slug(content, expected):
    assert semantic_slug(content) == expected


def test_page_file_path_is_deterministic_and_intent_specific():
    update_id = uuid.UUID("1a2b3c4d-0000-0000-0000-000000000000")
    base = business_base_path("US", "WA", "Seattle", "joes-pizza")

    direct = page_file_path(base, "special-promotion", update_id, "direct")
    local = page_file_path(base, "special-promotion", update_id, "local")

    assert direct == (
        "/us/wa/seattle/joes-pizza/special-promotion-1a2b3c4d/direct",
        "special-promotion-1a2b3c4d-direct",
    )
    assert direct == page_file_path(base, "special-promotion", update_id, "direct")
    assert local[0] != direct[0]


def test_business_base_path_defaults_country():
    assert business_base_path(None, "New York", "New York City", "deli") == "/us/new-york/new-york-city/deli"


@pytest.mark.parametrize(
    "path, expected",
    [
        ("us/wa/seattle/joes-pizza/", "/us/wa/seattle/joes-pizza"),
        ("/", "/"),
        ("", "/"),
        ("  /robots.txt ", "/robots.txt"),
    ],
)
def test_normalize_path(path, expected):
    assert normalize_path(path) == expected


def test_storage_key_appends_index_document():
    assert storage_key("/us/wa/seattle/joes-pizza/x-1a2b3c4d/direct") == (
        "us/wa/seattle/joes-pizza/x-1a2b3c4d/direct/index.html"
    )
    assert storage_key("/") == "index.html"


def test_storage_key_reserved_paths():
    assert storage_key("/sitemap.xml") == "sitemap/index.html"
    assert storage_key("robots.txt") == "robots/index.html"


def test_business_slug_from_path():
    assert business_slug_from_path("/us/wa/seattle/joes-pizza/x-1a2b3c4d/direct") == "joes-pizza"
    assert business_slug_from_path("/us/wa/seattle/joes-pizza") == "joes-pizza"
    assert business_slug_from_path("/joes-pizza") == "joes-pizza"
    assert business_slug_from_path("/favicon.ico") is None
    assert business_slug_from_path("/us/wa") is None
