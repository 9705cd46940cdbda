from __future__ import annotations

from typing import Any, Mapping

import pydantic

from .errors import ValidationError
from .page_data import PageData

DEFAULT_COUNTRY = "US"
DEFAULT_PAYMENT_METHODS = ("Cash", "Credit Card")


def compress(page_data: PageData) -> dict[str, Any]:
    """Short-key form of ``page_data`` for the generated_pages.page_data column.

    Only key names change. Values are emitted as-is and absent fields are left out, so no
    defaults are written here.
    """
    return page_data.model_dump(mode="json", by_alias=True, exclude_none=True)


def decompress(compact: Mapping[str, Any]) -> PageData:
    """Rebuild :class:`PageData` from its compact form, filling read-time defaults."""
    if not isinstance(compact, Mapping):
        raise ValidationError("Compressed page data must be an object")
    try:
        page_data = PageData.model_validate(dict(compact))
    except pydantic.ValidationError as exc:
        raise ValidationError(f"Invalid compressed page data: {exc.error_count()} error(s)") from exc

    business = page_data.business
    if business.country is None:
        business.country = DEFAULT_COUNTRY
    if business.payment_methods is None:
        business.payment_methods = list(DEFAULT_PAYMENT_METHODS)
    return page_data
