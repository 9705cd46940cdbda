"""Error kinds surfaced at the pipeline boundary.

Every failure that leaves a pipeline operation is one of these. Callers get a ``kind`` and a
``retryable`` flag so they can decide whether to back off and try again.
"""
from __future__ import annotations

import concurrent.futures
from typing import Any, Optional

from botocore.exceptions import BotoCoreError, ClientError
from sqlalchemy.exc import SQLAlchemyError


class PipelineError(Exception):
    kind = "internal"
    http_status = 500

    def __init__(self, message: str, retryable: bool = False):
        self.message = message
        self.retryable = retryable
        super().__init__(message)

    def to_dict(self) -> dict:
        return {
            "success": False,
            "message": self.message,
            "kind": self.kind,
            "retryable": self.retryable,
        }


class ValidationError(PipelineError):
    """Missing or malformed input, rejected before any side effect."""

    kind = "validation"
    http_status = 400


class NotFoundError(PipelineError):
    kind = "not_found"
    http_status = 404


class StoreError(PipelineError):
    """Object store or database I/O failed. Safe to retry with backoff."""

    kind = "store"
    http_status = 503

    def __init__(self, message: str, retryable: bool = True):
        super().__init__(message, retryable=retryable)


class PartialBatchFailure(PipelineError):
    kind = "partial_batch"
    http_status = 207

    def __init__(self, message: str, result: Optional[dict] = None):
        super().__init__(message, retryable=False)
        self.result = result or {}

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload.update(self.result)
        return payload


def translate_error(exc: BaseException) -> PipelineError:
    if isinstance(exc, PipelineError):
        return exc
    if isinstance(exc, concurrent.futures.TimeoutError):
        return StoreError("Store call timed out")
    if isinstance(exc, SQLAlchemyError):
        return StoreError(f"Database error: {exc.__class__.__name__}")
    if isinstance(exc, (ClientError, BotoCoreError)):
        return StoreError(f"Object store error: {exc}")
    if isinstance(exc, OSError):
        return StoreError(f"I/O error: {exc}")
    return PipelineError(str(exc) or exc.__class__.__name__)


def error_item(item_id: Any, exc: BaseException) -> dict:
    error = translate_error(exc)
    return {
        "id": str(item_id),
        "error": error.message,
        "kind": error.kind,
        "retryable": error.retryable,
    }


def raise_for_failures(result: dict, success_key: str, operation: str) -> dict:
    """Raise PartialBatchFailure when any item in a batch result failed; return the result otherwise."""
    errors = result.get("errors") or []
    if not errors:
        return result
    succeeded = len(result.get(success_key) or [])
    raise PartialBatchFailure(
        f"{operation}: {succeeded} succeeded, {len(errors)} failed",
        result=result,
    )
