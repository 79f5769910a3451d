"""Uniform invocation layer between the session core and the backend.

Every backend command goes through :meth:`CommandGateway.call`, which performs
the call once, logs the outcome and folds any rejection into a ``Result``.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Mapping
from typing import Any, Protocol, TypeVar, Union

from pydantic import BaseModel, ValidationError

from models import ApiError
from result import Err, Ok, Result

logger = logging.getLogger(__name__)

R = TypeVar("R")
M = TypeVar("M", bound=BaseModel)

GatewayError = Union[ApiError, str]
CommandResult = Result[R, GatewayError]


class Transport(Protocol):
    """Backend collaborator. Rejections are raised as exceptions."""

    async def invoke(
        self, command: str, args: Mapping[str, Any] | None = None
    ) -> Any: ...


class TransportRejected(Exception):
    """Raised by a transport when the backend rejects a command."""

    def __init__(self, payload: Any) -> None:
        super().__init__(payload)
        self.payload = payload


def to(model: type[M]) -> Callable[[Any], M]:
    """Projector validating the raw payload into ``model``."""
    return model.model_validate


def list_of(model: type[M]) -> Callable[[Any], list[M]]:
    """Projector for payloads that are a JSON array of ``model``."""

    def _project(raw: Any) -> list[M]:
        return [model.model_validate(item) for item in (raw or [])]

    return _project


def NOOP(_raw: Any) -> None:  # noqa: N802
    """Projector for commands whose only outcome is that they succeeded."""
    return None


def _rejection_payload(error: BaseException) -> Any:
    if isinstance(error, TransportRejected):
        return error.payload
    if error.args:
        return error.args[0]
    return error


def _as_text(value: Any) -> str:
    try:
        return value if isinstance(value, str) else str(value)
    except Exception:  # noqa: BLE001
        return f"<unprintable {type(value).__name__}>"


def parse_error(error: BaseException) -> GatewayError:
    """Turn a transport rejection into an ``ApiError``, or its text."""
    payload = _rejection_payload(error)
    try:
        if isinstance(payload, ApiError):
            return payload
        if isinstance(payload, (str, bytes, bytearray)):
            parsed = json.loads(payload)
            if isinstance(parsed, dict) and parsed.get("message"):
                return ApiError.model_validate(parsed)
        elif isinstance(payload, Mapping) and payload.get("message"):
            return ApiError.model_validate(dict(payload))
    except (ValueError, TypeError, ValidationError) as exc:
        logger.debug("Rejection payload is not an API error: %s", exc)
    return _as_text(payload)


class CommandGateway:
    """Performs backend commands and normalizes their outcome."""

    def __init__(self, transport: Transport) -> None:
        self._transport = transport

    async def call(
        self,
        command: str,
        project: Callable[[Any], R],
        args: Mapping[str, Any] | None = None,
    ) -> CommandResult[R]:
        """Invoke ``command`` once and project its payload with ``project``.

        No retry is attempted here: retrying is a caller concern.
        """
        label = command.replace("_", " ")
        try:
            raw = await self._transport.invoke(command, args)
        except Exception as exc:  # noqa: BLE001
            error = parse_error(exc)
            _log(logging.ERROR, "%s failed: %s", label, error)
            return Err(error)

        try:
            value = project(raw)
        except Exception as exc:  # noqa: BLE001
            _log(logging.ERROR, "%s returned an unexpected response: %s", label, exc)
            return Err(f"Unexpected response from {label}: {exc}")

        _log(logging.INFO, "%s: %s", label, _summary(value))
        return Ok(value)


def _summary(value: Any) -> str:
    if isinstance(value, list):
        return f"{len(value)} item(s)"
    return _as_text(value)


def _log(level: int, msg: str, *args: Any) -> None:
    try:
        logger.log(level, msg, *args)
    except Exception:  # noqa: BLE001
        # the Result is already decided; a broken handler must not change it
        return
