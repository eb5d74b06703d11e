"""Remote tessellation of brep primitives."""

from __future__ import annotations

import asyncio
import base64
import binascii
import json
import urllib.error
import urllib.request
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol

from fluxgeom.errors import ProviderError
from fluxgeom.models import canonical_primitive

BREP = "brep"
RESULT_PREFIX = "result"

TIMEOUT_MESSAGE = "Server error: Your request exceeded the maximum time limit for execution."
UNAVAILABLE_MESSAGE = "Server error: The brep tessellation service is unavailable."

_SERVER_ERROR_HINTS = {
    "PK_ERROR_wrong_transf": (
        "Unable to model objects that are outside of a bounding box that is "
        "1000 units wide centered at the origin. Please scale down your models "
        "or change units."
    ),
    "Translator loader error": (
        "The brep translator could not be initialized. Perhaps the license has expired."
    ),
}


class BrepProvider(Protocol):
    """Anything that can tessellate a batch of encoded breps."""

    async def tessellate(self, request: dict[str, Any]) -> dict[str, Any]:
        ...


def needs_tessellation(data: Any) -> bool:
    """A brep without inline ``vertices`` and ``faces``."""
    return (
        isinstance(data, dict)
        and isinstance(data.get("primitive"), str)
        and canonical_primitive(data["primitive"]) == BREP
        and (data.get("vertices") is None or data.get("faces") is None)
    )


def map_async_breps(data: Any, replace: Callable[[dict[str, Any]], Any]) -> Any:
    """Copy ``data`` with every brep that needs the provider swapped for ``replace(brep)``.

    Breps are visited in document order.
    """
    if needs_tessellation(data):
        return replace(data)
    if isinstance(data, dict):
        if isinstance(data.get("primitive"), str):
            return data
        return {key: map_async_breps(value, replace) for key, value in data.items()}
    if isinstance(data, (list, tuple)):
        return [map_async_breps(item, replace) for item in data]
    return data


def split_async_breps(data: Any) -> tuple[Any, list[dict[str, Any]]]:
    """Pull every brep that needs the provider out of ``data``.

    Returns a copy of ``data`` with those breps replaced by None, which the
    assembler skips, and the breps in document order.
    """
    found: list[dict[str, Any]] = []

    def take(brep: dict[str, Any]) -> None:
        found.append(brep)

    return map_async_breps(data, take), found


def encode_request(breps: list[dict[str, Any]]) -> dict[str, dict[str, str]]:
    """Key each brep ``result<i>`` with its JSON record base64 encoded."""
    request = {}
    for i, record in enumerate(breps):
        payload = json.dumps(record, sort_keys=True).encode("utf-8")
        request[f"{RESULT_PREFIX}{i}"] = {
            "content": base64.b64encode(payload).decode("ascii"),
            "format": "json",
            "primitive": BREP,
        }
    return request


def interpret_server_error(message: str) -> str:
    first_line = message.split("\n", 1)[0]
    return "Server error: " + _SERVER_ERROR_HINTS.get(first_line, first_line)


@dataclass
class TessellationResult:
    """Decoded provider response: STL records and error messages, both keyed like the request."""

    records: dict[str, dict[str, Any]] = field(default_factory=dict)
    errors: dict[str, str] = field(default_factory=dict)


def decode_response(
    response: Any, breps: list[dict[str, Any]] | None = None
) -> TessellationResult:
    """Turn a provider response into ``stl`` records and error messages.

    Each entry is decoded on its own so one bad element does not spoil the
    batch. ``breps`` are the originals, used to carry ``id`` and material
    overrides onto the tessellated result.
    """
    if not isinstance(response, dict) or not isinstance(response.get("results"), dict):
        raise ProviderError("Malformed tessellation response")

    originals = {f"{RESULT_PREFIX}{i}": record for i, record in enumerate(breps or [])}
    result = TessellationResult()
    for key, entry in response["results"].items():
        if not isinstance(entry, dict):
            result.errors[key] = "Malformed tessellation result"
            continue
        error = entry.get("error")
        if error is not None:
            message = error.get("message", "") if isinstance(error, dict) else str(error)
            result.errors[key] = interpret_server_error(message)
            continue
        if entry.get("format") != "stl":
            result.errors[key] = f"Unsupported tessellation format: {entry.get('format')}"
            continue
        try:
            text = base64.b64decode(entry.get("content") or "", validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError):
            result.errors[key] = "Tessellation result is not valid base64 STL"
            continue

        record: dict[str, Any] = {"primitive": "stl", "content": text}
        original = originals.get(key, {})
        for name in ("id", "materialProperties"):
            if original.get(name) is not None:
                record[name] = original[name]
        if entry.get("attributes"):
            record["attributes"] = entry["attributes"]
        result.records[key] = record
    return result


class HttpBrepProvider:
    """POSTs the batch as JSON to a tessellation service.

    The blocking request runs in a worker thread so ``tessellate`` can be
    awaited alongside other work.
    """

    def __init__(
        self,
        url: str | None,
        token: str | None,
        *,
        quality: float = 2.0,
        timeout: float = 30.0,
    ) -> None:
        self.url = url
        self.token = token
        self.quality = quality
        self.timeout = timeout

    async def tessellate(self, request: dict[str, Any]) -> dict[str, Any]:
        if not self.url:
            raise ProviderError("Tessellation url was not set")
        if not self.token:
            raise ProviderError("Flux token was not set")
        return await asyncio.to_thread(self._post, request)

    def _post(self, request: dict[str, Any]) -> dict[str, Any]:
        body = json.dumps({"quality": self.quality, "primitives": request}).encode("utf-8")
        req = urllib.request.Request(url=self.url, data=body, method="POST")
        req.add_header("Content-Type", "application/json")
        req.add_header("Authorization", f"Bearer {self.token}")
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:  # noqa: S310
                status = resp.status
                raw = resp.read()
        except urllib.error.HTTPError as e:
            raise ProviderError(status_message(e.code)) from e
        except (urllib.error.URLError, TimeoutError) as e:
            raise ProviderError(UNAVAILABLE_MESSAGE) from e

        if status != 200:
            raise ProviderError(status_message(status))
        try:
            decoded = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ProviderError(f"Non-JSON response from {self.url}: {e}") from e
        if not isinstance(decoded, dict):
            raise ProviderError("Malformed tessellation response")
        return decoded


def status_message(status: int) -> str:
    if status == 504:
        return TIMEOUT_MESSAGE
    return UNAVAILABLE_MESSAGE
