"""Round records and the providers that supply them."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Protocol, Sequence
import asyncio
import base64
import binascii
import json
import logging
import math
import random

import requests

from .errors import MalformedRound, OrderingError, RoundFetchFailed
from .utils import Point, load_json

logger = logging.getLogger(__name__)

APP_VERSION = "1.0.0"
BATCH_ENDPOINT = "/api/v2/get/squadGuess"
MAX_BATCH_SIZE = 10


@dataclass(slots=True)
class Round:
    """One map, one true location, one hint image."""

    map_id: str
    true_position: Point
    hint_ref: str
    points_awarded: int | None = field(default=None, compare=False)

    @property
    def resolved(self) -> bool:
        return self.points_awarded is not None

    def award(self, points: int) -> None:
        """Record the round's points; a round is scored exactly once."""
        if self.points_awarded is not None:
            raise OrderingError(f"round on {self.map_id!r} already scored")
        self.points_awarded = points


def _number(record: Mapping[str, Any], *keys: str) -> float:
    for key in keys:
        value = record.get(key)
        if value is None or isinstance(value, bool):
            continue
        try:
            number = float(value)
        except (TypeError, ValueError):
            break
        if math.isfinite(number):
            return number
        break
    raise MalformedRound(f"record {dict(record)!r} has no usable {'/'.join(keys)}")


def parse_round(record: Mapping[str, Any]) -> Round:
    """Build a :class:`Round` from a decoded batch record.

    Both the canonical keys (``map_id``, ``world_x``, ``world_y``,
    ``hint_ref``) and the API's short keys (``map``, ``lng``, ``lat``,
    ``url``) are accepted.
    """
    if not isinstance(record, Mapping):
        raise MalformedRound(f"round record must be an object, got {type(record).__name__}")
    map_id = record.get("map_id", record.get("map"))
    if not isinstance(map_id, str) or not map_id.strip():
        raise MalformedRound(f"record {dict(record)!r} has no map id")
    world_x = _number(record, "world_x", "lng")
    world_y = _number(record, "world_y", "lat")
    hint_ref = record.get("hint_ref", record.get("url", ""))
    return Round(map_id=map_id.strip(), true_position=(world_x, world_y), hint_ref=str(hint_ref or ""))


def parse_rounds(records: Sequence[Mapping[str, Any]]) -> list[Round]:
    return [parse_round(record) for record in records]


def decode_envelope(payload: Mapping[str, Any]) -> list[dict[str, Any]]:
    """Unwrap the ``{"data": base64(json)}`` envelope used by the round API."""
    try:
        decoded = base64.b64decode(payload["data"], validate=True)
        records = json.loads(decoded.decode("utf-8"))
    except (KeyError, TypeError, binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise RoundFetchFailed(f"could not decode round batch: {exc}") from exc
    if not isinstance(records, list):
        raise RoundFetchFailed("round batch is not a list")
    return records


class RoundSource(Protocol):
    """Asynchronous supplier of round batches."""

    async def fetch_rounds(self, count: int) -> list[dict[str, Any]]:
        ...


class HttpRoundSource:
    """Fetch round batches and hint images from the SquadGuessr API."""

    def __init__(self, base_url: str, timeout: float = 10.0, session: requests.Session | None = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"X-App-Version": APP_VERSION})

    async def fetch_rounds(self, count: int) -> list[dict[str, Any]]:
        return await asyncio.to_thread(self._fetch_rounds_blocking, count)

    def _fetch_rounds_blocking(self, count: int) -> list[dict[str, Any]]:
        count = max(1, min(MAX_BATCH_SIZE, int(count)))
        url = f"{self.base_url}{BATCH_ENDPOINT}"
        logger.info("Requesting %d rounds from %s", count, url)
        try:
            response = self.session.get(url, params={"nb": count}, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as exc:
            raise RoundFetchFailed(f"round request failed: {exc}") from exc
        except ValueError as exc:
            raise RoundFetchFailed(f"round response is not JSON: {exc}") from exc
        return decode_envelope(payload)

    def hint_url(self, hint_ref: str) -> str:
        return f"{self.base_url}/api/v2{hint_ref}"

    async def fetch_hint(self, hint_ref: str) -> bytes:
        """Download the raw bytes of a hint image."""
        return await asyncio.to_thread(self._fetch_hint_blocking, hint_ref)

    def _fetch_hint_blocking(self, hint_ref: str) -> bytes:
        try:
            response = self.session.get(self.hint_url(hint_ref), timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise RoundFetchFailed(f"hint request failed: {exc}") from exc
        return response.content


class StaticRoundSource:
    """Serve rounds from an in-memory list, e.g. a local JSON batch file.

    Hint references are treated as paths relative to ``hint_root``.
    """

    def __init__(
        self,
        records: Sequence[Mapping[str, Any]],
        hint_root: Path | None = None,
        shuffle: bool = True,
    ) -> None:
        self.records = [dict(record) for record in records]
        self.hint_root = hint_root
        self.shuffle = shuffle

    @classmethod
    def from_file(cls, path: Path) -> "StaticRoundSource":
        payload = load_json(path, None)
        if isinstance(payload, dict):
            payload = decode_envelope(payload)
        if not isinstance(payload, list):
            raise RoundFetchFailed(f"{path} does not contain a round list")
        return cls(payload, hint_root=path.parent)

    async def fetch_rounds(self, count: int) -> list[dict[str, Any]]:
        if not self.records:
            raise RoundFetchFailed("no rounds available")
        pool = list(self.records)
        if self.shuffle:
            random.shuffle(pool)
        return pool[: max(1, count)]

    async def fetch_hint(self, hint_ref: str) -> bytes:
        if self.hint_root is None:
            raise RoundFetchFailed("no hint directory configured")
        path = self.hint_root / hint_ref.lstrip("/")
        try:
            return await asyncio.to_thread(path.read_bytes)
        except OSError as exc:
            raise RoundFetchFailed(f"cannot read hint {path}: {exc}") from exc
