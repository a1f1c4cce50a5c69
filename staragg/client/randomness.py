"""Tag randomness for client reports.

A report's randomness ``r`` is a deterministic function of (measurement,
epoch), so every client reporting the same value in the same epoch gets
the same ``r`` and hence the same tag and polynomial.

- local:  r = SHA-256 over the measurement and epoch (optionally HMAC-keyed)
- OPRF:   r is derived from F_k(epoch, measurement), evaluated obliviously
          by the randomness service; the service never sees the measurement

Any object with ``md_index(tag)``, ``public_key(index)`` and
``eval(point, index, verifiable)`` can serve OPRF requests:
``PPOPRFServer``, ``ServerHandle`` and ``HTTPRandomnessClient`` all do.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol

import httpx
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from staragg.config import (
    AES_KEY_LEN,
    DST_LOCAL_RANDOMNESS,
    DST_OPRF_INPUT,
    DST_OPRF_OUTPUT,
    HKDF_INFO_KEY,
    HKDF_INFO_SEED,
    HKDF_INFO_TAG,
    HTTP_TIMEOUT,
    RANDOMNESS_LEN,
    RANDOMNESS_URL,
)
from staragg.crypto import group
from staragg.errors import (
    EpochPunctured,
    InvalidPoint,
    ServiceUnavailable,
    UnknownEpoch,
)
from staragg.ppoprf.client import blind, unblind, verify_proof
from staragg.ppoprf.server import Evaluation, Proof

logger = logging.getLogger(__name__)


class RandomnessService(Protocol):
    def md_index(self, tag: str) -> int: ...

    def public_key(self, index: int) -> bytes: ...

    def eval(self, point: bytes, index: int, verifiable: bool = False) -> Evaluation: ...


def _framed(*parts: bytes) -> bytes:
    return b"".join(len(p).to_bytes(8, "big") + p for p in parts)


def sample_local_randomness(
    measurement: bytes, epoch: str, key: Optional[bytes] = None
) -> bytes:
    """Client-side randomness; keyed with HMAC when *key* is given."""
    message = _framed(DST_LOCAL_RANDOMNESS, epoch.encode(), measurement)
    if key is not None:
        return hmac.new(key, message, hashlib.sha256).digest()
    return hashlib.sha256(message).digest()


def sample_oprf_randomness(
    measurement: bytes,
    epoch: str,
    service: RandomnessService,
    verifiable: bool = False,
) -> bytes:
    """Randomness from one oblivious evaluation under the epoch's key.

    Raises ``EpochPunctured`` once the epoch is closed and
    ``ServiceUnavailable`` when the service cannot be reached.
    """
    point = group.hash_to_point(DST_OPRF_INPUT, measurement)
    index = service.md_index(epoch)
    blinded, r = blind(point)
    logger.debug("requesting oprf randomness for tag index %d", index)
    evaluation = service.eval(blinded, index, verifiable)
    if verifiable:
        verify_proof(service.public_key(index), blinded, evaluation)
    output = unblind(group.point_from_bytes(evaluation.output), r)
    return hashlib.sha256(
        _framed(DST_OPRF_OUTPUT, epoch.encode(), measurement, output)
    ).digest()[:RANDOMNESS_LEN]


@dataclass(frozen=True)
class ReportKeys:
    """Values derived from one report's randomness."""

    tag: bytes
    key: bytes
    seed: bytes


def derive_keys(randomness: bytes) -> ReportKeys:
    def expand(info: bytes, length: int) -> bytes:
        return HKDF(
            algorithm=hashes.SHA256(), length=length, salt=None, info=info
        ).derive(randomness)

    return ReportKeys(
        tag=expand(HKDF_INFO_TAG, 32),
        key=expand(HKDF_INFO_KEY, AES_KEY_LEN),
        seed=expand(HKDF_INFO_SEED, 32),
    )


class HTTPRandomnessClient:
    """``RandomnessService`` backed by the randomness service's HTTP API.

    Requests are synchronous.  Transport failures and server errors raise
    ``ServiceUnavailable``; a punctured epoch raises ``EpochPunctured``.
    """

    def __init__(
        self,
        base_url: str = RANDOMNESS_URL,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self._client = client if client is not None else httpx.Client(
            base_url=base_url, timeout=HTTP_TIMEOUT
        )
        self._owns_client = client is None
        self._info: Optional[Dict[str, Any]] = None

    def _request(
        self, method: str, path: str, tag: Optional[str] = None, **kwargs
    ) -> httpx.Response:
        try:
            resp = self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise ServiceUnavailable(f"Randomness service unreachable: {exc}") from exc
        if resp.status_code == 410:
            raise EpochPunctured(tag if tag is not None else "?")
        if resp.status_code == 404:
            raise UnknownEpoch(self._detail(resp, "unknown epoch"))
        if resp.status_code == 400:
            raise InvalidPoint(self._detail(resp, "invalid point"))
        if resp.status_code >= 400:
            raise ServiceUnavailable(
                f"Randomness service returned HTTP {resp.status_code}"
            )
        return resp

    @staticmethod
    def _json(resp: httpx.Response) -> Any:
        try:
            return resp.json()
        except ValueError as exc:
            raise ServiceUnavailable(
                f"Randomness service sent a non-JSON body (HTTP {resp.status_code})"
            ) from exc

    def _detail(self, resp: httpx.Response, default: str) -> str:
        body = self._json(resp)
        if isinstance(body, dict) and "detail" in body:
            return str(body["detail"])
        return default

    def info(self, refresh: bool = False) -> Dict[str, Any]:
        if self._info is None or refresh:
            body = self._json(self._request("GET", "/info"))
            if not isinstance(body, dict) or not {"tags", "public_keys"} <= body.keys():
                raise ServiceUnavailable("Randomness service sent a malformed /info body")
            self._info = body
        return self._info

    def md_index(self, tag: str) -> int:
        tags: List[str] = self.info()["tags"]
        if tag not in tags:
            raise UnknownEpoch(f"Unknown metadata tag {tag!r}")
        return tags.index(tag)

    def public_key(self, index: int) -> bytes:
        return bytes.fromhex(self.info()["public_keys"][index])

    def eval(self, point: bytes, index: int, verifiable: bool = False) -> Evaluation:
        resp = self._request(
            "POST",
            "/randomness",
            tag=self.info()["tags"][index],
            json={"points": [point.hex()], "md_index": index, "verifiable": verifiable},
        )
        body = self._json(resp)
        try:
            proof = body["proofs"][0]
            return Evaluation(
                output=bytes.fromhex(body["points"][0]),
                proof=Proof.from_bytes(bytes.fromhex(proof)) if proof else None,
            )
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise ServiceUnavailable(
                f"Randomness service sent a malformed evaluation: {exc}"
            ) from exc

    def puncture(self, tag: str) -> None:
        self._request("POST", "/puncture", tag=tag, json={"tag": tag})

    def close(self) -> None:
        if self._owns_client:
            self._client.close()
