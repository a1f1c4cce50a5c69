"""Client reports ("triples").

A triple is what one client sends for one measurement in one epoch:

    tag         groups the reports of every client with the same
                (measurement, epoch); derived from the report randomness
    share       one share of  key || measurement,  dealt with polynomial
                coefficients seeded from the randomness, so all clients with
                the same measurement hold shares of the same polynomial
    ciphertext  optional auxiliary data, AES-GCM encrypted under ``key``
    epoch       the reporting epoch

The aggregation server learns ``key || measurement`` only once ``threshold``
distinct shares with the same tag arrive, and only then can it open the
auxiliary data of those reports.
"""

from __future__ import annotations

import logging
import os
import secrets
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from staragg.config import AES_KEY_LEN, AES_NONCE_LEN, DEFAULT_POINT_WIDTH
from staragg.crypto.drbg import HashDRBG
from staragg.crypto.shamir import Share, Sharks
from staragg.client.encoding import encode_payload
from staragg.client.randomness import (
    RandomnessService,
    derive_keys,
    sample_local_randomness,
    sample_oprf_randomness,
)
from staragg.errors import DecryptionError, InvalidEncoding, ServiceUnavailable
from staragg.log import short

logger = logging.getLogger(__name__)


def _as_bytes(value: Union[str, bytes]) -> bytes:
    return value.encode() if isinstance(value, str) else bytes(value)


def seal_aux(key: bytes, aux: bytes, tag: bytes, epoch: str) -> bytes:
    nonce = os.urandom(AES_NONCE_LEN)
    return nonce + AESGCM(key).encrypt(nonce, aux, tag + epoch.encode())


def open_aux(key: bytes, ciphertext: bytes, tag: bytes, epoch: str) -> bytes:
    if len(key) != AES_KEY_LEN:
        raise DecryptionError("Recovered key has the wrong length")
    nonce, body = ciphertext[:AES_NONCE_LEN], ciphertext[AES_NONCE_LEN:]
    try:
        return AESGCM(key).decrypt(nonce, body, tag + epoch.encode())
    except InvalidTag:
        raise DecryptionError("Auxiliary data failed authentication") from None


class Client:
    """One client's report configuration for a single epoch.

    With ``allow_local_randomness=False`` the client refuses to build a
    report without a randomness service.  A client reports once: repeated
    ``Triple.generate`` calls return the same triple, so a retried upload
    carries the same share and is collapsed at recovery.  A report built from
    local randomness is never handed out where a service was requested.
    """

    def __init__(
        self,
        measurement: Union[str, bytes],
        threshold: int,
        epoch: str,
        aux: Optional[bytes] = None,
        *,
        allow_local_randomness: bool = True,
        verify_randomness: bool = False,
        local_key: Optional[bytes] = None,
        point_width: int = DEFAULT_POINT_WIDTH,
    ) -> None:
        self.measurement = _as_bytes(measurement)
        self.threshold = threshold
        self.epoch = epoch
        self.aux = aux
        self.allow_local_randomness = allow_local_randomness
        self.verify_randomness = verify_randomness
        self.local_key = local_key
        self.point_width = point_width
        self._report: Optional["Triple"] = None
        self._report_is_local = False

    @property
    def report(self) -> Optional["Triple"]:
        """The triple this client already produced, if any."""
        return self._report

    def cached_report(self, service: Optional[RandomnessService]) -> Optional["Triple"]:
        """Return the earlier report, refusing to pass off a local one as OPRF."""
        if self._report is not None and service is not None and self._report_is_local:
            raise ValueError(
                "Client already reported with local randomness; "
                "it cannot report again through a randomness service"
            )
        return self._report

    def remember(self, triple: "Triple", local: bool) -> None:
        self._report = triple
        self._report_is_local = local

    def sample_local_randomness(self) -> bytes:
        return sample_local_randomness(self.measurement, self.epoch, self.local_key)

    def sample_oprf_randomness(self, service: RandomnessService) -> bytes:
        return sample_oprf_randomness(
            self.measurement, self.epoch, service, self.verify_randomness
        )


@dataclass(frozen=True)
class Triple:
    tag: bytes
    share: Share
    epoch: str
    ciphertext: Optional[bytes] = None
    point_width: int = DEFAULT_POINT_WIDTH

    @classmethod
    def generate(
        cls, client: Client, service: Optional[RandomnessService] = None
    ) -> "Triple":
        """Build the client's report, via *service* when one is given."""
        cached = client.cached_report(service)
        if cached is not None:
            return cached

        if service is not None:
            randomness = client.sample_oprf_randomness(service)
        elif client.allow_local_randomness:
            randomness = client.sample_local_randomness()
        else:
            raise ServiceUnavailable(
                "Client requires OPRF randomness but no randomness service was given"
            )

        keys = derive_keys(randomness)
        secret = encode_payload(keys.key + client.measurement)
        evaluator = Sharks(client.threshold, client.point_width).dealer_rng(
            secret, HashDRBG(keys.seed), point_rng=secrets.SystemRandom()
        )
        ciphertext = None
        if client.aux is not None:
            ciphertext = seal_aux(keys.key, client.aux, keys.tag, client.epoch)

        triple = cls(
            tag=keys.tag,
            share=evaluator.gen(),
            epoch=client.epoch,
            ciphertext=ciphertext,
            point_width=client.point_width,
        )
        client.remember(triple, local=service is None)
        logger.debug("generated triple for tag %s", short(keys.tag))
        return triple

    # ---- serialization ----

    def to_bytes(self) -> bytes:
        """``tag_len|tag|epoch_len|epoch|width|share_len|share|ct_len|ct``.

        Lengths are big-endian: 1 byte for tag, 2 for epoch, 1 for the
        point width, 4 for share and ciphertext.  ``ct_len`` 0 means no
        auxiliary data.
        """
        epoch = self.epoch.encode()
        share = self.share.to_bytes(self.point_width)
        ct = self.ciphertext or b""
        return b"".join([
            len(self.tag).to_bytes(1, "big"), self.tag,
            len(epoch).to_bytes(2, "big"), epoch,
            self.point_width.to_bytes(1, "big"),
            len(share).to_bytes(4, "big"), share,
            len(ct).to_bytes(4, "big"), ct,
        ])

    @classmethod
    def from_bytes(cls, data: bytes) -> "Triple":
        pos = 0

        def take(n: int) -> bytes:
            nonlocal pos
            if pos + n > len(data):
                raise InvalidEncoding("Truncated triple")
            out = data[pos:pos + n]
            pos += n
            return out

        tag = take(take(1)[0])
        epoch = take(int.from_bytes(take(2), "big"))
        point_width = take(1)[0]
        share = take(int.from_bytes(take(4), "big"))
        ct = take(int.from_bytes(take(4), "big"))
        if pos != len(data):
            raise InvalidEncoding("Trailing bytes after triple")
        try:
            epoch_str = epoch.decode()
        except UnicodeDecodeError:
            raise InvalidEncoding("Epoch is not UTF-8") from None
        return cls(
            tag=tag,
            share=Share.from_bytes(share, point_width),
            epoch=epoch_str,
            ciphertext=ct or None,
            point_width=point_width,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tag": self.tag.hex(),
            "share": self.share.to_bytes(self.point_width).hex(),
            "epoch": self.epoch,
            "ciphertext": self.ciphertext.hex() if self.ciphertext else None,
            "point_width": self.point_width,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Triple":
        try:
            point_width = int(data.get("point_width", DEFAULT_POINT_WIDTH))
            ct = data.get("ciphertext")
            return cls(
                tag=bytes.fromhex(data["tag"]),
                share=Share.from_bytes(bytes.fromhex(data["share"]), point_width),
                epoch=str(data["epoch"]),
                ciphertext=bytes.fromhex(ct) if ct else None,
                point_width=point_width,
            )
        except (KeyError, TypeError) as exc:
            raise InvalidEncoding(f"Malformed triple: {exc}") from exc
        except ValueError as exc:
            if isinstance(exc, InvalidEncoding):
                raise
            raise InvalidEncoding(f"Malformed triple: {exc}") from exc
