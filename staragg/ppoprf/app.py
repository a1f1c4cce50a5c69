"""Randomness service FastAPI application.

Wraps one puncturable OPRF server handle.

Endpoints:
- GET  /info        – metadata tags, puncture status and tag public keys
- POST /randomness  – evaluate a batch of blinded points under one tag
- POST /puncture    – irreversibly puncture a tag (closes that epoch)
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from staragg.config import EPOCH_TAGS
from staragg.errors import EpochPunctured, InvalidPoint, UnknownEpoch
from staragg.ppoprf.ffi import ServerHandle

logger = logging.getLogger(__name__)


class RandomnessRequest(BaseModel):
    points: List[str]  # hex-encoded compressed points
    md_index: int = 0
    verifiable: bool = False


class RandomnessResponse(BaseModel):
    points: List[str]
    proofs: List[Optional[str]]


class PunctureRequest(BaseModel):
    tag: str


class RandomnessState:
    """Owns the server handle; whoever creates the state calls ``close()``."""

    def __init__(self, tags: Sequence[str] | None = None) -> None:
        self.server = ServerHandle(list(tags) if tags else EPOCH_TAGS)

    def close(self) -> None:
        self.server.close()


def _decode_point(value: str) -> bytes:
    try:
        return bytes.fromhex(value)
    except ValueError:
        raise HTTPException(400, "Point is not valid hex") from None


def create_app(state: RandomnessState | None = None) -> FastAPI:
    """Factory that creates a randomness service app.

    If *state* is not provided a server is created for the tags listed in
    ``STARAGG_EPOCHS``.
    """
    if state is None:
        state = RandomnessState()

    app = FastAPI(title="staragg randomness server")
    app.state.randomness = state

    @app.get("/info")
    async def info():
        server = state.server
        return {
            "tags": [t.decode() for t in server.tags],
            "punctured": [
                i for i in range(len(server.tags)) if server.is_punctured(i)
            ],
            "public_keys": [
                server.public_key(i).hex() for i in range(len(server.tags))
            ],
        }

    @app.post("/randomness", response_model=RandomnessResponse)
    async def randomness(req: RandomnessRequest):
        server = state.server
        outputs: List[str] = []
        proofs: List[Optional[str]] = []
        try:
            for value in req.points:
                ev = server.eval(_decode_point(value), req.md_index, req.verifiable)
                outputs.append(ev.output.hex())
                proofs.append(ev.proof.to_bytes().hex() if ev.proof else None)
        except UnknownEpoch as exc:
            raise HTTPException(404, str(exc))
        except EpochPunctured as exc:
            raise HTTPException(410, str(exc))
        except InvalidPoint as exc:
            raise HTTPException(400, str(exc))
        logger.debug("evaluated %d point(s) for tag index %d", len(outputs), req.md_index)
        return RandomnessResponse(points=outputs, proofs=proofs)

    @app.post("/puncture")
    async def puncture(req: PunctureRequest):
        try:
            state.server.puncture(req.tag)
        except UnknownEpoch as exc:
            raise HTTPException(404, str(exc))
        return {"status": "punctured", "tag": req.tag}

    return app
