"""Aggregation service FastAPI application.

Collects triples per epoch and runs threshold retrieval on request.

Endpoints:
- POST /epochs/{epoch}/triples   – submit a batch of triples
- GET  /epochs/{epoch}           – number of reports collected so far
- POST /epochs/{epoch}/retrieve  – recover outputs, then discard the batch
- GET  /audit                    – hash-chained event log
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from staragg.aggregator.audit import AuditLog
from staragg.aggregator.server import AggregationServer
from staragg.client.triple import Triple
from staragg.config import DEFAULT_THRESHOLD
from staragg.errors import InvalidEncoding

logger = logging.getLogger(__name__)


class SubmitRequest(BaseModel):
    triples: List[Dict[str, Any]]


class AuditResponse(BaseModel):
    entries: List[Dict[str, Any]]
    chain_valid: bool


class AggregatorState:
    """Per-service mutable state: open epoch batches and the audit log."""

    def __init__(self, threshold: int) -> None:
        self.threshold = threshold
        self.batches: Dict[str, List[Triple]] = {}
        self.audit = AuditLog()


def create_app(state: AggregatorState | None = None) -> FastAPI:
    """Factory that creates an aggregation service app.

    If *state* is not provided the threshold is ``config.DEFAULT_THRESHOLD``.
    """
    if state is None:
        state = AggregatorState(DEFAULT_THRESHOLD)

    app = FastAPI(title="staragg aggregation server")
    app.state.aggregator = state

    @app.post("/epochs/{epoch}/triples")
    async def submit(epoch: str, req: SubmitRequest):
        accepted: List[Triple] = []
        for i, raw in enumerate(req.triples):
            try:
                triple = Triple.from_dict(raw)
            except InvalidEncoding as exc:
                raise HTTPException(400, f"triple {i}: {exc}")
            if triple.epoch != epoch:
                raise HTTPException(400, f"triple {i} belongs to epoch {triple.epoch!r}")
            accepted.append(triple)
        batch = state.batches.setdefault(epoch, [])
        batch.extend(accepted)
        state.audit.append("submit", {"epoch": epoch, "count": len(accepted)})
        logger.info("accepted %d triple(s) for epoch %s", len(accepted), epoch)
        return {"status": "accepted", "epoch": epoch, "accepted": len(accepted), "total": len(batch)}

    @app.get("/epochs/{epoch}")
    async def epoch_status(epoch: str):
        return {"epoch": epoch, "reports": len(state.batches.get(epoch, []))}

    @app.post("/epochs/{epoch}/retrieve")
    async def retrieve(epoch: str):
        if epoch not in state.batches:
            raise HTTPException(404, "No reports collected for this epoch")
        batch = state.batches.pop(epoch)
        result = AggregationServer(state.threshold, epoch).retrieve_outputs(batch)
        state.audit.append(
            "retrieve",
            {
                "epoch": epoch,
                "reports": len(batch),
                "recovered": len(result.outputs),
                "failed": len(result.failures),
                "below_threshold": result.below_threshold,
            },
        )
        return {
            "epoch": epoch,
            "outputs": [
                {
                    "measurement": o.measurement.hex(),
                    "count": o.count,
                    "aux": [a.hex() if a is not None else None for a in o.aux],
                }
                for o in result.outputs
            ],
            "failures": [
                {"tag": f.tag.hex(), "share_count": f.share_count, "reason": f.reason}
                for f in result.failures
            ],
            "below_threshold": result.below_threshold,
            "foreign_epoch": result.foreign_epoch,
        }

    @app.get("/audit", response_model=AuditResponse)
    async def audit():
        return AuditResponse(entries=state.audit.entries(), chain_valid=state.audit.verify_chain())

    return app
