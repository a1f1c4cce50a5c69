"""End-to-end tests using in-process ASGI TestClients.

The randomness service and the aggregation service run in the same process
(no network needed); clients fetch OPRF randomness over HTTP, upload their
triples and the aggregator retrieves the epoch.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from staragg.aggregator.app import AggregatorState, create_app as create_aggregator_app
from staragg.client.randomness import HTTPRandomnessClient
from staragg.client.triple import Client, Triple
from staragg.config import DEFAULT_THRESHOLD
from staragg.errors import EpochPunctured
from staragg.ppoprf.app import RandomnessState, create_app as create_randomness_app

THRESHOLD = 4


@pytest.fixture()
def setup():
    randomness_state = RandomnessState(["epoch-1", "epoch-2"])
    randomness = HTTPRandomnessClient(client=TestClient(create_randomness_app(randomness_state)))
    aggregator = TestClient(create_aggregator_app(AggregatorState(THRESHOLD)))
    yield randomness, aggregator
    randomness_state.close()


def _submit(aggregator, epoch, triples):
    return aggregator.post(
        f"/epochs/{epoch}/triples", json={"triples": [t.to_dict() for t in triples]}
    )


def _reports(randomness, measurement, n, epoch="epoch-1", aux=None):
    return [
        Triple.generate(
            Client(measurement, THRESHOLD, epoch, aux=aux, allow_local_randomness=False,
                   verify_randomness=True),
            randomness,
        )
        for _ in range(n)
    ]


# =========================================================================
# Full workflow
# =========================================================================


def test_collect_and_retrieve(setup):
    randomness, aggregator = setup
    batch = _reports(randomness, "popular", THRESHOLD, aux=b"hello") + _reports(randomness, "rare", 2)

    resp = _submit(aggregator, "epoch-1", batch)
    assert resp.status_code == 200
    assert resp.json()["total"] == THRESHOLD + 2
    assert aggregator.get("/epochs/epoch-1").json()["reports"] == THRESHOLD + 2

    resp = aggregator.post("/epochs/epoch-1/retrieve")
    assert resp.status_code == 200
    data = resp.json()
    (out,) = data["outputs"]
    assert bytes.fromhex(out["measurement"]) == b"popular"
    assert out["count"] == THRESHOLD
    assert [bytes.fromhex(a) for a in out["aux"]] == [b"hello"] * THRESHOLD
    assert data["below_threshold"] == 1
    assert data["failures"] == []


def test_submissions_accumulate(setup):
    randomness, aggregator = setup
    batch = _reports(randomness, "m", THRESHOLD)
    _submit(aggregator, "epoch-1", batch[:2])
    _submit(aggregator, "epoch-1", batch[2:])
    data = aggregator.post("/epochs/epoch-1/retrieve").json()
    assert [bytes.fromhex(o["measurement"]) for o in data["outputs"]] == [b"m"]


def test_batch_discarded_after_retrieval(setup):
    randomness, aggregator = setup
    _submit(aggregator, "epoch-1", _reports(randomness, "m", THRESHOLD))
    assert aggregator.post("/epochs/epoch-1/retrieve").status_code == 200
    assert aggregator.post("/epochs/epoch-1/retrieve").status_code == 404
    assert aggregator.get("/epochs/epoch-1").json()["reports"] == 0


def test_puncture_closes_epoch(setup):
    randomness, aggregator = setup
    _reports(randomness, "m", 1, epoch="epoch-1")
    randomness.puncture("epoch-1")
    with pytest.raises(EpochPunctured):
        _reports(randomness, "m", 1, epoch="epoch-1")
    assert _reports(randomness, "m", 1, epoch="epoch-2")


# =========================================================================
# Rejections
# =========================================================================


def test_epoch_mismatch_rejected(setup):
    randomness, aggregator = setup
    resp = _submit(aggregator, "epoch-2", _reports(randomness, "m", 1, epoch="epoch-1"))
    assert resp.status_code == 400
    assert aggregator.get("/epochs/epoch-2").json()["reports"] == 0


def test_malformed_triple_rejected(setup):
    _, aggregator = setup
    resp = aggregator.post(
        "/epochs/epoch-1/triples", json={"triples": [{"tag": "00", "share": "zz", "epoch": "epoch-1"}]}
    )
    assert resp.status_code == 400


def test_unknown_epoch_retrieve(setup):
    _, aggregator = setup
    assert aggregator.post("/epochs/nothing/retrieve").status_code == 404


# =========================================================================
# Audit
# =========================================================================


def test_audit_chain(setup):
    randomness, aggregator = setup
    _submit(aggregator, "epoch-1", _reports(randomness, "m", THRESHOLD))
    aggregator.post("/epochs/epoch-1/retrieve")
    data = aggregator.get("/audit").json()
    assert data["chain_valid"]
    events = [e["event"] for e in data["entries"]]
    assert events == ["submit", "retrieve"]
    assert data["entries"][1]["data"]["recovered"] == 1


def test_default_threshold_from_config():
    app = create_aggregator_app()
    assert app.state.aggregator.threshold == DEFAULT_THRESHOLD
