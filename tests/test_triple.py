"""Tests for client report generation and serialization."""

from __future__ import annotations

import pytest

from staragg.client.triple import Client, Triple, open_aux, seal_aux
from staragg.client.zipf import client_zipf, sample_zipf
from staragg.config import COMPACT_POINT_WIDTH, FIELD_ELEMENT_LEN
from staragg.errors import DecryptionError, EpochPunctured, InvalidEncoding, ServiceUnavailable
from staragg.ppoprf.server import PPOPRFServer


def test_same_measurement_same_tag():
    a = Triple.generate(Client("example.com", 3, "t"))
    b = Triple.generate(Client("example.com", 3, "t"))
    assert a.tag == b.tag
    assert a.share.x != b.share.x


def test_different_measurement_or_epoch_different_tag():
    base = Triple.generate(Client("example.com", 3, "t"))
    assert Triple.generate(Client("example.org", 3, "t")).tag != base.tag
    assert Triple.generate(Client("example.com", 3, "u")).tag != base.tag


def test_oprf_tag_differs_from_local():
    server = PPOPRFServer(["t"])
    local = Triple.generate(Client("example.com", 3, "t"))
    oprf = Triple.generate(Client("example.com", 3, "t"), server)
    assert local.tag != oprf.tag
    assert Triple.generate(Client("example.com", 3, "t"), server).tag == oprf.tag


def test_one_report_per_client():
    client = Client("example.com", 3, "t")
    assert Triple.generate(client) is Triple.generate(client)


def test_local_report_not_reused_for_service():
    server = PPOPRFServer(["t"])
    client = Client("example.com", 3, "t")
    local = Triple.generate(client)
    with pytest.raises(ValueError):
        Triple.generate(client, server)
    assert client.report is local


def test_oprf_report_reused_and_matches_fresh_client():
    server = PPOPRFServer(["t"])
    client = Client("example.com", 3, "t")
    assert client.report is None
    oprf = Triple.generate(client, server)
    assert client.report is oprf
    assert Triple.generate(client, server) is oprf
    assert Triple.generate(client) is oprf
    assert oprf.tag == Triple.generate(Client("example.com", 3, "t"), server).tag


def test_share_size():
    # key (16) + "abc" + 4-byte length fits one element
    triple = Triple.generate(Client("abc", 2, "t", point_width=COMPACT_POINT_WIDTH))
    assert len(triple.share.y) == 1
    assert len(triple.share.to_bytes(COMPACT_POINT_WIDTH)) == 1 + FIELD_ELEMENT_LEN


def test_requires_service_when_local_not_allowed():
    client = Client("example.com", 3, "t", allow_local_randomness=False)
    with pytest.raises(ServiceUnavailable):
        Triple.generate(client)


def test_no_fallback_after_puncture():
    server = PPOPRFServer(["t"])
    server.puncture("t")
    client = Client("example.com", 3, "t")
    with pytest.raises(EpochPunctured):
        Triple.generate(client, server)


def test_verified_randomness():
    server = PPOPRFServer(["t"])
    client = Client("example.com", 3, "t", verify_randomness=True)
    assert Triple.generate(client, server).tag


def test_aux_is_encrypted():
    triple = Triple.generate(Client("example.com", 3, "t", aux=b"secret aux"))
    assert triple.ciphertext is not None
    assert b"secret aux" not in triple.ciphertext
    assert Triple.generate(Client("example.com", 3, "t")).ciphertext is None


def test_seal_open():
    key, tag = b"k" * 16, b"g" * 32
    ct = seal_aux(key, b"payload", tag, "t")
    assert open_aux(key, ct, tag, "t") == b"payload"
    with pytest.raises(DecryptionError):
        open_aux(key, ct, tag, "u")
    with pytest.raises(DecryptionError):
        open_aux(b"x" * 16, ct, tag, "t")


class TestSerialization:
    def test_bytes(self):
        triple = Triple.generate(Client("example.com", 3, "t", aux=b"a"))
        assert Triple.from_bytes(triple.to_bytes()) == triple

    def test_dict(self):
        triple = Triple.generate(Client("example.com", 3, "t", point_width=COMPACT_POINT_WIDTH))
        assert Triple.from_dict(triple.to_dict()) == triple

    def test_truncated(self):
        data = Triple.generate(Client("example.com", 3, "t")).to_bytes()
        with pytest.raises(InvalidEncoding):
            Triple.from_bytes(data[:-1])
        with pytest.raises(InvalidEncoding):
            Triple.from_bytes(data + b"\x00")

    def test_malformed_dict(self):
        with pytest.raises(InvalidEncoding):
            Triple.from_dict({"tag": "zz", "share": "00", "epoch": "t"})
        with pytest.raises(InvalidEncoding):
            Triple.from_dict({"epoch": "t"})


class TestZipf:
    def test_range(self):
        for _ in range(200):
            assert 1 <= sample_zipf(50, 1.03) <= 50

    def test_head_is_most_frequent(self):
        import random

        rng = random.Random(3)
        counts = [0] * 11
        for _ in range(5000):
            counts[sample_zipf(10, 1.5, rng)] += 1
        assert counts[1] == max(counts)

    def test_client_zipf(self):
        client = client_zipf(10, 1.03, 5, "t", aux=b"x")
        assert 1 <= int(client.measurement) <= 10
        assert client.threshold == 5
        assert client.epoch == "t"
        assert client.aux == b"x"

    def test_invalid_parameters(self):
        with pytest.raises(ValueError):
            sample_zipf(0, 1.0)
