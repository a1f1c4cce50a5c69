#!/usr/bin/env python3
"""staragg end-to-end demo (in-process, no services needed).

Usage:
    python -m staragg.demo.run_demo

The script:
1. Creates a puncturable randomness server for two epochs.
2. Generates Zipf-distributed client reports with OPRF randomness.
3. Aggregates the epoch and prints the measurements that reached the threshold.
4. Punctures the epoch and shows that no further evaluations are possible.
5. Repeats a small batch with local randomness and auxiliary data.
"""

from __future__ import annotations

import os
from collections import Counter

from staragg.aggregator.server import AggregationServer
from staragg.client.triple import Client, Triple
from staragg.client.zipf import client_zipf
from staragg.errors import EpochPunctured
from staragg.log import configure_logging
from staragg.ppoprf.ffi import ServerHandle

CLIENTS = int(os.environ.get("STARAGG_DEMO_CLIENTS", "2000"))
THRESHOLD = int(os.environ.get("STARAGG_DEMO_THRESHOLD", "20"))
ZIPF_N = 1000
ZIPF_S = 1.03


def banner(msg: str) -> None:
    print(f"\n{'='*60}")
    print(f"  {msg}")
    print(f"{'='*60}")


def main() -> None:
    configure_logging(os.environ.get("STARAGG_LOG_LEVEL", "WARNING"))

    with ServerHandle(["epoch-1", "epoch-2"]) as randomness:
        # ---- 1. OPRF reports ----
        banner(f"1) {CLIENTS} clients report with OPRF randomness (epoch-1)")
        clients = [client_zipf(ZIPF_N, ZIPF_S, THRESHOLD, "epoch-1") for _ in range(CLIENTS)]
        truth = Counter(c.measurement for c in clients)
        triples = [Triple.generate(c, randomness) for c in clients]
        print(f"   Distinct measurements: {len(truth)}")
        print(f"   Measurements with >= {THRESHOLD} reports: "
              f"{sum(1 for n in truth.values() if n >= THRESHOLD)}")

        # ---- 2. Aggregation ----
        banner("2) Aggregation server retrieves epoch-1")
        result = AggregationServer(THRESHOLD, "epoch-1").retrieve_outputs(triples)
        for out in sorted(result.outputs, key=lambda o: -o.count)[:10]:
            print(f"   measurement={out.measurement.decode():>6}  reports={out.count}")
        print(f"   Recovered: {len(result.outputs)}  failed: {len(result.failures)}  "
              f"hidden (below threshold): {result.below_threshold}")

        # ---- 3. Puncture ----
        banner("3) Puncture epoch-1")
        randomness.puncture("epoch-1")
        try:
            Triple.generate(Client("1", THRESHOLD, "epoch-1", allow_local_randomness=False),
                            randomness)
        except EpochPunctured as exc:
            print(f"   Evaluation refused: {exc}")

        # ---- 4. Local randomness with auxiliary data ----
        banner("4) Local randomness + auxiliary data (epoch-2)")
        reports = [
            Triple.generate(Client("example.com", 3, "epoch-2", aux=f"client-{i}".encode()))
            for i in range(3)
        ] + [Triple.generate(Client("rare.example", 3, "epoch-2"))]
        result = AggregationServer(3, "epoch-2").retrieve_outputs(reports)
        for out in result.outputs:
            print(f"   {out.measurement.decode()}: aux={[a.decode() for a in out.aux if a]}")
        print(f"   Hidden groups: {result.below_threshold}")

    banner("DEMO COMPLETE")


if __name__ == "__main__":
    main()
