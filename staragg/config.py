"""Global configuration for staragg."""

import os

# ---------- Prime field ----------
# All share arithmetic is mod PRIME (2**256 - 189).
PRIME = 2**256 - 189
FIELD_ELEMENT_LEN = 32  # bytes, little-endian

# ---------- Evaluation points ----------
# Width in bytes of a share's x coordinate.  32 draws x from the whole field,
# 1 is the compact single-byte domain (x in 1..255).
DEFAULT_POINT_WIDTH = FIELD_ELEMENT_LEN
COMPACT_POINT_WIDTH = 1

# ---------- Payload encoding ----------
# Bytes of payload carried by one field element (top byte kept zero).
PAYLOAD_CHUNK_LEN = FIELD_ELEMENT_LEN - 1
AES_KEY_LEN = 16
AES_NONCE_LEN = 12

# ---------- Randomness ----------
RANDOMNESS_LEN = 32
MAX_MD_TAGS = 256  # the puncturable PRF addresses tags with one byte

# Domain separation labels
DST_LOCAL_RANDOMNESS = b"staragg/local-randomness/v1"
DST_OPRF_INPUT = b"staragg/oprf-input/v1"
DST_OPRF_OUTPUT = b"staragg/oprf-output/v1"
DST_DLEQ = b"staragg/dleq/v1"
HKDF_INFO_TAG = b"staragg tag"
HKDF_INFO_KEY = b"staragg key"
HKDF_INFO_SEED = b"staragg polynomial seed"

# ---------- Services ----------
DEFAULT_THRESHOLD = int(os.environ.get("STARAGG_THRESHOLD", "50"))
# Comma-separated metadata tags (epochs) the randomness service is created with.
EPOCH_TAGS = [
    t for t in os.environ.get("STARAGG_EPOCHS", "t").split(",") if t
]
RANDOMNESS_URL = os.environ.get("STARAGG_RANDOMNESS_URL", "http://localhost:8080")
AGGREGATOR_URL = os.environ.get("STARAGG_AGGREGATOR_URL", "http://localhost:8000")
HTTP_TIMEOUT = float(os.environ.get("STARAGG_HTTP_TIMEOUT", "10.0"))

LOG_LEVEL = os.environ.get("STARAGG_LOG_LEVEL", "INFO")
