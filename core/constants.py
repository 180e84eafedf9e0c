"""
Core Module - Constants.

============================================================
RESPONSIBILITY
============================================================
Defines all system-wide constants.

- Metric kinds accepted by the store and on the wire
- HTTP header names shared by agent and server
- Default intervals and addresses

============================================================
"""

# ============================================================
# METRIC KINDS
# ============================================================

GAUGE = "gauge"
"""Metric whose updates replace the stored value."""

COUNTER = "counter"
"""Metric whose updates add to the stored value."""

METRIC_TYPES = (GAUGE, COUNTER)

# Signed 64-bit bounds for counter deltas
INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1

# ============================================================
# HTTP CONTRACT
# ============================================================

SIGNATURE_HEADER = "HashSHA256"
"""Base64 HMAC-SHA256 of the uncompressed body."""

GZIP_ENCODING = "gzip"

# ============================================================
# DEFAULTS
# ============================================================

DEFAULT_ADDRESS = "localhost:8080"
DEFAULT_STORE_INTERVAL_SECONDS = 300
DEFAULT_FILE_STORAGE_PATH = "/tmp/metrics-db.json"
DEFAULT_POLL_INTERVAL_SECONDS = 2
DEFAULT_REPORT_INTERVAL_SECONDS = 10

METRICS_TABLE = "metrics"
METRIC_UNIQUE_CONSTRAINT = "metric_unique"
