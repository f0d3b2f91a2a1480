"""Monotonic clock helper in milliseconds."""

import time


def monotonic_ms() -> int:
    return int(time.monotonic() * 1000)
