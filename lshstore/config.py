"""
Configuration for lshstore, read from environment variables.

Every value has a default; constructors use these as their keyword defaults.
"""

import os


def env_int(name: str, default: int) -> int:
    """Read an integer environment variable, falling back to ``default``."""
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be an integer, got {raw!r}") from None


# Vector storage
DIM = env_int("LSHSTORE_DIM", 1536)
CAPACITY = env_int("LSHSTORE_CAPACITY", 16_384)
MIN_CAPACITY = env_int("LSHSTORE_MIN_CAPACITY", 1024)

# LSH: more tables = better recall, more bits = smaller buckets
TABLES = env_int("LSHSTORE_TABLES", 16)
BITS = env_int("LSHSTORE_BITS", 12)

# Entry cache and upstream fetch
CACHE_PATH = os.getenv("LSHSTORE_CACHE_PATH", "lshstore_cache.db")
CACHE_TTL_SECONDS = env_int("LSHSTORE_CACHE_TTL_SECONDS", 24 * 60 * 60)
FETCH_TIMEOUT = env_int("LSHSTORE_FETCH_TIMEOUT", 30)
