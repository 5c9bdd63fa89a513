"""
Storage Exceptions

Backend-neutral errors raised by the durable store and the session cache.
Services translate them into HTTP 500 responses.
"""


class StoreError(Exception):
    """The durable store rejected a read or write."""


class CacheError(Exception):
    """The session cache or presence backend is unreachable or failed."""
