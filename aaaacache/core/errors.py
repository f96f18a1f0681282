from __future__ import annotations


class AAAACacheError(Exception):
    """Base class for lookup failures raised by aaaacache."""

    def __init__(self, host: str, message: str):
        super().__init__(message)
        self.host = host


class ResolutionError(AAAACacheError):
    """The resolver adapter could not resolve the host at all."""

    def __init__(self, host: str, reason: object = None):
        message = f"could not resolve {host}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(host, message)


class NoAAAARecordError(AAAACacheError):
    """The host resolved, but none of its addresses is IPv6-only."""

    def __init__(self, host: str):
        super().__init__(host, f"could not find AAAA record for {host}")
