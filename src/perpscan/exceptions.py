"""Exceptions raised by perpscan.

Every failure path in the query pipeline ends in one of these; nothing is
retried internally and no partial result accompanies an error.
"""

from __future__ import annotations


class PerpscanError(Exception):
    """Base exception for all perpscan errors."""


class ConfigError(PerpscanError):
    """Raised when settings are missing something required to build a service."""


class BlockRangeError(PerpscanError, ValueError):
    """Raised for malformed block ranges or chunk limits."""


class QueryCancelledError(PerpscanError):
    """Raised when a query's cancel token fires before or between chunks."""


class JSONRPCError(PerpscanError):
    """Node-side JSON-RPC error, or a response that is not valid JSON-RPC."""

    def __init__(self, method: str, code: int | None, message: str) -> None:
        super().__init__(f"{method} RPC error code={code} message={message}")
        self.method = method
        self.code = code
        self.message = message


class RPCProviderError(PerpscanError):
    """Transport or node failure while executing one contract/RPC operation."""

    def __init__(self, operation: str, cause: BaseException) -> None:
        super().__init__(f"rpc provider error on {operation}: {cause}")
        self.operation = operation
        self.cause = cause


class DecodeError(PerpscanError):
    """A log entry or call result does not match the schema expected for it."""

    def __init__(self, kind: str, log_index: int | None, reason: str = "") -> None:
        where = f" at log index {log_index}" if log_index is not None else ""
        super().__init__(f"cannot decode {kind}{where}: {reason}".rstrip(": "))
        self.kind = kind
        self.log_index = log_index
        self.reason = reason
