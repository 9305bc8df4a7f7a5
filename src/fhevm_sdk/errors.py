"""Exceptions raised by the FHEVM SDK core."""

from __future__ import annotations


class FhevmError(Exception):
    """Base error carrying a machine-readable ``code``."""

    def __init__(self, code: str, message: str | None = None) -> None:
        super().__init__(message or code)
        self.code = code


class ChainNotConfiguredError(FhevmError):
    """The requested chain is neither a configured nor a mock chain."""

    def __init__(self, chain_id: int, message: str | None = None) -> None:
        super().__init__("CHAIN_NOT_CONFIGURED", message)
        self.chain_id = chain_id


class EnvironmentNotSupportedError(FhevmError):
    """The current execution context lacks a required capability."""


class FhevmAbortError(Exception):
    """A caller cancelled the operation before it completed."""

    def __init__(self, message: str = "FHEVM operation was cancelled") -> None:
        super().__init__(message)
