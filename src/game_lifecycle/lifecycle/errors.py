from __future__ import annotations


class LifecycleError(RuntimeError):
    """Base exception for lifecycle pipeline failures."""


class ConfigurationError(LifecycleError):
    """Required configuration is missing or the database is unreachable. Fatal."""


class LockStoreUnavailable(LifecycleError):
    """The job lock table could not be read or written. Fatal: no lock, no work."""


class InvalidCursorError(LifecycleError):
    """A caller-supplied cursor does not fit the job it was sent with."""


class NormalizationError(LifecycleError):
    """A single provider event cannot be mapped onto the canonical game model."""


def format_failure_reason(exc: BaseException, *, max_len: int = 300) -> str:
    msg = str(exc).strip() or exc.__class__.__name__
    reason = f"{exc.__class__.__name__}: {msg}"
    if len(reason) > max_len:
        return f"{reason[: max_len - 1]}…"
    return reason
