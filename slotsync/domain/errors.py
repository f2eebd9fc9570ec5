"""
Error taxonomy shared by every layer.

All non-2xx answers from the authority are normalized into ApiError, so
callers inspect one shape: title, status, detail.
"""

from typing import Any


class ApiError(Exception):
    """Structured error returned (or synthesized) for a failed call."""

    def __init__(
        self,
        title: str,
        status: int,
        detail: str = "",
        type: str | None = None,
        instance: str | None = None,
        trace_id: str | None = None,
    ):
        super().__init__(f"{status} {title}: {detail}" if detail else f"{status} {title}")
        self.title = title
        self.status = status
        self.detail = detail
        self.type = type
        self.instance = instance
        self.trace_id = trace_id

    @classmethod
    def from_payload(cls, status: int, payload: Any, reason: str = "") -> "ApiError":
        """Build from a decoded error body, falling back to the transport status."""
        if isinstance(payload, dict) and ("title" in payload or "detail" in payload):
            return cls(
                title=str(payload.get("title") or "Error"),
                status=int(payload.get("status") or status),
                detail=str(payload.get("detail") or ""),
                type=payload.get("type"),
                instance=payload.get("instance"),
                trace_id=payload.get("traceId"),
            )
        return cls.synthesized(status, reason)

    @classmethod
    def synthesized(cls, status: int, reason: str = "") -> "ApiError":
        return cls(
            title="Error",
            status=status,
            detail=reason or "An unexpected error occurred",
        )

    @property
    def message(self) -> str:
        """What a UI would show: detail first, title otherwise."""
        return self.detail or self.title

    @property
    def is_authorization(self) -> bool:
        return self.status == 401

    @property
    def is_conflict(self) -> bool:
        return self.status == 409

    @property
    def is_validation(self) -> bool:
        return 400 <= self.status < 500 and self.status != 401

    def __repr__(self) -> str:
        return f"ApiError(title={self.title!r}, status={self.status}, detail={self.detail!r})"


class SessionExpired(ApiError):
    """Renewal failed; the caller must send the user back to login."""

    def __init__(self, detail: str = "Please log in again."):
        super().__init__(title="Session Expired", status=401, detail=detail)


class TransportError(Exception):
    """The request never produced an HTTP response (DNS, refused, timeout...)."""


class SessionStorageError(Exception):
    """Durable session storage could not be read or written."""
