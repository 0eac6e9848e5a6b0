import enum
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests

GENERIC_MESSAGE = "Something went wrong, please try again"


class ErrorKind(str, enum.Enum):
    VALIDATION = "validation"
    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    TIMEOUT = "timeout"
    NETWORK = "network"
    INTERNAL = "internal"
    UNKNOWN = "unknown"


STATUS_KINDS = {
    400: ErrorKind.VALIDATION,
    401: ErrorKind.AUTHENTICATION,
    403: ErrorKind.AUTHORIZATION,
    404: ErrorKind.NOT_FOUND,
    409: ErrorKind.CONFLICT,
    422: ErrorKind.VALIDATION,
    504: ErrorKind.TIMEOUT,
}


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str


@dataclass(eq=False)
class ApiError(Exception):
    """Every failure the client surfaces, tagged with what kind of failure it was."""

    kind: ErrorKind
    message: str
    status: Optional[int] = None
    fields: List[FieldError] = field(default_factory=list)

    def __post_init__(self):
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message

    def first_message(self) -> str:
        if self.fields:
            return self.fields[0].message
        return self.message or GENERIC_MESSAGE

    @classmethod
    def from_response(cls, response: requests.Response) -> "ApiError":
        """Build from the server's ``{"error": {...}}`` envelope."""
        kind = STATUS_KINDS.get(response.status_code)
        if kind is None:
            kind = ErrorKind.INTERNAL if response.status_code >= 500 else ErrorKind.UNKNOWN

        try:
            body = response.json()
        except ValueError:
            body = None
        envelope: Dict[str, Any] = {}
        if isinstance(body, dict) and isinstance(body.get("error"), dict):
            envelope = body["error"]

        details = envelope.get("details") if isinstance(envelope.get("details"), dict) else {}
        fields = [
            FieldError(field=str(item.get("field", "")), message=str(item.get("message", "")))
            for item in details.get("errors", [])
            if isinstance(item, dict)
        ]
        return cls(
            kind=kind,
            message=str(envelope.get("message") or GENERIC_MESSAGE),
            status=response.status_code,
            fields=fields,
        )

    @classmethod
    def network(cls, exc: Exception) -> "ApiError":
        return cls(kind=ErrorKind.NETWORK, message=f"Could not reach the server: {exc}")

    @classmethod
    def timeout(cls, exc: Exception) -> "ApiError":
        return cls(kind=ErrorKind.TIMEOUT, message="The server took too long to respond")
