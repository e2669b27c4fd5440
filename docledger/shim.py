"""Chaincode response type, mirroring the peer protocol's Response message."""
from dataclasses import dataclass
from typing import Optional

OK = 200
ERROR_THRESHOLD = 400
ERROR = 500


@dataclass(frozen=True)
class Response:
    """Outcome of a chaincode call: a status code plus message and payload."""

    status: int
    message: str = ""
    payload: bytes = b""

    @property
    def ok(self) -> bool:
        return self.status < ERROR_THRESHOLD


def success(payload: Optional[bytes] = None) -> Response:
    return Response(status=OK, payload=payload or b"")


def error(message: str) -> Response:
    return Response(status=ERROR, message=message)
