"""HTTP/HTTPS port pairing helpers for neo4jctl."""
from __future__ import annotations

from dataclasses import dataclass


class PortError(RuntimeError):
    """Raised when a requested port cannot be used for the connectors."""


@dataclass(frozen=True, slots=True)
class PortPair:
    """HTTP port supplied by the operator and the HTTPS port derived from it."""

    http: int

    def __post_init__(self) -> None:
        """Validate that both connector ports fall within the TCP range."""
        if isinstance(self.http, bool) or not isinstance(self.http, int):
            raise PortError(f"Port must be an integer. Got {self.http!r}.")
        if self.http < 2 or self.http > 65535:
            raise PortError(
                f"Port {self.http} is out of range; expected 2-65535 so the HTTPS "
                "port (port - 1) stays valid."
            )

    @property
    def https(self) -> int:
        """Return the HTTPS port, one below the HTTP port."""
        return self.http - 1

    def to_dict(self) -> dict[str, int]:
        """Return a serialisable representation."""
        return {"http": self.http, "https": self.https}


__all__ = ["PortError", "PortPair"]
