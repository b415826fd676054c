from __future__ import annotations


class ServiceError(ValueError):
    """Business rejection raised by services; ``code`` is a stable machine name."""

    def __init__(self, code: str, message: str | None = None) -> None:
        super().__init__(code)
        self.code = code
        self.message = message or code
