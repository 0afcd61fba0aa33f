"""Domain errors raised by the CRUD layer and rendered as JSON by main.py."""

from typing import Any, Dict, Optional


class StoreError(Exception):
    """A request the store refuses; rendered as ``{"detail": ...}``."""

    status_code = 400

    def __init__(self, detail: str, status_code: Optional[int] = None, **extra: Any):
        super().__init__(detail)
        self.detail = detail
        if status_code is not None:
            self.status_code = status_code
        self.extra: Dict[str, Any] = extra

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.detail, **self.extra}


class NotFoundError(StoreError):
    status_code = 404


class ForbiddenError(StoreError):
    status_code = 403
