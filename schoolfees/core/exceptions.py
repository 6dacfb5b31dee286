from typing import Optional

from fastapi import status


class ServiceError(Exception):
    """Raised by services; routers turn it into an HTTP response with `status_code`."""

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class DataIntegrityError(ServiceError):
    """A stored value breaks the bookkeeping contract (e.g. a non-numeric amount)."""

    def __init__(self, message: str, table: Optional[str] = None, record_id: Optional[object] = None) -> None:
        super().__init__(message, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.table = table
        self.record_id = record_id
