# erlink/exceptions.py
from typing import List, Optional


class DispatchError(Exception):
    """Base for business-rule failures returned synchronously to the caller."""

    code = "dispatch_error"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class NotFound(DispatchError):
    code = "not_found"
    status_code = 404


class CapacityError(DispatchError):
    code = "capacity_error"
    status_code = 409


class HospitalUnavailable(DispatchError):
    code = "hospital_unavailable"
    status_code = 409

    def __init__(self, message: str, candidates: Optional[List[dict]] = None):
        super().__init__(message)
        self.candidates = candidates or []

    def to_dict(self) -> dict:
        return {**super().to_dict(), "candidates": self.candidates}


class InvalidTransition(DispatchError):
    code = "invalid_transition"
    status_code = 409


class Forbidden(DispatchError):
    code = "forbidden"
    status_code = 403
