"""
schemas/errors.py — Structured error response model

Shared by the CourierDeskError, HTTPException and RequestValidationError
handlers in main.py.
"""

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    error: str
    status_code: int
    code: str = "error"
    request_id: str = ""
    detail: list | dict | None = None
