"""
schemas/errors.py — Structured error response model

Shared by the HTTPException, RequestValidationError and catch-all
Exception handlers in main.py.
"""

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    status_code: int
    message: str = ""
    detail: list | None = None
