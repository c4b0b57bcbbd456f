"""Pydantic schemas for relay responses."""

from .session import ErrorBody, ErrorDetail, ErrorFrame, SessionTokenResponse

__all__ = ["ErrorBody", "ErrorDetail", "ErrorFrame", "SessionTokenResponse"]
