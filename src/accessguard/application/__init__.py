"""Application layer: the AccessGuard facade and its request/response schemas."""

from accessguard.application.container import AccessGuard
from accessguard.application.schemas import ErrorDetail, OperationResult

__all__ = ["AccessGuard", "ErrorDetail", "OperationResult"]
