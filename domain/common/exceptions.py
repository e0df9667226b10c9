"""领域层业务异常定义，供领域与基础设施使用。

核心（core）层仅负责全局映射与异常处理，尽量避免领域层反向依赖核心层。
Relay errors are raised inside handlers and turned into sender-only
`{type: "error", message}` frames; the HTTP layer maps the same
exceptions to the unified error envelope.
"""
from __future__ import annotations

from typing import Optional
from shared.codes import BusinessCode


class BusinessException(Exception):
    """业务异常基类"""

    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.field = field
        super().__init__(self.message)


class DomainValidationException(BusinessException):
    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(
            code=BusinessCode.PARAM_VALIDATION_ERROR,
            message=message,
            error_type="DomainValidationError",
            details=details,
            field=field,
        )


class MessageValidationError(DomainValidationException):
    """Inbound message payload rejected by its validator."""

    def __init__(self, reason: str, *, message_type: str | None = None, field: str | None = None):
        details = {"message_type": message_type} if message_type else None
        super().__init__(reason, field=field, details=details)
        self.error_type = "MessageValidationError"


class UnknownMessageTypeException(BusinessException):
    def __init__(self, message_type: object):
        super().__init__(
            code=BusinessCode.UNKNOWN_MESSAGE_TYPE,
            message=f"Unknown message type: {message_type}",
            error_type="UnknownMessageType",
            details={"message_type": str(message_type)},
        )


class InvalidFrameException(BusinessException):
    def __init__(self) -> None:
        super().__init__(
            code=BusinessCode.INVALID_FRAME,
            message="Invalid JSON format",
            error_type="InvalidFrame",
        )

