from typing import Optional

from fastapi import status

class BaseAppException(Exception):
    def __init__(self, code: str, message: str, http_status: int, details: Optional[str] = None):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.details = details
        super().__init__(message)

    def to_body(self) -> dict:
        body = {"error": self.message, "code": self.code}
        if self.details:
            body["details"] = self.details
        return body

class NotFoundError(BaseAppException):
    def __init__(self, code: str, message: str):
        super().__init__(code, message, status.HTTP_404_NOT_FOUND)

class ConflictError(BaseAppException):
    def __init__(self, code: str, message: str, details: Optional[str] = None):
        super().__init__(code, message, status.HTTP_409_CONFLICT, details)

class ValidationAppError(BaseAppException):
    def __init__(self, code: str, message: str, details: Optional[str] = None):
        super().__init__(code, message, status.HTTP_400_BAD_REQUEST, details)

class UnprocessableError(BaseAppException):
    def __init__(self, code: str, message: str, details: Optional[str] = None):
        super().__init__(code, message, status.HTTP_422_UNPROCESSABLE_ENTITY, details)

class ServiceUnavailableError(BaseAppException):
    def __init__(self, code: str, message: str, details: Optional[str] = None):
        super().__init__(code, message, status.HTTP_503_SERVICE_UNAVAILABLE, details)

class InternalServerError(BaseAppException):
    def __init__(self, message: str = "internal error", code: str = "INTERNAL_ERROR", details: Optional[str] = None):
        super().__init__(code, message, status.HTTP_500_INTERNAL_SERVER_ERROR, details)
