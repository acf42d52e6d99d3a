"""Error taxonomy shared by the service modules and mapped to JSON at the app boundary."""


class AppError(Exception):
    status_code = 500
    message = "Internal server error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)
        if message:
            self.message = message

    def to_body(self) -> dict:
        return {"error": self.message}


class ValidationError(AppError):
    status_code = 400
    message = "Invalid request"


class InvalidOrExpiredCode(AppError):
    status_code = 400
    message = "Invalid or expired code"


class Unauthenticated(AppError):
    status_code = 401
    message = "Unauthorized"


class NotFound(AppError):
    status_code = 404
    message = "Not found"


class QuotaExceeded(AppError):
    status_code = 403
    message = "limit_reached"

    def __init__(self, count: int):
        super().__init__()
        self.count = count

    def to_body(self) -> dict:
        return {"error": self.message, "count": self.count}


class EmailDispatchError(AppError):
    status_code = 500
    message = "Failed to send code"


class UpstreamError(AppError):
    status_code = 500
    message = "Failed to get response"
