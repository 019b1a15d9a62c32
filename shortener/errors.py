"""Errors raised by the link service and mapped to HTTP responses in main."""


class ShortenerError(Exception):
    status_code = 500
    default_message = "Server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ShortenerError):
    status_code = 400
    default_message = "Invalid request"


class UnauthorizedError(ShortenerError):
    status_code = 401
    default_message = "Unauthorized"


class NotFoundError(ShortenerError):
    status_code = 404
    default_message = "Not found"


class ServerError(ShortenerError):
    pass
