class MefError(Exception):
    """Base exception for the MEF backend."""

    pass


class AppError(MefError):
    """Application error carrying the HTTP status it maps to.

    Raised by services for authorization failures, missing records and
    rejected operations; the global handler in ``mef.main`` turns it into a
    JSON response.
    """

    def __init__(self, message: str, status_code: int = 500, code: str | None = None):
        self.message = message
        self.status_code = status_code
        self.code = code
        super().__init__(message)

    @classmethod
    def bad_request(cls, message: str, code: str | None = None) -> "AppError":
        return cls(message, 400, code)

    @classmethod
    def unauthorized(cls, message: str = "Please log in to continue") -> "AppError":
        return cls(message, 401, "UNAUTHORIZED")

    @classmethod
    def forbidden(cls, message: str = "You don't have permission to perform this action") -> "AppError":
        return cls(message, 403, "FORBIDDEN")

    @classmethod
    def not_found(cls, message: str) -> "AppError":
        return cls(message, 404, "NOT_FOUND")

    @classmethod
    def conflict(cls, message: str, code: str | None = None) -> "AppError":
        return cls(message, 409, code)


class JobAlreadyRunningError(AppError):
    """Raised when an on-demand job is requested while a fresh run is active."""

    def __init__(self, job_name: str):
        self.job_name = job_name
        super().__init__(
            f"A {job_name} job is already running. Please wait for it to complete.",
            409,
            "ALREADY_RUNNING",
        )


class ExternalServiceError(AppError):
    """Raised when the OCV API or the GPT Survey API fails."""

    def __init__(self, service: str, message: str):
        self.service = service
        super().__init__(f"{service} error: {message}", 502, "EXTERNAL_SERVICE_ERROR")


class JobCancelledError(MefError):
    """Raised at a cancellation checkpoint once a job has been asked to stop."""

    def __init__(self, job_name: str, checkpoint: str):
        self.job_name = job_name
        self.checkpoint = checkpoint
        super().__init__(f"Job '{job_name}' was cancelled at checkpoint '{checkpoint}'")
