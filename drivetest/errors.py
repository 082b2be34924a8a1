"""Exceptions raised by the exam core and the data sources."""


class DriveTestError(Exception):
    """Base class for application errors."""


class ConfigurationError(DriveTestError):
    """Raised when Supabase credentials are missing or the data source name is unknown."""


class QuestionLoadError(DriveTestError):
    """Question pool unreachable or malformed."""


class ExamStartError(DriveTestError):
    """An exam session could not be started (questions or session record)."""


class PersistenceError(DriveTestError):
    """A write to the backing store failed."""


class QuestionValidationError(DriveTestError, ValueError):
    """Question form rejected at write time."""


class AuthError(DriveTestError):
    pass


class PaymentValidationError(DriveTestError, ValueError):
    pass
