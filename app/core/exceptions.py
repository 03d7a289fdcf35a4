class ServiceError(Exception):
    """Base class for errors raised by the service layer."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(ServiceError):
    """A referenced entity does not exist."""


class ConflictError(ServiceError):
    """Deletion blocked because dependents still reference the entity."""

    def __init__(self, message: str, dependent_count: int, dependent_type: str):
        super().__init__(message)
        self.dependent_count = dependent_count
        self.dependent_type = dependent_type


class DuplicateEmailError(ServiceError):
    pass
