"""
Error types for bucketfm

Every failure surfaced by the facade is a ``FileManagerError``. The original
exception is kept through Python exception chaining (``raise ... from err``)
and exposed as ``.cause`` for callers that map errors to responses.
"""

from typing import Optional, Type, TypeVar

E = TypeVar("E", bound=BaseException)


class FileManagerError(Exception):
    """Base error for all file-manager operations"""

    @property
    def cause(self) -> Optional[BaseException]:
        return self.__cause__

    def find_cause(self, error_type: Type[E]) -> Optional[E]:
        """First error of the given type in the cause chain, self included"""
        error: Optional[BaseException] = self
        while error is not None:
            if isinstance(error, error_type):
                return error
            error = error.__cause__
        return None


class MissingFieldError(FileManagerError):
    """Raised when a required request field is absent or falsy"""

    def __init__(self, field: str, message: Optional[str] = None):
        self.field = field
        super().__init__(message or f"Request is missing property in req.body: '{field}'")


class BucketError(FileManagerError):
    """Raised when a bucket cannot be retrieved"""

    def __init__(self, message: str, bucketname: str = ""):
        self.bucketname = bucketname
        super().__init__(message)


class BucketNotFoundError(BucketError):
    """Raised when the named bucket does not exist"""

    def __init__(self, bucketname: str):
        super().__init__(
            f'bucket: "{bucketname}" doesn\'t exist, please create it first',
            bucketname=bucketname,
        )


class CommandError(FileManagerError):
    """Raised by the command layer when a storage operation fails"""
    pass


class OperationError(FileManagerError):
    """Raised by a facade handler, wrapping whatever made the operation fail"""

    def __init__(self, operation: str, message: str):
        self.operation = operation
        super().__init__(message)
