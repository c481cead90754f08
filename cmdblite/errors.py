class CmdbError(Exception):
    """Base class for all errors raised by cmdblite"""


class RequestValidationError(CmdbError):
    pass


class NotFoundError(CmdbError):
    def __init__(self, message: str = "not found"):
        super().__init__(message)


class StorageError(CmdbError):
    pass


class MigrationError(CmdbError):
    def __init__(self, script: str, cause: BaseException):
        self.script = script
        self.cause = cause
        super().__init__(f"migrate {script}: {cause}")
