"""Exception types raised by the schema, marshaling and migration layers."""


class MilvusClientError(Exception):
    """Base error for everything this kit raises."""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class MilvusValidationError(MilvusClientError):
    """A field, schema, data or vector rule was violated.

    Always recoverable: fix the input and try again. ``field`` names the
    attribute that failed (``"dimension"``, ``"rows"``, ``"vectors"``...).
    """

    def __init__(self, field: str, message: str, details: dict | None = None):
        self.field = field
        super().__init__(message, details)

    def __str__(self) -> str:
        return f"Invalid {self.field}: {self.message}"


class ConnectivityError(MilvusClientError):
    """The RPC collaborator failed while reading or writing server state."""

    def __init__(
        self,
        operation: str,
        message: str,
        code: int | str | None = None,
        details: dict | None = None,
    ):
        self.operation = operation
        self.code = code
        super().__init__(message, details)

    def __str__(self) -> str:
        suffix = f" (code={self.code})" if self.code is not None else ""
        return f"{self.operation} failed: {self.message}{suffix}"


class SchemaMismatchError(MilvusClientError):
    """Strict migration found drift between the expected and the live schema."""

    def __init__(self, collection_name: str, message: str, diff):
        self.collection_name = collection_name
        self.diff = diff
        super().__init__(message, details={"diff": diff})


class IndexReconciliationError(ConnectivityError):
    """Reading, creating or dropping an index failed for one field."""

    def __init__(
        self,
        field_name: str,
        operation: str,
        message: str,
        code: int | str | None = None,
    ):
        self.field_name = field_name
        super().__init__(operation, message, code, details={"field_name": field_name})
