from __future__ import annotations


class ContainerError(RuntimeError):
    """Raised when the container cannot produce a value for an identifier.

    The failing collaborator error (factory, alias target, nested resolution) is
    available as ``__cause__``.
    """

    def __init__(
        self,
        message: str,
        *,
        identifier: str,
        parameter: str | None = None,
        dependency: str | None = None,
    ) -> None:
        super().__init__(message)
        self.identifier = identifier
        self.parameter = parameter
        self.dependency = dependency


class NotFoundError(ContainerError):
    """No definition exists for the identifier and it cannot be autowired."""

    def __init__(self, identifier: str) -> None:
        msg = f"No '{identifier}' entry defined in the container"
        super().__init__(msg, identifier=identifier)


def describe(value: object) -> str:
    """Short printable form of an arbitrary value for error messages."""
    if isinstance(value, str):
        return repr(value) if len(value) <= 40 else repr(value[:37] + "...")
    if value is None or isinstance(value, (bool, int, float)):
        return repr(value)
    return f"<{type(value).__name__}>"
