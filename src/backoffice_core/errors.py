"""Error taxonomy shared by the stores and the HTTP surface.

Stores raise these; the API layer maps each class to a status code:

- ValidationError -> 400
- ForbiddenError -> 403
- NotFoundError -> 404
- StateConflictError -> 409

Database errors are left as ``SQLAlchemyError`` and surface as a generic 500.
"""


class BackofficeError(Exception):
    """Base class for domain errors."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(BackofficeError):
    """Malformed or missing input."""

    status_code = 400


class ForbiddenError(BackofficeError):
    """Role or ownership check failed."""

    status_code = 403


class NotFoundError(BackofficeError):
    """Referenced entity does not exist."""

    status_code = 404


class StateConflictError(BackofficeError):
    """Mutation attempted against an entity in a terminal or locked state."""

    status_code = 409
