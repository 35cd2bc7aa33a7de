from typing import Iterable, Optional, Union


class ServiceError(ValueError):
    """Base for business errors raised by the service layer.

    ``kind`` is a stable machine-readable discriminator; ``messages`` keeps every
    human-readable problem that was found, in detection order.
    """

    kind = "error"
    status_code = 400

    def __init__(self, messages: Union[str, Iterable[str]]) -> None:
        if isinstance(messages, str):
            messages = [messages]
        self.messages: list[str] = list(messages)
        super().__init__(", ".join(self.messages))

    def to_dict(self, operation: Optional[str] = None) -> dict[str, object]:
        message = str(self)
        if operation:
            message = f"Failed to {operation}: {message}"
        return {"message": message, "kind": self.kind, "errors": self.messages}


class ValidationError(ServiceError):
    kind = "validation"
    status_code = 400


class NotFoundError(ServiceError):
    kind = "not_found"
    status_code = 404


class ConflictError(ServiceError):
    kind = "conflict"
    status_code = 409


class AuthenticationError(ServiceError):
    kind = "authentication"
    status_code = 401
