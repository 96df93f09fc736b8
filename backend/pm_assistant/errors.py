class ChatError(Exception):
    """Base class for errors raised by the conversational query pipeline."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class NotFoundError(ChatError):
    """Entity is absent or not owned by the caller. The two cases are never distinguished."""


class InvalidInputError(ChatError):
    pass


class GenerationTimeoutError(ChatError):
    pass
