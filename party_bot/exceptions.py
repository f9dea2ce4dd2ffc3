"""
Errors the user can correct. Each carries a reason code that maps to a message
in constants.ERROR_MESSAGES; they are shown to the user and never logged as
errors.
"""

from party_bot.constants import ERROR_MESSAGES


class PartyBotError(Exception):
    code: str = ""

    def __init__(self, message: str | None = None):
        super().__init__(message or ERROR_MESSAGES.get(self.code, self.code))

    @property
    def user_message(self) -> str:
        return ERROR_MESSAGES.get(self.code, str(self))


class QueueError(PartyBotError):
    pass


class QueueNotFound(QueueError):
    code = "QUEUE_NOT_FOUND"


class QueueFull(QueueError):
    code = "QUEUE_FULL"


class QueueClosed(QueueError):
    code = "QUEUE_CLOSED"


class PlayerInAnotherQueue(QueueError):
    code = "PLAYER_IN_ANOTHER_QUEUE"

    def __init__(self, other_handle: str | None = None):
        super().__init__()
        self.other_handle = other_handle


class PlayerNotInQueue(QueueError):
    code = "PLAYER_NOT_IN_QUEUE"


class QueueAlreadyExists(QueueError):
    code = "QUEUE_ALREADY_EXISTS"


class QueueHandleExists(QueueError):
    code = "QUEUE_HANDLE_EXISTS"


class PanelAlreadyExists(QueueError):
    code = "PANEL_ALREADY_EXISTS"


class PanelNotFound(QueueError):
    code = "PANEL_NOT_FOUND"


class RegistrationError(PartyBotError):
    pass


class RegistrationNotFound(RegistrationError):
    code = "REGISTRATION_NOT_FOUND"


class RegistrationAlreadyReviewed(RegistrationError):
    code = "REGISTRATION_ALREADY_REVIEWED"


class InvalidRegistration(RegistrationError):
    """Raised with a message describing which field was rejected"""

    code = "INVALID_REGISTRATION"

    @property
    def user_message(self) -> str:
        return str(self)


class ArtifactMissing(Exception):
    """
    The Discord message rendering a queue or panel no longer exists
    """

    def __init__(self, handle: str):
        super().__init__(f"Message {handle} is missing")
        self.handle = handle
