class ExportError(Exception):
    """Base class for failures reported back to the caller as {ok: False}."""


class ConversationNotFound(ExportError):
    pass


class ProfileNotFound(ExportError):
    pass
