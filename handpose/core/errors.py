"""Exception types shared across pipeline stages."""


class HandposeError(Exception):
    """Base class for pipeline errors."""


class DecodeError(HandposeError):
    """A model returned a missing or malformed output tensor."""


class ModelLoadError(HandposeError):
    """An inference session could not be constructed."""


class ChannelClosed(HandposeError):
    """Receive on a channel that is closed and has nothing left to hand out."""
