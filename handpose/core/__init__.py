"""Domain types, channels and the recognition worker."""
from .channels import FrameSlot
from .errors import ChannelClosed, DecodeError, HandposeError, ModelLoadError

__all__ = ["FrameSlot", "ChannelClosed", "DecodeError", "HandposeError", "ModelLoadError"]
