"""Scanner JSON stream protocol."""

from .decoder import StreamDecoder, decode_bytes, decode_messages, iter_messages
from .handler import FindingsHandler, Handler, dispatch, handle_stream
from .models import (
    MESSAGE_KINDS,
    PROTOCOL_VERSION,
    Config,
    ConfigMessage,
    Finding,
    FindingMessage,
    Frame,
    Message,
    OSVEntry,
    OSVMessage,
    Position,
    Progress,
    ProgressMessage,
    message_from_dict,
)

__all__ = [
    "MESSAGE_KINDS",
    "PROTOCOL_VERSION",
    "Config",
    "ConfigMessage",
    "Finding",
    "FindingMessage",
    "FindingsHandler",
    "Frame",
    "Handler",
    "Message",
    "OSVEntry",
    "OSVMessage",
    "Position",
    "Progress",
    "ProgressMessage",
    "StreamDecoder",
    "decode_bytes",
    "decode_messages",
    "dispatch",
    "handle_stream",
    "iter_messages",
    "message_from_dict",
]
