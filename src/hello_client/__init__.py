from .channel import ChannelState, ManagedChannel
from .client import GreeterClient
from .errors import (
    ChannelStateError,
    GreeterServiceError,
    HelloClientError,
    ProtoGenerationError,
)
from .messages import Greeter, HelloReply, HelloRequest, Message

__all__ = [
    "ChannelState",
    "ManagedChannel",
    "GreeterClient",
    "ChannelStateError",
    "GreeterServiceError",
    "HelloClientError",
    "ProtoGenerationError",
    "Greeter",
    "HelloReply",
    "HelloRequest",
    "Message",
]
