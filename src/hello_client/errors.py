import grpc


class HelloClientError(Exception):
    """Base class for errors raised by hello_client."""


class ChannelStateError(HelloClientError):
    """A channel operation was attempted in the wrong lifecycle state."""


class ProtoGenerationError(HelloClientError):
    """protoc failed to generate or load the greeter modules."""


class GreeterServiceError(HelloClientError):
    """Raised by a service implementation to abort a call with a given status."""

    def __init__(self, code: grpc.StatusCode, details: str = "") -> None:
        super().__init__(f"{code.name}: {details}" if details else code.name)
        self.code = code
        self.details = details
