from typing import TypeAlias

from pydantic import BaseModel, ConfigDict, Field

Message: TypeAlias = BaseModel


class HelloRequest(Message):
    """The request message containing the person to be greeted."""

    model_config = ConfigDict(frozen=True)

    first_name: str = Field(description="First name of the person.")
    last_name: str = Field(description="Last name of the person.")
    cin: str = Field(description="Identity card number. Not validated.")


class HelloReply(Message):
    """The response message containing the greeting."""

    model_config = ConfigDict(frozen=True)

    message: str


class Greeter:
    """The greeting service definition.

    Implementations subclass this and override say_hello. A second
    `context` parameter is accepted for access to the grpc.ServicerContext.
    """

    def say_hello(self, request: HelloRequest) -> HelloReply:
        """Sends a greeting."""
        raise NotImplementedError


PROTO_PACKAGE = "helloworld"
