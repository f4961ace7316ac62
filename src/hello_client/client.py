import logging
from typing import Any

import grpc

from .channel import ManagedChannel
from .messages import HelloReply, HelloRequest
from .proto import (
    convert_python_message_to_proto,
    generate_message_converter,
    load_greeter_modules,
)

logger = logging.getLogger(__name__)


class GreeterClient:
    """A simple client that requests a greeting from a Greeter server."""

    def __init__(self, channel: grpc.Channel) -> None:
        """Construct a client on an existing channel.

        The channel is borrowed: closing this client never shuts it down,
        so one channel can back any number of clients.
        """
        if channel is None:
            raise TypeError("channel must not be None")
        pb2_grpc_module, pb2_module = load_greeter_modules()
        self._pb2 = pb2_module
        self._stub = pb2_grpc_module.GreeterStub(channel)
        self._to_reply = generate_message_converter(HelloReply)
        self._owned: ManagedChannel | None = None

    @classmethod
    def connect(cls, target: str, **channel_kwargs: Any) -> "GreeterClient":
        """Create a client that owns a new plaintext channel to `target`."""
        managed = ManagedChannel(target, **channel_kwargs)
        try:
            client = cls(managed.open())
        except BaseException:
            _ = managed.close()
            raise
        client._owned = managed
        return client

    def say_hello(self, first_name: str, last_name: str, cin: str) -> HelloReply:
        """Issue one blocking SayHello call. grpc.RpcError propagates."""
        request = HelloRequest(first_name=first_name, last_name=last_name, cin=cin)
        response = self._stub.SayHello(
            convert_python_message_to_proto(request, self._pb2)
        )
        return self._to_reply(response)

    def greet(self, first_name: str, last_name: str, cin: str) -> None:
        """Say hello to server and log the greeting, or the RPC failure."""
        logger.info(f"Will try to greet {first_name} {last_name} with CIN: {cin} ...")
        try:
            reply = self.say_hello(first_name, last_name, cin)
        except grpc.RpcError as e:
            logger.warning(f"RPC failed: {e.code()} - {e.details()}")
            return
        logger.info(f"Greeting: {reply.message}")

    def close(self) -> None:
        if self._owned is not None:
            _ = self._owned.close()

    def __enter__(self) -> "GreeterClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
