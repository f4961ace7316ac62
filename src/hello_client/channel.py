"""Owned gRPC channel with a bounded teardown."""

import enum
import logging
import threading
from collections.abc import Callable, Sequence
from typing import Any

import grpc

from . import config
from .errors import ChannelStateError

logger = logging.getLogger(__name__)

ChannelFactory = Callable[[str, Sequence[tuple[str, Any]]], grpc.Channel]


def insecure_channel_factory(
    target: str, options: Sequence[tuple[str, Any]]
) -> grpc.Channel:
    # Plaintext credentials avoid needing TLS certificates. Not suitable for
    # production; use grpc.secure_channel with ssl_channel_credentials instead.
    return grpc.insecure_channel(target, options=options)


class ChannelState(enum.Enum):
    UNCONNECTED = "unconnected"
    ACTIVE = "active"
    SHUTTING_DOWN = "shutting_down"
    CLOSED = "closed"


class ManagedChannel:
    """A channel owned by its creator, who must shut it down.

    Channels are thread-safe and reusable; code that only borrows one should
    take the plain grpc.Channel from `channel` and never close it.

    Usage:
        with ManagedChannel("localhost:50051") as channel:
            stub = GreeterStub(channel)
    """

    def __init__(
        self,
        target: str,
        options: Sequence[tuple[str, Any]] = (),
        factory: ChannelFactory = insecure_channel_factory,
    ) -> None:
        self.target = target
        self._options = tuple(options)
        self._factory = factory
        self._channel: grpc.Channel | None = None
        self._closer: threading.Thread | None = None
        self._state = ChannelState.UNCONNECTED

    @property
    def state(self) -> ChannelState:
        return self._state

    @property
    def channel(self) -> grpc.Channel:
        if self._state is not ChannelState.ACTIVE or self._channel is None:
            raise ChannelStateError(
                f"Channel to {self.target} is {self._state.value}, not active"
            )
        return self._channel

    def open(self) -> grpc.Channel:
        """Create the underlying channel. The connection itself is established lazily."""
        if self._state is not ChannelState.UNCONNECTED:
            raise ChannelStateError(
                f"Channel to {self.target} was already opened ({self._state.value})"
            )
        channel = self._factory(self.target, self._options)
        if channel is None:
            raise ChannelStateError(f"Channel factory for {self.target} returned None")
        self._channel = channel
        self._state = ChannelState.ACTIVE
        logger.debug(f"Created channel to {self.target}")
        return self._channel

    def shutdown(self) -> None:
        """Start closing the channel. In-flight calls are cancelled."""
        if self._state is not ChannelState.ACTIVE:
            logger.debug(f"Shutdown of {self.target} ignored ({self._state.value})")
            return
        if self._channel is None:
            raise ChannelStateError(f"Channel to {self.target} has no underlying channel")
        self._state = ChannelState.SHUTTING_DOWN
        self._closer = threading.Thread(
            target=self._channel.close,
            name=f"channel-close-{self.target}",
            daemon=True,
        )
        self._closer.start()

    def await_termination(self, timeout: float) -> bool:
        """
        Wait at most `timeout` seconds for shutdown to finish.
        Returns False if the bound elapsed first; the channel counts as closed either way.
        """
        if self._state is ChannelState.UNCONNECTED:
            raise ChannelStateError(f"Channel to {self.target} was never opened")
        if self._state is ChannelState.ACTIVE:
            raise ChannelStateError(f"Channel to {self.target} is not shutting down")

        drained = True
        if self._closer is not None:
            self._closer.join(timeout)
            drained = not self._closer.is_alive()
            if not drained:
                logger.warning(
                    f"Channel to {self.target} did not terminate within {timeout} seconds"
                )
        self._state = ChannelState.CLOSED
        return drained

    def close(self, timeout: float | None = None) -> bool:
        if self._state is ChannelState.UNCONNECTED:
            self._state = ChannelState.CLOSED
            return True
        if self._state is ChannelState.CLOSED:
            return True
        self.shutdown()
        return self.await_termination(
            config.SHUTDOWN_TIMEOUT if timeout is None else timeout
        )

    def __enter__(self) -> grpc.Channel:
        return self.open()

    def __exit__(self, *exc_info: Any) -> None:
        _ = self.close()
