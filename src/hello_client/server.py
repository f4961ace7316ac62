"""A local Greeter server, for exercising the client end to end."""

import inspect
import logging
import signal
import sys
from collections.abc import Callable
from concurrent import futures
from typing import Any

import grpc
from grpc_health.v1 import health_pb2, health_pb2_grpc
from grpc_health.v1.health import HealthServicer
from grpc_reflection.v1alpha import reflection
from pydantic import ValidationError

from . import config
from .errors import GreeterServiceError
from .messages import Greeter, HelloReply, HelloRequest, Message
from .proto import (
    convert_python_message_to_proto,
    generate_message_converter,
    get_request_arg_type,
    get_rpc_methods,
    load_greeter_modules,
)

logger = logging.getLogger(__name__)


class EchoGreeter(Greeter):
    """Greets the caller with every field of the request."""

    def say_hello(self, request: HelloRequest) -> HelloReply:
        return HelloReply(
            message=f"Hello {request.first_name} {request.last_name} {request.cin}"
        )


def connect_obj_with_stub(
    pb2_grpc_module: Any, pb2_module: Any, service_obj: Greeter
) -> type:
    """
    Return a subclass of the generated GreeterServicer whose methods call
    the matching methods of service_obj.
    """
    stub_class = getattr(pb2_grpc_module, "GreeterServicer")

    class ConcreteServiceClass(stub_class):
        """Dynamically generated servicer class with stub methods implemented."""

        pass

    def implement_stub_method(
        method: Callable[..., Message],
    ) -> Callable[[object, Any, Any], Any]:
        """
        Wraps a user-defined method (self, *args) -> R into a gRPC stub signature:
        (self, request_proto, context) -> response_proto
        """
        sig = inspect.signature(method)
        converter = generate_message_converter(get_request_arg_type(sig))
        pass_context = len(sig.parameters) == 2

        def stub_method(
            self: object,
            request: Any,
            context: grpc.ServicerContext,
            *,
            original: Callable[..., Message] = method,
        ) -> Any:
            _ = self
            try:
                arg = converter(request)
                resp_obj = original(arg, context) if pass_context else original(arg)
                return convert_python_message_to_proto(resp_obj, pb2_module)
            except ValidationError as e:
                return context.abort(grpc.StatusCode.INVALID_ARGUMENT, str(e))
            except GreeterServiceError as e:
                return context.abort(e.code, e.details)
            except Exception as e:
                logger.exception(f"Unhandled error in {method.__name__}")
                return context.abort(grpc.StatusCode.INTERNAL, str(e))

        return stub_method

    for method_name, method in get_rpc_methods(service_obj):
        setattr(ConcreteServiceClass, method_name, implement_stub_method(method))

    return ConcreteServiceClass


class GreeterServer:
    """A gRPC server for the Greeter service using a ThreadPoolExecutor."""

    def __init__(
        self,
        service: Greeter | None = None,
        max_workers: int = 8,
        *interceptors: grpc.ServerInterceptor,
    ) -> None:
        self._server: grpc.Server = grpc.server(
            futures.ThreadPoolExecutor(max_workers), interceptors=interceptors
        )
        self._service = service or EchoGreeter()
        self._address = "[::]:50051"
        self._port: int | None = None

    def set_address(self, address: str):
        """Set the listening address, e.g. "127.0.0.1:0" for an ephemeral port."""
        self._address = address

    @property
    def port(self) -> int | None:
        return self._port

    def start(self) -> int:
        """Mount the service plus health and reflection, then start serving. Returns the bound port."""
        pb2_grpc_module, pb2_module = load_greeter_modules()
        servicer_class = connect_obj_with_stub(pb2_grpc_module, pb2_module, self._service)
        pb2_grpc_module.add_GreeterServicer_to_server(servicer_class(), self._server)

        service_names = (
            health_pb2.DESCRIPTOR.services_by_name["Health"].full_name,
            reflection.SERVICE_NAME,
            pb2_module.DESCRIPTOR.services_by_name["Greeter"].full_name,
        )
        health_pb2_grpc.add_HealthServicer_to_server(HealthServicer(), self._server)
        reflection.enable_server_reflection(service_names, self._server)

        self._port = self._server.add_insecure_port(self._address)
        if self._port == 0:
            raise RuntimeError(f"Failed to bind {self._address}")
        self._server.start()
        logger.info(f"Greeter server listening on port {self._port}")
        return self._port

    def stop(self, grace: float | None = None) -> None:
        _ = self._server.stop(grace).wait()

    def run(self):
        """
        Start the server and block until it terminates.
        Press Ctrl+C or send SIGTERM to stop.
        """
        _ = self.start()

        def handle_signal(signum: int, frame: Any):
            _ = frame
            logger.info(f"Received signal {signum}, shutting down...")
            self.stop(grace=config.SHUTDOWN_TIMEOUT)

        _ = signal.signal(signal.SIGINT, handle_signal)
        _ = signal.signal(signal.SIGTERM, handle_signal)
        _ = self._server.wait_for_termination()
        logger.info("Greeter server shutdown.")


def main(argv: list[str] | None = None) -> int:
    import argparse

    parser = argparse.ArgumentParser(description="Local Greeter server")
    _ = parser.add_argument(
        "--address",
        default="[::]:50051",
        help="Address to listen on (default: [::]:50051)",
    )
    _ = parser.add_argument(
        "--max-workers", type=int, default=8, help="Worker threads (default: 8)"
    )
    args = parser.parse_args(argv)

    logging.basicConfig(level=config.get_log_level(), format=config.LOG_FORMAT)

    server = GreeterServer(max_workers=args.max_workers)
    server.set_address(args.address)
    server.run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
