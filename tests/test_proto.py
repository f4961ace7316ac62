import pytest

from hello_client.messages import Greeter, HelloReply, HelloRequest, Message
from hello_client.proto import (
    convert_python_message_to_proto,
    generate_message_converter,
    generate_proto,
    load_greeter_modules,
)


def test_generate_proto_greeter():
    proto = generate_proto(Greeter(), "helloworld")

    assert 'syntax = "proto3";' in proto
    assert "package helloworld;" in proto
    assert "service Greeter {" in proto
    assert "rpc SayHello (HelloRequest) returns (HelloReply);" in proto
    assert "string first_name = 1;" in proto
    assert "string last_name = 2;" in proto
    assert "string cin = 3;" in proto
    assert "string message = 1;" in proto
    assert "// Sends a greeting." in proto


def test_generate_proto_default_package_name():
    proto = generate_proto(Greeter())
    assert "package greeter.v1;" in proto


def test_generate_proto_rejects_unsupported_field():
    class Unsupported(Message):
        values: set[int]

    class BadService:
        def call(self, request: Unsupported) -> Unsupported:
            return request

    with pytest.raises(TypeError):
        _ = generate_proto(BadService())


def test_compiled_modules_round_trip_request():
    pb2_grpc_module, pb2_module = load_greeter_modules()
    assert hasattr(pb2_grpc_module, "GreeterStub")
    assert (
        pb2_module.DESCRIPTOR.services_by_name["Greeter"].full_name
        == "helloworld.Greeter"
    )

    request = HelloRequest(first_name="Alice", last_name="Smith", cin="987654321")
    proto_msg = convert_python_message_to_proto(request, pb2_module)
    assert proto_msg.first_name == "Alice"
    assert proto_msg.cin == "987654321"

    back = generate_message_converter(HelloRequest)(proto_msg)
    assert back == request


def test_load_greeter_modules_is_cached():
    assert load_greeter_modules() is load_greeter_modules()


def test_reply_is_immutable():
    reply = HelloReply(message="hi")
    with pytest.raises(Exception):
        reply.message = "changed"  # type: ignore[misc]
