import importlib
import importlib.util
import inspect
import logging
import os
import sys
import types
from collections.abc import Callable
from functools import lru_cache
from pathlib import Path
from typing import Any, Type

import grpc_tools
from grpc_tools import protoc

from .config import get_proto_path, is_skip_generation
from .errors import ProtoGenerationError
from .messages import PROTO_PACKAGE, Greeter, Message

logger = logging.getLogger(__name__)

###############################################################################
# 1. Message conversion (pydantic <-> protobuf)
###############################################################################


def generate_message_converter(arg_type: Type[Message]) -> Callable[[Any], Message]:
    """Return a converter function for protobuf -> Python Message."""

    fields = arg_type.model_fields

    def converter(proto_msg: Any) -> Message:
        return arg_type(**{field: getattr(proto_msg, field) for field in fields})

    return converter


def convert_python_message_to_proto(py_msg: Message, pb2_module: Any) -> object:
    """
    Convert a pydantic Message instance to the protobuf message of the same name.
    Only scalar fields are supported, which is all the greeter contract uses.
    """
    proto_class = getattr(pb2_module, type(py_msg).__name__)
    field_dict = {
        name: value
        for name, value in py_msg.model_dump().items()
        if value is not None
    }
    return proto_class(**field_dict)


###############################################################################
# 2. Generating the .proto definition
###############################################################################


def protobuf_type_mapping(python_type: Any) -> str | None:
    """Map a Python type to a protobuf type name."""
    mapping = {
        int: "int32",
        str: "string",
        bool: "bool",
        bytes: "bytes",
        float: "float",
    }

    if inspect.isclass(python_type) and issubclass(python_type, Message):
        return python_type.__name__

    return mapping.get(python_type)


def comment_out(docstr: str) -> tuple[str, ...]:
    """Convert docstrings into commented-out lines in a .proto file."""
    if not docstr:
        return tuple()

    return tuple("//" if line == "" else f"// {line}" for line in docstr.split("\n"))


def indent_lines(lines: list[str], indentation: str = "    ") -> str:
    """Indent multiple lines with a given indentation string."""
    return "\n".join(indentation + line for line in lines)


def generate_message_definition(message_type: Type[Message]) -> str:
    """Generate a protobuf message definition for a pydantic-based Message class."""
    fields: list[str] = []

    for index, (field_name, field_info) in enumerate(
        message_type.model_fields.items(), start=1
    ):
        proto_typename = protobuf_type_mapping(field_info.annotation)
        if proto_typename is None:
            raise TypeError(
                f"Type {field_info.annotation} of field {field_name} is not supported."
            )
        if field_info.description:
            fields.append("// " + field_info.description)
        fields.append(f"{proto_typename} {field_name} = {index};")

    return f"message {message_type.__name__} {{\n{indent_lines(fields)}\n}}"


def get_request_arg_type(sig: inspect.Signature) -> Any:
    """Return the type annotation of the first parameter (request) of a method."""
    num_of_params = len(sig.parameters)
    if not (num_of_params == 1 or num_of_params == 2):
        raise TypeError("Method must have exactly one or two parameters")
    return tuple(sig.parameters.values())[0].annotation


def get_rpc_methods(obj: object) -> list[tuple[str, Callable[..., Any]]]:
    """
    Retrieve the list of RPC methods from a service object.
    The method name is converted to PascalCase for .proto compatibility.
    """

    def to_pascal_case(name: str) -> str:
        return "".join(part.capitalize() for part in name.split("_"))

    return [
        (to_pascal_case(attr_name), getattr(obj, attr_name))
        for attr_name in dir(obj)
        if not attr_name.startswith("_")
        and inspect.ismethod(getattr(obj, attr_name))
    ]


def generate_proto(obj: object, package_name: str = "") -> str:
    """Generate a .proto definition from a service object."""
    service_class = obj.__class__
    service_name = service_class.__name__
    service_docstr = inspect.getdoc(service_class)
    service_comment = "\n".join(comment_out(service_docstr)) if service_docstr else ""

    rpc_definitions: list[str] = []
    type_definitions: list[str] = []
    done_messages: set[Any] = set()

    for method_name, method in get_rpc_methods(obj):
        method_sig = inspect.signature(method)
        request_type = get_request_arg_type(method_sig)
        response_type = method_sig.return_annotation

        for mt in (request_type, response_type):
            if mt in done_messages:
                continue
            done_messages.add(mt)
            mt_doc = inspect.getdoc(mt)
            if mt_doc:
                type_definitions.extend(comment_out(mt_doc))
            type_definitions.append(generate_message_definition(mt))
            type_definitions.append("")

        method_docstr = inspect.getdoc(method)
        if method_docstr:
            rpc_definitions.extend(comment_out(method_docstr))
        rpc_definitions.append(
            f"rpc {method_name} ({request_type.__name__}) returns ({response_type.__name__});"
        )

    if not package_name:
        package_name = service_name.lower() + ".v1"

    return f"""syntax = "proto3";

package {package_name};

{service_comment}
service {service_name} {{
{indent_lines(rpc_definitions)}
}}

{indent_lines(type_definitions, "")}
"""


###############################################################################
# 3. Compiling with protoc and loading the generated modules
###############################################################################


def _run_protoc(proto_path: Path, *outputs: str) -> bool:
    if not proto_path.is_file():
        raise FileNotFoundError(f"{proto_path!r} does not exist")

    proto_path = proto_path.resolve()
    out_dir = proto_path.parent
    well_known_path = os.path.join(os.path.dirname(grpc_tools.__file__), "_proto")
    args = [
        "grpc_tools.protoc",
        f"-I{out_dir}",
        f"-I{well_known_path}",
        *(f"{flag}={out_dir}" for flag in outputs),
        str(proto_path),
    ]
    logger.debug(f"Running protoc: {' '.join(args[1:])}")
    return protoc.main(args) == 0


def _load_module(module_name: str, path: Path) -> types.ModuleType | None:
    out_str = str(path.parent)
    # The generated _pb2_grpc module imports its _pb2 sibling by name.
    if out_str not in sys.path:
        sys.path.append(out_str)

    spec = importlib.util.spec_from_file_location(module_name, str(path))
    if spec is None or spec.loader is None:
        return None
    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except Exception:
        del sys.modules[module_name]
        raise
    return module


def generate_pb_code(proto_path: Path) -> types.ModuleType | None:
    """
    Run protoc to generate foo_pb2.py and foo_pb2.pyi next to proto_path,
    then import and return the pb2 module.
    """
    if not _run_protoc(proto_path, "--python_out", "--pyi_out"):
        return None
    base_name = proto_path.stem
    return _load_module(
        f"{base_name}_pb2", proto_path.resolve().parent / f"{base_name}_pb2.py"
    )


def generate_grpc_code(proto_path: Path) -> types.ModuleType | None:
    """
    Run protoc to generate foo_pb2_grpc.py next to proto_path,
    then import and return that module.
    """
    if not _run_protoc(proto_path, "--grpc_python_out"):
        return None
    base_name = proto_path.stem
    return _load_module(
        f"{base_name}_pb2_grpc",
        proto_path.resolve().parent / f"{base_name}_pb2_grpc.py",
    )


def generate_and_compile_proto(
    obj: object,
    package_name: str = "",
    existing_proto_path: Path | None = None,
) -> tuple[Any, Any]:
    """Return (pb2_grpc_module, pb2_module) for the given service object."""
    base_name = obj.__class__.__name__.lower()

    if is_skip_generation():
        try:
            pb2_module = importlib.import_module(f"{base_name}_pb2")
            pb2_grpc_module = importlib.import_module(f"{base_name}_pb2_grpc")
            return pb2_grpc_module, pb2_module
        except ImportError:
            logger.debug(f"Pre-generated {base_name} modules not found, generating")

    if existing_proto_path:
        proto_file_path = existing_proto_path
    else:
        proto_file_path = get_proto_path(base_name + ".proto")
        with proto_file_path.open(mode="w", encoding="utf-8") as f:
            _ = f.write(generate_proto(obj, package_name))

    gen_pb = generate_pb_code(proto_file_path)
    if gen_pb is None:
        raise ProtoGenerationError(f"Generating pb code from {proto_file_path}")

    gen_grpc = generate_grpc_code(proto_file_path)
    if gen_grpc is None:
        raise ProtoGenerationError(f"Generating grpc code from {proto_file_path}")
    return gen_grpc, gen_pb


@lru_cache(maxsize=1)
def load_greeter_modules() -> tuple[Any, Any]:
    """Compile the Greeter contract once per process."""
    return generate_and_compile_proto(Greeter(), PROTO_PACKAGE)
