"""
Calldata Encoding

Encodes a function call against a JSON ABI into selector-prefixed calldata.
The output is byte-exact and order-stable: downstream code hashes and
compares it, and packs it into MultiSend batches.
"""

from typing import Any, Sequence

from eth_abi import encode
from eth_abi.exceptions import EncodingError
from eth_utils import function_signature_to_4byte_selector
from eth_utils.abi import collapse_if_tuple

from gelato_automation.core.domain.errors import ArgumentMismatchError, UnknownFunctionError


def function_selector(signature: str) -> bytes:
    """First four bytes of keccak(signature), e.g. ``multiSend(bytes)``."""
    return function_signature_to_4byte_selector(signature)


def input_types(abi_entry: dict[str, Any]) -> list[str]:
    """Canonical input types of an ABI function entry, tuples expanded."""
    return [collapse_if_tuple(item) for item in abi_entry.get("inputs", [])]


def function_signature(abi_entry: dict[str, Any]) -> str:
    return f"{abi_entry['name']}({','.join(input_types(abi_entry))})"


def find_function(abi: Sequence[dict[str, Any]], function_name: str, arity: int) -> dict[str, Any]:
    """
    Look up a function entry by name, resolving overloads by arity.

    Raises:
        UnknownFunctionError: If no function has that name
        ArgumentMismatchError: If no overload accepts ``arity`` arguments
    """
    candidates = [
        entry
        for entry in abi
        if entry.get("type", "function") == "function" and entry.get("name") == function_name
    ]
    if not candidates:
        raise UnknownFunctionError(function_name)

    for entry in candidates:
        if len(entry.get("inputs", [])) == arity:
            return entry

    expected = sorted({len(entry.get("inputs", [])) for entry in candidates})
    raise ArgumentMismatchError(
        f"{function_name} expects {' or '.join(map(str, expected))} arguments, got {arity}",
        function=function_name,
        expected=expected,
        received=arity,
    )


def encode_function_call(
    abi: Sequence[dict[str, Any]], function_name: str, args: Sequence[Any] = ()
) -> bytes:
    """
    Encode ``function_name(*args)`` into calldata.

    Args:
        abi: Contract interface description (JSON ABI list)
        function_name: Function to call
        args: Positional arguments; structs are passed as tuples

    Returns:
        4-byte selector followed by the ABI-encoded arguments

    Raises:
        UnknownFunctionError: If ``function_name`` is not in the ABI
        ArgumentMismatchError: If arity or argument types do not match
    """
    args = list(args)
    entry = find_function(abi, function_name, len(args))
    types = input_types(entry)
    try:
        encoded_args = encode(types, args)
    except (EncodingError, TypeError, ValueError, OverflowError) as e:
        raise ArgumentMismatchError(
            f"Arguments do not match {function_signature(entry)}: {e}",
            function=function_name,
            types=types,
        ) from e
    return function_selector(function_signature(entry)) + encoded_args
