from __future__ import annotations

from typing import Any

from eth_abi import encode
from eth_abi.exceptions import EncodingError
from eth_utils import function_signature_to_4byte_selector, to_checksum_address

from gami_vaults.core.models import CallDescriptor


def _arg_types(signature: str) -> list[str]:
    inner = signature[signature.index("(") + 1 : signature.rindex(")")]
    return [t.strip() for t in inner.split(",") if t.strip()]


def selector_hex(signature: str) -> str:
    return "0x" + function_signature_to_4byte_selector(signature).hex()


def encode_calldata(signature: str, args: list[Any]) -> str:
    """ABI-encode ``signature`` with ``args`` into 0x-prefixed calldata."""
    types = _arg_types(signature)
    if len(types) != len(args):
        raise ValueError(
            f"{signature} expects {len(types)} arguments, got {len(args)}"
        )
    coerced = [
        to_checksum_address(arg) if typ == "address" else arg
        for typ, arg in zip(types, args, strict=True)
    ]
    selector = function_signature_to_4byte_selector(signature)
    try:
        params = encode(types, coerced)
    except (EncodingError, TypeError) as exc:
        raise ValueError(f"Failed to encode {signature}: {exc}") from exc
    return "0x" + selector.hex() + params.hex()


def encode_call(
    *,
    target: str,
    signature: str,
    args: list[Any],
    chain_id: int,
    value: int = 0,
) -> CallDescriptor:
    return CallDescriptor(
        to=to_checksum_address(target),
        data=encode_calldata(signature, args),
        value=hex(int(value)),
        chain_id=int(chain_id),
    )
