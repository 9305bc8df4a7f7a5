"""Minimal JSON-RPC helpers for probing EVM nodes."""

from __future__ import annotations

import logging
from itertools import count
from typing import Any, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from web3 import Web3

from fhevm_sdk.errors import FhevmError

logger = logging.getLogger("fhevm_sdk.actions.rpc")

_request_ids = count(1)


class RpcError(Exception):
    """The node answered with a JSON-RPC error object."""

    def __init__(self, code: int, message: str) -> None:
        super().__init__(f"JSON-RPC error {code}: {message}")
        self.code = code


class RelayerMetadata(BaseModel):
    """Contract addresses reported by an FHEVM Hardhat node."""

    model_config = ConfigDict(populate_by_name=True)

    acl_address: str = Field(alias="ACLAddress")
    input_verifier_address: str = Field(alias="InputVerifierAddress")
    kms_verifier_address: str = Field(alias="KMSVerifierAddress")

    @field_validator("acl_address", "input_verifier_address", "kms_verifier_address")
    @classmethod
    def _check_address(cls, value: str) -> str:
        if not Web3.is_address(value):
            raise ValueError(f"not an address: {value!r}")
        return value


async def rpc_call(
    rpc_url: str,
    method: str,
    params: Optional[list] = None,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    timeout: float = 15,
) -> Any:
    """POST a single JSON-RPC request and return its ``result``."""
    payload = {
        "jsonrpc": "2.0",
        "id": next(_request_ids),
        "method": method,
        "params": params or [],
    }
    async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
        resp = await client.post(rpc_url, json=payload)
        resp.raise_for_status()
        body = resp.json()
    if body.get("error"):
        err = body["error"]
        raise RpcError(err.get("code", -1), err.get("message", ""))
    return body.get("result")


async def get_chain_id(
    rpc_url: str, *, transport: Optional[httpx.AsyncBaseTransport] = None
) -> int:
    result = await rpc_call(rpc_url, "eth_chainId", transport=transport)
    return int(result, 16) if isinstance(result, str) else int(result)


async def get_client_version(
    rpc_url: str, *, transport: Optional[httpx.AsyncBaseTransport] = None
) -> Any:
    try:
        return await rpc_call(rpc_url, "web3_clientVersion", transport=transport)
    except (httpx.HTTPError, RpcError, ValueError) as e:
        raise FhevmError(
            "WEB3_CLIENTVERSION_ERROR",
            f"The URL {rpc_url} is not a Web3 node or is not reachable. "
            "Please check the endpoint.",
        ) from e


async def get_relayer_metadata(
    rpc_url: str, *, transport: Optional[httpx.AsyncBaseTransport] = None
) -> Any:
    try:
        return await rpc_call(rpc_url, "fhevm_relayer_metadata", transport=transport)
    except (httpx.HTTPError, RpcError, ValueError) as e:
        raise FhevmError(
            "FHEVM_RELAYER_METADATA_ERROR",
            f"The URL {rpc_url} is not a FHEVM Hardhat node or is not reachable. "
            "Please check the endpoint.",
        ) from e


async def try_fetch_hardhat_relayer_metadata(
    rpc_url: str, *, transport: Optional[httpx.AsyncBaseTransport] = None
) -> Optional[RelayerMetadata]:
    """Return relayer metadata if *rpc_url* is an FHEVM Hardhat node.

    An unreachable node raises; a node that is not Hardhat, or whose
    metadata is missing or malformed, yields ``None``.
    """
    version = await get_client_version(rpc_url, transport=transport)
    if not isinstance(version, str) or "hardhat" not in version.lower():
        return None
    try:
        raw = await get_relayer_metadata(rpc_url, transport=transport)
        return RelayerMetadata.model_validate(raw)
    except (FhevmError, ValidationError) as e:
        logger.debug(f"No usable relayer metadata at {rpc_url}: {e}")
        return None
