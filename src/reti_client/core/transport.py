"""
Ledger transport - the opaque RPC edge of the client.

Two call modes over an atomic group:

- ``simulate``: no signature check, no state commit. Returns per-call ABI
  results and the compute budget the group needed.
- ``execute``: signs, submits, waits for commitment and returns results.
"""

import asyncio
import base64
import json
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Protocol

import aiohttp

from reti_client.core.errors import TransportError
from reti_client.core.transaction import TransactionGroup
from reti_client.utils.logger import get_logger

logger = get_logger(__name__)

# Signs every transaction of a group and returns the signed blobs in order
TransactionSigner = Callable[[TransactionGroup], Awaitable[list[bytes]]]


@dataclass(frozen=True)
class SimulateOptions:
    """Dry-run switches."""

    allow_empty_signatures: bool = True
    allow_unnamed_resources: bool = True


@dataclass(frozen=True)
class SimulateResult:
    """Outcome of a dry run.

    ``returns`` holds one entry per app call, ``None`` where the call
    returned nothing. ``app_budget_added`` is the pooled budget the group
    granted itself, ``app_budget_consumed`` what it actually spent.
    """

    returns: list = field(default_factory=list)
    app_budget_added: int = 0
    app_budget_consumed: int = 0
    failure_message: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.failure_message is not None


@dataclass(frozen=True)
class ExecuteResult:
    """Outcome of a committed group."""

    returns: list = field(default_factory=list)
    tx_ids: list = field(default_factory=list)
    confirmed_round: Optional[int] = None


class LedgerTransport(Protocol):
    """What the client needs from the RPC layer."""

    async def simulate(
        self, group: TransactionGroup, options: SimulateOptions = SimulateOptions()
    ) -> SimulateResult:
        ...

    async def execute(
        self,
        group: TransactionGroup,
        signer: TransactionSigner,
        populate_resources: bool = True,
    ) -> ExecuteResult:
        ...

    async def close(self) -> None:
        ...


class JsonRpcTransport:
    """LedgerTransport speaking JSON-RPC 2.0 to an ABI gateway over aiohttp.

    This does not talk to a ledger node directly. It expects an external
    gateway service that ABI-encodes method calls, assembles and
    simulates/submits the group against the node, and exposes two JSON-RPC
    methods: ``simulate`` and ``execute``. Run such a gateway, or plug in
    another LedgerTransport implementation.
    """

    def __init__(
        self,
        endpoint: str,
        timeout: float = 10.0,
        session: aiohttp.ClientSession | None = None,
    ):
        """Initialize the transport.

        Args:
            endpoint: URL of the JSON-RPC gateway
            timeout: Total per-request timeout in seconds
            session: Optional pre-built session (the transport will not close it)
        """
        self.endpoint = endpoint
        self.timeout = timeout
        self._session = session
        self._owns_session = session is None
        self._request_id = 0

    async def __aenter__(self) -> "JsonRpcTransport":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
        return self._session

    async def close(self) -> None:
        """Close the HTTP session if this transport created it."""
        if self._session is not None and self._owns_session:
            await self._session.close()
            self._session = None

    async def simulate(
        self, group: TransactionGroup, options: SimulateOptions = SimulateOptions()
    ) -> SimulateResult:
        params = {
            "group": group.to_dict(),
            "allow_empty_signatures": options.allow_empty_signatures,
            "allow_unnamed_resources": options.allow_unnamed_resources,
        }
        result = await self._call("simulate", params)
        return parse_simulate_result(result)

    async def execute(
        self,
        group: TransactionGroup,
        signer: TransactionSigner,
        populate_resources: bool = True,
    ) -> ExecuteResult:
        signed = await signer(group)
        params = {
            "group": group.to_dict(),
            "signed": [base64.b64encode(blob).decode() for blob in signed],
            "populate_resources": populate_resources,
        }
        result = await self._call("execute", params)
        return parse_execute_result(result)

    async def _call(self, method: str, params: dict[str, Any]) -> dict[str, Any]:
        """Send one JSON-RPC request and return its ``result`` member.

        Raises:
            TransportError: On network failure, timeout, bad JSON or an RPC error
        """
        self._request_id += 1
        body = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params,
        }
        try:
            session = self._get_session()
            async with session.post(self.endpoint, json=body) as response:
                response.raise_for_status()
                payload = await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.exception(f"RPC {method} request failed")
            raise TransportError(f"RPC {method} request failed: {e!s}") from e
        except json.JSONDecodeError as e:
            logger.exception(f"Failed to decode RPC {method} response")
            raise TransportError(f"Invalid JSON from RPC {method}") from e

        if not isinstance(payload, dict):
            raise TransportError(f"Malformed RPC {method} response: {payload!r}")
        if payload.get("error"):
            error = payload["error"]
            message = error.get("message", error) if isinstance(error, dict) else error
            logger.error(f"RPC {method} returned error: {message}")
            raise TransportError(f"RPC {method} error: {message}")
        if "result" not in payload:
            raise TransportError(f"RPC {method} response has no result")
        return payload["result"] or {}


def parse_simulate_result(result: dict[str, Any]) -> SimulateResult:
    """Build a SimulateResult from the gateway's ``simulate`` result."""
    return SimulateResult(
        returns=list(result.get("returns") or []),
        app_budget_added=int(result.get("app_budget_added") or 0),
        app_budget_consumed=int(result.get("app_budget_consumed") or 0),
        failure_message=result.get("failure_message"),
    )


def parse_execute_result(result: dict[str, Any]) -> ExecuteResult:
    """Build an ExecuteResult from the gateway's ``execute`` result."""
    confirmed_round = result.get("confirmed_round")
    return ExecuteResult(
        returns=list(result.get("returns") or []),
        tx_ids=list(result.get("tx_ids") or []),
        confirmed_round=int(confirmed_round) if confirmed_round is not None else None,
    )
