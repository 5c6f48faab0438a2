"""
tokendao JSON-RPC 2.0 Dispatcher

Transport-agnostic: an HTTP or WebSocket front end hands raw request bodies
to ``RPCServer.handle_request`` and writes back whatever string it returns.

- Methods are grouped in ``RPCModule`` namespaces (``dao_proposalCount`` ...)
- Single and batch requests; notifications produce no response
- A rejected governance call becomes TRANSACTION_REJECTED with the stable
  reason string as the message
"""

import json
import asyncio
from dataclasses import dataclass
from decimal import Decimal
from enum import IntEnum
from typing import Any, Callable, Dict, List, Optional, Union

from ..logger import get_logger
from ..governance.errors import GovernanceError

logger = get_logger(__name__)

RequestId = Union[str, int, None]
RPCMethod = Callable[..., Any]


class RPCErrorCode(IntEnum):
    """JSON-RPC 2.0 error codes used by the dispatcher."""

    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603

    # Implementation-defined range (-32000 to -32099)
    SERVER_ERROR = -32000
    RESOURCE_NOT_FOUND = -32001
    TRANSACTION_REJECTED = -32003


@dataclass
class RPCError(Exception):
    """Error object returned to the client."""

    code: int
    message: str
    data: Optional[Any] = None

    @classmethod
    def from_exception(cls, exc: Exception) -> "RPCError":
        """Map anything a handler raised onto a client-facing error."""
        if isinstance(exc, RPCError):
            return exc
        if isinstance(exc, GovernanceError):
            return cls(
                RPCErrorCode.TRANSACTION_REJECTED,
                exc.reason,
                {"error": type(exc).__name__},
            )
        if isinstance(exc, TypeError):
            # Missing, surplus or misnamed params
            return cls(RPCErrorCode.INVALID_PARAMS, str(exc))
        return cls(RPCErrorCode.INTERNAL_ERROR, str(exc))

    def to_dict(self) -> Dict[str, Any]:
        error = {"code": int(self.code), "message": self.message}
        if self.data is not None:
            error["data"] = self.data
        return error


@dataclass
class RPCRequest:
    """One parsed request object."""

    method: str
    params: Union[List, Dict, None]
    id: RequestId
    jsonrpc: str = "2.0"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RPCRequest":
        return cls(
            method=data.get("method", ""),
            params=data.get("params"),
            id=data.get("id"),
            jsonrpc=data.get("jsonrpc", "2.0"),
        )

    @property
    def is_notification(self) -> bool:
        return self.id is None


def _result(request_id: RequestId, result: Any) -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "id": request_id, "result": result}


def _error(request_id: RequestId, error: RPCError) -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "id": request_id, "error": error.to_dict()}


def _encode(payload: Any) -> str:
    # Amounts that slip through as Decimal are sent as decimal strings
    return json.dumps(payload, default=lambda o: str(o) if isinstance(o, Decimal) else repr(o))


# ══════════════════════════════════════════════════════════════════════
#  MODULES
# ══════════════════════════════════════════════════════════════════════

def rpc_method(func: RPCMethod) -> RPCMethod:
    """
    Expose a coroutine method of an RPCModule.

        @rpc_method
        async def proposalCount(self) -> int:
            return self.context.proposal_count
    """
    func.__rpc_method__ = True
    return func


class RPCModule:
    """
    A namespace of RPC methods sharing one context object.

    Subclasses set ``namespace`` and decorate public coroutines with
    ``@rpc_method``; each is published as ``<namespace>_<name>``.
    """

    namespace: str = ""

    def __init__(self, context: Any = None):
        self.context = context

    def get_methods(self) -> Dict[str, RPCMethod]:
        methods = {}
        for name in dir(self):
            if name.startswith("_"):
                continue
            attr = getattr(self, name)
            if callable(attr) and getattr(attr, "__rpc_method__", False):
                methods[f"{self.namespace}_{name}" if self.namespace else name] = attr
        return methods


# ══════════════════════════════════════════════════════════════════════
#  SERVER
# ══════════════════════════════════════════════════════════════════════

class RPCServer:
    """Method registry and request dispatcher."""

    def __init__(self):
        self._methods: Dict[str, RPCMethod] = {}
        self._modules: Dict[str, RPCModule] = {}

    # ── Registration ──────────────────────────────────────────────────

    def register_method(self, name: str, handler: RPCMethod):
        self._methods[name] = handler
        logger.debug(f"Registered RPC method: {name}")

    def register_module(self, module: RPCModule):
        methods = module.get_methods()
        self._methods.update(methods)
        self._modules[module.namespace] = module
        logger.info(f"Registered RPC module: {module.namespace} ({len(methods)} methods)")

    def unregister_module(self, namespace: str):
        module = self._modules.pop(namespace, None)
        if module is None:
            return
        for name in module.get_methods():
            self._methods.pop(name, None)
        logger.info(f"Unregistered RPC module: {namespace}")

    def get_methods(self) -> List[str]:
        return list(self._methods)

    # ── Dispatch ──────────────────────────────────────────────────────

    async def handle_request(self, data: Union[str, bytes, dict, list]) -> Optional[str]:
        """
        Dispatch a raw request body.

        Returns:
            The JSON response, or None when nothing should be sent back
            (a notification, or a batch made only of notifications)
        """
        if isinstance(data, (str, bytes)):
            try:
                data = json.loads(data)
            except json.JSONDecodeError as e:
                return _encode(_error(None, RPCError(RPCErrorCode.PARSE_ERROR, f"Parse error: {e}")))

        if not isinstance(data, list):
            response = await self._dispatch(data)
            return _encode(response) if response is not None else None

        if not data:
            return _encode(_error(None, RPCError(RPCErrorCode.INVALID_REQUEST, "Empty batch")))

        responses = await asyncio.gather(*(self._dispatch(item) for item in data))
        responses = [r for r in responses if r is not None]
        return _encode(responses) if responses else None

    async def _dispatch(self, data: Any) -> Optional[Dict[str, Any]]:
        if not isinstance(data, dict):
            return _error(None, RPCError(RPCErrorCode.INVALID_REQUEST, "Invalid request"))

        request = RPCRequest.from_dict(data)
        if request.jsonrpc != "2.0":
            return _error(request.id, RPCError(RPCErrorCode.INVALID_REQUEST, "Invalid JSON-RPC version"))
        if not request.method:
            return _error(request.id, RPCError(RPCErrorCode.INVALID_REQUEST, "Missing method"))

        handler = self._methods.get(request.method)
        if handler is None:
            error = RPCError(RPCErrorCode.METHOD_NOT_FOUND, f"Method not found: {request.method}")
            return None if request.is_notification else _error(request.id, error)

        try:
            result = await self._invoke(handler, request.params)
        except Exception as e:
            error = RPCError.from_exception(e)
            if error.code == RPCErrorCode.INTERNAL_ERROR:
                logger.exception(f"Error handling RPC method {request.method}")
            return None if request.is_notification else _error(request.id, error)

        return None if request.is_notification else _result(request.id, result)

    @staticmethod
    async def _invoke(handler: RPCMethod, params: Union[List, Dict, None]) -> Any:
        if params is None:
            return await handler()
        if isinstance(params, list):
            return await handler(*params)
        if isinstance(params, dict):
            return await handler(**params)
        raise RPCError(RPCErrorCode.INVALID_PARAMS, "Invalid params type")
