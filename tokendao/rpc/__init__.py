"""
tokendao RPC Module

Provides a JSON-RPC 2.0 interface to the governance engine:
- Transport-agnostic request dispatcher (single and batch requests)
- dao_* namespace over GovernanceEngine
"""

from .server import RPCError, RPCErrorCode, RPCModule, RPCServer, rpc_method
from .modules import DAOModule

__all__ = [
    "DAOModule",
    "RPCError",
    "RPCErrorCode",
    "RPCModule",
    "RPCServer",
    "rpc_method",
]
