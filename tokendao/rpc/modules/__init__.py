"""
tokendao RPC Modules

JSON-RPC method implementations.
"""

from .dao import DAOModule

__all__ = [
    "DAOModule",
]
