"""
tokendao Exceptions

Base exception classes shared by every tokendao subsystem.
Governance-specific errors live in tokendao.governance.errors.
"""


class DAOException(Exception):
    """Base exception for tokendao."""
    pass


class ConfigurationError(DAOException):
    """Configuration error."""
    pass
