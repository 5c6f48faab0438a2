"""
tokendao Governance Package

Core imports are lazily loaded so that importing the package does not
configure logging or read configuration until something is used.
For direct module access, import from submodules:

    from tokendao.governance import GovernanceEngine, VoteChoice
    from tokendao.tokens import GovernanceToken
    from tokendao.config import load_config
"""

# Lazy imports to avoid loading everything at package import
def __getattr__(name):
    """Lazy module loading."""
    if name == 'GovernanceEngine':
        from .governance import GovernanceEngine
        return GovernanceEngine
    elif name == 'GovernanceToken':
        from .tokens import GovernanceToken
        return GovernanceToken
    elif name == 'load_config':
        from .config import load_config
        return load_config
    elif name == 'DAOException':
        from .exceptions import DAOException
        return DAOException
    raise AttributeError(f"module 'tokendao' has no attribute {name!r}")

__all__ = ['GovernanceEngine', 'GovernanceToken', 'load_config', 'DAOException']
