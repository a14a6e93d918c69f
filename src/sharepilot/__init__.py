# Avoid importing heavy submodules at top-level to prevent side effects
__all__ = ["AccountStore", "Vault", "Ledger"]

def __getattr__(name):
    if name == "AccountStore":
        from .core.accounts import AccountStore
        return AccountStore
    if name == "Vault":
        from .core.vault import Vault
        return Vault
    if name == "Ledger":
        from .history.ledger import Ledger
        return Ledger
    raise AttributeError(name)
