from .labels import Labels

__all__ = ["Labels"]
