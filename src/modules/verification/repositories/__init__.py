from .token_repository import TokenRepository

__all__ = ['TokenRepository']
