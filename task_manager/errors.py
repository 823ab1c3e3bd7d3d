"""Domain exceptions raised below the HTTP layer.

Handlers in ``task_manager.main`` turn these into JSON responses.
"""


class ConfigurationError(Exception):
    """The server is missing required configuration (e.g. the JWT secret)."""


class StoreError(Exception):
    """An underlying database operation failed."""


class TokenError(Exception):
    """Base class for token verification failures."""


class MalformedToken(TokenError):
    pass


class InvalidToken(TokenError):
    pass


class ExpiredToken(TokenError):
    pass
