# backend/cybersiege/exceptions.py
"""Error taxonomy shared by the mission engine, the stores and the API layer."""


class CyberSiegeError(Exception):
    """Base class for all expected engine failures."""
    pass


class UsageError(CyberSiegeError):
    """Raised by a verb handler when command arguments are missing or invalid.

    The message is the usage text shown to the player; it never leaves the interpreter.
    """
    pass


class NotFoundError(CyberSiegeError):
    """Raised when a scenario, session or referenced asset does not exist."""
    pass


class AuthorizationError(CyberSiegeError):
    """Raised when a player acts on a session they do not own."""
    pass


class ValidationError(CyberSiegeError):
    """Raised when a persisted entity (session, scenario file) is malformed."""
    pass


class TransientStorageError(CyberSiegeError):
    """Raised when the persistence backend fails to load or save."""
    pass


class SessionInactiveError(CyberSiegeError):
    """Raised when a command targets a session that is no longer active."""
    pass
