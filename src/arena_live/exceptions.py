"""
Custom exceptions for the arena_live client runtime.
"""

class ArenaLiveException(Exception):
    """Base exception for the library."""
    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)

class CoordinatorNotProvidedException(ArenaLiveException):
    """Raised when the shared coordinator is requested outside of provide_coordinator()."""
    pass

class TransportUnavailableException(ArenaLiveException):
    """Raised when a single transport mode fails to connect."""
    def __init__(self, mode: str, message: str):
        self.mode = mode
        super().__init__(f"{mode}: {message}")

class ConfigurationException(ArenaLiveException):
    """Raised when the environment holds an invalid configuration value."""
    pass
