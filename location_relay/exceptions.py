"""
Location Relay Exceptions

Custom exception classes for error handling
"""


class RelayError(Exception):
    """Base Location Relay exception"""

    def __init__(self, message: str, error_code: str = "RELAY000", details: dict = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> dict:
        """Convert to dictionary format"""
        return {
            "error_code": self.error_code,
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


# Server errors
class ServerError(RelayError):
    """Hub server error"""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message, "SRV001", details)


# Client errors
class ClientError(RelayError):
    """Client error"""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message, "CLIENT001", details)


class ClientNotConnectedError(ClientError):
    """Client not connected error"""

    def __init__(self, message: str = "Client is not connected", details: dict = None):
        super().__init__(message, details)
        self.error_code = "CLIENT002"
