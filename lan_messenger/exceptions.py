"""
LAN Messenger Exceptions

Custom exception classes for error handling
"""


class HubError(Exception):
    """Base LAN Messenger exception"""

    def __init__(self, message: str, error_code: str = "HUB000", details: dict = None):
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


# Transport errors
class TransportError(HubError):
    """Read/write/close failure on a single session's stream"""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message, "TRANSPORT001", details)


# Protocol errors
class ProtocolViolation(HubError):
    """Malformed handshake; terminates only the offending session"""

    def __init__(self, message: str, notice: str = None, details: dict = None):
        super().__init__(message, "PROTO001", details)
        # 关闭前发给客户端的提示
        self.notice = notice


# Handler errors
class HandlerError(HubError):
    """Side-channel collaborator failure"""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message, "HANDLER001", details)


class EvaluationError(HandlerError):
    """Expression evaluation failure"""

    def __init__(self, message: str = "Error evaluating expression", details: dict = None):
        super().__init__(message, details)
        self.error_code = "HANDLER002"


class PersistenceError(HandlerError):
    """Snapshot persistence failure"""

    def __init__(self, message: str = "Error saving user data", details: dict = None):
        super().__init__(message, details)
        self.error_code = "HANDLER003"


# Server errors
class BindError(HubError):
    """Listening endpoint cannot be established"""

    def __init__(self, host: str, port: int, details: dict = None):
        message = f"Cannot listen on {host}:{port}"
        super().__init__(message, "BIND001", details)
        self.host = host
        self.port = port


# Registry errors
class DuplicateIdentityError(HubError):
    """Session id registered twice"""

    def __init__(self, session_id: str, details: dict = None):
        message = f"Session already registered: {session_id}"
        super().__init__(message, "REG001", details)
        self.session_id = session_id
