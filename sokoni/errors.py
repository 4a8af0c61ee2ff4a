"""Error types raised by the scan pipeline."""


class SokoniError(Exception):
    """Base class for all sokoni errors."""


class InvalidPathSpec(SokoniError):
    """Raised when an SMB path string has no discernible server and share."""

    def __init__(self, spec: str):
        super().__init__(f"invalid SMB path: {spec!r} (expected //server/share[/path])")
        self.spec = spec


class SMBError(SokoniError):
    """Raised when an SMB session fails; ``phase`` names the step that failed."""

    phase = "smb"

    def __init__(self, server: str, message: str):
        super().__init__(f"SMB {self.phase} failed for {server}: {message}")
        self.server = server


class SMBConnectionError(SMBError):
    """Raised when the TCP connection to the SMB server cannot be opened."""

    phase = "connect"


class SMBAuthError(SMBError):
    """Raised when NTLM authentication is rejected."""

    phase = "authenticate"


class SMBMountError(SMBError):
    """Raised when the share cannot be mounted."""

    phase = "mount"


class TraversalError(SokoniError):
    """Raised when a remote directory cannot be listed."""

    def __init__(self, path: str, message: str):
        super().__init__(f"failed to read directory {path}: {message}")
        self.path = path


class FilesystemError(SokoniError):
    """Raised when a local directory or file cannot be read."""

    def __init__(self, path: str, message: str):
        super().__init__(f"failed to read {path}: {message}")
        self.path = path


class PersistenceError(SokoniError):
    """Raised when a batch of file records cannot be committed."""


class AuthorizationError(SokoniError):
    """Raised when a connection is not visible to the requesting user."""


class ConnectionNotFoundError(AuthorizationError):
    """Raised when a connection id does not exist."""

    def __init__(self, connection_id: int):
        super().__init__(f"connection {connection_id} not found")
        self.connection_id = connection_id


class InvalidConnectionError(SokoniError):
    """Raised when connection fields fail validation."""


class ScanInProgressError(SokoniError):
    """Raised when another scan already holds the connection's lock."""

    def __init__(self, connection_id: int):
        super().__init__(f"connection {connection_id} is already being scanned")
        self.connection_id = connection_id
