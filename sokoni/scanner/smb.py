"""SMB2/3 client session used to list PDFs on a remote share."""

import logging
import uuid
from datetime import datetime, timezone
from typing import Self

from smbprotocol.connection import Connection as SMBConnection
from smbprotocol.exceptions import NoMoreFiles, SMBException
from smbprotocol.file_info import FileAttributes, FileInformationClass
from smbprotocol.open import (
    CreateDisposition,
    CreateOptions,
    DirectoryAccessMask,
    ImpersonationLevel,
    Open,
    ShareAccess,
)
from smbprotocol.session import Session
from smbprotocol.tree import TreeConnect
from spnego.exceptions import SpnegoError

from sokoni.errors import SMBAuthError, SMBConnectionError, SMBMountError, TraversalError
from sokoni.scanner.walker import DirEntry

logger = logging.getLogger(__name__)

DEFAULT_PORT = 445

# Seconds between 1601-01-01 (FILETIME epoch) and 1970-01-01.
_FILETIME_EPOCH_OFFSET = 11_644_473_600


class SMBSession:
    """One authenticated SMB session with a single mounted share.

    Use as a context manager. On exit, and on any failure while entering,
    the share is unmounted, the session logged off and the TCP connection
    closed, in that order, for whichever of them were established.
    """

    def __init__(
        self,
        server: str,
        share: str,
        username: str | None = None,
        password: str | None = None,
        port: int = DEFAULT_PORT,
        timeout: int = 60,
    ):
        self.server = server
        self.share = share
        self.username = username or ""
        self.password = password or ""
        self.port = port
        self.timeout = timeout
        self._connection: SMBConnection | None = None
        self._session: Session | None = None
        self._tree: TreeConnect | None = None

    @property
    def address(self) -> str:
        return f"{self.server}:{self.port}"

    def open(self) -> None:
        try:
            self._dial()
            self._authenticate()
            self._mount()
        except BaseException:
            self.close()
            raise

    def _dial(self) -> None:
        connection = SMBConnection(uuid.uuid4(), self.server, self.port)
        try:
            connection.connect(timeout=self.timeout)
        except (OSError, ValueError, SMBException) as e:
            raise SMBConnectionError(self.address, str(e)) from e
        self._connection = connection

    def _authenticate(self) -> None:
        session = Session(
            self._connection,
            username=self.username,
            password=self.password,
            require_encryption=False,
            auth_protocol="ntlm",
        )
        try:
            session.connect()
        except (OSError, ValueError, SMBException, SpnegoError) as e:
            raise SMBAuthError(self.address, str(e)) from e
        self._session = session

    def _mount(self) -> None:
        tree = TreeConnect(self._session, rf"\\{self.server}\{self.share}")
        try:
            tree.connect()
        except (OSError, ValueError, SMBException) as e:
            raise SMBMountError(self.address, f"share {self.share!r}: {e}") from e
        self._tree = tree

    def close(self) -> None:
        tree, self._tree = self._tree, None
        session, self._session = self._session, None
        connection, self._connection = self._connection, None

        if tree is not None:
            _release("unmount", tree.disconnect)
        if session is not None:
            _release("logoff", session.disconnect)
        if connection is not None:
            _release("disconnect", lambda: connection.disconnect(True))

    def __enter__(self) -> Self:
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def read_dir(self, path: str) -> list[DirEntry]:
        """List ``path`` (``/``-separated, relative to the share root)."""
        if self._tree is None:
            raise TraversalError(path, "share is not mounted")

        try:
            raw_entries = self._query_directory(path)
        except (OSError, ValueError, SMBException) as e:
            raise TraversalError(path, str(e)) from e

        entries: list[DirEntry] = []
        for raw in raw_entries:
            try:
                name = raw["file_name"].get_value().decode("utf-16-le")
            except UnicodeDecodeError as e:
                raise TraversalError(path, f"undecodable file name: {e}") from e
            if name in (".", ".."):
                continue
            attributes = raw["file_attributes"].get_value()
            entries.append(
                DirEntry(
                    name=name,
                    path=f"{path}/{name}" if path else name,
                    is_dir=bool(attributes & FileAttributes.FILE_ATTRIBUTE_DIRECTORY),
                    size=raw["end_of_file"].get_value(),
                    mod_time=to_unix(raw["last_write_time"].get_value()),
                )
            )
        return entries

    def _query_directory(self, path: str) -> list:
        handle = Open(self._tree, path.replace("/", "\\"))
        handle.create(
            ImpersonationLevel.Impersonation,
            DirectoryAccessMask.FILE_LIST_DIRECTORY,
            FileAttributes.FILE_ATTRIBUTE_DIRECTORY,
            ShareAccess.FILE_SHARE_READ | ShareAccess.FILE_SHARE_WRITE,
            CreateDisposition.FILE_OPEN,
            CreateOptions.FILE_DIRECTORY_FILE,
        )
        entries: list = []
        try:
            while True:
                try:
                    entries.extend(
                        handle.query_directory(
                            "*", FileInformationClass.FILE_ID_FULL_DIRECTORY_INFORMATION
                        )
                    )
                except NoMoreFiles:
                    break
        finally:
            handle.close(False)
        return entries


class SMBBackend:
    """Adapts an open ``SMBSession`` to the walker's backend protocol."""

    def __init__(self, session: SMBSession):
        self.session = session

    def read_dir(self, path: str) -> list[DirEntry]:
        return self.session.read_dir(path)

    def record_path(self, path: str) -> str:
        root = f"//{self.session.server}/{self.session.share}"
        return f"{root}/{path}" if path else root


def to_unix(value: datetime | int | float) -> float:
    """Convert an SMB timestamp to seconds since the Unix epoch.

    smbprotocol returns naive UTC datetimes; raw FILETIME integers count
    100ns intervals since 1601.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.timestamp()
    return value / 10_000_000 - _FILETIME_EPOCH_OFFSET


def _release(step: str, release) -> None:
    try:
        release()
    except (OSError, ValueError, SMBException) as e:
        logger.warning("SMB %s failed during cleanup: %s", step, e)
