"""Decide how a connection's files are reached: local filesystem or SMB."""

from dataclasses import dataclass
from pathlib import Path

from sokoni.database.models import Connection
from sokoni.errors import InvalidPathSpec

SMB_PREFIX = "//"


@dataclass(frozen=True)
class LocalTarget:
    root: Path


@dataclass(frozen=True)
class SMBTarget:
    server: str
    share: str
    path: str = ""

    @property
    def unc_root(self) -> str:
        return f"{SMB_PREFIX}{self.server}/{self.share}"


def is_smb_path(spec: str) -> bool:
    return spec.startswith(SMB_PREFIX)


def parse_smb_path(spec: str, subpath: str = "") -> SMBTarget:
    """Split ``//server/share[/dir...]`` into its parts.

    ``subpath`` is appended after any directories already present in
    ``spec``.
    """
    segments = [s for s in spec[len(SMB_PREFIX) :].split("/") if s]
    if len(segments) < 2:
        raise InvalidPathSpec(spec)

    server, share, *rest = segments
    rest.extend(s for s in subpath.split("/") if s)
    return SMBTarget(server=server, share=share, path="/".join(rest))


def classify_connection(connection: Connection) -> LocalTarget | SMBTarget:
    base_path = connection.base_path
    remote_path = connection.remote_path or ""

    if is_smb_path(base_path):
        # Older rows repeat the full //server/share spec in remote_path.
        if is_smb_path(remote_path):
            return parse_smb_path(remote_path)
        return parse_smb_path(base_path, remote_path)

    if is_smb_path(remote_path):
        return parse_smb_path(remote_path)

    return LocalTarget(root=_join_local(base_path, remote_path))


def _join_local(base_path: str, remote_path: str) -> Path:
    if not remote_path or remote_path == base_path:
        return Path(base_path)
    return Path(base_path) / remote_path.lstrip("/")
