"""
Generic remote filesystem on top of an adapter, plus the per-target mounts
"""
import posixpath
from pathlib import Path
from typing import Callable, Optional, Union

from ..config import DeployTarget
from ..exceptions import DirectoryCreationError, TransferError
from ..utils.file_utils import file_changed
from ..utils.logging import vlog
from .remote import RemoteAdapter, RemoteStat, create_adapter


class RemoteFilesystem:
    """
    Directory creation, conditional copy, listing and deletion against one
    adapter. Paths are relative to the target root.
    """

    def __init__(self, adapter: RemoteAdapter, target: DeployTarget):
        self.adapter = adapter
        self.perm_public = target.perm_public
        self.directory_perm = target.directory_perm
        self.compare_size = target.options.get("transferMode", "binary") != "ascii"

    @property
    def errors(self) -> tuple:
        return self.adapter.errors

    def has(self, path: str) -> bool:
        return self.adapter.has(path)

    # ── writing ─────────────────────────────────────────────────────────────

    def create_dir(self, path: str):
        """Create *path* and any missing parents; existing directories are fine."""
        current = ""
        for part in _split(path):
            current = posixpath.join(current, part) if current else part
            st = self.adapter.stat(current)
            if st is not None:
                if not st.is_dir:
                    raise DirectoryCreationError(current, "a file with that name exists")
                continue
            try:
                self.adapter.mkdir(current, self.directory_perm)
            except self.errors as exc:
                raise DirectoryCreationError(current, str(exc)) from exc
            vlog(f"  [MKDIR] {current}")

    def copy(self, local_path: Union[str, Path], path: str, force: bool = False) -> bool:
        """
        Upload *local_path* to *path*. Without *force* an up-to-date remote
        file is left alone. Returns True when a transfer happened.
        """
        local_path = Path(local_path)
        if not force:
            remote = self.adapter.stat(path)
            if not file_changed(local_path, remote, self.compare_size):
                vlog(f"  [SKIP] {path}")
                return False
        try:
            self.adapter.upload(str(local_path), path)
        except self.errors as exc:
            raise TransferError(str(local_path), path, str(exc)) from exc
        if not self.adapter.chmod(path, self.perm_public):
            vlog(f"  [CHMOD] could not set {self.perm_public:o} on {path}")
        vlog(f"  [PUT] {path}")
        return True

    def put(self, path: str, contents: Union[str, bytes]):
        """Write *contents* to *path*, creating parent directories."""
        parent = posixpath.dirname(path)
        if parent:
            self.create_dir(parent)
        data = contents.encode("utf-8") if isinstance(contents, str) else contents
        try:
            self.adapter.write(path, data)
        except self.errors as exc:
            raise TransferError("<generated>", path, str(exc)) from exc

    # ── reading / removing ──────────────────────────────────────────────────

    def list_contents(self, path: str = "") -> list[RemoteStat]:
        return sorted(self.adapter.listdir(path), key=lambda e: e.name)

    def find(self, path: str = "", depth: int = 0,
             ignore_dot_files: bool = True) -> list[RemoteStat]:
        """Entries under *path* down to *depth* levels below it (0 = direct children)."""
        found = []
        for entry in self.list_contents(path):
            if ignore_dot_files and entry.name.startswith("."):
                continue
            found.append(entry)
            if entry.is_dir and depth > 0:
                found.extend(self.find(entry.path, depth - 1, ignore_dot_files))
        return found

    def delete(self, path: str):
        self.adapter.remove(path)

    def delete_dir(self, path: str):
        """Remove *path* and everything below it."""
        for entry in self.adapter.listdir(path):
            if entry.is_dir:
                self.delete_dir(entry.path)
            else:
                self.adapter.remove(entry.path)
        self.adapter.rmdir(path)

    def delete_entry(self, entry: RemoteStat):
        if entry.is_dir:
            self.delete_dir(entry.path)
        else:
            self.delete(entry.path)


def _split(path: str) -> list[str]:
    return [p for p in path.strip("/").split("/") if p and p != "."]


class Mounts:
    """
    One adapter and one filesystem per target name, created on first use and
    kept until close(). Every stage of a run shares the same connection.
    """

    def __init__(self, adapter_factory: Callable[[DeployTarget], RemoteAdapter] = create_adapter):
        self._factory = adapter_factory
        self._adapters: dict[str, RemoteAdapter] = {}
        self._filesystems: dict[str, RemoteFilesystem] = {}

    def adapter(self, target: DeployTarget) -> RemoteAdapter:
        if target.name not in self._adapters:
            self._adapters[target.name] = self._factory(target)
        return self._adapters[target.name]

    def filesystem(self, target: DeployTarget) -> RemoteFilesystem:
        if target.name not in self._filesystems:
            self._filesystems[target.name] = RemoteFilesystem(self.adapter(target), target)
        return self._filesystems[target.name]

    def get(self, name: str) -> Optional[RemoteAdapter]:
        return self._adapters.get(name)

    def close(self):
        for adapter in self._adapters.values():
            adapter.disconnect()
        self._adapters.clear()
        self._filesystems.clear()
