"""
Executables: recreate local symlinks on the remote host

SFTP servers get real symlinks. FTP cannot represent a link, so each one is
replaced by a small shim script that requires the link's target.
"""
import os
import posixpath
from pathlib import Path
from typing import Optional

from ..config import DeployTarget, ProjectPaths
from ..core.remote import RemoteAdapter
from ..models import LinkResult, SymlinkDescriptor
from ..utils.logging import vlog


def _describe(root: Path, link: str, needs_bootstrap: bool = False) -> SymlinkDescriptor:
    path = root / link
    raw = os.readlink(path)
    if os.path.isabs(raw):
        target = Path(os.path.relpath(raw, path.parent)).as_posix()
    else:
        target = raw.replace(os.sep, "/")
    resolved = posixpath.normpath(posixpath.join(posixpath.dirname(link), target))
    if resolved == ".." or resolved.startswith("../"):
        resolved = None
    return SymlinkDescriptor(link=link, target=target, resolved=resolved,
                             needs_bootstrap=needs_bootstrap)


def find_cli_link(root: Path, cli_entry: str) -> Optional[SymlinkDescriptor]:
    """The CLI entry point, when the local copy is a symlink."""
    if not (root / cli_entry).is_symlink():
        return None
    return _describe(root, cli_entry, needs_bootstrap=True)


def find_vendor_links(root: Path, bin_dir: str) -> list[SymlinkDescriptor]:
    """Symlinks to files directly inside the vendor binary directory."""
    directory = root / bin_dir
    if not directory.is_dir():
        return []
    return [
        _describe(root, f"{bin_dir.rstrip('/')}/{item.name}")
        for item in sorted(directory.iterdir(), key=lambda p: p.name)
        if item.is_symlink() and item.is_file()
    ]


def collect_links(paths: ProjectPaths) -> list[SymlinkDescriptor]:
    links = []
    cli = find_cli_link(paths.root, paths.cli_entry)
    if cli is not None:
        links.append(cli)
    links.extend(find_vendor_links(paths.root, paths.bin_dir))
    return links


def link_sftp(adapter: RemoteAdapter, link: SymlinkDescriptor, mode: int, result: LinkResult):
    """Create the symlink if it is missing, then make its target executable."""
    if not adapter.lexists(link.link) and not adapter.create_link(link.target, link.link):
        result.errors.append(f"Failed to create symlink on remote. {link.link} -> {link.target}")

    if link.resolved and adapter.has(link.resolved) and not adapter.chmod(link.resolved, mode):
        result.errors.append(f"Failed to set execute permission on remote file {link.resolved}")


def link_ftp(adapter: RemoteAdapter, link: SymlinkDescriptor, mode: int, result: LinkResult):
    """Write a shim in place of the link, then make the shim executable."""
    created = adapter.create_link(link.target, link.link, link.needs_bootstrap)
    if not created and not adapter.has(link.link):
        result.errors.append(f"Failed to create symlink on remote. {link.link} -> {link.target}")

    if not adapter.chmod(link.link, mode):
        result.errors.append(f"Failed to set execute permission on remote file {link.link}")


def setup_executables(adapter: RemoteAdapter, target: DeployTarget,
                      paths: ProjectPaths) -> LinkResult:
    """
    Recreate the CLI entry link and the vendor binary links on the remote.
    Failures are collected in the result; nothing is raised or rolled back.
    """
    result = LinkResult()
    link_one = link_ftp if target.is_ftp else link_sftp
    for link in collect_links(paths):
        vlog(f"  [LINK] {link.link} -> {link.target}")
        link_one(adapter, link, target.directory_perm, result)
        result.checked += 1
    return result
