"""
Upload operations (write check, remote listing, catalogue push)
"""
import os
import re
from pathlib import Path
from typing import Optional

from ..config import DeployTarget
from ..core.filesystem import RemoteFilesystem
from ..exceptions import DirectoryCreationError, TransferError
from ..models import Catalogue, CatalogueEntry, UploadResult
from ..utils.logging import error, log, success, vlog, warn
from ..utils.progress import UploadProgress

TEST_DIR = ".delete-me"
TEST_FILE = f"{TEST_DIR}/test.txt"
TEST_CONTENT = "This file and its directory were placed here by simpledeploy to test access."


def display_root(fs: RemoteFilesystem) -> str:
    """The remote root as an operator would type it (./www → ~/www, ./ → ~)."""
    root = fs.adapter.path_prefix.rstrip("/")
    if not root:
        return "/"
    return re.sub(r"^\.(?=/|$)", "~", root)


def check_write_access(fs: RemoteFilesystem, target: DeployTarget) -> bool:
    """
    Create and remove a scratch directory + file under the remote root.
    Returns False (after printing what to fix) if either cannot be written.
    """
    real_root = display_root(fs)
    try:
        fs.create_dir(TEST_DIR)
    except DirectoryCreationError:
        error(f'Failed creating a test directory on the remote root, "{real_root}/{TEST_DIR}" '
              f"does not seem to be writable.")
        return False
    try:
        fs.put(TEST_FILE, TEST_CONTENT)
    except TransferError:
        error(f'Failed creating a test file on the remote directory, "{real_root}/{TEST_FILE}" '
              f"does not seem to be writable.")
        return False

    try:
        fs.delete_dir(TEST_DIR)
    except fs.errors as exc:
        warn(f"Could not remove {real_root}/{TEST_DIR} after the write test: {exc}")
    success(f"Target {target.protocol}://{target.host}:{real_root} looks writable!")
    return True


def get_target_contents(fs: RemoteFilesystem) -> dict[str, list[str]]:
    """One level of the remote root; directories carry a trailing slash."""
    files, dirs = [], []
    for entry in fs.list_contents(""):
        if entry.is_dir:
            dirs.append(entry.path + "/")
        else:
            files.append(entry.path)
    return {"files": files, "dirs": dirs}


def _is_local(root: Path, entry: CatalogueEntry) -> bool:
    try:
        Path(os.path.abspath(entry.source)).relative_to(root)
        return True
    except ValueError:
        return False


def _progress_label(entry: CatalogueEntry) -> str:
    """Top-level directory of the entry, which is all the bar has room for."""
    top = entry.path.split("/", 1)[0]
    return top + "/" if entry.is_dir or "/" in entry.path else top


def _push_entry(fs: RemoteFilesystem, catalogue: Catalogue, entry: CatalogueEntry,
                target: DeployTarget, force: bool, result: UploadResult):
    result.processed += 1
    if not _is_local(catalogue.root, entry):
        vlog(f"  [SKIP] {entry.path} is not part of the local tree")
        return

    remote = f"{target.name}://{entry.path}"
    if entry.is_dir:
        try:
            fs.create_dir(entry.path)
        except DirectoryCreationError:
            error(f"Failed to create target directory: {remote}")
            raise
        result.directories += 1
        if force and not fs.adapter.chmod(entry.path, target.directory_perm):
            msg = f"Failed to set permissions {target.directory_perm:o} on {remote}"
            warn(msg)
            result.errors.append(msg)
        return

    try:
        copied = fs.copy(entry.source, entry.path, force)
    except TransferError:
        error(f"Failed to copy {entry.source} to {remote}")
        raise
    if copied:
        result.copied += 1
    else:
        result.skipped += 1


def push_catalogue(fs: RemoteFilesystem, catalogue: Catalogue, target: DeployTarget,
                   force: bool = False, progress: Optional[UploadProgress] = None) -> UploadResult:
    """
    Realise *catalogue* on the remote side, in order.

    Directory creation and file copy failures are logged and re-raised;
    a failed chmod on a forced directory is only recorded in the result.
    The progress bar is taken down whichever way the loop ends.
    """
    result = UploadResult()
    if progress:
        progress.start(len(catalogue))
    try:
        for entry in catalogue:
            if progress:
                progress.advance("Uploading", _progress_label(entry))
            _push_entry(fs, catalogue, entry, target, force, result)
        if progress:
            progress.finish()
    finally:
        if progress:
            progress.stop()

    log(f"[push] {result.copied} file(s) copied, {result.skipped} unchanged, "
        f"{result.directories} director(y/ies) checked")
    return result
