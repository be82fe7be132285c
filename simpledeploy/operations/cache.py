"""
Cache clearing (local before the upload, remote after it)
"""
import shutil
from pathlib import Path
from typing import Callable, Optional

from ..core.filesystem import RemoteFilesystem
from ..utils.logging import error, log, vlog

KEEP_LOCAL = (".gitignore",)


def flush_local_cache(cache_dir: Path, flush: Optional[Callable[[], bool]] = None) -> bool:
    """
    Empty the local cache directory so stale artefacts are not uploaded.

    *flush* is the host application's own "flush everything volatile" hook,
    called first when given. Every top-level entry except .gitignore is
    removed, dotfiles included. Stops at the first failure.
    """
    msg = "Failed to clear cache. You need to delete it manually and re-run this command."
    if flush is not None and not flush():
        error(msg)
        return False
    if not cache_dir.is_dir():
        vlog(f"[cache] no local cache at {cache_dir}")
        return True

    for item in sorted(cache_dir.iterdir()):
        if item.name in KEEP_LOCAL:
            continue
        try:
            if item.is_dir() and not item.is_symlink():
                shutil.rmtree(item)
            else:
                item.unlink()
        except OSError as exc:
            error(f"{msg} ({item}: {exc})")
            return False
        vlog(f"  [DEL-LOCAL ✓] {item.name}")
    return True


def clear_remote_cache(fs: RemoteFilesystem, cache_path: str) -> list[str]:
    """
    Delete every non-dot entry directly inside *cache_path* on the remote.
    A failed delete is reported and the rest still go; returns the failures.
    If the cache cannot be listed at all, that single failure is returned.
    """
    failures: list[str] = []
    try:
        if not fs.has(cache_path):
            vlog(f"[cache] remote {cache_path} does not exist, nothing to clear")
            return failures
        entries = fs.find(cache_path, depth=0, ignore_dot_files=True)
    except fs.errors as exc:
        msg = f"Failed to list target cache {cache_path} ({exc})"
        error(msg)
        return [msg]

    for entry in entries:
        try:
            fs.delete_entry(entry)
            vlog(f"  [DEL-REMOTE ✓] {entry.path}")
        except fs.errors as exc:
            msg = f"Failed to remove {entry.path} from target cache ({exc})"
            error(msg)
            failures.append(msg)
    log(f"[cache] cleared {cache_path}" + (f" with {len(failures)} failure(s)" if failures else ""))
    return failures
