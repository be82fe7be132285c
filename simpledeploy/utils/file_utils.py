"""
File utilities (change detection)
"""
from pathlib import Path
from typing import Optional, TYPE_CHECKING

from .. import config as _cfg

if TYPE_CHECKING:
    from ..core.remote import RemoteStat


def file_changed(local: Path, remote: Optional["RemoteStat"], compare_size: bool = True) -> bool:
    """
    True if the local file should replace the remote copy: the remote is
    missing, sizes differ, or the local file is newer.
    """
    if remote is None or remote.is_dir:
        return True
    st = local.stat()
    if compare_size and st.st_size != remote.size:
        return True
    return st.st_mtime - remote.mtime > _cfg.MTIME_TOLERANCE
