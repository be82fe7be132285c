"""Utilities (logging, progress, file utilities)"""
from .logging import log, vlog, warn, error, success, note, title, set_verbose
from .progress import UploadProgress
from .file_utils import file_changed

__all__ = [
    "log", "vlog", "warn", "error", "success", "note", "title", "set_verbose",
    "UploadProgress",
    "file_changed",
]
