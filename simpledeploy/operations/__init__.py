"""Operations (catalogue, transfer, cache, executables)"""
from .catalogue import build_catalogue
from .transfer import check_write_access, get_target_contents, push_catalogue
from .cache import clear_remote_cache, flush_local_cache
from .linker import setup_executables, collect_links

__all__ = [
    "build_catalogue",
    "check_write_access", "get_target_contents", "push_catalogue",
    "clear_remote_cache", "flush_local_cache",
    "setup_executables", "collect_links",
]
