"""
Local scan producing the upload catalogue
"""
import os
from fnmatch import fnmatch
from pathlib import Path
from typing import Iterable, Optional

from ..models import Catalogue, CatalogueEntry
from ..utils.logging import vlog

# Directory names never shipped, at any depth
EXCLUDED_DIRS = (
    "node_modules", "bower_components", ".sass-cache",
    "Test", "test", "Tests", "tests", "tmp", "fixtures",
)

# Version control metadata (not all of it is dot-prefixed)
VCS_DIRS = (".svn", "_svn", "CVS", "_darcs", ".arch-params", ".monotone", ".bzr", ".git", ".hg")

# Deployment settings hold credentials; they stay local
EXCLUDED_NAMES = (".deploy.yml", "deploy.yml", "*_local.yml", "*.yml.dist")

# Dotfiles at the root that the application needs on the server
ALWAYS_INCLUDED = (".bolt.yml", ".bolt.php")


def _name_excluded(name: str, patterns: Iterable[str]) -> bool:
    return any(fnmatch(name, p) for p in patterns)


def _split_excludes(exclude_dirs: Iterable[str]) -> tuple[set, tuple]:
    """Plain names match a directory at any depth; anything with a slash or a glob is a pattern."""
    names, patterns = set(), []
    for entry in exclude_dirs:
        entry = str(entry).strip("/")
        if not entry:
            continue
        if "/" in entry or any(c in entry for c in "*?["):
            patterns.append(entry)
        else:
            names.add(entry)
    return names, tuple(patterns)


def _dir_excluded(rel: str, patterns: Iterable[str]) -> bool:
    """True when *rel* ends in a path matching one of *patterns* (web/files hits x/web/files too)."""
    return any(fnmatch(rel, p) or fnmatch(rel, f"*/{p}") for p in patterns)


def build_catalogue(root, exclude_dirs: Iterable[str] = (), skip: Iterable[str] = (),
                    excluded_dirs: Iterable[str] = EXCLUDED_DIRS,
                    excluded_names: Iterable[str] = EXCLUDED_NAMES) -> Optional[Catalogue]:
    """
    Walk *root* depth-first and return the entries to upload, or None when
    there is nothing to deploy.

    Each directory is listed before anything inside it, so the remote side can
    be built in a single pass. *skip* holds relative paths (symlinks handled
    by the executables stage) to leave out. *exclude_dirs* entries are either
    directory names or path patterns relative to *root*, such as web/files or
    theme/*/cache.
    """
    root = Path(root).resolve()
    extra_names, extra_patterns = _split_excludes(exclude_dirs)
    pruned = set(excluded_dirs) | extra_names | set(VCS_DIRS)
    names = tuple(excluded_names)
    skip = set(skip)
    catalogue = Catalogue(root)

    def walk(directory: Path, rel_dir: str):
        with os.scandir(directory) as it:
            items = sorted(it, key=lambda e: e.name)
        for item in items:
            if item.name.startswith("."):
                continue
            rel = f"{rel_dir}/{item.name}" if rel_dir else item.name
            if rel in skip:
                vlog(f"  [catalogue] leaving {rel} to the executables stage")
                continue
            if item.is_symlink():
                if item.is_dir():
                    vlog(f"  [catalogue] not following directory link {rel}")
                    continue
                if not item.is_file():
                    vlog(f"  [catalogue] skipping broken link {rel}")
                    continue
            if item.is_dir(follow_symlinks=False):
                if item.name in pruned or _dir_excluded(rel, extra_patterns):
                    continue
                catalogue.append(CatalogueEntry(rel, True, Path(item.path)))
                walk(Path(item.path), rel)
                continue
            if _name_excluded(item.name, names):
                continue
            catalogue.append(CatalogueEntry(rel, False, Path(item.path)))

    walk(root, "")

    for name in ALWAYS_INCLUDED:
        path = root / name
        if path.is_file():
            catalogue.append(CatalogueEntry(name, False, path))

    if not len(catalogue):
        return None
    return catalogue
