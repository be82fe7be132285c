"""
Shim scripts standing in for symlinks on hosts that cannot store them
"""
import posixpath

from ..config import AUTOLOADER

SHIM_TEMPLATE = """#!/usr/bin/env php
<?php

{autoloader}

return require __DIR__ . '/{target}';
"""


def autoloader_path(link: str) -> str:
    """Path of the autoloader relative to the directory *link* lives in."""
    return posixpath.relpath(AUTOLOADER, posixpath.dirname(link) or ".")


def render_shim(target: str, link: str, bootstrap: bool = False) -> str:
    """
    Build the body of a shim placed at *link* that runs *target*.
    *target* is relative to the link's directory, exactly as a symlink holds it.
    """
    autoloader = f"require __DIR__ . '/{autoloader_path(link)}';" if bootstrap else ""
    return SHIM_TEMPLATE.format(autoloader=autoloader, target=target)
