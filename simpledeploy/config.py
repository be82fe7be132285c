"""
Deployment configuration for simpledeploy
"""
import ftplib
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping, Optional

import yaml

from .exceptions import ConfigError, InvalidTargetError

# ══════════════════════════════════════════════════════════════════════════════
#  DEFAULTS
# ══════════════════════════════════════════════════════════════════════════════

DEPLOY_FILE = ".deploy.yml"

PROTOCOLS = ("ftp", "sftp")
TRANSFER_MODES = ("ascii", "binary")

DEFAULT_TIMEOUT = 30  # seconds, connection attempt only
DEFAULT_PERM_PUBLIC = 0o664
DEFAULT_DIRECTORY_PERM = 0o775

# mtime tolerance (seconds), FAT/NTFS granularity on the local side
MTIME_TOLERANCE = 2

# Project layout, relative to the directory holding .deploy.yml
DEFAULT_CACHE_DIR = "app/cache"
DEFAULT_CLI_ENTRY = "app/nut"
DEFAULT_BIN_DIR = "vendor/bin"
AUTOLOADER = "vendor/autoload.php"

# Shorthand permissions as people write them in YAML (644) → real modes (0o644)
MODE_MAP = {
    400: 0o400, 440: 0o440, 444: 0o444,
    600: 0o600, 644: 0o644, 660: 0o660, 664: 0o664, 666: 0o666,
    700: 0o700, 750: 0o750, 755: 0o755,
    770: 0o770, 775: 0o775, 777: 0o777,
}

# Names the host application already uses for its own filesystem mounts
RESERVED_NAMES = (
    "app", "bolt", "bolt_assets", "cache", "config",
    "default", "extensions", "extensions_config",
    "files", "root", "themes", "web", "view",
)


# ══════════════════════════════════════════════════════════════════════════════
#  VALUE TYPES
# ══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class DeployTarget:
    """One named deployment destination, already validated."""
    name: str
    protocol: str
    exclude_dirs: tuple = ()
    options: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    @property
    def host(self) -> str:
        return self.options["host"]

    @property
    def root(self) -> str:
        return self.options["root"]

    @property
    def is_ftp(self) -> bool:
        return self.protocol.lower() == "ftp"

    @property
    def perm_public(self) -> int:
        return self.options.get("permPublic", DEFAULT_PERM_PUBLIC)

    @property
    def directory_perm(self) -> int:
        return self.options.get("directoryPerm", DEFAULT_DIRECTORY_PERM)


@dataclass(frozen=True)
class ProjectPaths:
    """Where the local build keeps the things the deployer treats specially."""
    root: Path
    cache_dir: str = DEFAULT_CACHE_DIR
    cli_entry: str = DEFAULT_CLI_ENTRY
    bin_dir: str = DEFAULT_BIN_DIR

    def local(self, rel: str) -> Path:
        return self.root / rel


# ══════════════════════════════════════════════════════════════════════════════
#  NORMALISATION
# ══════════════════════════════════════════════════════════════════════════════

def resolve_mode(permission):
    """
    Map shorthand like 644 to 0o644. Anything not in MODE_MAP is returned
    unchanged, so an already-octal value (or an unusual one) still works.
    """
    if isinstance(permission, str) and permission.isdigit():
        permission = int(permission)
    return MODE_MAP.get(permission, permission)


def normalize_root(root: Optional[str]) -> str:
    """
    Remote roots are relative to the login directory unless absolute:
      None       → ./
      ~/www      → ./www
      www        → ./www
      /var/www   → /var/www
    """
    if root is None or str(root) in ("", "."):
        return "./"
    root = str(root)
    if root.startswith("~/"):
        return "./" + root[2:]
    if not root.startswith("/") and not root.startswith("./"):
        return "./" + root
    return root


def _as_number(name: str, key: str, value) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigError(
            f'Deployment "{name}" has an invalid "options/{key}" value ({value!r}), it must be a number'
        ) from None


def _normalize_options(name: str, raw: Optional[dict]) -> dict:
    if not isinstance(raw, dict):
        raise ConfigError(f'Deployment "{name}" must have an "options" mapping')
    if not raw.get("host"):
        raise ConfigError(f'Deployment "{name}" must have an "options/host" value set')
    if "root" not in raw:
        raise ConfigError(f'Deployment "{name}" must have an "options/root" value set')

    opts = dict(raw)
    opts["root"] = normalize_root(opts.get("root"))
    opts.setdefault("timeout", DEFAULT_TIMEOUT)
    opts["timeout"] = _as_number(name, "timeout", opts["timeout"])
    if opts.get("port") is not None:
        opts["port"] = _as_number(name, "port", opts["port"])

    if "transferMode" in opts:
        mode = str(opts["transferMode"]).lower()
        if mode not in TRANSFER_MODES:
            raise ConfigError('transferMode must be either "ASCII" or "BINARY"')
        opts["transferMode"] = mode

    if opts.get("ssl") and not hasattr(ftplib, "FTP_TLS"):
        raise ConfigError("SSL-FTP requires Python to be built with the ssl module")

    perms = opts.pop("permissions", None) or {}
    if "file" in perms:
        opts["permPublic"] = resolve_mode(perms["file"])
    if "dir" in perms:
        opts["directoryPerm"] = resolve_mode(perms["dir"])
    opts.setdefault("permPublic", DEFAULT_PERM_PUBLIC)
    opts.setdefault("directoryPerm", DEFAULT_DIRECTORY_PERM)
    return opts


def build_target(name: str, raw: Optional[dict]) -> DeployTarget:
    """Validate one raw .deploy.yml entry and return the DeployTarget."""
    if name in RESERVED_NAMES:
        raise InvalidTargetError(
            f'"{name}" is a reserved name. Reserved names are: {", ".join(RESERVED_NAMES)}'
        )
    if not isinstance(raw, dict) or "protocol" not in raw:
        raise ConfigError(f'Deployment "{name}" is missing a "protocol" key')
    protocol = str(raw["protocol"])
    if protocol.lower() not in PROTOCOLS:
        raise ConfigError(f'Protocol must be either "ftp" or "sftp", "{protocol}" given')

    exclude = raw.get("exclude") or []
    if isinstance(exclude, str):
        exclude = [exclude]
    return DeployTarget(
        name=name,
        protocol=protocol.lower(),
        exclude_dirs=tuple(str(e) for e in exclude),
        options=MappingProxyType(_normalize_options(name, raw.get("options"))),
    )


# ══════════════════════════════════════════════════════════════════════════════
#  DEPLOY FILE  ── .deploy.yml (searched upward)
# ══════════════════════════════════════════════════════════════════════════════

def find_deploy_file(start: Optional[Path] = None) -> Optional[Path]:
    """
    Search upward from *start* (default: cwd) for a .deploy.yml file.
    Returns the Path if found, or None if no parent has one.
    """
    current = (start or Path.cwd()).resolve()
    while True:
        candidate = current / DEPLOY_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            return None
        current = parent


def load_deploy_file(path: Path) -> dict:
    """Parse .deploy.yml and return the raw mapping of target name → settings."""
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping of deployment targets")
    reserved = sorted(set(data) & set(RESERVED_NAMES))
    if reserved:
        raise InvalidTargetError(
            f"{path.name} contains a reserved key name ({', '.join(reserved)}). "
            f"Reserved keys are: {', '.join(RESERVED_NAMES)}"
        )
    return data


def load_targets(data: dict) -> dict[str, DeployTarget]:
    return {name: build_target(name, raw) for name, raw in data.items()}


def load_target(data: dict, name: str) -> DeployTarget:
    if name not in data:
        raise InvalidTargetError(
            f'The chosen deployment target "{name}" does not exist in your '
            f'{DEPLOY_FILE} file. Configured deployment targets are '
            f'"{", ".join(data)}"'
        )
    return build_target(name, data[name])


def write_target(path: Path, name: str, protocol: str, options: dict,
                 exclude: Optional[list] = None) -> dict:
    """
    Add or replace *name* in the deploy file at *path*, keeping other targets.
    The new entry is validated before anything is written. Returns the data
    that was written.
    """
    data = load_deploy_file(path) if path.is_file() else {}
    entry = {"protocol": protocol, "options": dict(options)}
    previous = data.get(name) or {}
    if exclude is not None:
        entry["exclude"] = list(exclude)
    elif previous.get("exclude"):
        entry["exclude"] = previous["exclude"]
    build_target(name, entry)

    data[name] = entry
    with path.open("w", encoding="utf-8") as f:
        yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
    return data
