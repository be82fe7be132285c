"""
Remote filesystem adapters (FTP and SFTP) and the factory choosing between them
"""
import ftplib
import io
import hashlib
import base64
import posixpath
from dataclasses import dataclass
from datetime import datetime, timezone
from stat import S_ISDIR
from typing import Mapping, Optional, Protocol, runtime_checkable

import paramiko

from ..config import DeployTarget, DEFAULT_TIMEOUT
from ..exceptions import RemoteConnectionError
from ..utils.logging import log, vlog
from .shim import render_shim

# Anything either protocol session can raise mid-operation (ftplib.all_errors includes OSError)
REMOTE_ERRORS = ftplib.all_errors + (EOFError, paramiko.SSHException)


@dataclass
class RemoteStat:
    path: str
    name: str
    is_dir: bool
    size: int = 0
    mtime: float = 0.0


def _join(base: str, name: str) -> str:
    if not base or base == ".":
        return name
    return posixpath.join(base, name)


@runtime_checkable
class RemoteAdapter(Protocol):
    """
    What the engine needs from a remote host.

    Paths are relative to the configured root. `chmod`, `create_link` and
    `lexists` go straight to the protocol session, since the generic
    operations cannot express permission bits or links; they report failure
    by returning False instead of raising.
    """
    protocol: str
    errors: tuple

    def connect(self) -> None: ...
    def disconnect(self) -> None: ...
    def is_connected(self) -> bool: ...

    @property
    def connection(self): ...
    @property
    def path_prefix(self) -> str: ...

    def stat(self, path: str) -> Optional[RemoteStat]: ...
    def has(self, path: str) -> bool: ...
    def lexists(self, path: str) -> bool: ...
    def listdir(self, path: str) -> list[RemoteStat]: ...
    def mkdir(self, path: str, mode: Optional[int] = None) -> None: ...
    def upload(self, local_path: str, path: str) -> None: ...
    def write(self, path: str, data: bytes) -> None: ...
    def remove(self, path: str) -> None: ...
    def rmdir(self, path: str) -> None: ...
    def chmod(self, path: str, mode: int) -> bool: ...
    def create_link(self, target: str, link: str, bootstrap: bool = False) -> bool: ...


# ══════════════════════════════════════════════════════════════════════════════
#  SFTP
# ══════════════════════════════════════════════════════════════════════════════

def _fingerprints(key: paramiko.PKey) -> set[str]:
    """MD5 (hex, no colons) and SHA256 (base64, unpadded) forms of a host key."""
    sha = base64.b64encode(hashlib.sha256(key.asbytes()).digest()).decode().rstrip("=")
    return {key.get_fingerprint().hex(), f"sha256:{sha}".lower()}


class SftpAdapter:
    """
    Wraps paramiko SSHClient + SFTPClient.
    Sends SSH keep-alives to reduce mid-transfer drops.
    """
    protocol = "sftp"
    errors = (OSError, paramiko.SSHException)

    def __init__(self, options: Mapping):
        self.options = dict(options)
        self._ssh: Optional[paramiko.SSHClient] = None
        self._sftp: Optional[paramiko.SFTPClient] = None

    # ── connection ─────────────────────────────────────────────────────────

    def connect(self):
        if self.is_connected():
            return
        self._close_quietly()

        opts = self.options
        host = opts["host"]
        port = int(opts.get("port") or 22)
        user = opts.get("username")
        timeout = opts.get("timeout", DEFAULT_TIMEOUT)

        log(f"[SFTP] connecting to {user or ''}@{host}:{port} …")
        client = paramiko.SSHClient()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        kw: dict = dict(hostname=host, port=port, username=user,
                        timeout=timeout, banner_timeout=timeout, auth_timeout=timeout,
                        allow_agent=bool(opts.get("useAgent")))
        if opts.get("privateKey"):
            kw["key_filename"] = opts["privateKey"]
        if opts.get("password"):
            kw["password"] = opts["password"]
            kw["look_for_keys"] = False

        try:
            client.connect(**kw)
            self._verify_fingerprint(client)
            # Keep-alive: send a NOP every 30s
            client.get_transport().set_keepalive(30)
            sftp = client.open_sftp()
        except (paramiko.SSHException, OSError) as exc:
            client.close()
            raise RemoteConnectionError(f"Could not login with username: {user}, host: {host} ({exc})") from exc

        try:
            sftp.chdir(opts["root"])
        except OSError as exc:
            sftp.close()
            client.close()
            raise RemoteConnectionError(f"Root is invalid or does not exist: {opts['root']}") from exc

        self._ssh = client
        self._sftp = sftp
        log("[SFTP] connected ✓")

    def _verify_fingerprint(self, client: paramiko.SSHClient):
        expected = self.options.get("hostFingerprint")
        if not expected:
            return
        key = client.get_transport().get_remote_server_key()
        wanted = str(expected).replace(":", "").lower()
        if wanted not in _fingerprints(key):
            raise paramiko.SSHException("The authenticity of the host can't be established (fingerprint mismatch)")

    def _close_quietly(self):
        try:
            if self._sftp:
                self._sftp.close()
        except Exception:
            pass
        try:
            if self._ssh:
                self._ssh.close()
        except Exception:
            pass
        self._ssh = None
        self._sftp = None

    def disconnect(self):
        if self._ssh:
            self._close_quietly()
            log("[SFTP] disconnected.")

    def is_connected(self) -> bool:
        if self._ssh is None or self._sftp is None:
            return False
        transport = self._ssh.get_transport()
        return transport is not None and transport.is_active()

    @property
    def connection(self) -> paramiko.SFTPClient:
        if self._sftp is None:
            self.connect()
        return self._sftp

    @property
    def path_prefix(self) -> str:
        return self.options["root"].rstrip("/") + "/"

    # ── generic ops ──────────────────────────────────────────────────────────

    def stat(self, path: str) -> Optional[RemoteStat]:
        try:
            attrs = self.connection.stat(path or ".")
        except IOError:
            return None
        return RemoteStat(path, posixpath.basename(path), S_ISDIR(attrs.st_mode or 0),
                          attrs.st_size or 0, float(attrs.st_mtime or 0))

    def has(self, path: str) -> bool:
        return self.stat(path) is not None

    def lexists(self, path: str) -> bool:
        try:
            self.connection.lstat(path)
            return True
        except IOError:
            return False

    def listdir(self, path: str) -> list[RemoteStat]:
        return [
            RemoteStat(_join(path, a.filename), a.filename, S_ISDIR(a.st_mode or 0),
                       a.st_size or 0, float(a.st_mtime or 0))
            for a in self.connection.listdir_attr(path or ".")
        ]

    def mkdir(self, path: str, mode: Optional[int] = None):
        self.connection.mkdir(path, mode if mode is not None else self.options.get("directoryPerm", 0o775))

    def upload(self, local_path: str, path: str):
        self.connection.put(str(local_path), path)

    def write(self, path: str, data: bytes):
        with self.connection.open(path, "wb") as f:
            f.write(data)

    def remove(self, path: str):
        self.connection.remove(path)

    def rmdir(self, path: str):
        self.connection.rmdir(path)

    # ── native ops ──────────────────────────────────────────────────────────

    def chmod(self, path: str, mode: int) -> bool:
        try:
            self.connection.chmod(path, mode)
            return True
        except self.errors as exc:
            vlog(f"  [SFTP] chmod {mode:o} {path} failed: {exc}")
            return False

    def create_link(self, target: str, link: str, bootstrap: bool = False) -> bool:
        try:
            self.connection.symlink(target, link)
            return True
        except self.errors as exc:
            vlog(f"  [SFTP] symlink {link} -> {target} failed: {exc}")
            return False


# ══════════════════════════════════════════════════════════════════════════════
#  FTP
# ══════════════════════════════════════════════════════════════════════════════

def _parse_ftp_time(value: Optional[str]) -> float:
    """YYYYMMDDHHMMSS[.sss] (always UTC on the wire) → epoch seconds."""
    if not value:
        return 0.0
    try:
        dt = datetime.strptime(value[:14], "%Y%m%d%H%M%S")
    except ValueError:
        return 0.0
    return dt.replace(tzinfo=timezone.utc).timestamp()


def _unsupported(exc: ftplib.Error) -> bool:
    return str(exc)[:3] in ("500", "502")


class FtpAdapter:
    """
    Wraps ftplib.FTP (or FTP_TLS when `ssl` is set).
    Uses MLST/MLSD when the server has them, SIZE/MDTM/NLST otherwise.
    """
    protocol = "ftp"
    errors = ftplib.all_errors

    def __init__(self, options: Mapping):
        self.options = dict(options)
        self._ftp: Optional[ftplib.FTP] = None
        self._mlst = True

    # ── connection ─────────────────────────────────────────────────────────

    def connect(self):
        if self.is_connected():
            return
        self._close_quietly()

        opts = self.options
        host = opts["host"]
        port = int(opts.get("port") or 21)
        user = opts.get("username") or "anonymous"
        timeout = opts.get("timeout", DEFAULT_TIMEOUT)

        log(f"[FTP] connecting to {user}@{host}:{port} …")
        ftp = ftplib.FTP_TLS(timeout=timeout) if opts.get("ssl") else ftplib.FTP(timeout=timeout)
        try:
            ftp.connect(host, port)
            ftp.login(user, opts.get("password") or "")
            if opts.get("ssl"):
                ftp.prot_p()
            if opts.get("utf8"):
                ftp.encoding = "utf-8"
                try:
                    ftp.sendcmd("OPTS UTF8 ON")
                except ftplib.error_perm as exc:
                    vlog(f"  [FTP] server refused UTF-8 mode: {exc}")
            ftp.set_pasv(opts.get("passive", True))
            if "ignorePassiveAddress" in opts:
                ftp.trust_server_pasv_ipv4_address = not opts["ignorePassiveAddress"]
        except ftplib.all_errors as exc:
            ftp.close()
            raise RemoteConnectionError(f"Could not login with username: {user}, host: {host} ({exc})") from exc

        try:
            ftp.cwd(opts["root"])
            if opts.get("transferMode", "binary") == "binary":
                ftp.voidcmd("TYPE I")
        except ftplib.all_errors as exc:
            ftp.close()
            raise RemoteConnectionError(f"Root is invalid or does not exist: {opts['root']}") from exc

        self._ftp = ftp
        log("[FTP] connected ✓")

    def _close_quietly(self):
        try:
            if self._ftp:
                self._ftp.close()
        except Exception:
            pass
        self._ftp = None

    def disconnect(self):
        if self._ftp is None:
            return
        try:
            self._ftp.quit()
        except ftplib.all_errors:
            pass
        self._close_quietly()
        log("[FTP] disconnected.")

    def is_connected(self) -> bool:
        if self._ftp is None:
            return False
        try:
            self._ftp.voidcmd("NOOP")
            return True
        except ftplib.all_errors:
            return False

    @property
    def connection(self) -> ftplib.FTP:
        if self._ftp is None:
            self.connect()
        return self._ftp

    @property
    def path_prefix(self) -> str:
        return self.options["root"].rstrip("/") + "/"

    # ── generic ops ──────────────────────────────────────────────────────────

    def stat(self, path: str) -> Optional[RemoteStat]:
        if self._mlst:
            try:
                resp = self.connection.sendcmd(f"MLST {path}")
            except ftplib.error_perm as exc:
                if not _unsupported(exc):
                    return None
                self._mlst = False
            else:
                return self._parse_mlst(path, resp)
        return self._stat_fallback(path)

    def _parse_mlst(self, path: str, resp: str) -> Optional[RemoteStat]:
        for line in resp.splitlines():
            if not line.startswith(" "):
                continue
            raw_facts = line.strip().partition(" ")[0]
            facts = {}
            for fact in raw_facts.split(";"):
                key, sep, value = fact.partition("=")
                if sep:
                    facts[key.lower()] = value
            kind = facts.get("type", "").lower()
            return RemoteStat(path, posixpath.basename(path), kind in ("dir", "cdir", "pdir"),
                              int(facts.get("size", 0) or 0), _parse_ftp_time(facts.get("modify")))
        return None

    def _stat_fallback(self, path: str) -> Optional[RemoteStat]:
        ftp = self.connection
        name = posixpath.basename(path)
        try:
            size = ftp.size(path)
        except (ftplib.error_perm, ftplib.error_reply):
            size = None
        if size is not None:
            try:
                mtime = _parse_ftp_time(ftp.sendcmd(f"MDTM {path}")[4:].strip())
            except (ftplib.error_perm, ftplib.error_reply):
                mtime = 0.0
            return RemoteStat(path, name, False, size, mtime)

        cwd = ftp.pwd()
        try:
            ftp.cwd(path)
        except ftplib.error_perm:
            return None
        ftp.cwd(cwd)
        return RemoteStat(path, name, True)

    def has(self, path: str) -> bool:
        return self.stat(path) is not None

    def lexists(self, path: str) -> bool:
        return self.has(path)

    def listdir(self, path: str) -> list[RemoteStat]:
        target = path or "."
        try:
            return [
                RemoteStat(_join(path, name), name, facts.get("type", "").lower() == "dir",
                           int(facts.get("size", 0) or 0), _parse_ftp_time(facts.get("modify")))
                for name, facts in self.connection.mlsd(target)
                if name not in (".", "..") and facts.get("type", "").lower() not in ("cdir", "pdir")
            ]
        except ftplib.error_perm as exc:
            if not _unsupported(exc):
                raise
        entries = []
        for raw in self.connection.nlst(target):
            name = posixpath.basename(raw.rstrip("/"))
            if name in (".", ".."):
                continue
            st = self.stat(_join(path, name))
            if st is not None:
                entries.append(st)
        return entries

    def mkdir(self, path: str, mode: Optional[int] = None):
        self.connection.mkd(path)

    def upload(self, local_path: str, path: str):
        with open(local_path, "rb") as f:
            if self.options.get("transferMode") == "ascii":
                self.connection.storlines(f"STOR {path}", f)
            else:
                self.connection.storbinary(f"STOR {path}", f)

    def write(self, path: str, data: bytes):
        self.connection.storbinary(f"STOR {path}", io.BytesIO(data))

    def remove(self, path: str):
        self.connection.delete(path)

    def rmdir(self, path: str):
        self.connection.rmd(path)

    # ── native ops ──────────────────────────────────────────────────────────

    def chmod(self, path: str, mode: int) -> bool:
        try:
            self.connection.sendcmd(f"SITE CHMOD {mode:o} {path}")
            return True
        except self.errors as exc:
            vlog(f"  [FTP] SITE CHMOD {mode:o} {path} failed: {exc}")
            return False

    def create_link(self, target: str, link: str, bootstrap: bool = False) -> bool:
        """FTP cannot store a symlink, so write a shim script at *link* instead."""
        try:
            self.write(link, render_shim(target, link, bootstrap).encode("utf-8"))
            return True
        except self.errors as exc:
            vlog(f"  [FTP] writing shim {link} failed: {exc}")
            return False


# ══════════════════════════════════════════════════════════════════════════════
#  FACTORY
# ══════════════════════════════════════════════════════════════════════════════

def create_adapter(target: DeployTarget) -> RemoteAdapter:
    """Pick the adapter for *target*'s protocol; the options go straight through."""
    if target.protocol.lower() == "sftp":
        return SftpAdapter(target.options)
    return FtpAdapter(target.options)
