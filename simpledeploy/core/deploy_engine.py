"""
Main deploy engine - stage orchestration
"""
import traceback
from typing import Callable, Optional

from ..config import DeployTarget, ProjectPaths
from ..exceptions import DeployError, DirectoryCreationError, RemoteConnectionError, TransferError
from ..models import Catalogue, DeployOutcome, DeployResult, LinkResult, UploadResult
from ..operations.cache import clear_remote_cache, flush_local_cache
from ..operations.catalogue import build_catalogue
from ..operations.linker import collect_links, setup_executables
from ..operations.transfer import check_write_access, get_target_contents, push_catalogue
from ..utils.logging import error, log, note, set_verbose, success, title, vlog, warn
from ..utils.progress import UploadProgress
from .filesystem import Mounts
from .remote import REMOTE_ERRORS


def confirm(question: str, assume_yes: bool = False) -> bool:
    """Ask a yes/no question, defaulting to no."""
    if assume_yes:
        return True
    try:
        answer = input(f"  {question} [y/N]: ").strip().lower()
    except (EOFError, KeyboardInterrupt):
        answer = "n"
    return answer in ("y", "yes")


class Deployer:
    """
    Upload a local build to one remote target over FTP or SFTP.

    The connection for a target is opened once and shared by every stage until
    close(). Errors from the executables stage accumulate in `errors`.
    """

    def __init__(self, paths: ProjectPaths, mounts: Optional[Mounts] = None):
        self.paths = paths
        self.mounts = mounts or Mounts()
        self.errors: list[str] = []

    def close(self):
        self.mounts.close()

    # ── checks ──────────────────────────────────────────────────────────────

    def check_connection(self, target: DeployTarget) -> bool:
        title("Connecting to remote host")
        adapter = self.mounts.adapter(target)
        try:
            if not adapter.is_connected():
                adapter.connect()
        except RemoteConnectionError as exc:
            error(f"Connection to remote host failed: {exc}")
            return False
        success(f"Connection to '{target.host}' was successful!")
        return True

    def check_write_access(self, target: DeployTarget) -> bool:
        title("Checking write access")
        return check_write_access(self.mounts.filesystem(target), target)

    def get_target_contents(self, target: DeployTarget) -> dict[str, list[str]]:
        return get_target_contents(self.mounts.filesystem(target))

    # ── stages ──────────────────────────────────────────────────────────────

    def get_catalogue(self, target: DeployTarget) -> Optional[Catalogue]:
        title("Building deployment catalogue")
        note("This may take a while")
        skip = [link.link for link in collect_links(self.paths)]
        catalogue = build_catalogue(self.paths.root, target.exclude_dirs, skip)
        if catalogue is None:
            error("No files or directories found to deploy.")
            return None
        success(f"Found {len(catalogue):,} files & directories to upload")
        return catalogue

    def upload_catalogue(self, target: DeployTarget, catalogue: Catalogue,
                         progress: Optional[UploadProgress] = None,
                         force: bool = False) -> UploadResult:
        title("Performing Upload")
        note("Preparing upload connection")
        result = push_catalogue(self.mounts.filesystem(target), catalogue, target, force, progress)
        success("Upload completed.")
        return result

    def clear_remote_cache(self, target: DeployTarget) -> list[str]:
        title("Clearing remote cache")
        failures = clear_remote_cache(self.mounts.filesystem(target), self.paths.cache_dir.strip("/"))
        if not failures:
            success("Cache cleared on target host.")
        return failures

    def setup_executables(self, target: DeployTarget) -> LinkResult:
        title("Configuring Executables")
        result = setup_executables(self.mounts.adapter(target), target, self.paths)
        self.errors.extend(result.errors)
        if result.errors:
            error(result.errors)
        else:
            success(f"Checked and/or updated {result.checked} executable files.")
        return result

    def push_remote(self, target: DeployTarget, progress: Optional[UploadProgress] = None,
                    force: bool = False) -> DeployResult:
        """Catalogue → upload → remote cache → executables."""
        catalogue = self.get_catalogue(target)
        if catalogue is None:
            return DeployResult(DeployOutcome.CATALOGUE_EMPTY)

        try:
            upload = self.upload_catalogue(target, catalogue, progress, force)
        except RemoteConnectionError as exc:
            error(f"Connection to remote host failed: {exc}")
            return DeployResult(DeployOutcome.CONNECTION_FAILED, [str(exc)])
        except (DirectoryCreationError, TransferError) as exc:
            error(str(exc))
            error("Upload did not complete successfully!")
            return DeployResult(DeployOutcome.UPLOAD_FAILED, [str(exc)])
        except REMOTE_ERRORS as exc:
            error(f"Remote operation failed during upload: {exc}")
            error("Upload did not complete successfully!")
            return DeployResult(DeployOutcome.UPLOAD_FAILED, [str(exc)])

        warnings = list(upload.errors)
        warnings.extend(self.clear_remote_cache(target))
        links = self.setup_executables(target)
        warnings.extend(links.errors)
        outcome = DeployOutcome.LINK_ERRORS if links.errors else DeployOutcome.SUCCESS
        return DeployResult(outcome, warnings, upload)


def run_deploy(target: DeployTarget, paths: ProjectPaths, check_only=False, force=False,
               assume_yes=False, verbose=False, cinereus=False,
               flush: Optional[Callable[[], bool]] = None,
               deployer: Optional[Deployer] = None) -> DeployResult:
    set_verbose(verbose)

    print(f"\n{'=' * 64}")
    print(f"  Deploy  {paths.root}")
    print(f"   →     {target.protocol}://{target.options.get('username') or ''}@{target.host}:{target.root}")
    print(f"{'=' * 64}")
    if check_only:
        print("  *** CHECK ONLY: nothing will be uploaded ***")

    # ── 1. Local cache ──────────────────────────────────────────────────────
    title("Fully flushing caches for deployment")
    warn("This will clear all volatile cache data, including user session data, "
         "potentially causing data loss for currently connected web clients.")
    warn("DO NOT perform on a live system!")
    if not confirm("Continue?", assume_yes):
        log("Deployment cancelled.")
        return DeployResult(DeployOutcome.CANCELLED)
    if not flush_local_cache(paths.local(paths.cache_dir), flush):
        return DeployResult(DeployOutcome.CACHE_FLUSH_FAILED)

    deployer = deployer or Deployer(paths)
    try:
        # ── 2. Connection + write access ────────────────────────────────────
        if not deployer.check_connection(target):
            return DeployResult(DeployOutcome.CONNECTION_FAILED)
        if not deployer.check_write_access(target):
            return DeployResult(DeployOutcome.WRITE_CHECK_FAILED)

        # ── 3. Is this the right directory? ─────────────────────────────────
        title("Directory location check")
        contents = deployer.get_target_contents(target)
        if not contents["dirs"] and not contents["files"]:
            note("Target directory is empty.")
        else:
            note([
                "Target directory not empty, and contains the following:",
                " ".join(contents["dirs"]),
                " ".join(contents["files"]),
            ])
        if not confirm("Does this look like the correct location has been configured "
                       "as the target root directory?", assume_yes):
            error("You need to adjust the 'root:' value under the 'options:' sub key "
                  "of this deployment's configuration.")
            return DeployResult(DeployOutcome.CANCELLED)
        success("Target location assumed correct!")

        if check_only:
            return DeployResult(DeployOutcome.SUCCESS)

        # ── 4. Deploy ───────────────────────────────────────────────────────
        result = deployer.push_remote(target, UploadProgress(cinereus=cinereus), force)
        if result.success:
            title("Finishing up")
            if cinereus:
                success("Deployment complete, and all Drop Bears captured!")
            else:
                success(f'Deployment to "{target.name}" is complete.')
        return result

    except KeyboardInterrupt:
        print()
        warn("Interrupted by user. Re-running the deploy is safe.")
        return DeployResult(DeployOutcome.CANCELLED)

    except DeployError as exc:
        error(f"Deploy failed: {exc}")
        if verbose:
            traceback.print_exc()
        return DeployResult(DeployOutcome.UPLOAD_FAILED, [str(exc)])

    except REMOTE_ERRORS as exc:
        error(f"Remote operation failed: {exc}")
        if verbose:
            traceback.print_exc()
        return DeployResult(DeployOutcome.CONNECTION_FAILED, [str(exc)])

    finally:
        vlog("[cleanup] closing remote connection")
        deployer.close()
