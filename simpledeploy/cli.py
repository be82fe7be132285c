#!/usr/bin/env python3
"""
simpledeploy: deploy a site build from a workstation to an (S)FTP host
======================================================================

Subcommands:
  deploy    Upload the build to a target from .deploy.yml.
  init      Create or update a target in .deploy.yml.
  targets   List the targets configured in .deploy.yml.

Run 'simpledeploy <subcommand> --help' for more details.
"""
import sys
import argparse
import logging
from pathlib import Path


def _load_config(verbose: bool = False):
    """Return (deploy_file, raw data) or exit with a hint."""
    from simpledeploy import config as _cfg
    from simpledeploy.exceptions import ConfigError

    deploy_file = _cfg.find_deploy_file()
    if deploy_file is None:
        print(f"error: no {_cfg.DEPLOY_FILE} file found in this directory or any parent.", file=sys.stderr)
        print("Run 'simpledeploy init TARGET' to create one.", file=sys.stderr)
        sys.exit(1)
    if verbose:
        print(f"[config] Using {deploy_file}")
    try:
        return deploy_file, _cfg.load_deploy_file(deploy_file)
    except ConfigError as exc:
        print(f"error: {exc}", file=sys.stderr)
        sys.exit(1)


# ── deploy ───────────────────────────────────────────────────────────────────

def cmd_deploy(args):
    """Run the deployment pipeline for one target."""
    from simpledeploy import config as _cfg
    from simpledeploy.core.deploy_engine import run_deploy
    from simpledeploy.exceptions import ConfigError

    deploy_file, data = _load_config(args.verbose)
    try:
        target = _cfg.load_target(data, args.target)
    except ConfigError as exc:
        print(f"error: {exc}", file=sys.stderr)
        sys.exit(1)

    paths = _cfg.ProjectPaths(
        root=deploy_file.parent,
        cache_dir=args.cache_dir or _cfg.DEFAULT_CACHE_DIR,
        cli_entry=args.cli_entry or _cfg.DEFAULT_CLI_ENTRY,
        bin_dir=args.bin_dir or _cfg.DEFAULT_BIN_DIR,
    )
    result = run_deploy(
        target,
        paths,
        check_only=args.check,
        force=args.force,
        assume_yes=args.yes,
        verbose=args.verbose,
        cinereus=args.cinereus,
    )
    sys.exit(0 if result.success else 1)


# ── init ─────────────────────────────────────────────────────────────────────

def _ask(label: str, default):
    """Prompt on a TTY, otherwise take the default."""
    if not sys.stdin.isatty():
        return default
    hint = f" [{default}]" if default not in (None, "") else ""
    val = input(f"{label}{hint}: ").strip()
    return val if val else default


def cmd_init(args):
    """Create or update a target entry in .deploy.yml."""
    import yaml
    from simpledeploy import config as _cfg
    from simpledeploy.exceptions import ConfigError

    deploy_file = _cfg.find_deploy_file() or Path.cwd() / _cfg.DEPLOY_FILE
    try:
        existing = _cfg.load_deploy_file(deploy_file) if deploy_file.is_file() else {}
    except ConfigError as exc:
        print(f"error: {exc}", file=sys.stderr)
        sys.exit(1)
    if args.target in existing and not args.force:
        print(f"error: target '{args.target}' already exists in {deploy_file}", file=sys.stderr)
        print("Use --force to overwrite.", file=sys.stderr)
        sys.exit(1)

    previous = (existing.get(args.target) or {}).get("options", {})
    protocol = args.protocol or _ask("Protocol (ftp/sftp)", "sftp")
    host = args.host or _ask("Host name", previous.get("host", ""))
    root = args.root or _ask("Remote root directory", previous.get("root", "public_html"))
    user = args.user or _ask("User name", previous.get("username", ""))
    port = args.port or _ask("Port (blank for protocol default)", previous.get("port"))

    options = {"host": host, "root": root}
    if user:
        options["username"] = user
    if port:
        try:
            options["port"] = int(port)
        except ValueError:
            print("error: port must be a number.", file=sys.stderr)
            sys.exit(1)

    entry = {"protocol": protocol, "options": options}
    try:
        _cfg.build_target(args.target, entry)
    except ConfigError as exc:
        print(f"error: {exc}", file=sys.stderr)
        sys.exit(1)

    if args.dry_run:
        print(f"[dry-run] Would write {deploy_file}:")
        print(yaml.safe_dump({args.target: entry}, default_flow_style=False, sort_keys=False))
        return

    _cfg.write_target(deploy_file, args.target, protocol, options)
    print(f"Saved target '{args.target}' to {deploy_file}")
    if protocol == "ftp" or not options.get("username"):
        print("Add 'password' (or 'privateKey' for sftp) under 'options:' before deploying.")


# ── targets ──────────────────────────────────────────────────────────────────

def cmd_targets(args):
    """List configured targets."""
    from simpledeploy import config as _cfg
    from simpledeploy.exceptions import ConfigError

    deploy_file, data = _load_config(args.verbose)
    if not data:
        print(f"No targets configured in {deploy_file}")
        return
    for name in data:
        try:
            target = _cfg.build_target(name, data[name])
        except ConfigError as exc:
            print(f"  {name:<16} (invalid: {exc})")
            continue
        print(f"  {name:<16} {target.protocol}://{target.host}:{target.root}")


# ── main ──────────────────────────────────────────────────────────────────────

def main():
    """CLI entry point for simpledeploy"""
    parser = argparse.ArgumentParser(
        prog="simpledeploy",
        description="A simple tool to deploy a site build from a local workstation to a (S)FTP enabled host",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")

    # ── deploy ────────────────────────────────────────────────────────────────
    deploy_p = subparsers.add_parser(
        "deploy",
        help="Upload the build to a deployment target",
        description="Upload the local build to a target defined in .deploy.yml.",
    )
    deploy_p.add_argument("target", metavar="TARGET",
                          help="Name of the deployment setting to use from .deploy.yml")
    deploy_p.add_argument("--check", action="store_true",
                          help="Only check the connection settings for a given deployment")
    deploy_p.add_argument("-f", "--force", action="store_true",
                          help="Update files & permissions even if unchanged")
    deploy_p.add_argument("-y", "--yes", action="store_true",
                          help="Answer yes to the cache flush and location prompts")
    deploy_p.add_argument("-v", "--verbose", action="store_true",
                          help="Show every file considered, not just totals")
    deploy_p.add_argument("-k", "--cinereus", action="store_true",
                          help=argparse.SUPPRESS)
    deploy_p.add_argument("--cache-dir", metavar="PATH",
                          help="Cache directory, relative to the project root (default: app/cache)")
    deploy_p.add_argument("--cli-entry", metavar="PATH",
                          help="CLI entry point symlink (default: app/nut)")
    deploy_p.add_argument("--bin-dir", metavar="PATH",
                          help="Vendor binary directory (default: vendor/bin)")

    # ── init ──────────────────────────────────────────────────────────────────
    init_p = subparsers.add_parser(
        "init",
        help="Create or update a target in .deploy.yml",
        description="Create or update a deployment target in .deploy.yml.",
    )
    init_p.add_argument("target", metavar="TARGET", help="Name of the target")
    init_p.add_argument("--protocol", choices=["ftp", "sftp"],
                        help="Transfer protocol (default: sftp)")
    init_p.add_argument("--host", metavar="HOST", help="Remote host name or IP")
    init_p.add_argument("--root", metavar="PATH",
                        help="Remote root directory (relative to the login directory unless absolute)")
    init_p.add_argument("--user", metavar="NAME", help="Account user name")
    init_p.add_argument("--port", type=int, metavar="N", help="Port, if not the protocol default")
    init_p.add_argument("--force", action="store_true", help="Overwrite an existing target")
    init_p.add_argument("-n", "--dry-run", action="store_true",
                        help="Preview without writing files")
    init_p.add_argument("-v", "--verbose", action="store_true", help="Show extra output")

    # ── targets ───────────────────────────────────────────────────────────────
    targets_p = subparsers.add_parser("targets", help="List configured targets")
    targets_p.add_argument("-v", "--verbose", action="store_true", help="Show extra output")

    args = parser.parse_args()

    logging.getLogger("paramiko").setLevel(
        logging.WARNING if getattr(args, "verbose", False) else logging.CRITICAL
    )

    if args.command == "deploy":
        cmd_deploy(args)
    elif args.command == "init":
        cmd_init(args)
    elif args.command == "targets":
        cmd_targets(args)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
