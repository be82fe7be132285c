"""
Tests for .deploy.yml loading and target validation.

Tests:
  - remote root normalisation and permission shorthand
  - build_target: protocol/host/root validation, reserved names, options
  - .deploy.yml discovery, parsing and writing
"""
import tempfile
import unittest
from pathlib import Path

import yaml

from simpledeploy import config as cfg
from simpledeploy.exceptions import ConfigError, InvalidTargetError


class TestNormalizeRoot(unittest.TestCase):

    def test_relative_root_gets_dot_prefix(self):
        self.assertEqual(cfg.normalize_root("public_html"), "./public_html")

    def test_home_shorthand_becomes_relative(self):
        self.assertEqual(cfg.normalize_root("~/www"), "./www")

    def test_absolute_root_is_kept(self):
        self.assertEqual(cfg.normalize_root("/var/www/site"), "/var/www/site")

    def test_empty_root_is_login_directory(self):
        for value in (None, "", "."):
            self.assertEqual(cfg.normalize_root(value), "./")

    def test_already_prefixed_root_unchanged(self):
        self.assertEqual(cfg.normalize_root("./htdocs"), "./htdocs")


class TestResolveMode(unittest.TestCase):

    def test_shorthand_maps_to_octal(self):
        self.assertEqual(cfg.resolve_mode(644), 0o644)
        self.assertEqual(cfg.resolve_mode(755), 0o755)

    def test_digit_string_maps_to_octal(self):
        self.assertEqual(cfg.resolve_mode("775"), 0o775)

    def test_unmapped_value_passes_through(self):
        self.assertEqual(cfg.resolve_mode(0o640), 0o640)
        self.assertEqual(cfg.resolve_mode(123), 123)


class TestBuildTarget(unittest.TestCase):

    def _raw(self, **options):
        options.setdefault("host", "example.com")
        options.setdefault("root", "www")
        return {"protocol": "sftp", "options": options}

    def test_minimal_target(self):
        target = cfg.build_target("production", self._raw())
        self.assertEqual(target.name, "production")
        self.assertEqual(target.protocol, "sftp")
        self.assertEqual(target.host, "example.com")
        self.assertEqual(target.root, "./www")
        self.assertEqual(target.options["timeout"], cfg.DEFAULT_TIMEOUT)
        self.assertEqual(target.perm_public, cfg.DEFAULT_PERM_PUBLIC)
        self.assertEqual(target.directory_perm, cfg.DEFAULT_DIRECTORY_PERM)
        self.assertFalse(target.is_ftp)

    def test_protocol_is_case_insensitive(self):
        raw = self._raw()
        raw["protocol"] = "FTP"
        target = cfg.build_target("staging", raw)
        self.assertEqual(target.protocol, "ftp")
        self.assertTrue(target.is_ftp)

    def test_unknown_protocol_rejected(self):
        raw = self._raw()
        raw["protocol"] = "scp"
        with self.assertRaises(ConfigError) as ctx:
            cfg.build_target("production", raw)
        self.assertIn("scp", str(ctx.exception))

    def test_missing_protocol_rejected(self):
        with self.assertRaises(ConfigError):
            cfg.build_target("production", {"options": {"host": "h", "root": "r"}})

    def test_missing_host_rejected(self):
        with self.assertRaises(ConfigError) as ctx:
            cfg.build_target("production", {"protocol": "ftp", "options": {"root": "www"}})
        self.assertIn("options/host", str(ctx.exception))

    def test_missing_root_rejected(self):
        with self.assertRaises(ConfigError) as ctx:
            cfg.build_target("production", {"protocol": "ftp", "options": {"host": "h"}})
        self.assertIn("options/root", str(ctx.exception))

    def test_reserved_name_rejected(self):
        with self.assertRaises(InvalidTargetError):
            cfg.build_target("cache", self._raw())

    def test_permissions_shorthand_resolved(self):
        target = cfg.build_target("production", self._raw(permissions={"file": 644, "dir": 755}))
        self.assertEqual(target.perm_public, 0o644)
        self.assertEqual(target.directory_perm, 0o755)
        self.assertNotIn("permissions", target.options)

    def test_transfer_mode_lowercased(self):
        target = cfg.build_target("production", self._raw(transferMode="ASCII"))
        self.assertEqual(target.options["transferMode"], "ascii")

    def test_bad_transfer_mode_rejected(self):
        with self.assertRaises(ConfigError):
            cfg.build_target("production", self._raw(transferMode="hex"))

    def test_numeric_strings_accepted(self):
        target = cfg.build_target("production", self._raw(timeout="30", port="2222"))
        self.assertEqual(target.options["timeout"], 30)
        self.assertEqual(target.options["port"], 2222)

    def test_non_numeric_timeout_rejected(self):
        with self.assertRaises(ConfigError) as ctx:
            cfg.build_target("production", self._raw(timeout="soon"))
        self.assertIn("options/timeout", str(ctx.exception))

    def test_non_numeric_port_rejected(self):
        for port in ("ssh", [22]):
            with self.assertRaises(ConfigError) as ctx:
                cfg.build_target("production", self._raw(port=port))
            self.assertIn("options/port", str(ctx.exception))

    def test_exclude_accepts_string_or_list(self):
        raw = self._raw()
        raw["exclude"] = "build"
        self.assertEqual(cfg.build_target("p", raw).exclude_dirs, ("build",))
        raw["exclude"] = ["build", "docs"]
        self.assertEqual(cfg.build_target("p", raw).exclude_dirs, ("build", "docs"))

    def test_options_are_read_only(self):
        target = cfg.build_target("production", self._raw())
        with self.assertRaises(TypeError):
            target.options["host"] = "elsewhere"


class TestDeployFile(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.root = Path(self.tmpdir.name)

    def tearDown(self):
        self.tmpdir.cleanup()

    def _write(self, content):
        p = self.root / cfg.DEPLOY_FILE
        p.write_text(content, encoding="utf-8")
        return p

    def test_find_in_parent_directory(self):
        """find_deploy_file searches upward and finds .deploy.yml in a parent."""
        p = self._write("{}\n")
        subdir = self.root / "a" / "b"
        subdir.mkdir(parents=True)
        self.assertEqual(cfg.find_deploy_file(subdir), p.resolve())

    def test_finds_nearest_deploy_file(self):
        self._write("{}\n")
        nested = self.root / "site"
        nested.mkdir()
        (nested / cfg.DEPLOY_FILE).write_text("{}\n", encoding="utf-8")
        self.assertEqual(cfg.find_deploy_file(nested), (nested / cfg.DEPLOY_FILE).resolve())

    def test_load_and_select_target(self):
        p = self._write(
            "staging:\n"
            "  protocol: ftp\n"
            "  options:\n"
            "    host: ftp.example.com\n"
            "    root: htdocs\n"
            "production:\n"
            "  protocol: sftp\n"
            "  options:\n"
            "    host: ssh.example.com\n"
            "    root: /var/www\n"
            "    port: '2222'\n"
        )
        data = cfg.load_deploy_file(p)
        target = cfg.load_target(data, "production")
        self.assertEqual(target.host, "ssh.example.com")
        self.assertEqual(target.options["port"], 2222)
        self.assertEqual(sorted(cfg.load_targets(data)), ["production", "staging"])

    def test_unknown_target_lists_configured_ones(self):
        p = self._write("staging:\n  protocol: ftp\n  options: {host: h, root: r}\n")
        with self.assertRaises(InvalidTargetError) as ctx:
            cfg.load_target(cfg.load_deploy_file(p), "production")
        self.assertIn("staging", str(ctx.exception))

    def test_reserved_key_in_file_rejected(self):
        p = self._write("files:\n  protocol: ftp\n")
        with self.assertRaises(InvalidTargetError):
            cfg.load_deploy_file(p)

    def test_invalid_yaml_raises_config_error(self):
        p = self._write("production: [unclosed\n")
        with self.assertRaises(ConfigError):
            cfg.load_deploy_file(p)

    def test_empty_file_has_no_targets(self):
        p = self._write("")
        self.assertEqual(cfg.load_deploy_file(p), {})

    def test_write_target_keeps_other_targets_and_exclude(self):
        p = self._write(
            "staging:\n"
            "  protocol: ftp\n"
            "  exclude: [docs]\n"
            "  options: {host: old.example.com, root: www}\n"
        )
        cfg.write_target(p, "staging", "sftp", {"host": "new.example.com", "root": "www"})
        cfg.write_target(p, "production", "ftp", {"host": "prod.example.com", "root": "/srv"})
        data = yaml.safe_load(p.read_text(encoding="utf-8"))
        self.assertEqual(list(data), ["staging", "production"])
        self.assertEqual(data["staging"]["protocol"], "sftp")
        self.assertEqual(data["staging"]["options"]["host"], "new.example.com")
        self.assertEqual(data["staging"]["exclude"], ["docs"])

    def test_write_target_validates_before_writing(self):
        p = self._write("{}\n")
        with self.assertRaises(ConfigError):
            cfg.write_target(p, "production", "gopher", {"host": "h", "root": "r"})
        self.assertEqual(p.read_text(encoding="utf-8"), "{}\n")


if __name__ == "__main__":
    unittest.main()
