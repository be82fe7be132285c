"""
Tests for the FTP and SFTP adapters with ftplib/paramiko mocked out.
"""
import ftplib
import stat
import unittest
from unittest import mock

import paramiko

from fakes import make_target
from simpledeploy.core.remote import FtpAdapter, SftpAdapter, create_adapter
from simpledeploy.exceptions import RemoteConnectionError

MLST_REPLY = (
    "250-Listing index.php\n"
    " type=file;size=42;modify=20240101120000; index.php\n"
    "250 End"
)
NEW_YEAR_NOON = 1704110400.0


class TestCreateAdapter(unittest.TestCase):

    def test_sftp_target_gets_sftp_adapter(self):
        adapter = create_adapter(make_target(protocol="sftp"))
        self.assertIsInstance(adapter, SftpAdapter)

    def test_ftp_target_gets_ftp_adapter(self):
        adapter = create_adapter(make_target(protocol="ftp"))
        self.assertIsInstance(adapter, FtpAdapter)
        self.assertEqual(adapter.options["root"], "./www")

    def test_nothing_connects_until_used(self):
        with mock.patch("simpledeploy.core.remote.ftplib.FTP") as ftp_cls:
            create_adapter(make_target(protocol="ftp"))
        ftp_cls.assert_not_called()


class TestFtpAdapter(unittest.TestCase):

    def setUp(self):
        self.target = make_target(protocol="ftp", username="deploy", password="secret")
        self.adapter = FtpAdapter(self.target.options)

    def _attach(self):
        ftp = mock.MagicMock()
        self.adapter._ftp = ftp
        return ftp

    @mock.patch("simpledeploy.core.remote.ftplib.FTP")
    def test_connect_logs_in_and_enters_root(self, ftp_cls):
        ftp = ftp_cls.return_value
        self.adapter.connect()
        ftp.connect.assert_called_once_with("example.com", 21)
        ftp.login.assert_called_once_with("deploy", "secret")
        ftp.set_pasv.assert_called_once_with(True)
        ftp.cwd.assert_called_once_with("./www")
        ftp.voidcmd.assert_called_with("TYPE I")

    @mock.patch("simpledeploy.core.remote.ftplib.FTP")
    def test_connect_is_idempotent(self, ftp_cls):
        self.adapter.connect()
        self.adapter.connect()
        self.assertIs(self.adapter.connection, ftp_cls.return_value)
        ftp_cls.assert_called_once()

    @mock.patch("simpledeploy.core.remote.ftplib.FTP")
    def test_bad_login_raises_connection_error(self, ftp_cls):
        ftp_cls.return_value.login.side_effect = ftplib.error_perm("530 Login incorrect.")
        with self.assertRaises(RemoteConnectionError) as ctx:
            self.adapter.connect()
        self.assertIn("deploy", str(ctx.exception))
        self.assertFalse(self.adapter.is_connected())

    @mock.patch("simpledeploy.core.remote.ftplib.FTP")
    def test_missing_root_raises_connection_error(self, ftp_cls):
        ftp_cls.return_value.cwd.side_effect = ftplib.error_perm("550 No such directory.")
        with self.assertRaises(RemoteConnectionError) as ctx:
            self.adapter.connect()
        self.assertIn("Root is invalid", str(ctx.exception))

    def test_stat_uses_mlst(self):
        ftp = self._attach()
        ftp.sendcmd.return_value = MLST_REPLY
        st = self.adapter.stat("index.php")
        ftp.sendcmd.assert_called_once_with("MLST index.php")
        self.assertFalse(st.is_dir)
        self.assertEqual(st.size, 42)
        self.assertEqual(st.mtime, NEW_YEAR_NOON)

    def test_stat_missing_file(self):
        ftp = self._attach()
        ftp.sendcmd.side_effect = ftplib.error_perm("550 No such file.")
        self.assertIsNone(self.adapter.stat("nope.php"))

    def test_stat_falls_back_without_mlst(self):
        ftp = self._attach()
        ftp.sendcmd.side_effect = [ftplib.error_perm("500 Unknown command."), "213 20240101120000"]
        ftp.size.return_value = 10
        st = self.adapter.stat("index.php")
        self.assertEqual(st.size, 10)
        self.assertEqual(st.mtime, NEW_YEAR_NOON)
        self.assertFalse(self.adapter._mlst)

    def test_listdir_skips_self_and_parent(self):
        ftp = self._attach()
        ftp.mlsd.return_value = iter([
            (".", {"type": "cdir"}),
            ("..", {"type": "pdir"}),
            ("app", {"type": "dir"}),
            ("index.php", {"type": "file", "size": "5"}),
        ])
        entries = self.adapter.listdir("")
        self.assertEqual([(e.path, e.is_dir, e.size) for e in entries],
                         [("app", True, 0), ("index.php", False, 5)])

    def test_chmod_sends_site_command(self):
        ftp = self._attach()
        self.assertTrue(self.adapter.chmod("app/nut", 0o755))
        ftp.sendcmd.assert_called_once_with("SITE CHMOD 755 app/nut")

    def test_chmod_refused_returns_false(self):
        ftp = self._attach()
        ftp.sendcmd.side_effect = ftplib.error_perm("502 SITE CHMOD not understood.")
        self.assertFalse(self.adapter.chmod("app/nut", 0o755))

    def test_create_link_uploads_shim(self):
        ftp = self._attach()
        self.assertTrue(self.adapter.create_link("../vendor/bolt/bin/nut", "app/nut", True))
        command, payload = ftp.storbinary.call_args[0]
        self.assertEqual(command, "STOR app/nut")
        body = payload.getvalue().decode("utf-8")
        self.assertIn("require __DIR__ . '/../vendor/autoload.php';", body)
        self.assertIn("return require __DIR__ . '/../vendor/bolt/bin/nut';", body)


class TestSftpAdapter(unittest.TestCase):

    def setUp(self):
        self.target = make_target(protocol="sftp", username="deploy", privateKey="~/.ssh/id_ed25519")
        self.adapter = SftpAdapter(self.target.options)

    def _client(self, ssh_cls):
        client = ssh_cls.return_value
        client.get_transport.return_value.is_active.return_value = True
        return client

    @mock.patch("simpledeploy.core.remote.paramiko.SSHClient")
    def test_connect_opens_sftp_in_root(self, ssh_cls):
        client = self._client(ssh_cls)
        self.adapter.connect()
        kwargs = client.connect.call_args[1]
        self.assertEqual(kwargs["hostname"], "example.com")
        self.assertEqual(kwargs["port"], 22)
        self.assertEqual(kwargs["username"], "deploy")
        self.assertEqual(kwargs["key_filename"], "~/.ssh/id_ed25519")
        client.open_sftp.return_value.chdir.assert_called_once_with("./www")
        self.assertTrue(self.adapter.is_connected())

    @mock.patch("simpledeploy.core.remote.paramiko.SSHClient")
    def test_connect_is_idempotent(self, ssh_cls):
        self._client(ssh_cls)
        self.adapter.connect()
        self.adapter.connect()
        ssh_cls.assert_called_once()

    @mock.patch("simpledeploy.core.remote.paramiko.SSHClient")
    def test_auth_failure_raises_connection_error(self, ssh_cls):
        client = self._client(ssh_cls)
        client.connect.side_effect = paramiko.AuthenticationException("Authentication failed.")
        with self.assertRaises(RemoteConnectionError):
            self.adapter.connect()
        client.close.assert_called()

    @mock.patch("simpledeploy.core.remote.paramiko.SSHClient")
    def test_missing_root_raises_connection_error(self, ssh_cls):
        client = self._client(ssh_cls)
        client.open_sftp.return_value.chdir.side_effect = IOError(2, "No such file")
        with self.assertRaises(RemoteConnectionError) as ctx:
            self.adapter.connect()
        self.assertIn("Root is invalid", str(ctx.exception))

    @mock.patch("simpledeploy.core.remote.paramiko.SSHClient")
    def test_fingerprint_mismatch_refused(self, ssh_cls):
        client = self._client(ssh_cls)
        key = client.get_transport.return_value.get_remote_server_key.return_value
        key.get_fingerprint.return_value = b"\x01\x02"
        key.asbytes.return_value = b"key"
        adapter = SftpAdapter({**self.target.options, "hostFingerprint": "ff:ee"})
        with self.assertRaises(RemoteConnectionError):
            adapter.connect()

    @mock.patch("simpledeploy.core.remote.paramiko.SSHClient")
    def test_fingerprint_match_accepted(self, ssh_cls):
        client = self._client(ssh_cls)
        key = client.get_transport.return_value.get_remote_server_key.return_value
        key.get_fingerprint.return_value = b"\x01\x02"
        key.asbytes.return_value = b"key"
        adapter = SftpAdapter({**self.target.options, "hostFingerprint": "01:02"})
        adapter.connect()
        self.assertTrue(adapter.is_connected())

    def _attach(self):
        sftp = mock.MagicMock()
        self.adapter._ssh = mock.MagicMock()
        self.adapter._sftp = sftp
        return sftp

    def test_stat_directory(self):
        sftp = self._attach()
        sftp.stat.return_value = mock.Mock(st_mode=stat.S_IFDIR | 0o755, st_size=4096, st_mtime=10)
        st = self.adapter.stat("app")
        self.assertTrue(st.is_dir)
        self.assertEqual(st.mtime, 10.0)

    def test_stat_missing(self):
        sftp = self._attach()
        sftp.stat.side_effect = IOError(2, "No such file")
        self.assertIsNone(self.adapter.stat("nope"))

    def test_lexists_sees_dangling_link(self):
        sftp = self._attach()
        sftp.stat.side_effect = IOError(2, "No such file")
        self.assertTrue(self.adapter.lexists("app/nut"))
        self.assertFalse(self.adapter.has("app/nut"))

    def test_chmod_and_symlink_go_to_sftp(self):
        sftp = self._attach()
        self.assertTrue(self.adapter.chmod("vendor/bolt/bin/nut", 0o755))
        self.assertTrue(self.adapter.create_link("../vendor/bolt/bin/nut", "app/nut"))
        sftp.chmod.assert_called_once_with("vendor/bolt/bin/nut", 0o755)
        sftp.symlink.assert_called_once_with("../vendor/bolt/bin/nut", "app/nut")

    def test_native_failures_return_false(self):
        sftp = self._attach()
        sftp.chmod.side_effect = IOError(13, "Permission denied")
        sftp.symlink.side_effect = IOError(13, "Permission denied")
        self.assertFalse(self.adapter.chmod("x", 0o755))
        self.assertFalse(self.adapter.create_link("y", "x"))

    def test_mkdir_uses_directory_permissions(self):
        sftp = self._attach()
        self.adapter.mkdir("app")
        sftp.mkdir.assert_called_once_with("app", 0o775)


if __name__ == "__main__":
    unittest.main()
