"""
Tests for the real adapters — command runner, filesystem, apt, mysql,
systemd, apache, certificates, notifier.

Command-line adapters are driven through a scripted runner; the
filesystem and certificate adapters work on ``tmp_path``.
"""

import io
import os
import stat
import subprocess
import tarfile
from pathlib import Path

import pytest
from cryptography import x509
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from stackconverge.adapters.database.mysql import MySQLDatabase, sql_literal
from stackconverge.adapters.net.browser import BrowserNotifier
from stackconverge.adapters.net.release import HttpReleaseFetcher
from stackconverge.adapters.registry import HostAdapters
from stackconverge.adapters.shell.command import CommandRunner
from stackconverge.adapters.shell.filesystem import LocalFileSystem
from stackconverge.adapters.system.apt import AptPackageManager
from stackconverge.adapters.system.systemd import SystemdServiceControl
from stackconverge.adapters.tls.certificate import X509CertificateIssuer, build_subject
from stackconverge.adapters.web.apache import ApacheWebServer
from stackconverge.core.errors import PreconditionCheckFailed
from stackconverge.core.models import Receipt

# ── Helpers ──────────────────────────────────────────────────────────


class ScriptedRunner(CommandRunner):
    """Returns canned results instead of spawning processes."""

    def __init__(self, probes=None, run_ok=True):
        super().__init__()
        self.probes = probes or {}
        self.run_ok = run_ok
        self.probed: list[tuple[list[str], str | None]] = []
        self.ran: list[tuple[list[str], str | None, dict | None]] = []

    def probe(self, args, *, input=None, timeout=60):
        self.probed.append((list(args), input))
        returncode, stdout, stderr = self.probes.get(args[0], (0, "", ""))
        return subprocess.CompletedProcess(list(args), returncode, stdout, stderr)

    def run(self, args, *, adapter, operation, input=None, timeout=None, env=None):
        self.ran.append((list(args), input, env))
        if self.run_ok:
            return Receipt.success(adapter=adapter, operation=operation, command=" ".join(args))
        return Receipt.failure(
            adapter=adapter, operation=operation, error="failed", return_code=1
        )


def make_release(tmp_path: Path, top: str = "glpi") -> Path:
    archive = tmp_path / "glpi-11.0.2.tgz"
    with tarfile.open(archive, "w:gz") as tar:
        for name, content in {
            f"{top}/public/index.php": b"<?php\n",
            f"{top}/config/.keep": b"",
        }.items():
            info = tarfile.TarInfo(name)
            info.size = len(content)
            tar.addfile(info, io.BytesIO(content))
    return archive


# ── Command runner ───────────────────────────────────────────────────


class TestCommandRunner:
    def test_run_success(self):
        receipt = CommandRunner().run(["echo", "hello"], adapter="t", operation="echo")
        assert receipt.ok
        assert receipt.output == "hello"
        assert receipt.return_code == 0
        assert receipt.command == "echo hello"

    def test_run_failure_exit_status(self):
        receipt = CommandRunner().run(["false"], adapter="t", operation="false")
        assert receipt.failed
        assert receipt.return_code == 1
        assert "exit status: 1" in receipt.diagnostic

    def test_run_missing_command(self):
        receipt = CommandRunner().run(
            ["definitely-not-a-command-xyz"], adapter="t", operation="x"
        )
        assert receipt.failed
        assert "Command not found" in receipt.error

    def test_run_passes_stdin(self):
        receipt = CommandRunner().run(["cat"], adapter="t", operation="cat", input="from stdin")
        assert receipt.output == "from stdin"

    def test_run_timeout(self):
        receipt = CommandRunner().run(["sleep", "5"], adapter="t", operation="sleep", timeout=1)
        assert receipt.failed
        assert "timed out" in receipt.error

    def test_probe_returns_nonzero(self):
        result = CommandRunner().probe(["false"])
        assert result.returncode == 1

    def test_probe_missing_command_raises(self):
        with pytest.raises(PreconditionCheckFailed):
            CommandRunner().probe(["definitely-not-a-command-xyz"])


# ── Filesystem ───────────────────────────────────────────────────────


class TestLocalFileSystem:
    def test_write_and_read(self, tmp_path: Path):
        fs = LocalFileSystem()
        path = tmp_path / "sub" / "site.conf"
        receipt = fs.write_text(str(path), "hello\n", mode=0o640)
        assert receipt.ok
        assert fs.read_text(str(path)) == "hello\n"
        assert stat.S_IMODE(path.stat().st_mode) == 0o640
        assert not [p for p in path.parent.iterdir() if p.name.endswith(".tmp")]

    def test_read_missing_is_none(self, tmp_path: Path):
        assert LocalFileSystem().read_text(str(tmp_path / "nope")) is None

    def test_read_unreadable_raises(self, tmp_path: Path):
        with pytest.raises(PreconditionCheckFailed):
            LocalFileSystem().read_text(str(tmp_path))  # a directory

    def test_set_line_replaces(self, tmp_path: Path):
        fs = LocalFileSystem()
        path = tmp_path / "php.ini"
        path.write_text("[Session]\nsession.cookie_secure = Off\nsession.name = X\n")
        receipt = fs.set_line(
            str(path), r"^session\.cookie_secure.*$", "session.cookie_secure = On"
        )
        assert receipt.ok
        assert path.read_text() == "[Session]\nsession.cookie_secure = On\nsession.name = X\n"

    def test_set_line_appends(self, tmp_path: Path):
        fs = LocalFileSystem()
        path = tmp_path / "www.conf"
        path.write_text("[www]\nuser = www-data")
        fs.set_line(str(path), r"^php_admin_value\[x\].*$", "php_admin_value[x] = 1")
        assert path.read_text() == "[www]\nuser = www-data\nphp_admin_value[x] = 1\n"

    def test_set_line_keeps_mode(self, tmp_path: Path):
        path = tmp_path / "php.ini"
        path.write_text("a\n")
        path.chmod(0o600)
        LocalFileSystem().set_line(str(path), "^b$", "b")
        assert stat.S_IMODE(path.stat().st_mode) == 0o600

    def test_clear_directory(self, tmp_path: Path):
        cache = tmp_path / "_cache"
        (cache / "nested").mkdir(parents=True)
        (cache / "a.cache").write_text("x")
        receipt = LocalFileSystem().clear_directory(str(cache))
        assert receipt.ok
        assert cache.is_dir()
        assert list(cache.iterdir()) == []

    def test_clear_missing_directory_is_ok(self, tmp_path: Path):
        assert LocalFileSystem().clear_directory(str(tmp_path / "missing")).ok

    def test_extract_archive(self, tmp_path: Path):
        archive = make_release(tmp_path)
        dest = tmp_path / "www" / "glpi"
        receipt = LocalFileSystem().extract_archive(str(archive), str(dest), mode=0o755)
        assert receipt.ok
        assert (dest / "public" / "index.php").read_text() == "<?php\n"
        assert stat.S_IMODE((dest / "public" / "index.php").stat().st_mode) == 0o755
        assert [p.name for p in dest.parent.iterdir()] == ["glpi"]

    def test_extract_rejects_multiple_roots(self, tmp_path: Path):
        archive = tmp_path / "bad.tgz"
        with tarfile.open(archive, "w:gz") as tar:
            for name in ("a.txt", "b.txt"):
                info = tarfile.TarInfo(name)
                tar.addfile(info, io.BytesIO(b""))
        dest = tmp_path / "www" / "glpi"
        receipt = LocalFileSystem().extract_archive(str(archive), str(dest))
        assert receipt.failed
        assert not dest.exists()
        assert list(dest.parent.iterdir()) == []

    def test_extract_unknown_owner_keeps_dest_absent(self, tmp_path: Path):
        archive = make_release(tmp_path)
        dest = tmp_path / "www" / "glpi"
        receipt = LocalFileSystem().extract_archive(
            str(archive), str(dest), owner="no-such-user-xyz", group="no-such-group-xyz"
        )
        assert receipt.failed
        assert "chown" in receipt.error
        assert not dest.exists()

    def test_set_mode_recursive(self, tmp_path: Path):
        tree = tmp_path / "tree"
        (tree / "sub").mkdir(parents=True)
        (tree / "sub" / "f.txt").write_text("x")
        receipt = LocalFileSystem().set_mode(str(tree), 0o750, recursive=True)
        assert receipt.ok
        assert stat.S_IMODE((tree / "sub" / "f.txt").stat().st_mode) == 0o750

    def test_extract_missing_archive(self, tmp_path: Path):
        receipt = LocalFileSystem().extract_archive(
            str(tmp_path / "nope.tgz"), str(tmp_path / "glpi")
        )
        assert receipt.failed


# ── Package manager ──────────────────────────────────────────────────


class TestAptPackageManager:
    def test_installed(self):
        runner = ScriptedRunner({"dpkg-query": (0, "install ok installed", "")})
        assert AptPackageManager(runner).installed("apache2")

    def test_not_known(self):
        runner = ScriptedRunner({"dpkg-query": (1, "", "no packages found")})
        assert not AptPackageManager(runner).installed("nope")

    def test_removed_but_config_left(self):
        runner = ScriptedRunner({"dpkg-query": (0, "deinstall ok config-files", "")})
        assert not AptPackageManager(runner).installed("apache2")

    def test_query_error_raises(self):
        runner = ScriptedRunner({"dpkg-query": (2, "", "database locked")})
        with pytest.raises(PreconditionCheckFailed):
            AptPackageManager(runner).installed("apache2")

    def test_pending_upgrades(self):
        stdout = "Reading...\nInst libc6 [2.36-9]\nInst tzdata [2024a]\nConf libc6\n"
        runner = ScriptedRunner({"apt-get": (0, stdout, "")})
        assert AptPackageManager(runner).pending_upgrades() == 2

    def test_index_age(self, tmp_path: Path):
        stamp = tmp_path / "stamp"
        apt = AptPackageManager(ScriptedRunner(), stamp_paths=(str(stamp),))
        assert apt.index_age_hours() is None
        stamp.touch()
        assert apt.index_age_hours() < 0.1

    def test_update_touches_stamp(self, tmp_path: Path):
        stamp = tmp_path / "periodic" / "stamp"
        runner = ScriptedRunner()
        receipt = AptPackageManager(runner, stamp_paths=(str(stamp),)).update_index()
        assert receipt.ok
        assert stamp.exists()
        args, _, env = runner.ran[0]
        assert args == ["apt-get", "update"]
        assert env == {"DEBIAN_FRONTEND": "noninteractive"}

    def test_install_failure_receipt(self):
        runner = ScriptedRunner(run_ok=False)
        assert AptPackageManager(runner).install("nope").failed


# ── Database ─────────────────────────────────────────────────────────


class TestMySQLDatabase:
    def test_sql_literal(self):
        assert sql_literal("it's") == "'it''s'"
        assert sql_literal("a\\b") == "'a\\\\b'"

    def test_database_exists(self):
        runner = ScriptedRunner({"mysql": (0, "glpidb\n", "")})
        assert MySQLDatabase(runner).database_exists("glpidb")
        args, sql = runner.probed[0]
        assert args[:2] == ["mysql", "--protocol=socket"]
        assert "SCHEMA_NAME = 'glpidb'" in sql

    def test_user_missing(self):
        runner = ScriptedRunner({"mysql": (0, "", "")})
        assert not MySQLDatabase(runner).user_exists("glpiuser")

    def test_query_failure_raises(self):
        runner = ScriptedRunner({"mysql": (1, "", "ERROR 2002: Can't connect")})
        with pytest.raises(PreconditionCheckFailed, match="Can't connect"):
            MySQLDatabase(runner).database_exists("glpidb")

    def test_ddl_goes_through_stdin(self):
        runner = ScriptedRunner()
        receipt = MySQLDatabase(runner).execute_ddl(
            ["CREATE USER IF NOT EXISTS 'u'@'localhost' IDENTIFIED BY 'pw'", "FLUSH PRIVILEGES;"]
        )
        assert receipt.ok
        args, stdin, _ = runner.ran[0]
        assert "pw" not in " ".join(args)
        assert stdin == (
            "CREATE USER IF NOT EXISTS 'u'@'localhost' IDENTIFIED BY 'pw';\n"
            "FLUSH PRIVILEGES;\n"
        )


# ── Services and web server ──────────────────────────────────────────


class TestSystemdServiceControl:
    def test_active(self):
        runner = ScriptedRunner({"systemctl": (0, "active\n", "")})
        assert SystemdServiceControl(runner).is_active("apache2")

    def test_inactive(self):
        runner = ScriptedRunner({"systemctl": (3, "inactive\n", "")})
        assert not SystemdServiceControl(runner).is_active("apache2")

    @pytest.mark.parametrize(
        "result,expected",
        [
            ((0, "enabled\n", ""), True),
            ((0, "static\n", ""), True),
            ((1, "disabled\n", ""), False),
            ((1, "", "Failed to get unit file state: No such file or directory"), False),
        ],
    )
    def test_enabled(self, result, expected):
        runner = ScriptedRunner({"systemctl": result})
        assert SystemdServiceControl(runner).is_enabled("php8.2-fpm") is expected

    def test_enabled_unknown_error(self):
        runner = ScriptedRunner({"systemctl": (1, "", "System has not been booted with systemd")})
        with pytest.raises(PreconditionCheckFailed):
            SystemdServiceControl(runner).is_enabled("php8.2-fpm")

    def test_restart(self):
        runner = ScriptedRunner()
        SystemdServiceControl(runner).restart("php8.2-fpm")
        assert runner.ran[0][0] == ["systemctl", "restart", "php8.2-fpm"]


class TestApacheWebServer:
    def test_probes_follow_enabled_links(self, tmp_path: Path):
        (tmp_path / "mods-enabled").mkdir()
        (tmp_path / "sites-enabled").mkdir()
        (tmp_path / "mods-enabled" / "rewrite.load").touch()
        (tmp_path / "sites-enabled" / "glpi.conf").touch()
        web = ApacheWebServer(ScriptedRunner(), root=str(tmp_path))
        assert web.module_enabled("rewrite")
        assert not web.module_enabled("ssl")
        assert web.site_enabled("glpi")
        assert not web.site_enabled("glpi-ssl")

    def test_disable_already_disabled_runs_nothing(self, tmp_path: Path):
        runner = ScriptedRunner()
        receipt = ApacheWebServer(runner, root=str(tmp_path)).disable_site("000-default")
        assert receipt.ok
        assert runner.ran == []

    def test_enable_module_command(self, tmp_path: Path):
        runner = ScriptedRunner()
        ApacheWebServer(runner, root=str(tmp_path)).enable_module("http2")
        assert runner.ran[0][0] == ["a2enmod", "-q", "http2"]


# ── Certificates ─────────────────────────────────────────────────────


class TestX509CertificateIssuer:
    SUBJECT = {"C": "FR", "O": "IT-Connect", "CN": "pts.lan"}

    def test_key_and_certificate(self, tmp_path: Path):
        issuer = X509CertificateIssuer()
        key = tmp_path / "pts.lan.key"
        cert = tmp_path / "pts.lan.crt"

        assert issuer.ensure_key_pair(str(key)).ok
        assert stat.S_IMODE(key.stat().st_mode) == 0o600
        assert issuer.ensure_certificate(str(key), str(cert), self.SUBJECT, 30).ok

        loaded = x509.load_pem_x509_certificate(cert.read_bytes())
        assert isinstance(loaded.public_key(), ec.EllipticCurvePublicKey)
        assert loaded.public_key().curve.name == "secp256r1"
        assert loaded.subject == loaded.issuer
        assert loaded.subject.get_attributes_for_oid(NameOID.COMMON_NAME)[0].value == "pts.lan"
        san = loaded.extensions.get_extension_for_class(x509.SubjectAlternativeName)
        assert san.value.get_values_for_type(x509.DNSName) == ["pts.lan"]
        validity = loaded.not_valid_after_utc - loaded.not_valid_before_utc
        assert 30 <= validity.days <= 31

    def test_existing_files_untouched(self, tmp_path: Path):
        key = tmp_path / "k.key"
        key.write_text("operator supplied")
        receipt = X509CertificateIssuer().ensure_key_pair(str(key))
        assert receipt.ok
        assert key.read_text() == "operator supplied"

    def test_missing_key_fails(self, tmp_path: Path):
        receipt = X509CertificateIssuer().ensure_certificate(
            str(tmp_path / "none.key"), str(tmp_path / "c.crt"), self.SUBJECT, 30
        )
        assert receipt.failed
        assert not (tmp_path / "c.crt").exists()

    def test_build_subject_unknown_field(self):
        with pytest.raises(ValueError):
            build_subject({"XX": "nope"})


# ── Network ──────────────────────────────────────────────────────────


class TestHttpReleaseFetcher:
    def test_file_url(self, tmp_path: Path):
        source = make_release(tmp_path)
        dest = tmp_path / "cache" / "glpi.tgz"
        receipt = HttpReleaseFetcher().fetch(source.as_uri(), str(dest))
        assert receipt.ok
        assert dest.read_bytes() == source.read_bytes()

    def test_failed_download_leaves_nothing(self, tmp_path: Path):
        dest = tmp_path / "cache" / "glpi.tgz"
        receipt = HttpReleaseFetcher().fetch((tmp_path / "missing.tgz").as_uri(), str(dest))
        assert receipt.failed
        assert list(dest.parent.iterdir()) == []


class TestBrowserNotifier:
    def test_no_launch_logs_url(self):
        receipt = BrowserNotifier(launch=False).open_url("https://pts.lan/install/install.php")
        assert receipt.ok
        assert "https://pts.lan/install/install.php" in receipt.output


# ── Registry ─────────────────────────────────────────────────────────


class TestHostAdapters:
    def test_status(self, mock_host):
        adapters: HostAdapters = mock_host.as_adapters()
        status = adapters.adapter_status()
        assert set(status) == {
            "packages", "files", "database", "services",
            "web", "certificates", "releases", "notifier",
        }
        assert adapters.unavailable() == []

    def test_unavailable(self):
        from stackconverge.adapters.mock import MockHost, MockPackageManager

        host = MockHost(packages=MockPackageManager(available=False))
        assert host.as_adapters().unavailable() == ["packages"]


@pytest.mark.skipif(os.geteuid() == 0, reason="root can read anything")
def test_unreadable_file_raises(tmp_path: Path):
    path = tmp_path / "secret.ini"
    path.write_text("x")
    path.chmod(0)
    with pytest.raises(PreconditionCheckFailed):
        LocalFileSystem().read_text(str(path))
