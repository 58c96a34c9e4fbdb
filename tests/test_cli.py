"""Tests for the ``vault-sync`` command line.

Runs ``main()`` with an argv list against a config file in ``tmp_path``.
Logging setup is patched out so pytest's log capture stays intact.
"""

import json
import re
import textwrap

import pytest

import vault_sync
from vault_sync import cli


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    for name in ("VAULT_SYNC_PASSWORD", "VAULT_SYNC_CONCURRENCY", "VAULT_SYNC_DEBUG"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.setattr(cli, "setup_logging", lambda **kwargs: None)

    config = tmp_path / "vault.yml"
    config.write_text(
        textwrap.dedent(f"""\
        sync:
          notes:
            local_root: {tmp_path / "local"}
            remote_root: {tmp_path / "remote"}
            state_dir: {tmp_path / "state"}
        """)
    )
    monkeypatch.setenv("VAULT_SYNC_CONFIG", str(config))

    local = tmp_path / "local"
    local.mkdir()
    (local / "a.md").write_text("alpha")
    return tmp_path


class TestVersion:
    def test_version_format(self):
        assert re.match(r"^\d+\.\d+\.\d+$", vault_sync.__version__)

    def test_version_flag(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["--version"])
        assert exc_info.value.code == 0
        assert vault_sync.__version__ in capsys.readouterr().out


class TestInit:
    def test_writes_starter_config(self, tmp_path, monkeypatch, capsys):
        monkeypatch.delenv("VAULT_SYNC_CONFIG", raising=False)
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path / "home"))
        monkeypatch.setattr(cli, "setup_logging", lambda **kwargs: None)
        target = tmp_path / "conf" / "config.yml"

        assert cli.main(["init", "--path", str(target)]) == 0

        assert target.is_file()
        assert f"Config file: {target}" in capsys.readouterr().out

    def test_keeps_existing_config(self, workspace, capsys):
        assert cli.main(["init"]) == 0
        assert str(workspace / "vault.yml") in capsys.readouterr().out


class TestSync:
    def test_sync_uploads(self, workspace, capsys):
        assert cli.main(["sync", "notes"]) == 0

        assert (workspace / "remote" / "a.md").read_text() == "alpha"
        out = capsys.readouterr().out
        assert "Sync report for 'notes'" in out
        assert "  a.md (created_local)" in out

    def test_second_sync_has_nothing_to_do(self, workspace, capsys):
        cli.main(["sync", "notes"])
        capsys.readouterr()
        assert cli.main(["sync", "notes"]) == 0
        assert "Nothing to sync." in capsys.readouterr().out

    def test_dry_run(self, workspace, capsys):
        assert cli.main(["sync", "notes", "--dry-run"]) == 0

        out = capsys.readouterr().out
        assert out.startswith("DRY RUN -- No changes will be made")
        assert "[CREATED LOCAL]\n  a.md" in out
        assert not (workspace / "remote").exists()

    def test_json_output(self, workspace, capsys):
        assert cli.main(["sync", "notes", "--json"]) == 0

        data = json.loads(capsys.readouterr().out)
        assert data["profile_name"] == "notes"
        assert data["counts"]["uploaded"] == 1
        assert data["results"][0]["key"] == "a.md"

    def test_encrypted_sync_via_env(self, workspace, monkeypatch):
        monkeypatch.setenv("VAULT_SYNC_PASSWORD", "secret")
        assert cli.main(["sync", "notes"]) == 0
        (stored,) = (workspace / "remote").iterdir()
        assert stored.name != "a.md"

    def test_password_mismatch_fails(self, workspace, capsys):
        assert cli.main(["sync", "notes"]) == 0
        capsys.readouterr()

        assert cli.main(["sync", "notes", "--password", "secret"]) == 1
        assert "password check failed" in capsys.readouterr().err

    def test_unknown_profile(self, workspace, capsys):
        assert cli.main(["sync", "work"]) == 1
        assert "Unknown sync profile 'work'" in capsys.readouterr().err

    def test_invalid_concurrency(self, workspace, capsys):
        assert cli.main(["sync", "notes", "--concurrency", "0"]) == 1
        assert "between 1 and 100" in capsys.readouterr().err

    def test_invalid_config_file(self, workspace, capsys):
        (workspace / "vault.yml").write_text(
            "sync:\n  notes:\n    local_root: /a\n"
        )
        assert cli.main(["sync", "notes"]) == 1
        assert "Error:" in capsys.readouterr().err

    def test_logging_section_applied(self, workspace, monkeypatch):
        config = workspace / "vault.yml"
        config.write_text(
            config.read_text() + "logging:\n  level: WARNING\n  file: sync.log\n"
        )
        calls = []
        monkeypatch.setattr(cli, "setup_logging", lambda **kw: calls.append(kw))

        assert cli.main(["sync", "notes", "--debug"]) == 0

        assert calls == [{"debug": True, "log_file": "sync.log", "level": "WARNING"}]

    def test_log_file_flag_wins(self, workspace, monkeypatch):
        calls = []
        monkeypatch.setattr(cli, "setup_logging", lambda **kw: calls.append(kw))
        cli.main(["sync", "notes", "--log-file", "cli.log"])
        assert calls[0]["log_file"] == "cli.log"

    def test_missing_command(self, workspace):
        with pytest.raises(SystemExit) as exc_info:
            cli.main([])
        assert exc_info.value.code == 2


class TestCheckPassword:
    def test_empty_remote(self, workspace, capsys):
        assert cli.main(["check-password", "notes"]) == 0
        assert "Password check ok: empty_remote" in capsys.readouterr().out

    def test_plain_remote_with_password(self, workspace, capsys):
        cli.main(["sync", "notes"])
        capsys.readouterr()

        assert cli.main(["check-password", "notes", "--password", "pw"]) == 1
        out = capsys.readouterr().out
        assert "Password check failed: remote_not_encrypted_local_has_password" in out

    def test_home_relative_remote_root(self, workspace, capsys):
        (workspace / "vault.yml").write_text(
            textwrap.dedent(f"""\
            sync:
              notes:
                local_root: {workspace / "local"}
                remote_root: ~/remote
                state_dir: {workspace / "state"}
            """)
        )
        assert cli.main(["sync", "notes", "--password", "pw"]) == 0
        assert len(list((workspace / "home" / "remote").iterdir())) == 1
        capsys.readouterr()

        assert cli.main(["check-password", "notes"]) == 1
        out = capsys.readouterr().out
        assert "Password check failed: remote_encrypted_local_no_password" in out

    def test_encrypted_remote_matches(self, workspace, capsys):
        cli.main(["sync", "notes", "--password", "pw"])
        capsys.readouterr()

        assert cli.main(["check-password", "notes", "--password", "pw"]) == 0
        assert "password_matched" in capsys.readouterr().out
