"""Tests for vault_sync.config_schema: unified Pydantic config models."""

import pytest
from pydantic import ValidationError

from vault_sync.config_schema import (
    LoggingConfig,
    SyncProfileConfig,
    UnifiedConfig,
    build_config,
)
from vault_sync.sync.models import ConflictAction, EmptyFolderAction

# -------------------------------------------------------------------------
# SyncProfileConfig
# -------------------------------------------------------------------------


class TestSyncProfileConfig:
    """Tests for the SyncProfileConfig model."""

    def test_defaults(self):
        profile = SyncProfileConfig(local_root="/a", remote_root="/b")
        assert profile.service_type == "directory"
        assert profile.state_dir == ".vault_sync"
        assert profile.password is None
        assert profile.concurrency == 5
        assert profile.conflict_action is ConflictAction.KEEP_NEWER
        assert profile.empty_folder is EmptyFolderAction.SKIP
        assert profile.skip_size_larger_than == -1
        assert profile.sync_config_dir is False
        assert profile.config_dir == ".obsidian"
        assert profile.sync_underscore_items is False
        assert profile.ignore_paths == []

    def test_roots_required(self):
        with pytest.raises(ValidationError):
            SyncProfileConfig(local_root="/a")

    def test_policies_parsed_from_strings(self):
        profile = SyncProfileConfig(
            local_root="/a",
            remote_root="/b",
            conflict_action="keep_larger",
            empty_folder="clean_both",
        )
        assert profile.conflict_action is ConflictAction.KEEP_LARGER
        assert profile.empty_folder is EmptyFolderAction.CLEAN_BOTH

    def test_unknown_policy_rejected(self):
        with pytest.raises(ValidationError):
            SyncProfileConfig(
                local_root="/a", remote_root="/b", conflict_action="keep_mine"
            )

    @pytest.mark.parametrize("value", [0, 101])
    def test_concurrency_bounds(self, value):
        with pytest.raises(ValidationError):
            SyncProfileConfig(local_root="/a", remote_root="/b", concurrency=value)

    @pytest.mark.parametrize("value", [1, 100])
    def test_concurrency_limits_accepted(self, value):
        profile = SyncProfileConfig(
            local_root="/a", remote_root="/b", concurrency=value
        )
        assert profile.concurrency == value

    def test_invalid_ignore_pattern(self):
        with pytest.raises(ValidationError, match="Invalid ignore pattern"):
            SyncProfileConfig(
                local_root="/a", remote_root="/b", ignore_paths=["drafts/("]
            )

    def test_frozen(self):
        profile = SyncProfileConfig(local_root="/a", remote_root="/b")
        with pytest.raises(ValidationError):
            profile.concurrency = 3


# -------------------------------------------------------------------------
# UnifiedConfig / build_config
# -------------------------------------------------------------------------


class TestUnifiedConfig:
    """Tests for UnifiedConfig and build_config()."""

    def test_zero_config(self):
        config = UnifiedConfig()
        assert config.sync == {}
        assert config.logging == LoggingConfig()

    def test_build_config_empty(self):
        assert build_config({}) == UnifiedConfig()

    def test_build_config_with_profiles(self):
        config = build_config(
            {
                "sync": {
                    "notes": {"local_root": "/a", "remote_root": "/b"},
                    "work": {
                        "local_root": "/c",
                        "remote_root": "/d",
                        "concurrency": 2,
                    },
                },
                "logging": {"level": "DEBUG", "file": "/tmp/vault.log"},
            }
        )
        assert sorted(config.sync) == ["notes", "work"]
        assert config.get_profile("work").concurrency == 2
        assert config.logging.level == "DEBUG"
        assert config.logging.file == "/tmp/vault.log"

    def test_build_config_invalid_profile(self):
        with pytest.raises(ValidationError):
            build_config({"sync": {"notes": {"local_root": "/a"}}})

    def test_get_profile_unknown(self):
        config = build_config(
            {"sync": {"notes": {"local_root": "/a", "remote_root": "/b"}}}
        )
        with pytest.raises(KeyError, match="available: notes"):
            config.get_profile("work")

    def test_get_profile_none_configured(self):
        with pytest.raises(KeyError, match="available: none"):
            UnifiedConfig().get_profile("notes")
