"""Tests for tools/db_upgrade.py."""

from __future__ import annotations

from unittest.mock import patch

from tools import db_upgrade


def test_upgrade_targets_head():
    with patch.object(db_upgrade.command, "upgrade") as upgrade:
        db_upgrade.main([])
    cfg, revision = upgrade.call_args.args
    assert revision == "head"
    assert upgrade.call_args.kwargs == {"sql": False}
    assert cfg.config_file_name.endswith("alembic.ini")


def test_sql_flag_renders_offline():
    with patch.object(db_upgrade.command, "upgrade") as upgrade:
        db_upgrade.main(["--sql"])
    assert upgrade.call_args.kwargs == {"sql": True}
