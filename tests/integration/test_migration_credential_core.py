from __future__ import annotations

from pathlib import Path

import pytest
import sqlalchemy as sa
from alembic.config import Config

from alembic import command


def _alembic_config(sync_url: str) -> Config:
    alembic_config = Config("alembic.ini")
    alembic_config.set_main_option("sqlalchemy.url", sync_url)
    return alembic_config


def test_upgrade_head_creates_credential_tables(tmp_path: Path) -> None:
    sync_url = f"sqlite+pysqlite:///{tmp_path / 'migration_head.db'}"

    command.upgrade(_alembic_config(sync_url), "head")

    inspector = sa.inspect(sa.create_engine(sync_url))
    table_names = set(inspector.get_table_names())
    assert {
        "users",
        "roles",
        "permissions",
        "user_roles",
        "role_permissions",
        "refresh_tokens",
        "otp_verifications",
        "app_settings",
        "audit_events",
    } <= table_names

    refresh_columns = {column["name"] for column in inspector.get_columns("refresh_tokens")}
    assert refresh_columns == {
        "id",
        "user_id",
        "token_hash",
        "issued_at",
        "expires_at",
        "revoked_at",
    }
    otp_indexes = {index["name"] for index in inspector.get_indexes("otp_verifications")}
    assert "ix_otp_verifications_target_purpose" in otp_indexes


def test_upgrade_head_seeds_permission_vocabulary(tmp_path: Path) -> None:
    sync_url = f"sqlite+pysqlite:///{tmp_path / 'migration_seed.db'}"

    command.upgrade(_alembic_config(sync_url), "head")

    with sa.create_engine(sync_url).connect() as connection:
        codes = connection.execute(sa.text("SELECT code FROM permissions ORDER BY code")).scalars()
        assert list(codes) == [
            "manage_roles",
            "manage_settings",
            "manage_users",
            "view_dashboard",
        ]


def test_otp_purpose_check_constraint_rejects_unknown_values(tmp_path: Path) -> None:
    sync_url = f"sqlite+pysqlite:///{tmp_path / 'migration_check.db'}"
    command.upgrade(_alembic_config(sync_url), "head")

    engine = sa.create_engine(sync_url)
    with pytest.raises(sa.exc.IntegrityError), engine.begin() as connection:
        connection.execute(
            sa.text(
                "INSERT INTO otp_verifications "
                "(target, channel, purpose, code_hash, expires_at) "
                "VALUES ('a@example.com', 'email', 'LOGIN', 'x', CURRENT_TIMESTAMP)"
            )
        )


def test_downgrade_base_removes_tables(tmp_path: Path) -> None:
    sync_url = f"sqlite+pysqlite:///{tmp_path / 'migration_down.db'}"
    alembic_config = _alembic_config(sync_url)
    command.upgrade(alembic_config, "head")

    command.downgrade(alembic_config, "base")

    table_names = set(sa.inspect(sa.create_engine(sync_url)).get_table_names())
    assert table_names <= {"alembic_version"}


def test_database_url_env_replaces_only_the_placeholder(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    env_db = tmp_path / "from_env.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite+pysqlite:///{env_db}")

    command.upgrade(_alembic_config("sqlite:///./portal_auth.db"), "head")

    inspector = sa.inspect(sa.create_engine(f"sqlite+pysqlite:///{env_db}"))
    assert "refresh_tokens" in inspector.get_table_names()


def test_explicit_url_wins_over_database_url_env(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    env_db = tmp_path / "ignored.db"
    explicit_db = tmp_path / "explicit.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite+pysqlite:///{env_db}")

    command.upgrade(_alembic_config(f"sqlite+pysqlite:///{explicit_db}"), "head")

    assert explicit_db.exists()
    assert not env_db.exists()


def test_upgrade_runs_through_async_driver(tmp_path: Path) -> None:
    db_path = tmp_path / "migration_async.db"

    command.upgrade(_alembic_config(f"sqlite+aiosqlite:///{db_path}"), "head")

    inspector = sa.inspect(sa.create_engine(f"sqlite+pysqlite:///{db_path}"))
    assert "otp_verifications" in inspector.get_table_names()
