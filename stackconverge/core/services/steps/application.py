"""
Application steps — release archive, install tree, database.
"""

from __future__ import annotations

from stackconverge.adapters.database.mysql import sql_literal
from stackconverge.adapters.registry import HostAdapters
from stackconverge.core.data import DataRegistry
from stackconverge.core.engine.action import Action
from stackconverge.core.engine.step import Step
from stackconverge.core.models.config import Configuration
from stackconverge.core.models.target import (
    DatabaseExists,
    DatabaseUserExists,
    FileExists,
)
from stackconverge.core.services.steps.system import INSTALL_DEPENDENCIES

INSTALL_APPLICATION = "Install application"
CONFIGURE_DATABASE = "Configure database"


def install_application(config: Configuration, adapters: HostAdapters) -> Step:
    files = adapters.files
    return Step(
        name=INSTALL_APPLICATION,
        actions=(
            Action(
                description=f"Download {config.app_name} {config.app_version}",
                target=FileExists(path=config.archive_path),
                apply=lambda: adapters.releases.fetch(
                    config.resolved_release_url, config.archive_path
                ),
            ),
            Action(
                description=f"Extract release into {config.install_dir}",
                target=FileExists(path=config.install_dir),
                apply=lambda: files.extract_archive(
                    config.archive_path,
                    config.install_dir,
                    owner=config.web_user,
                    group=config.web_group,
                    mode=0o755,
                ),
            ),
        ),
        depends_on=(INSTALL_DEPENDENCIES,),
    )


def database_statements(config: Configuration) -> list[str]:
    """DDL for the application database and its user.

    Every statement is idempotent. The password goes through
    ``sql_literal`` even though configuration already rejects quotes
    and backslashes in it.
    """
    password = config.db_password.get_secret_value() if config.db_password else ""
    account = f"'{config.db_user}'@'localhost'"
    return [
        f"CREATE DATABASE IF NOT EXISTS {config.db_name} "
        "CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci",
        f"CREATE USER IF NOT EXISTS {account} IDENTIFIED BY {sql_literal(password)}",
        f"GRANT ALL PRIVILEGES ON {config.db_name}.* TO {account}",
        "FLUSH PRIVILEGES",
    ]


def configure_database(
    config: Configuration, adapters: HostAdapters, data: DataRegistry
) -> Step:
    database = adapters.database
    create_db, create_user, grant, flush = database_statements(config)
    password = config.db_password.get_secret_value() if config.db_password else ""

    def write_db_config():
        content = data.render(
            "config_db.php",
            db_name=config.db_name,
            db_user=config.db_user,
            db_password=password,
        )
        return adapters.files.write_text(
            config.db_config_path,
            content,
            owner=config.web_user,
            group=config.web_group,
            mode=0o640,
        )

    return Step(
        name=CONFIGURE_DATABASE,
        actions=(
            Action(
                description=f"Create database {config.db_name}",
                target=DatabaseExists(name=config.db_name),
                apply=lambda: database.execute_ddl([create_db]),
            ),
            Action(
                description=f"Create database user {config.db_user}",
                target=DatabaseUserExists(name=config.db_user),
                apply=lambda: database.execute_ddl([create_user, grant, flush]),
            ),
            Action(
                description="Write database connection settings",
                target=FileExists(path=config.db_config_path),
                apply=write_db_config,
            ),
        ),
        depends_on=(INSTALL_APPLICATION, INSTALL_DEPENDENCIES),
    )
