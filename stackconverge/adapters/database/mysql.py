"""
MySQL / MariaDB adapter over the local socket.

Connects as root through the unix socket (auth_socket / unix_socket
plugin), which is how a freshly installed MariaDB on Debian accepts the
local administrator without a password.

Statements go in on stdin, never on the command line, so credentials in
a CREATE USER statement do not show up in the process list or the logs.
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Iterable

from stackconverge.adapters.base import Database
from stackconverge.adapters.shell.command import CommandRunner
from stackconverge.core.errors import PreconditionCheckFailed
from stackconverge.core.models.receipt import Receipt

logger = logging.getLogger(__name__)


def sql_literal(value: str) -> str:
    """Quote ``value`` as a SQL string literal."""
    return "'" + value.replace("\\", "\\\\").replace("'", "''") + "'"


class MySQLDatabase(Database):
    """mysql CLI client against the local server."""

    def __init__(
        self,
        runner: CommandRunner | None = None,
        client: str = "mysql",
        admin_user: str = "root",
        host: str = "localhost",
    ):
        self._runner = runner or CommandRunner()
        self._client = client
        self._admin_user = admin_user
        self.host = host

    @property
    def name(self) -> str:
        return "mysql"

    def is_available(self) -> bool:
        return shutil.which(self._client) is not None

    def _base_args(self) -> list[str]:
        return [self._client, "--protocol=socket", "-u", self._admin_user]

    def _query(self, sql: str) -> list[str]:
        result = self._runner.probe([*self._base_args(), "-N", "-B"], input=sql)
        if result.returncode != 0:
            raise PreconditionCheckFailed(
                f"Database query failed: {result.stderr.strip() or result.returncode}"
            )
        return [line for line in result.stdout.splitlines() if line.strip()]

    def database_exists(self, name: str) -> bool:
        rows = self._query(
            "SELECT SCHEMA_NAME FROM information_schema.SCHEMATA "
            f"WHERE SCHEMA_NAME = {sql_literal(name)};"
        )
        return bool(rows)

    def user_exists(self, name: str) -> bool:
        rows = self._query(
            "SELECT User FROM mysql.user "
            f"WHERE User = {sql_literal(name)} AND Host = {sql_literal(self.host)};"
        )
        return bool(rows)

    def execute_ddl(self, statements: Iterable[str]) -> Receipt:
        batch = [s.strip().rstrip(";") + ";" for s in statements if s.strip()]
        logger.debug("Executing %d statements", len(batch))
        return self._runner.run(
            self._base_args(),
            adapter=self.name,
            operation="ddl",
            input="\n".join(batch) + "\n",
        )
