"""
Filesystem adapter — text files, directories, ownership, permissions.

Writes are atomic (write to a temp file in the same directory, then
rename) so a rendered template either fully lands or the previous
content stays visibly untouched.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
import tarfile
import tempfile
from pathlib import Path

from stackconverge.adapters.base import FileSystem
from stackconverge.core.errors import MutationFailed, PreconditionCheckFailed
from stackconverge.core.models.receipt import Receipt

logger = logging.getLogger(__name__)


class LocalFileSystem(FileSystem):
    """The real filesystem of the provisioned host."""

    @property
    def name(self) -> str:
        return "filesystem"

    def is_available(self) -> bool:
        return True  # filesystem is always available

    # ── Probes ───────────────────────────────────────────────────

    def exists(self, path: str) -> bool:
        try:
            return Path(path).exists()
        except OSError as e:
            raise PreconditionCheckFailed(f"Cannot stat {path}: {e}") from e

    def read_text(self, path: str) -> str | None:
        target = Path(path)
        try:
            return target.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            raise PreconditionCheckFailed(f"Cannot read {path}: {e}") from e

    # ── Mutations ────────────────────────────────────────────────

    def write_text(
        self,
        path: str,
        content: str,
        *,
        owner: str | None = None,
        group: str | None = None,
        mode: int | None = None,
    ) -> Receipt:
        target = Path(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            self._atomic_write(target, content, owner=owner, group=group, mode=mode)
        except (OSError, LookupError) as e:
            return Receipt.failure(
                adapter=self.name,
                operation="write",
                error=f"Cannot write {target}: {e}",
                metadata={"path": path},
            )
        return Receipt.success(
            adapter=self.name,
            operation="write",
            output=f"Written {len(content)} bytes to {target}",
            metadata={"path": path, "size": len(content)},
        )

    def set_line(self, path: str, pattern: str, line: str) -> Receipt:
        target = Path(path)
        try:
            current = target.read_text(encoding="utf-8") if target.exists() else ""
            regex = re.compile(pattern, re.MULTILINE)
            if regex.search(current):
                updated = regex.sub(lambda _m: line, current)
            else:
                if current and not current.endswith("\n"):
                    current += "\n"
                updated = current + line + "\n"

            mode = target.stat().st_mode & 0o7777 if target.exists() else None
            self._atomic_write(target, updated, mode=mode, keep_owner=True)
        except (OSError, re.error) as e:
            return Receipt.failure(
                adapter=self.name,
                operation="set_line",
                error=f"Cannot update {target}: {e}",
                metadata={"path": path, "line": line},
            )
        return Receipt.success(
            adapter=self.name,
            operation="set_line",
            output=f"{target}: {line}",
            metadata={"path": path},
        )

    def make_dirs(self, path: str, *, mode: int | None = None) -> Receipt:
        target = Path(path)
        try:
            target.mkdir(parents=True, exist_ok=True)
            if mode is not None:
                target.chmod(mode)
        except OSError as e:
            return Receipt.failure(
                adapter=self.name, operation="mkdir", error=f"Cannot create {target}: {e}"
            )
        return Receipt.success(
            adapter=self.name, operation="mkdir", output=f"Directory created: {target}"
        )

    def set_owner(
        self, path: str, owner: str, group: str, *, recursive: bool = False
    ) -> Receipt:
        target = Path(path)
        try:
            for item in self._walk(target, recursive):
                shutil.chown(item, user=owner, group=group)
        except (OSError, LookupError) as e:
            return Receipt.failure(
                adapter=self.name,
                operation="chown",
                error=f"Cannot chown {target} to {owner}:{group}: {e}",
            )
        return Receipt.success(
            adapter=self.name, operation="chown", output=f"{target} owned by {owner}:{group}"
        )

    def set_mode(self, path: str, mode: int, *, recursive: bool = False) -> Receipt:
        target = Path(path)
        try:
            for item in self._walk(target, recursive):
                if not item.is_symlink():
                    item.chmod(mode)
        except OSError as e:
            return Receipt.failure(
                adapter=self.name,
                operation="chmod",
                error=f"Cannot chmod {target} to {mode:o}: {e}",
            )
        return Receipt.success(
            adapter=self.name, operation="chmod", output=f"{target} mode {mode:o}"
        )

    def clear_directory(self, path: str) -> Receipt:
        target = Path(path)
        if not target.is_dir():
            return Receipt.success(
                adapter=self.name,
                operation="clear",
                output=f"{target} does not exist, nothing to clear",
            )
        removed = 0
        try:
            for child in target.iterdir():
                if child.is_dir() and not child.is_symlink():
                    shutil.rmtree(child)
                else:
                    child.unlink()
                removed += 1
        except OSError as e:
            return Receipt.failure(
                adapter=self.name, operation="clear", error=f"Cannot clear {target}: {e}"
            )
        return Receipt.success(
            adapter=self.name,
            operation="clear",
            output=f"Removed {removed} entries from {target}",
            metadata={"removed": removed},
        )

    def extract_archive(
        self,
        archive: str,
        dest: str,
        *,
        owner: str | None = None,
        group: str | None = None,
        mode: int | None = None,
    ) -> Receipt:
        target = Path(dest)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            staging = Path(tempfile.mkdtemp(dir=target.parent, prefix=".extract_"))
        except OSError as e:
            return Receipt.failure(
                adapter=self.name, operation="extract", error=f"Cannot stage {target}: {e}"
            )

        try:
            with tarfile.open(archive, "r:*") as tar:
                tar.extractall(staging, filter="data")

            entries = list(staging.iterdir())
            if len(entries) != 1 or not entries[0].is_dir():
                raise tarfile.TarError(
                    f"expected one top-level directory in {archive}, "
                    f"found {sorted(e.name for e in entries)}"
                )
            root = entries[0]

            # Permissions are fixed before the tree becomes visible at dest
            if mode is not None:
                self.set_mode(str(root), mode, recursive=True).raise_for_status()
            if owner and group:
                self.set_owner(str(root), owner, group, recursive=True).raise_for_status()

            root.rename(target)
        except (OSError, tarfile.TarError, MutationFailed) as e:
            return Receipt.failure(
                adapter=self.name,
                operation="extract",
                error=f"Cannot extract {archive} to {target}: {e}",
            )
        finally:
            shutil.rmtree(staging, ignore_errors=True)

        return Receipt.success(
            adapter=self.name,
            operation="extract",
            output=f"Extracted {archive} to {target}",
            metadata={"archive": archive, "path": dest},
        )

    # ── Helpers ──────────────────────────────────────────────────

    @staticmethod
    def _walk(target: Path, recursive: bool):
        yield target
        if recursive and target.is_dir() and not target.is_symlink():
            yield from target.rglob("*")

    @staticmethod
    def _atomic_write(
        target: Path,
        content: str,
        *,
        owner: str | None = None,
        group: str | None = None,
        mode: int | None = None,
        keep_owner: bool = False,
    ) -> None:
        previous = target.stat() if keep_owner and target.exists() else None
        fd, tmp_path = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".tmp")
        tmp = Path(tmp_path)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
            if mode is not None:
                tmp.chmod(mode)
            else:
                tmp.chmod(0o644)
            if owner or group:
                shutil.chown(tmp, user=owner, group=group)
            elif previous is not None:
                os.chown(tmp, previous.st_uid, previous.st_gid)
            tmp.replace(target)
        except BaseException:
            tmp.unlink(missing_ok=True)
            raise
