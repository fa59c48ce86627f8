"""Git commits as a summary source, with summaries cached in git notes.

Every commit is an immutable snapshot of the tree, so the resolved commit
sha is the snapshot identity. Summaries are attached to the commit as notes
under ``refs/notes/dirsummary/<mode>``, which travel with the repository
when notes refs are pushed and fetched.
"""

from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path

from dirsummary.errors import (
    ListingError,
    ResolutionError,
    StoreReadError,
    StoreWriteError,
)
from dirsummary.storage.summary_store import summary_mode

logger = logging.getLogger(__name__)

DEFAULT_REFERENCE = "HEAD"
NOTES_REF_PREFIX = "refs/notes/dirsummary"
GIT_TIMEOUT_SECONDS = 60.0


class GitCommandError(RuntimeError):
    def __init__(self, args: list[str], returncode: int, stderr: str):
        self.args_list = args
        self.returncode = returncode
        self.stderr = stderr.strip()
        super().__init__(
            f"git {' '.join(args)} exited with {returncode}: {self.stderr}"
        )


def run_git(
    repo_root: Path,
    args: list[str],
    *,
    input_text: str | None = None,
    config: dict[str, str] | None = None,
    timeout_seconds: float = GIT_TIMEOUT_SECONDS,
) -> str:
    """Run a git subcommand in ``repo_root`` and return its stdout.

    git runs under the C locale so its messages can be matched regardless
    of the user's language settings.

    Raises:
        GitCommandError: If git exits non-zero
        OSError: If git cannot be started
        subprocess.TimeoutExpired: If git does not finish in time
    """
    command = ["git", "-C", str(repo_root)]
    for key, value in (config or {}).items():
        command += ["-c", f"{key}={value}"]
    proc = subprocess.run(
        [*command, *args],
        input=input_text,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        encoding="utf-8",
        errors="replace",
        check=False,
        timeout=timeout_seconds,
        env={**os.environ, "LC_ALL": "C"},
    )
    if proc.returncode != 0:
        raise GitCommandError(args, proc.returncode, proc.stderr)
    return proc.stdout


class GitSnapshotSource:
    """Resolve git references to commits and list the files of a commit."""

    name = "git"

    def __init__(self, repo_path: Path, timeout_seconds: float = GIT_TIMEOUT_SECONDS):
        self.repo_path = Path(repo_path)
        self.timeout_seconds = timeout_seconds

    def _git(self, args: list[str], **kwargs) -> str:
        return run_git(
            self.repo_path, args, timeout_seconds=self.timeout_seconds, **kwargs
        )

    def resolve(self, reference: str = DEFAULT_REFERENCE) -> str:
        reference = (reference or DEFAULT_REFERENCE).strip()
        try:
            out = self._git(["rev-parse", "--verify", "--quiet", f"{reference}^{{commit}}"])
        except GitCommandError:
            raise ResolutionError(reference, f"not a commit in {self.repo_path}") from None
        except (OSError, subprocess.TimeoutExpired) as e:
            raise ResolutionError(reference, str(e)) from e
        return out.strip()

    def list_files(self, commit: str) -> list[str]:
        try:
            out = self._git(["ls-tree", "-r", "-z", "--full-tree", commit])
        except (GitCommandError, OSError, subprocess.TimeoutExpired) as e:
            raise ListingError(commit, str(e)) from e

        paths = []
        for record in out.split("\0"):
            if not record:
                continue
            meta, _, path = record.partition("\t")
            # "<mode> <type> <object>"; gitlinks (submodules) have type "commit"
            if meta.split(" ")[1:2] == ["blob"]:
                paths.append(path)
        logger.info(f"Commit {commit[:12]} has {len(paths)} files")
        return paths

    def store_for(self, recursive: bool) -> "GitNotesStore":
        return GitNotesStore(self, recursive=recursive)


class GitNotesStore:
    """Cache store keeping summary payloads as git notes on the commit."""

    def __init__(
        self,
        source: GitSnapshotSource,
        recursive: bool = False,
        signature: tuple[str, str] | None = None,
    ):
        self.source = source
        self.notes_ref = f"{NOTES_REF_PREFIX}/{summary_mode(recursive)}"
        self.signature = signature

    def get(self, commit: str) -> str | None:
        try:
            return self.source._git(["notes", "--ref", self.notes_ref, "show", commit])
        except GitCommandError as e:
            if "no note found" in e.stderr.lower():
                return None
            raise StoreReadError(f"Failed to read note {self.notes_ref}: {e}") from e
        except (OSError, subprocess.TimeoutExpired) as e:
            raise StoreReadError(f"Failed to read note {self.notes_ref}: {e}") from e

    def put(self, commit: str, payload: str, force: bool = False) -> None:
        args = ["notes", "--ref", self.notes_ref, "add"]
        if force:
            # the stored format may have changed, so replace rather than append
            args.append("-f")
        args += ["-F", "-", commit]

        config = None
        if self.signature:
            name, email = self.signature
            config = {"user.name": name, "user.email": email}

        try:
            self.source._git(args, input_text=payload, config=config)
        except (GitCommandError, OSError, subprocess.TimeoutExpired) as e:
            raise StoreWriteError(f"Failed to write note {self.notes_ref}: {e}") from e
        logger.info(f"Stored {self.notes_ref} note on {commit[:12]}")
