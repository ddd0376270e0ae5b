"""Git operations wrapper for tuture

Shells out to the git executable to list commits and extract diffs.
All subprocess-backed operations are coroutines; the subprocess seam
is a GitRunner so tests can swap in canned output.
"""
import asyncio
import logging
import re
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config import Config
from .errors import TutureError
from .tutorial import FileDiff

logger = logging.getLogger(__name__)

# Width of the abbreviated hash at the start of each `git log --oneline` line
SHORT_HASH_LENGTH = 7

_DIFF_HEADER = re.compile(r"^diff --git a/(.*) b/(.*)$")
_HUNK_HEADER = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")


class GitError(TutureError):
    """Exception raised for Git-related errors

    The message is the captured stderr of the failed command.
    """

    def __init__(self, message: str, returncode: Optional[int] = None):
        super().__init__(message)
        self.stderr = message
        self.returncode = returncode


@dataclass
class Commit:
    """Represents a Git commit as listed by `git log --oneline`"""

    hash: str
    message: str

    def is_reserved(self, prefix: str) -> bool:
        """Check if this is a housekeeping commit made by tuture"""
        return self.message.startswith(prefix)


@dataclass
class Change:
    """A single line of a hunk"""

    type: str  # insert, delete or normal
    content: str
    old_line: Optional[int] = None
    new_line: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.type, "content": self.content}
        if self.old_line is not None:
            data["old_line"] = self.old_line
        if self.new_line is not None:
            data["new_line"] = self.new_line
        return data


@dataclass
class Hunk:
    """A hunk of a file diff, headed by its @@ line"""

    content: str
    old_start: int
    old_lines: int
    new_start: int
    new_lines: int
    changes: List[Change] = field(default_factory=list)
    is_plain: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "content": self.content,
            "old_start": self.old_start,
            "old_lines": self.old_lines,
            "new_start": self.new_start,
            "new_lines": self.new_lines,
            "is_plain": self.is_plain,
            "changes": [change.to_dict() for change in self.changes],
        }


@dataclass
class DiffFile:
    """Full diff of one file in a commit"""

    old_path: str
    new_path: str
    type: str = "modify"  # add, delete, modify or rename
    is_binary: bool = False
    hunks: List[Hunk] = field(default_factory=list)

    @property
    def path(self) -> str:
        return self.old_path if self.type == "delete" else self.new_path

    def to_dict(self) -> Dict[str, Any]:
        return {
            "old_path": self.old_path,
            "new_path": self.new_path,
            "type": self.type,
            "is_binary": self.is_binary,
            "hunks": [hunk.to_dict() for hunk in self.hunks],
        }


def parse_log_line(line: str) -> Commit:
    """Convert one line of `git log --oneline` output into a Commit

    The hash is the fixed-width prefix of the line and the message
    starts after the separating space.

    Args:
        line: A line like "1a2b3c4 feat: add x"

    Returns:
        Commit with short hash and message
    """
    return Commit(
        hash=line[:SHORT_HASH_LENGTH],
        message=line[SHORT_HASH_LENGTH + 1:],
    )


def _strip_path_prefix(path: str, prefix: str) -> str:
    return path[len(prefix):] if path.startswith(prefix) else path


def parse_diff(text: str) -> List[DiffFile]:
    """Parse unified diff output of `git show` into file diffs

    Args:
        text: Diff text, possibly preceded by commit header lines

    Returns:
        List of DiffFile in output order
    """
    files: List[DiffFile] = []
    current: Optional[DiffFile] = None
    hunk: Optional[Hunk] = None
    old_line = new_line = 0
    old_end = new_end = 0

    for line in text.split("\n"):
        match = _DIFF_HEADER.match(line)
        if match:
            current = DiffFile(old_path=match.group(1), new_path=match.group(2))
            files.append(current)
            hunk = None
            continue

        if current is None:
            continue

        match = _HUNK_HEADER.match(line)
        if match:
            old_start, old_count, new_start, new_count = match.groups()
            hunk = Hunk(
                content=line,
                old_start=int(old_start),
                old_lines=int(old_count) if old_count is not None else 1,
                new_start=int(new_start),
                new_lines=int(new_count) if new_count is not None else 1,
            )
            current.hunks.append(hunk)
            old_line, new_line = hunk.old_start, hunk.new_start
            old_end = hunk.old_start + hunk.old_lines
            new_end = hunk.new_start + hunk.new_lines
            continue

        if hunk is None:
            # Extended header lines between "diff --git" and the first hunk
            if line.startswith("new file mode"):
                current.type = "add"
            elif line.startswith("deleted file mode"):
                current.type = "delete"
            elif line.startswith("rename from "):
                current.type = "rename"
                current.old_path = line[len("rename from "):]
            elif line.startswith("rename to "):
                current.new_path = line[len("rename to "):]
            elif line.startswith("Binary files") or line.startswith("GIT binary patch"):
                current.is_binary = True
            elif line.startswith("--- ") and line[4:] != "/dev/null":
                current.old_path = _strip_path_prefix(line[4:], "a/")
            elif line.startswith("+++ ") and line[4:] != "/dev/null":
                current.new_path = _strip_path_prefix(line[4:], "b/")
            continue

        if line.startswith("\\"):
            # "\ No newline at end of file"
            continue

        if old_line >= old_end and new_line >= new_end:
            # Trailing text after the last line announced by the header
            continue

        if line.startswith("+"):
            hunk.changes.append(Change("insert", line[1:], new_line=new_line))
            new_line += 1
        elif line.startswith("-"):
            hunk.changes.append(Change("delete", line[1:], old_line=old_line))
            old_line += 1
        else:
            hunk.changes.append(
                Change("normal", line[1:], old_line=old_line, new_line=new_line)
            )
            old_line += 1
            new_line += 1

    return files


class GitRunner:
    """Runs git commands and returns their stdout"""

    async def run(self, args: List[str]) -> str:
        raise NotImplementedError


class SubprocessGitRunner(GitRunner):
    """Runs the git executable in a repository"""

    def __init__(self, repo_path: Path):
        self.repo_path = repo_path

    async def run(self, args: List[str]) -> str:
        """Run a Git command

        Args:
            args: Git command arguments

        Returns:
            Decoded stdout

        Raises:
            GitError: If git is missing or exits with non-zero status
        """
        cmd = ["git"] + args
        logger.debug(f"Running: {' '.join(cmd)}")

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                cwd=str(self.repo_path),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError:
            raise GitError("Git not found in PATH")

        stdout, stderr = await process.communicate()
        if process.returncode != 0:
            raise GitError(
                stderr.decode("utf-8", errors="replace"),
                returncode=process.returncode,
            )
        return stdout.decode("utf-8", errors="replace")


class GitManager:
    """Git operations manager

    Lists commits and extracts per-commit diffs for a repository.
    """

    def __init__(self, config: Config, runner: Optional[GitRunner] = None):
        """Initialize Git manager for a repository

        Args:
            config: Configuration of the repository
            runner: Command runner, defaults to spawning git
        """
        self.config = config
        self.runner = runner or SubprocessGitRunner(config.project_path)

    @staticmethod
    def is_available() -> bool:
        """Check if the git executable can be found on PATH"""
        return shutil.which("git") is not None

    def is_repository(self) -> bool:
        return self.config.git_dir.exists()

    async def init_repository(self) -> None:
        """Initialize a Git repository in the project directory"""
        await self.runner.run(["init"])
        logger.info(f"Initialized Git repository in {self.config.project_path}")

    async def list_commits(self) -> List[Commit]:
        """Get commits of the current branch, newest first

        Merge commits and commits whose message starts with the
        reserved prefix are left out.

        Returns:
            List of commits, empty if the repository has no commits yet
        """
        try:
            output = await self.runner.run(
                ["log", "--oneline", "--no-merges", "--no-decorate", "--no-color", "--abbrev=7"]
            )
        except GitError as e:
            logger.debug(f"No commits found: {e.stderr.strip()}")
            return []

        commits = [parse_log_line(line) for line in output.splitlines() if line.strip()]
        prefix = self.config.reserved_prefix
        return [commit for commit in commits if not commit.is_reserved(prefix)]

    async def diff_summary(self, commit: str) -> List[FileDiff]:
        """Get files changed by a commit

        Args:
            commit: Commit hash

        Returns:
            FileDiff per changed file, without ignored files
        """
        output = await self.runner.run(
            ["-c", "core.quotepath=off", "show", "--name-only", "--format=", "--no-color", commit]
        )
        files = [line for line in output.splitlines() if line.strip()]
        return [FileDiff(file=f) for f in files if not self.config.is_ignored(f)]

    async def full_diff(self, commit: str) -> List[DiffFile]:
        """Get the full diff of a commit

        Args:
            commit: Commit hash

        Returns:
            Parsed per-file, per-hunk diff
        """
        output = await self.runner.run(
            ["-c", "core.quotepath=off", "show", "--format=", "--no-color", commit]
        )
        return parse_diff(output)
