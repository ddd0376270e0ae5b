"""Configuration for tuture

Carries the repository root and every path derived from it, plus the
tunables (ignore globs, reserved commit prefix, renderer command) that
can be overridden through .tuturerc.yml.
"""
from pathlib import Path
from typing import Any, Dict, List, Optional
import copy
import re

from .errors import ConfigError


def glob_match(pattern: str, path: str) -> bool:
    """Match a path against a glob pattern.

    Supports: *, ?, ** (recursive wildcard)

    Args:
        pattern: Glob pattern (e.g., "*.lock", "dist/**")
        path: File path to match (e.g., "yarn.lock", "dist/app.js")

    Returns:
        True if path matches pattern

    Examples:
        >>> glob_match("*.lock", "poetry.lock")
        True
        >>> glob_match("dist/**", "dist/js/app.js")
        True
        >>> glob_match("**/*.map", "app.js.map")
        True
        >>> glob_match("*.lock", "src/poetry.lock")
        False
    """
    # Handle leading ** specially (matches any prefix)
    if pattern.startswith("**/"):
        rest = pattern[3:]
        escaped = re.escape(rest).replace(r"\*", "[^/]*").replace(r"\?", ".")
        return bool(re.match(f"^(?:.*/)?{escaped}$", path))

    regex = re.escape(pattern)

    # / **/ in middle means optional subdirectories
    regex = regex.replace(r"/\*\*/", "(?:/.*)?/")

    # ** at end or not followed by / means match anything
    regex = regex.replace(r"\*\*", ".*")

    # * matches any non-separator chars
    regex = regex.replace(r"\*", "[^/]*")

    regex = regex.replace(r"\?", ".")

    return bool(re.match(f"^{regex}$", path))


class Config:
    """Configuration context for a tuture suite

    Every component receives one of these instead of resolving paths
    relative to the working directory, so the synchronizer and the
    store can be pointed at any repository.
    """

    RC_FILE = ".tuturerc.yml"

    DEFAULT_CONFIG: Dict[str, Any] = {
        "suite": {
            "support_dir": ".tuture",
            "metadata_file": "tuture.yml",
            "mirror_file": "tuture.json",
            "diff_file": "diff.json",
        },
        "git": {
            "reserved_prefix": "tuture:",
            "ignore": [
                # Git-related files
                ".gitignore",
                ".gitattributes",
                # Lock files and build artifacts
                "package-lock.json",
                "yarn.lock",
                "*.lock",
                "*.min.js",
                "*.map",
                "*.pyc",
                # Tuture-related files
                "tuture.yml",
                ".tuturerc.yml",
            ],
        },
        "hook": {
            "name": "post-commit",
            "command": None,  # Resolved from PATH when not set
        },
        "renderer": {
            "command": "tuture-renderer",
            "url": "http://localhost:3000",
        },
        "defaults": {
            "name": "My Awesome Tutorial",
            "version": "0.0.1",
            "language": "en",
            "topics": "javascript, git, cli",
            "email": "me@example.com",
        },
    }

    def __init__(self, project_path: str = ".", overrides: Optional[Dict[str, Any]] = None):
        """Initialize configuration for a repository

        Args:
            project_path: Path to the repository root
            overrides: Optional settings merged on top of the rc file
        """
        self.project_path = Path(project_path).resolve()
        self.config_file = self.project_path / self.RC_FILE
        self._overrides = overrides or {}
        self._config: Optional[Dict[str, Any]] = None

    def load(self) -> Dict[str, Any]:
        """Load and merge configuration

        Returns:
            Merged configuration dict with defaults applied
        """
        if self._config is None:
            self._config = copy.deepcopy(self.DEFAULT_CONFIG)

            if self.config_file.exists():
                user_config = self._read_config_file()
                if user_config:
                    self._config = self._merge_config(self._config, user_config)

            if self._overrides:
                self._config = self._merge_config(self._config, self._overrides)

        return self._config

    def _read_config_file(self) -> Optional[Dict[str, Any]]:
        """Parse .tuturerc.yml

        Raises:
            ConfigError: If the file is unreadable, malformed or not a mapping
        """
        import yaml

        try:
            user_config = yaml.safe_load(self.config_file.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
            raise ConfigError(f"Invalid {self.RC_FILE}: {e}") from e

        if user_config is not None and not isinstance(user_config, dict):
            raise ConfigError(f"{self.RC_FILE} does not contain a settings mapping")
        return user_config

    def _merge_config(
        self, default: Dict[str, Any], user: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Deep merge user config with defaults

        Args:
            default: Default configuration
            user: User-provided configuration

        Returns:
            Merged configuration
        """
        result = copy.deepcopy(default)

        for key, value in user.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_config(result[key], value)
            else:
                result[key] = value

        return result

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value by dot-notation key

        Args:
            key: Dot-notation key (e.g., "git.reserved_prefix")
            default: Default value if not found

        Returns:
            Configuration value or default
        """
        config = self._config or self.load()
        keys = key.split(".")

        value = config
        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    @property
    def support_dir(self) -> Path:
        """Hidden directory holding the JSON mirror and diff archive"""
        return self.project_path / self.get("suite.support_dir", ".tuture")

    @property
    def support_dir_name(self) -> str:
        return self.get("suite.support_dir", ".tuture")

    @property
    def metadata_path(self) -> Path:
        """Human-editable tutorial file at the repository root"""
        return self.project_path / self.get("suite.metadata_file", "tuture.yml")

    @property
    def mirror_path(self) -> Path:
        return self.support_dir / self.get("suite.mirror_file", "tuture.json")

    @property
    def diff_archive_path(self) -> Path:
        return self.support_dir / self.get("suite.diff_file", "diff.json")

    @property
    def git_dir(self) -> Path:
        return self.project_path / ".git"

    @property
    def gitignore_path(self) -> Path:
        return self.project_path / ".gitignore"

    @property
    def hook_path(self) -> Path:
        return self.git_dir / "hooks" / self.get("hook.name", "post-commit")

    @property
    def hook_command(self) -> Optional[str]:
        return self.get("hook.command")

    @property
    def reserved_prefix(self) -> str:
        """Commit message prefix marking housekeeping commits"""
        return self.get("git.reserved_prefix", "tuture:")

    @property
    def ignore_patterns(self) -> List[str]:
        """Glob patterns of files never tracked in step diffs"""
        return self.get("git.ignore", [])

    @property
    def renderer_command(self) -> str:
        return self.get("renderer.command", "tuture-renderer")

    @property
    def renderer_url(self) -> str:
        return self.get("renderer.url", "http://localhost:3000")

    @property
    def metadata_defaults(self) -> Dict[str, str]:
        return self.get("defaults", {})

    def is_ignored(self, file_path: str) -> bool:
        """Check if a changed file should be left out of step diffs

        Patterns are matched against the file's basename, then against
        the full path so that directory globs like "dist/**" work too.

        Args:
            file_path: Path of the changed file, relative to the repo root

        Returns:
            True if any ignore pattern matches
        """
        name = Path(file_path).name
        return any(
            glob_match(pattern, name) or glob_match(pattern, file_path)
            for pattern in self.ignore_patterns
        )
