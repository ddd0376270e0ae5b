"""Git hook and ignore-rule management for tuture

Installs a post-commit hook that reloads the tutorial after every
commit, and keeps the support directory out of version control.
"""
import logging
import re
import shutil
import sys

from jinja2 import Environment

from .config import Config

logger = logging.getLogger(__name__)

# Matches "tuture reload" and Windows forms like "C:/bin/tuture.EXE reload"
RELOAD_LINE = re.compile(r"tuture(\.exe)? reload\s*$", re.IGNORECASE)

_env = Environment(keep_trailing_newline=True, autoescape=False)

HOOK_TEMPLATE = _env.from_string("#!/bin/sh\n{{ command }} reload\n")

GITIGNORE_TEMPLATE = _env.from_string("# Tuture supporting files\n\n{{ support_dir }}\n")


def find_tuture_command(config: Config) -> str:
    """Find the full path to the tuture executable.

    This ensures hooks work even when the scripts directory is not in PATH.
    """
    command = config.hook_command or shutil.which("tuture") or "tuture"
    if sys.platform == "win32":
        # Git hooks on Windows need forward slashes, e.g. C:/foo/bar
        command = command.replace("\\", "/")
        command = re.sub(r"\.exe$", "", command, flags=re.IGNORECASE)
    return command


def render_hook(config: Config) -> str:
    return HOOK_TEMPLATE.render(command=find_tuture_command(config))


def render_gitignore_block(config: Config) -> str:
    return GITIGNORE_TEMPLATE.render(support_dir=config.support_dir_name)


def _read(path) -> str:
    return path.read_text(encoding="utf-8", errors="replace")


def has_reload_line(content: str) -> bool:
    return any(RELOAD_LINE.search(line) for line in content.splitlines())


def append_gitignore(config: Config) -> bool:
    """Append the support directory rule to .gitignore

    If it's already ignored, do nothing. If .gitignore doesn't exist,
    create one with the rule. Existing bytes are never rewritten.

    Args:
        config: Configuration of the repository

    Returns:
        True if .gitignore was changed
    """
    path = config.gitignore_path
    block = render_gitignore_block(config)

    if not path.exists():
        path.write_text(block, encoding="utf-8")
    elif config.support_dir_name not in _read(path):
        with path.open("a", encoding="utf-8") as f:
            f.write(f"\n{block}")
    else:
        return False

    logger.debug(f"Added {config.support_dir_name} to {path}")
    return True


def install_post_commit_hook(config: Config) -> bool:
    """Add the reloading post-commit hook

    Args:
        config: Configuration of the repository

    Returns:
        True if the hook was created or extended
    """
    hook_path = config.hook_path
    hook = render_hook(config)

    if not hook_path.exists():
        hook_path.parent.mkdir(parents=True, exist_ok=True)
        hook_path.write_text(hook, encoding="utf-8")
        hook_path.chmod(0o755)
    elif not has_reload_line(_read(hook_path)):
        with hook_path.open("a", encoding="utf-8") as f:
            f.write(hook)
    else:
        return False

    logger.debug(f"Installed reload hook: {hook_path}")
    return True


def remove_post_commit_hook(config: Config) -> bool:
    """Remove the reloading post-commit hook

    Reload lines are stripped whatever executable path they point at.
    A hook left with nothing but its shebang is deleted; a hook the
    user extended keeps the rest of its lines.

    Args:
        config: Configuration of the repository

    Returns:
        True if the hook was changed or deleted
    """
    hook_path = config.hook_path
    if not hook_path.exists():
        return False

    lines = _read(hook_path).splitlines(keepends=True)
    kept = [line for line in lines if not RELOAD_LINE.search(line)]
    if len(kept) == len(lines):
        return False

    if all(not line.strip() or line.startswith("#!") for line in kept):
        hook_path.unlink()
        logger.debug(f"Deleted hook: {hook_path}")
        return True

    hook_path.write_text("".join(kept), encoding="utf-8")
    logger.debug(f"Removed reload line from hook: {hook_path}")
    return True
