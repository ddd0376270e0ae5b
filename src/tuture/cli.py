"""Command-line interface for tuture

Provides commands for init, up, destroy and reload.
"""
import asyncio
import logging
import shlex
import subprocess
import sys
from typing import List, NoReturn

import click

from tuture import __version__
from tuture.core.config import Config
from tuture.core.errors import TutureError
from tuture.core.git import GitManager
from tuture.core.hooks import append_gitignore, install_post_commit_hook, remove_post_commit_hook
from tuture.core.sync import StepSynchronizer
from tuture.core.tutorial import Step, Tutorial, TutorialStore

LANGUAGES = ["en", "zh-CN"]


def _fatal(message: str) -> NoReturn:
    """Output error message and exit with status 1"""
    click.echo(f"✗ {message.strip().replace('fatal: ', '')}", err=True)
    sys.exit(1)


class TutureGroup(click.Group):
    """Command group that treats unknown commands as fatal errors"""

    def resolve_command(self, ctx, args):
        if args and not args[0].startswith("-") and self.get_command(ctx, args[0]) is None:
            _fatal(f"Unknown command: {args[0]}")
        return super().resolve_command(ctx, args)


def _set_verbose(ctx, param, value):
    if value:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")


@click.group(cls=TutureGroup)
@click.version_option(version=__version__, prog_name="tuture")
@click.option(
    "--verbose", "-v", is_flag=True, expose_value=False, is_eager=True,
    callback=_set_verbose, help="Show debug logging",
)
def cli():
    """Tuture: write tutorials from your Git history

    Every commit becomes a step in tuture.yml; explain each step and
    each changed file there, then preview with `tuture up`.
    """
    pass


def _prompt_metadata(config: Config, should_prompt: bool) -> Tutorial:
    """Construct tutorial metadata from user prompt

    Args:
        config: Configuration holding the default answers
        should_prompt: False when `--yes` is given

    Returns:
        Tutorial without steps
    """
    defaults = config.metadata_defaults

    if not should_prompt:
        return Tutorial(
            name=defaults.get("name", "My Awesome Tutorial"),
            version=defaults.get("version", "0.0.1"),
            language=defaults.get("language", "en"),
        )

    name = click.prompt("Tutorial Name", default=defaults.get("name"))
    version = click.prompt("Version", default=defaults.get("version"))
    language = click.prompt(
        "Tutorial Language",
        type=click.Choice(LANGUAGES),
        default=defaults.get("language", "en"),
    )
    topics = click.prompt("Topics", default=defaults.get("topics", ""))
    email = click.prompt("Maintainer Email", default=defaults.get("email"))

    return Tutorial(
        name=name,
        version=version,
        language=language,
        topics=[t.strip() for t in topics.split(",") if t.strip()],
        email=email,
    )


def _load_config(project: str) -> Config:
    """Read .tuturerc.yml for a project, exiting on a broken file"""
    config = Config(project)
    try:
        config.load()
    except TutureError as e:
        _fatal(str(e))
    return config


def _build_steps(synchronizer: StepSynchronizer) -> List[Step]:
    click.echo("Extracting diffs from git log...")
    steps = asyncio.run(synchronizer.build_steps())
    click.echo("✓ Diff files are created!")
    return steps


@cli.command()
@click.option(
    "--project", "-p", default=".", help="Path to project directory"
)
@click.option(
    "--yes", "-y", is_flag=True, help="Do not prompt for options and confirmations"
)
def init(project: str, yes: bool):
    """Initialize a tuture tutorial

    Creates tuture.yml from the commit history and installs a
    post-commit hook that keeps it up to date.
    """
    config = _load_config(project)
    store = TutorialStore(config)
    git = GitManager(config)

    if store.exists():
        click.echo("✓ Tuture has already been initialized!")
        return

    if not git.is_available():
        _fatal("Git is not installed on your machine!")

    if not git.is_repository():
        if not yes and not click.confirm(
            "You are not in a Git repository, do you want to initialize one?",
            default=False,
        ):
            _fatal("Aborted!")

        try:
            asyncio.run(git.init_repository())
        except TutureError as e:
            _fatal(str(e))
        click.echo("✓ Git repo is initialized!")

    tutorial = _prompt_metadata(config, should_prompt=not yes)
    store.create_support_dir()

    try:
        tutorial.steps = _build_steps(StepSynchronizer(git, store))

        store.save(tutorial)
        click.echo(f"✓ {config.metadata_path.name} is created!")

        append_gitignore(config)
        install_post_commit_hook(config)
    except Exception as e:
        store.remove()
        _fatal(str(e) or e.__class__.__name__)


@cli.command()
@click.option(
    "--project", "-p", default=".", help="Path to project directory"
)
def up(project: str):
    """Start the tutorial renderer

    Syncs the JSON mirror with tuture.yml before serving.
    """
    config = _load_config(project)
    store = TutorialStore(config)

    if not store.exists():
        _fatal("Tuture has not been initialized!")

    try:
        store.sync_mirror()
    except TutureError as e:
        _fatal(str(e))
    click.echo(f"✓ {config.mirror_path.name} has been synced!")

    command = shlex.split(config.renderer_command)
    try:
        click.echo(f"✓ Tuture renderer is served on {config.renderer_url}.")
        subprocess.run(command, cwd=config.project_path, check=True)
    except (OSError, subprocess.CalledProcessError):
        _fatal(f"{config.renderer_command} is not available!")


@cli.command()
@click.option(
    "--project", "-p", default=".", help="Path to project directory"
)
@click.option(
    "--force", "-f", is_flag=True, help="Destroy without confirmation"
)
def destroy(project: str, force: bool):
    """Delete all tuture files

    Removes tuture.yml, the support directory and the reload hook.
    """
    config = _load_config(project)
    store = TutorialStore(config)

    if not store.exists():
        _fatal("No Tuture tutorial to destroy!")

    if not force and not click.confirm("Are you sure?", default=False):
        _fatal("Aborted!")

    remove_post_commit_hook(config)

    click.echo("Deleting Tuture files...")
    store.remove()
    click.echo("✓ Tuture suite has been destroyed!")


@cli.command()
@click.option(
    "--project", "-p", default=".", help="Path to project directory"
)
def reload(project: str):
    """Update tuture files after new commits

    Explanations already written in tuture.yml are kept.
    """
    config = _load_config(project)
    store = TutorialStore(config)
    git = GitManager(config)

    if not store.exists():
        _fatal("Tuture has not been initialized!")

    if not git.is_available():
        _fatal("Git is not installed on your machine!")

    try:
        asyncio.run(StepSynchronizer(git, store).reload())
    except TutureError as e:
        _fatal(str(e))

    click.echo("✓ Reload complete!")


def main():
    """Main entry point"""
    cli()


if __name__ == "__main__":
    main()
