"""Step synchronization for tuture

Turns the commit log into steps, stores the full diffs of every commit
and merges freshly built steps with the ones a user already edited.
"""
import asyncio
import logging
from typing import List

from .git import Commit, GitManager
from .tutorial import Step, Tutorial, TutorialStore

logger = logging.getLogger(__name__)


def reconcile(old_tutorial: Tutorial, new_steps: List[Step]) -> List[Step]:
    """Merge freshly built steps with previously saved ones

    A new step whose commit already has a saved step is replaced by the
    saved step as a whole, so hand-written explanations survive even if
    the commit's file list changed since. New commits keep their fresh,
    unexplained step. Saved steps of commits that are gone are dropped.

    Args:
        old_tutorial: Tutorial loaded from tuture.yml
        new_steps: Steps built from the current commit log

    Returns:
        Merged steps in chronological order
    """
    merged = list(new_steps)
    for index, new_step in enumerate(merged):
        old_step = old_tutorial.find_step(new_step.commit)
        if old_step is not None:
            merged[index] = old_step
    return merged


class StepSynchronizer:
    """Builds tutorial steps from Git history"""

    def __init__(self, git: GitManager, store: TutorialStore):
        self.git = git
        self.store = store

    async def chronological_commits(self) -> List[Commit]:
        """Get commits eligible for steps, oldest first"""
        commits = await self.git.list_commits()
        commits.reverse()
        return commits

    async def store_diffs(self, commits: List[Commit]) -> None:
        """Write full diffs of all commits into the diff archive

        Args:
            commits: Commits to extract diffs from
        """
        diffs = await asyncio.gather(*(self.git.full_diff(c.hash) for c in commits))
        self.store.save_diff_archive([
            {"commit": commit.hash, "diff": [d.to_dict() for d in diff]}
            for commit, diff in zip(commits, diffs)
        ])

    async def build_steps(self) -> List[Step]:
        """Construct one step per commit and store the diff archive

        Returns:
            Steps in chronological order, with empty explanations
        """
        commits = await self.chronological_commits()
        logger.info(f"Extracting diffs of {len(commits)} commit(s)")

        await self.store_diffs(commits)

        summaries = await asyncio.gather(*(self.git.diff_summary(c.hash) for c in commits))
        return [
            Step(name=commit.message, commit=commit.hash, diff=files)
            for commit, files in zip(commits, summaries)
        ]

    async def reload(self) -> Tutorial:
        """Re-sync the saved tutorial with the current commit log

        Returns:
            The tutorial as written to disk
        """
        tutorial = self.store.load()
        steps = await self.build_steps()
        tutorial.steps = reconcile(tutorial, steps)
        self.store.save(tutorial)
        return tutorial
