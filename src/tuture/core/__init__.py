"""Core modules for tuture"""

from .config import Config, glob_match
from .git import GitError, GitManager
from .sync import StepSynchronizer, reconcile
from .errors import TutureError
from .tutorial import Tutorial, TutorialStore

__all__ = [
    "Config",
    "GitError",
    "GitManager",
    "StepSynchronizer",
    "Tutorial",
    "TutorialStore",
    "TutureError",
    "glob_match",
    "reconcile",
]
