"""Tuture: write tutorials from the commit history of a Git repository"""

__version__ = "0.1.0"

# Import core modules for easier access
from tuture.core.config import Config
from tuture.core.git import GitManager
from tuture.core.sync import StepSynchronizer
from tuture.core.tutorial import TutorialStore

__all__ = [
    "Config",
    "GitManager",
    "StepSynchronizer",
    "TutorialStore",
]
