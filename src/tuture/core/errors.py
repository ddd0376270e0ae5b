"""Exceptions raised by tuture"""


class TutureError(Exception):
    """Base exception for tuture errors"""

    pass


class ConfigError(TutureError):
    """Raised when .tuturerc.yml cannot be read or parsed"""

    pass


class TutorialFormatError(TutureError):
    """Raised when tuture.yml cannot be read or parsed"""

    pass
