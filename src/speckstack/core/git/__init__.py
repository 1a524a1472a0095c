"""Git capability subpackage.

This subpackage provides the git capability set consumed by the stack core,
with support for testing via fakes.
"""

from speckstack.core.git.abc import Git, GitOutcome, GitResult, unwrap
from speckstack.core.git.fake import FakeGit
from speckstack.core.git.real import DEFAULT_GIT_TIMEOUT, RealGit

__all__ = [
    "DEFAULT_GIT_TIMEOUT",
    "FakeGit",
    "Git",
    "GitOutcome",
    "GitResult",
    "RealGit",
    "unwrap",
]
