"""Default settings entry point used by development servers and the test suite."""

from .base import *  # noqa: F401,F403
