import os

from .base import *  # noqa: F401,F403
from .base import _flag

DEBUG = True
LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")

AUTO_INIT_DB = _flag("AUTO_INIT_DB", "1")
