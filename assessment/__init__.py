"""Assessment module containing constants and the session orchestration."""

from .constants import *
