"""Utility functions for the AdBurst pipeline."""

from adburst.utils.io_utils import create_run_workspace, slugify, unique_name
from adburst.utils.text_utils import estimate_spoken_duration, script_word_budget, truncate_to_target_duration

__all__ = [
    "create_run_workspace",
    "slugify",
    "unique_name",
    "estimate_spoken_duration",
    "script_word_budget",
    "truncate_to_target_duration",
]
