"""I/O utility functions for run workspaces and artifact files."""

import re
import shutil
import uuid
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Iterator, Optional, Union


def slugify(text: str) -> str:
    """
    Convert text to a filesystem-safe slug.

    Args:
        text: Input text to slugify.

    Returns:
        Filesystem-safe slug string.
    """
    text = text.lower()
    text = re.sub(r"[^\w\s-]", "", text)
    text = re.sub(r"[-\s]+", "-", text)
    text = text.strip("-")
    if len(text) > 60:
        text = text[:60].rstrip("-")
    return text or "ad"


def new_run_id(product_name: str = "") -> str:
    """Timestamped, collision-free run identifier."""
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    suffix = uuid.uuid4().hex[:8]
    slug = slugify(product_name) if product_name else ""
    return f"{timestamp}_{slug}_{suffix}" if slug else f"{timestamp}_{suffix}"


def unique_name(prefix: str, suffix: str = ".mp4") -> str:
    """File name that cannot collide with another run or segment."""
    return f"{prefix}_{uuid.uuid4().hex[:10]}{suffix}"


@contextmanager
def create_run_workspace(
    base_dir: Union[str, Path],
    run_id: str,
    logger: Optional[Any] = None,
) -> Iterator[Path]:
    """
    Create a per-run scratch directory and remove it on exit.

    The directory is removed whether the run succeeds, aborts or raises.
    Anything that must outlive the run has to be moved out before the block ends.

    Args:
        base_dir: Root of all run workspaces (e.g., "temp").
        run_id: Run identifier; the directory is named run_<run_id>.
        logger: Optional logger for cleanup diagnostics.

    Yields:
        Path to the created directory.
    """
    workspace = Path(base_dir) / f"run_{run_id}"
    workspace.mkdir(parents=True, exist_ok=True)
    try:
        yield workspace
    finally:
        shutil.rmtree(workspace, ignore_errors=True)
        if logger is not None:
            logger.debug(f"Removed run workspace {workspace}")


def move_artifact(source: Union[str, Path], dest_dir: Union[str, Path], name: Optional[str] = None) -> Path:
    """
    Move a file into dest_dir (creating it), returning the new path.

    Args:
        source: File to move.
        dest_dir: Destination directory.
        name: Optional new file name (defaults to the source name).
    """
    source = Path(source)
    dest_dir = Path(dest_dir)
    dest_dir.mkdir(parents=True, exist_ok=True)
    target = dest_dir / (name or source.name)
    shutil.move(str(source), str(target))
    return target
