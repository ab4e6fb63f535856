"""Process-local scratch files."""

import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from mediahub.core.config import settings


def scratch_root() -> Optional[str]:
    return settings.SCRATCH_DIR or None


@contextmanager
def scratch_file(suffix: str = "", directory: Optional[str] = None) -> Iterator[Path]:
    """Yield a fresh empty file path that is removed when the block exits."""
    fd, name = tempfile.mkstemp(suffix=suffix, prefix="mediahub-", dir=directory or scratch_root())
    os.close(fd)
    path = Path(name)
    try:
        yield path
    finally:
        path.unlink(missing_ok=True)


@contextmanager
def scratch_dir(directory: Optional[str] = None) -> Iterator[Path]:
    """Yield a job workspace directory, removed with its contents on exit."""
    with tempfile.TemporaryDirectory(prefix="mediahub-job-", dir=directory or scratch_root()) as name:
        yield Path(name)
