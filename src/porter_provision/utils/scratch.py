"""Local scratch files that must not outlive a provisioning run."""
import logging
import shutil
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Union

logger = logging.getLogger(__name__)


def remove_path(path: Union[str, Path]) -> bool:
    """Remove a file or directory tree. Failure is logged, never raised."""
    path = Path(path)
    try:
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        else:
            path.unlink(missing_ok=True)
        return True
    except OSError as e:
        logger.warning(f"Could not remove {path}: {e}")
        return False


@contextmanager
def removing(path: Union[str, Path]) -> Iterator[Path]:
    """Yield ``path`` and remove it on every exit path."""
    path = Path(path)
    try:
        yield path
    finally:
        remove_path(path)
