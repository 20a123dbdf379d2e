"""Content digests used for content-addressed storage keys."""
import hashlib
import tempfile
from pathlib import Path
from typing import IO, Tuple, Union

from porter_provision.errors import DigestComputationError

CHUNK_SIZE = 1024 * 1024
# Spooled copies larger than this spill to a temporary file on disk.
SPOOL_MAX_SIZE = 64 * 1024 * 1024


def sha256_bytes(b: bytes) -> str:
    h = hashlib.sha256()
    h.update(b)
    return h.hexdigest()


def spool_file(path: Union[str, Path], chunk_size: int = CHUNK_SIZE,
               max_size: int = SPOOL_MAX_SIZE) -> Tuple[IO[bytes], str]:
    """Read ``path`` once, digesting it while copying it into a spooled file.

    The returned copy is rewound and is what gets uploaded, so the stored
    content always matches its digest even if ``path`` changes afterwards.
    The caller owns (and must close) the copy.

    :raises DigestComputationError: if the file cannot be read.
    """
    h = hashlib.sha256()
    spool = tempfile.SpooledTemporaryFile(max_size=max_size)
    try:
        with open(path, 'rb') as f:
            for chunk in iter(lambda: f.read(chunk_size), b''):
                h.update(chunk)
                spool.write(chunk)
    except OSError as e:
        spool.close()
        raise DigestComputationError(f"read {path}", e) from e
    spool.seek(0)
    return spool, h.hexdigest()
