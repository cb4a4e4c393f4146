"""Advisory repository lock for mutating operations.

Snapshot metadata is rewritten whole on every change, so two writers racing
on the same repository would lose history. Mutating operations hold an
exclusive portalocker lock on ``.timemachine/lock`` for their full duration.
The lock file persists between runs; the OS releases the lock if the holding
process dies.
"""

import contextlib
import logging
from typing import Iterator, Optional

import portalocker

from .constants import DEFAULT_LOCK_TIMEOUT
from .context import RepositoryContext
from .errors import LockTimeoutError

logger = logging.getLogger(__name__)


@contextlib.contextmanager
def repository_lock(
    ctx: RepositoryContext,
    timeout: Optional[float] = None,
) -> Iterator[None]:
    """Hold the repository lock for the duration of the ``with`` block.

    Raises:
        LockTimeoutError: If another process holds the lock past ``timeout``
    """
    if timeout is None:
        timeout = DEFAULT_LOCK_TIMEOUT

    lock_path = ctx.lock_path
    lock_path.parent.mkdir(parents=True, exist_ok=True)

    lock = portalocker.Lock(str(lock_path), "a", timeout=timeout)
    try:
        lock.acquire()
    except portalocker.exceptions.LockException as e:
        raise LockTimeoutError(str(lock_path), timeout) from e

    logger.debug("Acquired repository lock %s", lock_path)
    try:
        yield
    finally:
        lock.release()
        logger.debug("Released repository lock %s", lock_path)
