"""
Stream Materializer

Turns a provider read stream into a seekable local temp file for callers that
need random access instead of a stream.
"""

import io
import logging
import shutil
import tempfile
from typing import BinaryIO, Iterable, Iterator, Optional

from omnistore.infrastructure.exceptions import StorageError, TransferError

logger = logging.getLogger(__name__)


def close_stream(stream) -> None:
    """Close a provider stream and hand its connection back to the pool"""
    stream.close()
    release_conn = getattr(stream, "release_conn", None)
    if callable(release_conn):
        release_conn()


class ChunkedReader(io.RawIOBase):
    """
    Read-only file object over an iterator of byte chunks.

    Used for SDKs that hand out chunk iterators instead of file objects.
    """

    def __init__(self, chunks: Iterable[bytes], on_close=None):
        self._chunks: Iterator[bytes] = iter(chunks)
        self._buffer = b""
        self._on_close = on_close

    def readable(self) -> bool:
        return True

    def readinto(self, b) -> int:
        while not self._buffer:
            try:
                self._buffer = next(self._chunks)
            except StopIteration:
                return 0
        size = min(len(b), len(self._buffer))
        b[:size] = self._buffer[:size]
        self._buffer = self._buffer[size:]
        return size

    def close(self) -> None:
        if not self.closed and self._on_close is not None:
            self._on_close()
        super().close()


class StreamMaterializer:
    """
    Copy a stream fully into a uniquely named temporary file.

    The returned file is positioned at offset 0. The source stream is closed
    on every exit path. When the copy fails the partially written temporary
    file stays on disk; cleaning it up is left to the caller / OS temp cleanup.
    """

    def __init__(self, temp_dir: Optional[str] = None, prefix: str = "omnistore", chunk_size: int = 1024 * 1024):
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self.temp_dir = temp_dir
        self.prefix = prefix
        self.chunk_size = chunk_size

    def materialize(self, stream: BinaryIO, suffix: str = "", path: Optional[str] = None) -> BinaryIO:
        """
        Args:
            stream: readable provider stream, closed by this method
            suffix: temp file suffix, usually the object's extension
            path: object path, used for error context only

        Returns:
            seekable temp file opened in ``w+b`` mode at offset 0
        """
        try:
            temp_file = tempfile.NamedTemporaryFile(
                mode="w+b",
                prefix=self.prefix,
                suffix=suffix,
                dir=self.temp_dir,
                delete=False,
            )
        except OSError as e:
            close_stream(stream)
            raise TransferError(f"Failed to create temp file: {e}", path=path) from e

        try:
            shutil.copyfileobj(stream, temp_file, self.chunk_size)
            temp_file.flush()
            temp_file.seek(0)
        except StorageError:
            temp_file.close()
            logger.error(f"❌ 文件落盘中断, 临时文件保留: {temp_file.name}")
            raise
        except Exception as e:
            temp_file.close()
            logger.error(f"❌ 文件落盘中断, 临时文件保留: {temp_file.name}: {e}")
            raise TransferError(f"Copy to temp file interrupted: {e}", path=path) from e
        finally:
            close_stream(stream)

        logger.debug(f"文件已落盘: {path or ''} → {temp_file.name}")
        return temp_file
