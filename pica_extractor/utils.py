"""
Utility functions for opening and reading record sources.
"""

import codecs
import gzip
import io
import sys

from pathlib import Path
from typing import IO, Iterator, Tuple, Union

from .exceptions import SourceIOError


GZIP_MAGIC = b"\x1f\x8b"

# Undecodable bytes are kept as lone surrogates (U+DC80..U+DCFF) so codecs can reject single records
DECODE_ERRORS = "surrogateescape"


class SourceUtils:
    """Helpers turning paths, byte strings and streams into chunk iterators."""

    @staticmethod
    def open_source(source: Union[str, Path, bytes, IO]) -> Tuple[IO, bool]:
        """
        Open a record source for reading.

        Paths may point to gzip-compressed files (detected by content, not name);
        '-' stands for standard input. Byte strings are wrapped in a stream.

        Args:
            source: Path, '-', bytes, or an already open stream

        Returns:
            Tuple of (stream, owned) where owned tells whether the caller must close it

        Raises:
            SourceIOError: If a path cannot be opened
        """
        if isinstance(source, (bytes, bytearray)):
            return io.BytesIO(bytes(source)), True

        if isinstance(source, (str, Path)):
            if str(source) == "-":
                return sys.stdin.buffer, False
            path = Path(source)
            try:
                with open(path, "rb") as probe:
                    magic = probe.read(2)
                if magic == GZIP_MAGIC:
                    return gzip.open(path, "rb"), True
                return open(path, "rb"), True
            except OSError as e:
                raise SourceIOError(f"Cannot open {path}: {e}", source=str(path))

        if hasattr(source, "read"):
            return source, False

        raise SourceIOError(f"Unsupported source type: {type(source).__name__}")

    @staticmethod
    def iter_text_chunks(stream: IO, chunk_size: int, encoding: str = "utf-8") -> Iterator[str]:
        """
        Read a stream as decoded text chunks.

        Binary streams are decoded incrementally so multi-byte characters split
        across chunk boundaries survive; the stream itself is left open.
        Bytes that are not valid in the encoding come through as surrogate
        escapes (see has_undecodable) rather than failing the whole source.

        Raises:
            SourceIOError: On read errors
        """
        decoder = None
        try:
            while True:
                chunk = stream.read(chunk_size)
                if not chunk:
                    break
                if isinstance(chunk, str):
                    yield chunk
                    continue
                if decoder is None:
                    decoder = codecs.getincrementaldecoder(encoding)(errors=DECODE_ERRORS)
                text = decoder.decode(chunk)
                if text:
                    yield text
            if decoder is not None:
                tail = decoder.decode(b"", final=True)
                if tail:
                    yield tail
        except (OSError, EOFError) as e:
            raise SourceIOError(f"Failed to read source: {e}")

    @staticmethod
    def has_undecodable(text: str) -> bool:
        """Tell whether text holds bytes that could not be decoded when it was read."""
        return any("\udc80" <= char <= "\udcff" for char in text)

    @staticmethod
    def iter_byte_chunks(stream: IO, chunk_size: int, encoding: str = "utf-8") -> Iterator[bytes]:
        """
        Read a stream as byte chunks, encoding text streams.

        Raises:
            SourceIOError: On read errors
        """
        try:
            while True:
                chunk = stream.read(chunk_size)
                if not chunk:
                    break
                yield chunk.encode(encoding) if isinstance(chunk, str) else chunk
        except (OSError, EOFError) as e:
            raise SourceIOError(f"Failed to read source: {e}")
