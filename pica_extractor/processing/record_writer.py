"""
Record writer - serializes records and fields and keeps output statistics.

The output format is a codec chosen by name ('normalized', 'plain', 'xml').
Without an output the writer runs in null mode: everything is encoded and
counted, nothing is written. This is what statistics-only runs use.
"""

import logging
import sys

from collections import Counter
from pathlib import Path
from typing import IO, Optional, Union

from ..config.processing_defaults import ProcessingDefaults
from ..exceptions import InvalidCharacterError, SourceIOError
from ..models import Field, Record, WriterSummary
from ..parsing import get_codec


class _OutputSink:
    """Uniform text write() over text streams, binary streams, or nothing."""

    def __init__(self, stream: Optional[IO], encoding: str):
        self.stream = stream
        self.encoding = encoding
        self.binary = stream is not None and not hasattr(stream, "encoding")

    def write(self, text: str) -> None:
        if self.stream is None or not text:
            return
        if self.binary:
            self.stream.write(text.encode(self.encoding))
        else:
            self.stream.write(text)

    def flush(self) -> None:
        if self.stream is not None:
            self.stream.flush()


class PicaWriter:
    """
    Writer for PICA+ records and standalone fields.

    Counters:
    - counter: records written
    - fields: fields written (fields of records plus standalone fields)
    - field_statistics: tag -> number of fields with that tag
    - record_statistics: tag -> number of records with at least one such field
    Statistics are only gathered when enabled.
    """

    def __init__(self,
                 output: Optional[Union[str, Path, IO]] = None,
                 format: str = ProcessingDefaults.OUTPUT_FORMAT,
                 pretty: bool = False,
                 statistics: bool = False,
                 skip_invalid: bool = False,
                 encoding: str = ProcessingDefaults.ENCODING):
        """
        Initialize the writer.

        Args:
            output: Path ('-' for stdout), text or binary stream, or None for null mode
            format: Output format name
            pretty: Insert line breaks for readability (XML)
            statistics: Collect per-tag statistics
            skip_invalid: Log and count records or fields with values that cannot be
                represented instead of raising InvalidCharacterError
            encoding: Encoding used for paths and binary streams

        Raises:
            SourceIOError: If an output path cannot be opened
            ConfigurationError: If the format is unknown
        """
        self.logger = logging.getLogger(__name__)
        self.codec = get_codec(format, pretty=pretty)
        self.statistics = statistics
        self.skip_invalid = skip_invalid
        self.summary = WriterSummary()
        self._owned = False
        self._started = False
        self._ended = False

        stream = None
        if isinstance(output, (str, Path)):
            if str(output) == "-":
                stream = sys.stdout
            else:
                try:
                    stream = open(output, "w", encoding=encoding, newline="")
                except OSError as e:
                    raise SourceIOError(f"Cannot open output {output}: {e}", source=str(output))
                self._owned = True
        elif output is not None:
            stream = output
        self._sink = _OutputSink(stream, encoding)

        if stream is None:
            self.logger.debug("Writer in null mode: output is discarded")

    @property
    def is_null(self) -> bool:
        return self._sink.stream is None

    @property
    def counter(self) -> int:
        return self.summary.records_written

    @property
    def fields(self) -> int:
        return self.summary.fields_written

    @property
    def field_statistics(self) -> Counter:
        return self.summary.field_statistics

    @property
    def record_statistics(self) -> Counter:
        return self.summary.record_statistics

    def start(self) -> None:
        """Write the document header (once, before the first item)."""
        if not self._started:
            self._started = True
            self.codec.start_document(self._sink)

    def end(self) -> None:
        """Write the document footer (once, after the last item)."""
        if self._started and not self._ended:
            self._ended = True
            self.codec.end_document(self._sink)

    def write(self, *items: Union[Record, Field]) -> None:
        """Write any mix of records and fields."""
        for item in items:
            if isinstance(item, Record):
                self.write_record(item)
            elif isinstance(item, Field):
                self.write_field(item)
            else:
                raise TypeError(f"Cannot write object of type {type(item).__name__}")

    def write_record(self, record: Record) -> None:
        """
        Write one record.

        Fields without subfields have no encoded form and are skipped.

        Raises:
            InvalidCharacterError: If a value cannot be represented in the output
                format (unless the writer was created with skip_invalid)
        """
        try:
            text = self.codec.encode_record(record)
        except InvalidCharacterError as e:
            if not self.skip_invalid:
                raise
            self.summary.records_rejected += 1
            self.logger.warning(f"Record {record.ppn or '#' + str(self.counter + 1)} not written: {e}")
            return
        self.start()
        self._sink.write(text + self.codec.record_separator)
        self.summary.records_written += 1

        written = [pica_field for pica_field in record.fields if pica_field.subfields]
        skipped = len(record.fields) - len(written)
        if skipped:
            self.summary.fields_skipped += skipped
            self.logger.debug(f"Record {record.ppn}: {skipped} fields without subfields skipped")
        self.summary.fields_written += len(written)

        if self.statistics:
            tags = set()
            for pica_field in written:
                self.summary.field_statistics[pica_field.tag] += 1
                tags.add(pica_field.tag)
            for tag in tags:
                self.summary.record_statistics[tag] += 1

    def write_field(self, pica_field: Field) -> None:
        """Write one field outside of any record."""
        if not pica_field.subfields:
            self.summary.fields_skipped += 1
            self.logger.debug(f"Field {pica_field.full_tag} without subfields skipped")
            return
        try:
            text = self.codec.encode_field(pica_field)
        except InvalidCharacterError as e:
            if not self.skip_invalid:
                raise
            self.summary.fields_rejected += 1
            self.logger.warning(f"Field {pica_field.full_tag} not written: {e}")
            return
        self.start()
        self._sink.write(text)
        self.summary.fields_written += 1
        if self.statistics:
            self.summary.field_statistics[pica_field.tag] += 1

    def close(self) -> WriterSummary:
        """Finish the document, flush and release an output opened by the writer."""
        self.end()
        self._sink.flush()
        if self._owned:
            self._sink.stream.close()
            self._owned = False
        self.logger.debug(f"Writer closed: {self.summary.records_written} records, "
                          f"{self.summary.fields_written} fields")
        return self.summary

    def __enter__(self) -> 'PicaWriter':
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()
