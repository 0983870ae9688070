"""
Record parser driver - handler-based processing of PICA+ sources.

The parser pulls raw records from one source at a time (a file, a stream, a
byte string, or an already decoded sequence such as an SRU result), passes
every field of every decoded record through an optional field handler and
every record through an optional record handler, and stops pulling input
once its limit is reached. Counters accumulate across sequential sources so
that a run over several inputs reports totals.
"""

import logging

from pathlib import Path
from typing import Callable, IO, Iterable, Iterator, List, Optional, Tuple, Union

from ..config.processing_defaults import ProcessingDefaults
from ..exceptions import PicaExtractionError
from ..models import DecodeResult, Field, ParserSummary, Record
from ..parsing import get_codec
from ..utils import SourceUtils


FieldHandler = Callable[[Field], Optional[Field]]
RecordHandler = Callable[[Record], None]
ErrorHandler = Callable[[PicaExtractionError], None]

Source = Union[str, Path, bytes, IO, Iterable[Union[DecodeResult, Record]]]


class PicaParser:
    """
    Handler-driven PICA+ parser.

    Features:
    - Same handler pipeline for normalized, plain and XML input and for SRU results
    - Malformed fields and records are reported to the error handler and skipped
    - Limit: None means unlimited; any limit <= 0 means the default of 10
    - Offset: the first N well-formed records are counted but not emitted
    - Counters accumulate over successive parse() calls until reset_counters()
    """

    def __init__(self,
                 field_handler: Optional[FieldHandler] = None,
                 record_handler: Optional[RecordHandler] = None,
                 error_handler: Optional[ErrorHandler] = None,
                 limit: Optional[int] = None,
                 offset: int = 0,
                 collect: bool = False,
                 chunk_size: int = ProcessingDefaults.CHUNK_SIZE,
                 encoding: str = ProcessingDefaults.ENCODING):
        """
        Initialize the parser.

        Args:
            field_handler: Called once per field; returns the (possibly modified)
                field, or None to drop it from the record
            record_handler: Called once per emitted record, after field handling
            error_handler: Called with every MalformedFieldError/MalformedRecordError;
                defaults to logging a warning
            limit: Maximum number of records to emit (None = unlimited, <= 0 = 10)
            offset: Number of well-formed records to skip before emitting
            collect: Keep emitted records in self.records
            chunk_size: Bytes read per chunk from streams
            encoding: Character encoding of text input
        """
        self.logger = logging.getLogger(__name__)
        self.field_handler = field_handler
        self.record_handler = record_handler
        self.error_handler = error_handler or self._log_error
        self.limit = self.normalize_limit(limit)
        self.offset = max(0, offset or 0)
        self.collect = collect
        self.chunk_size = chunk_size
        self.encoding = encoding

        self.summary = ParserSummary()
        self.records: List[Record] = []
        self._skipped = 0

    @staticmethod
    def normalize_limit(limit: Optional[int]) -> Optional[int]:
        """Map a requested limit to the effective one (None stays unlimited)."""
        if limit is None:
            return None
        limit = int(limit)
        return ProcessingDefaults.LIMIT if limit <= 0 else limit

    @property
    def counter(self) -> int:
        """Records processed so far, including malformed ones."""
        return self.summary.records_processed

    @property
    def emitted(self) -> int:
        return self.summary.records_emitted

    @property
    def limit_reached(self) -> bool:
        return self.limit is not None and self.summary.records_emitted >= self.limit

    def reset_counters(self) -> None:
        self.summary = ParserSummary()
        self.records = []
        self._skipped = 0

    def parse(self, source: Source, format: str = ProcessingDefaults.INPUT_FORMAT) -> 'PicaParser':
        """
        Parse one source, invoking the handlers for every emitted record.

        Args:
            source: Path (gzip allowed), '-' for stdin, bytes, binary/text stream,
                or an iterable of DecodeResult/Record objects
            format: 'normalized', 'plain' or 'xml' (ignored for decoded sequences)

        Returns:
            The parser itself, so counters can be read off the call

        Raises:
            SourceIOError: If the source cannot be opened or read
            XMLParsingError: If an XML document is not well-formed
        """
        for record in self.iter_records(source, format):
            if self.record_handler is not None:
                self.record_handler(record)
            if self.collect:
                self.records.append(record)
        return self

    def parse_data(self, data: Union[str, bytes], format: str = ProcessingDefaults.INPUT_FORMAT) -> 'PicaParser':
        """Parse records held in memory."""
        if isinstance(data, str):
            data = data.encode(self.encoding)
        return self.parse(data, format)

    def iter_records(self, source: Source, format: str = ProcessingDefaults.INPUT_FORMAT) -> Iterator[Record]:
        """
        Yield emitted records of one source, after field handling.

        Input is pulled lazily; once the limit is reached no further input is
        read and the remainder of the source is left untouched.
        """
        if self.limit_reached:
            self.logger.debug("Limit already reached, source not read")
            return

        results, stream, owned = self._open_results(source, format)
        before = self.summary.records_processed
        try:
            for result in results:
                record = self._process_result(result)
                if record is None:
                    continue
                yield record
                if self.limit_reached:
                    self.logger.info(f"Limit of {self.limit} records reached")
                    break
        finally:
            if owned:
                stream.close()
            self.logger.debug(f"Source done: {self.summary.records_processed - before} records processed")

    def _open_results(self, source: Source, format: str) -> Tuple[Iterator[DecodeResult], Optional[IO], bool]:
        if self._is_decoded_sequence(source):
            return (self._as_result(item) for item in source), None, False

        codec = get_codec(format)
        stream, owned = SourceUtils.open_source(source)
        if codec.binary:
            chunks = SourceUtils.iter_byte_chunks(stream, self.chunk_size, self.encoding)
        else:
            chunks = SourceUtils.iter_text_chunks(stream, self.chunk_size, self.encoding)
        return codec.decode(chunks), stream, owned

    @staticmethod
    def _is_decoded_sequence(source: Source) -> bool:
        if isinstance(source, (str, bytes, bytearray, Path)) or hasattr(source, "read"):
            return False
        return hasattr(source, "__iter__")

    @staticmethod
    def _as_result(item: Union[DecodeResult, Record]) -> DecodeResult:
        if isinstance(item, Record):
            return DecodeResult(record=item)
        return item

    def _process_result(self, result: DecodeResult) -> Optional[Record]:
        self.summary.records_processed += 1
        for error in result.errors:
            self.error_handler(error)

        if result.record is None:
            self.summary.records_malformed += 1
            return None
        self.summary.fields_malformed += len(result.errors)

        if self._skipped < self.offset:
            self._skipped += 1
            return None

        record = self._apply_field_handler(result.record)
        self.summary.records_emitted += 1
        if record.is_empty():
            self.summary.records_empty += 1
        return record

    def _apply_field_handler(self, record: Record) -> Record:
        if self.field_handler is None:
            return record
        kept = []
        for pica_field in record.fields:
            handled = self.field_handler(pica_field)
            if handled is not None:
                kept.append(handled)
        record.fields = kept
        return record

    def _log_error(self, error: PicaExtractionError) -> None:
        self.logger.warning(f"{type(error).__name__} in record {error.source_record_id}: {error}")
