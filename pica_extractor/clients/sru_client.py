"""
SRU client - retrieves PICA XML records from an SRU endpoint.

Each searchRetrieve response is handed to an SRUSearchParser; the decoded
records are yielded page by page, so a consumer that stops early (for
example a PicaParser whose limit is reached) stops further requests too.
"""

import logging

from typing import Any, Dict, Iterator, Optional

import requests

from ..config.config_manager import SRUConfig
from ..config.processing_defaults import ProcessingDefaults
from ..exceptions import ConfigurationError, SourceIOError
from ..models import DecodeResult
from ..parsing.sru_parser import SRUSearchParser


class SRUClient:
    """
    Paging SRU searchRetrieve client.

    Attributes:
        number_of_records: Result set size declared by the last response
        result_set_id: Result set identifier from the last response
        requests_made: Number of HTTP requests sent
    """

    def __init__(self,
                 base_url: str,
                 record_schema: str = ProcessingDefaults.SRU_RECORD_SCHEMA,
                 version: str = ProcessingDefaults.SRU_VERSION,
                 page_size: int = ProcessingDefaults.SRU_PAGE_SIZE,
                 timeout: int = ProcessingDefaults.REQUEST_TIMEOUT,
                 session: Optional[requests.Session] = None):
        if not base_url:
            raise ConfigurationError("Missing SRU base url")
        if page_size <= 0:
            raise ConfigurationError("SRU page size must be positive")
        self.logger = logging.getLogger(__name__)
        self.base_url = base_url
        self.record_schema = record_schema
        self.version = version
        self.page_size = page_size
        self.timeout = timeout
        self.session = session or requests.Session()

        self.number_of_records: Optional[str] = None
        self.result_set_id: Optional[str] = None
        self.requests_made = 0

    @classmethod
    def from_config(cls, config: SRUConfig, session: Optional[requests.Session] = None) -> 'SRUClient':
        return cls(config.base_url, config.record_schema, config.version,
                   config.page_size, config.timeout, session)

    def build_params(self, query: str, start_record: int, maximum_records: int) -> Dict[str, Any]:
        return {
            'version': self.version,
            'operation': 'searchRetrieve',
            'query': query,
            'recordSchema': self.record_schema,
            'startRecord': start_record,
            'maximumRecords': maximum_records,
        }

    def fetch_page(self, query: str, start_record: int, maximum_records: int) -> bytes:
        """
        Send one searchRetrieve request.

        Raises:
            SourceIOError: On connection errors and HTTP error statuses
        """
        params = self.build_params(query, start_record, maximum_records)
        self.logger.debug(f"SRU request {self.base_url} startRecord={start_record} maximumRecords={maximum_records}")
        try:
            response = self.session.get(self.base_url, params=params, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            self.logger.error(f"SRU request failed: {e}")
            raise SourceIOError(f"SRU request to {self.base_url} failed: {e}", source=self.base_url)
        self.requests_made += 1
        return response.content

    def search(self, query: str, limit: Optional[int] = None) -> Iterator[DecodeResult]:
        """
        Yield decoded records for a CQL query, requesting further pages as needed.

        Paging stops at the declared number of records, at the first page
        without records, or after `limit` records.

        Raises:
            SourceIOError: If a request fails
            XMLParsingError: If a response is not well-formed
        """
        sru_parser = SRUSearchParser()
        start_record = 1
        delivered = 0
        self.number_of_records = None
        self.result_set_id = None

        while limit is None or delivered < limit:
            page_size = self.page_size if limit is None else min(self.page_size, limit - delivered)
            results = sru_parser.parse(self.fetch_page(query, start_record, page_size))
            self.number_of_records = sru_parser.number_of_records
            self.result_set_id = sru_parser.result_set_id
            if sru_parser.skipped_fields:
                self.logger.info(f"Skipped {sru_parser.skipped_fields} fields with empty tag so far")

            for result in results:
                yield result
                delivered += 1
                if limit is not None and delivered >= limit:
                    return

            if sru_parser.current_number == 0:
                break
            start_record += sru_parser.current_number
            total = self._total()
            if total is not None and start_record > total:
                break

        self.logger.info(f"SRU search finished: {delivered} records, numberOfRecords={self.number_of_records}")

    def _total(self) -> Optional[int]:
        try:
            return int(self.number_of_records)
        except (TypeError, ValueError):
            return None
