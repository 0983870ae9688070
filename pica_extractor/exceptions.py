"""
Custom exceptions for the PICA+ extraction system.

This module defines specific exception types for the error conditions
that can occur while decoding, encoding and retrieving PICA+ records.
"""


class PicaExtractionError(Exception):
    """Base exception for all PICA+ extraction related errors."""

    def __init__(self, message: str, source_record_id: str = None):
        """
        Initialize PICA+ extraction error.

        Args:
            message: Error description
            source_record_id: Optional identifier (ppn or position) of the record that caused the error
        """
        super().__init__(message)
        self.source_record_id = source_record_id


class MalformedFieldError(PicaExtractionError):
    """Exception raised when a single field cannot be decoded."""

    def __init__(self, message: str, field_data: str = None, source_record_id: str = None):
        """
        Initialize malformed field error.

        Args:
            message: Error description
            field_data: Optional raw field content that failed to decode
            source_record_id: Optional identifier of the source record
        """
        super().__init__(message, source_record_id)
        self.field_data = field_data


class MalformedRecordError(PicaExtractionError):
    """Exception raised when a record cannot be decoded at all."""

    def __init__(self, message: str, record_data: str = None, source_record_id: str = None):
        """
        Initialize malformed record error.

        Args:
            message: Error description
            record_data: Optional raw record content (truncated for logging)
            source_record_id: Optional identifier of the source record
        """
        super().__init__(message, source_record_id)
        # Keep only the first 200 chars of the raw record for debugging
        self.record_data = record_data[:200] + "..." if record_data and len(record_data) > 200 else record_data


class InvalidCharacterError(PicaExtractionError):
    """Exception raised when a value contains a structural marker that cannot be serialized."""

    def __init__(self, message: str, value: str = None, source_record_id: str = None):
        super().__init__(message, source_record_id)
        self.value = value


class SourceIOError(PicaExtractionError):
    """Exception raised when a source (file, stream, remote service) cannot be opened or read."""

    def __init__(self, message: str, source: str = None):
        super().__init__(message)
        self.source = source


class XMLParsingError(PicaExtractionError):
    """Exception raised when an XML document (record or envelope) is not well-formed."""

    def __init__(self, message: str, xml_content: str = None, source_record_id: str = None):
        """
        Initialize XML parsing error.

        Args:
            message: Error description
            xml_content: Optional XML content that failed to parse (truncated for logging)
            source_record_id: Optional identifier of the source record
        """
        super().__init__(message, source_record_id)
        self.xml_content = xml_content[:500] + "..." if xml_content and len(xml_content) > 500 else xml_content


class ConfigurationError(PicaExtractionError):
    """Exception raised when configuration is invalid or missing."""
    pass


class StoreError(PicaExtractionError):
    """Exception raised when a record store request cannot be built or sent."""

    def __init__(self, message: str, error_code: str = None):
        super().__init__(message)
        self.error_code = error_code
