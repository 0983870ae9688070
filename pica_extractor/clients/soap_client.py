"""
Webcat client - read and write access to a CBS record store via its SOAP API.

Requests are SOAP 1.1 calls in the webcat namespace; records travel as plain
PICA+ ('pp' format). Every operation returns a StoreResult holding either
the response values (id, record, version) or an error code and message,
mirroring the store's own fault reporting.
"""

import logging

from dataclasses import dataclass
from typing import List, Optional, Tuple, Union

import requests

from lxml import etree

from ..config.config_manager import WebcatConfig
from ..exceptions import ConfigurationError, StoreError
from ..interfaces import RecordStoreInterface
from ..models import Record
from ..parsing.text_codec import PlainCodec


WEBCAT_NAMESPACE = "http://www.gbv.de/schema/webcat-1.0"
SOAP_ENVELOPE_NAMESPACE = "http://schemas.xmlsoap.org/soap/envelope/"
XSI_NAMESPACE = "http://www.w3.org/2001/XMLSchema-instance"

RECORD_FORMAT = "pp"
AUTHORITY_TYPE_TAG = "002@"


@dataclass
class StoreResult:
    """
    Outcome of a webcat operation.

    Attributes:
        id: Record identifier (ppn) returned by the store
        record: Record returned by the store
        version: Record version for optimistic locking on update
        error_code: Fault code, set when the operation failed
        error_message: Fault description, set when the operation failed
    """
    id: Optional[str] = None
    record: Optional[Record] = None
    version: Optional[str] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error_code is None


class WebcatClient(RecordStoreInterface):
    """SOAP client for the CBS webcat store API (get, create, update, delete)."""

    def __init__(self,
                 webcat_url: str,
                 userkey: str = "",
                 password: str = "",
                 dbsid: str = "",
                 language: str = "en",
                 timeout: int = 30,
                 session: Optional[requests.Session] = None):
        """
        Initialize the client.

        Args:
            webcat_url: SOAP endpoint of the store
            userkey: User name
            password: Password
            dbsid: Database id
            language: Language of error messages ('de', 'en', 'fr' or 'ne')
            timeout: Seconds per request
            session: Optional requests session (for connection reuse or testing)

        Raises:
            ConfigurationError: If no endpoint is given
        """
        if not webcat_url:
            raise ConfigurationError("Missing SOAP base url (webcat)")
        self.logger = logging.getLogger(__name__)
        self.webcat_url = webcat_url
        self.userkey = userkey or ""
        self.password = password or ""
        self.dbsid = dbsid or ""
        self.language = language or "en"
        self.timeout = timeout
        self.session = session or requests.Session()
        self.codec = PlainCodec()

    @classmethod
    def from_config(cls, config: WebcatConfig, session: Optional[requests.Session] = None) -> 'WebcatClient':
        return cls(config.webcat_url, config.userkey, config.password, config.dbsid,
                   config.language, config.timeout, session)

    def access(self, userkey: Optional[str] = None, password: Optional[str] = None,
               dbsid: Optional[str] = None, language: Optional[str] = None) -> 'WebcatClient':
        """Set access parameters; returns the client so calls can be chained."""
        if userkey is not None:
            self.userkey = userkey
        if password is not None:
            self.password = password
        if dbsid is not None:
            self.dbsid = dbsid
        if language is not None:
            self.language = language
        return self

    def about(self) -> str:
        return f"CWS Webcat: {self.webcat_url}"

    def get(self, ppn: str) -> StoreResult:
        """Retrieve a record by its ppn."""
        return self._soap_query("get", [("ppn", ppn)])

    def create(self, record: Record) -> StoreResult:
        """
        Insert a new record. Authority records (002@ $0 starting with 'T')
        are created as 'entry', everything else as 'title'.
        """
        if not isinstance(record, Record):
            raise StoreError("create needs a Record object")
        record_type = "title"
        type_code = record.first_subfield_value(AUTHORITY_TYPE_TAG, "0")
        if type_code and type_code.startswith("T"):
            record_type = "entry"
        return self._soap_query("create", [("record", self.codec.encode_record(record)),
                                           ("rectype", record_type)])

    def update(self, ppn: Union[str, Record], record: Optional[Union[Record, str]] = None,
               version: Optional[str] = None) -> StoreResult:
        """
        Update a record.

        Either update(ppn, record[, version]) or update(record[, version]); in
        the second form the ppn is taken from the record and the record is sent
        without its identifier field. Without a version the current one is
        fetched first.
        """
        if isinstance(ppn, Record):
            version = record
            record = ppn
            ppn = record.ppn
            payload = Record([f for f in record.fields if f.tag != "003@"])
        elif isinstance(record, Record):
            payload = record
        else:
            raise StoreError("update needs an ID and a Record object")

        if version is None:
            current = self.get(ppn)
            if not current.version:
                return current
            version = current.version

        return self._soap_query("update", [("ppn", ppn),
                                           ("record", self.codec.encode_record(payload)),
                                           ("version", version)])

    def delete(self, ppn: str) -> StoreResult:
        return self._soap_query("delete", [("ppn", ppn)])

    def build_envelope(self, operation: str, params: List[Tuple[str, str]]) -> bytes:
        """Build the SOAP request document for an operation."""
        params = list(params)
        if operation != "delete":
            params.append(("format", RECORD_FORMAT))
        params.extend([("dbsid", self.dbsid), ("userkey", self.userkey), ("language", self.language)])
        if self.password is not None:
            params.append(("password", self.password))

        envelope = etree.Element(f"{{{SOAP_ENVELOPE_NAMESPACE}}}Envelope",
                                 nsmap={"soap": SOAP_ENVELOPE_NAMESPACE, "xsi": XSI_NAMESPACE,
                                        "xsd": "http://www.w3.org/2001/XMLSchema"})
        body = etree.SubElement(envelope, f"{{{SOAP_ENVELOPE_NAMESPACE}}}Body")
        call = etree.SubElement(body, f"{{{WEBCAT_NAMESPACE}}}{operation}", nsmap={"wc": WEBCAT_NAMESPACE})
        for name, value in params:
            element = etree.SubElement(call, name)
            element.set(f"{{{XSI_NAMESPACE}}}type", "xsd:string")
            element.text = "" if value is None else str(value)
        return etree.tostring(envelope, xml_declaration=True, encoding="UTF-8")

    def _soap_query(self, operation: str, params: List[Tuple[str, str]]) -> StoreResult:
        """Send a SOAP request and evaluate the response into a StoreResult."""
        try:
            envelope = self.build_envelope(operation, params)
        except ValueError as e:
            raise StoreError(f"Cannot build '{operation}' request: {e}")

        headers = {
            "Content-Type": "text/xml; charset=utf-8",
            "SOAPAction": f'"{WEBCAT_NAMESPACE}#{operation}"',
        }
        try:
            response = self.session.post(self.webcat_url, data=envelope, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            self.logger.error(f"SOAP operation '{operation}' failed: {e}")
            return StoreResult(error_code="1", error_message=f"No response to SOAP operation '{operation}'.")

        if not response.content:
            return StoreResult(error_code="1", error_message=f"No response to SOAP operation '{operation}'.")

        try:
            document = etree.fromstring(response.content,
                                        etree.XMLParser(resolve_entities=False, no_network=True))
        except etree.XMLSyntaxError as e:
            self.logger.error(f"Malformed SOAP response to '{operation}' (HTTP {response.status_code}): {e}")
            return StoreResult(error_code=str(response.status_code),
                               error_message=f"Malformed response to SOAP operation '{operation}'.")

        return self._evaluate(document)

    def _evaluate(self, document) -> StoreResult:
        fault = document.find(f".//{{{SOAP_ENVELOPE_NAMESPACE}}}Fault")
        if fault is not None:
            return StoreResult(error_code=self._text(fault, "faultcode"),
                               error_message=(self._text(fault, "faultstring") or "").rstrip("\n"))

        result = StoreResult(id=self._value(document, "ppn"), version=self._value(document, "version"))
        record_data = self._value(document, "record")
        if record_data is not None:
            lines = [line for line in record_data.splitlines() if line.strip()]
            decoded = self.codec.decode_record(lines)
            if decoded.record is None:
                result.error_code = "1"
                result.error_message = f"Malformed record in response: {decoded.errors[0]}"
            else:
                for error in decoded.errors:
                    self.logger.warning(f"Dropped malformed field from store record: {error}")
                result.record = decoded.record
        return result

    @staticmethod
    def _value(document, name: str) -> Optional[str]:
        found = document.xpath(f"//*[local-name()='{name}']")
        if not found:
            return None
        return found[0].text or ""

    @staticmethod
    def _text(element, name: str) -> Optional[str]:
        found = element.xpath(f"./*[local-name()='{name}']")
        return (found[0].text or "") if found else None
