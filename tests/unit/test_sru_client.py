"""
Unit tests for SRUClient paging, with a mocked HTTP session.
"""

import unittest
from unittest.mock import MagicMock

import requests

from pica_extractor.clients.sru_client import SRUClient
from pica_extractor.config.config_manager import SRUConfig
from pica_extractor.exceptions import ConfigurationError, SourceIOError


def sru_page(ppns, number_of_records):
    records = "".join(
        '<srw:record><srw:recordData><record xmlns="info:srw/schema/5/picaXML-v1.0">'
        f'<datafield tag="003@"><subfield code="0">{ppn}</subfield></datafield>'
        '</record></srw:recordData></srw:record>'
        for ppn in ppns
    )
    return (
        '<srw:searchRetrieveResponse xmlns:srw="http://www.loc.gov/zing/srw/">'
        f'<srw:numberOfRecords>{number_of_records}</srw:numberOfRecords>'
        '<srw:resultSetId>rs1</srw:resultSetId>'
        f'<srw:records>{records}</srw:records>'
        '</srw:searchRetrieveResponse>'
    ).encode('utf-8')


def mock_session(*pages):
    """Session whose get() returns the given response bodies in order."""
    session = MagicMock()
    responses = []
    for page in pages:
        response = MagicMock()
        response.content = page
        response.raise_for_status.return_value = None
        responses.append(response)
    session.get.side_effect = responses
    return session


class TestSRUClient(unittest.TestCase):
    """Test searchRetrieve requests and paging."""

    def test_requires_base_url(self):
        with self.assertRaises(ConfigurationError):
            SRUClient("")

    def test_requires_positive_page_size(self):
        with self.assertRaises(ConfigurationError):
            SRUClient("https://sru.example.org/db", page_size=0)

    def test_request_parameters(self):
        session = mock_session(sru_page(["1"], 1))
        client = SRUClient("https://sru.example.org/db", page_size=5, timeout=7, session=session)
        list(client.search("pica.tit=python"))

        args, kwargs = session.get.call_args
        self.assertEqual(args[0], "https://sru.example.org/db")
        self.assertEqual(kwargs['timeout'], 7)
        self.assertEqual(kwargs['params']['operation'], 'searchRetrieve')
        self.assertEqual(kwargs['params']['query'], 'pica.tit=python')
        self.assertEqual(kwargs['params']['recordSchema'], 'picaxml')
        self.assertEqual(kwargs['params']['startRecord'], 1)
        self.assertEqual(kwargs['params']['maximumRecords'], 5)

    def test_pages_until_declared_total(self):
        session = mock_session(sru_page(["1", "2"], 5), sru_page(["3", "4"], 5), sru_page(["5"], 5))
        client = SRUClient("https://sru.example.org/db", page_size=2, session=session)
        ppns = [result.record.ppn for result in client.search("x")]

        self.assertEqual(ppns, ["1", "2", "3", "4", "5"])
        self.assertEqual(session.get.call_count, 3)
        start_records = [c.kwargs['params']['startRecord'] for c in session.get.call_args_list]
        self.assertEqual(start_records, [1, 3, 5])
        self.assertEqual(client.number_of_records, "5")
        self.assertEqual(client.result_set_id, "rs1")

    def test_stops_at_empty_page(self):
        session = mock_session(sru_page(["1"], 10), sru_page([], 10))
        client = SRUClient("https://sru.example.org/db", page_size=1, session=session)
        self.assertEqual(len(list(client.search("x"))), 1)
        self.assertEqual(session.get.call_count, 2)

    def test_limit_stops_requests(self):
        session = mock_session(sru_page(["1", "2", "3"], 100))
        client = SRUClient("https://sru.example.org/db", page_size=10, session=session)
        ppns = [result.record.ppn for result in client.search("x", limit=2)]

        self.assertEqual(ppns, ["1", "2"])
        self.assertEqual(session.get.call_count, 1)
        self.assertEqual(session.get.call_args.kwargs['params']['maximumRecords'], 2)

    def test_request_failure(self):
        session = MagicMock()
        session.get.side_effect = requests.ConnectionError("connection refused")
        client = SRUClient("https://sru.example.org/db", session=session)
        with self.assertRaises(SourceIOError):
            list(client.search("x"))

    def test_http_error_status(self):
        response = MagicMock()
        response.raise_for_status.side_effect = requests.HTTPError("500 Server Error")
        session = MagicMock()
        session.get.return_value = response
        client = SRUClient("https://sru.example.org/db", session=session)
        with self.assertRaises(SourceIOError):
            list(client.search("x"))
        self.assertEqual(client.requests_made, 0)

    def test_from_config(self):
        config = SRUConfig(base_url="https://sru.example.org/db", page_size=25)
        client = SRUClient.from_config(config, session=MagicMock())
        self.assertEqual(client.page_size, 25)
        self.assertEqual(client.base_url, "https://sru.example.org/db")


if __name__ == '__main__':
    unittest.main()
