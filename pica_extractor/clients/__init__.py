"""Clients for remote PICA+ sources (SRU) and stores (webcat SOAP API)."""

from .sru_client import SRUClient
from .soap_client import StoreResult, WebcatClient

__all__ = ['SRUClient', 'StoreResult', 'WebcatClient']
