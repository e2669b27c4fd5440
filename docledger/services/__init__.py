"""Service layer for the docledger chaincode."""
from docledger.services.contract import SmartContract
from docledger.services.host import ChaincodeHost
from docledger.services.ledger_client import DocLedgerApiError, DocLedgerClient

__all__ = ["ChaincodeHost", "DocLedgerApiError", "DocLedgerClient", "SmartContract"]
