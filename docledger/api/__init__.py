"""HTTP API for the chaincode host."""
from docledger.api.routes import router

__all__ = ["router"]
