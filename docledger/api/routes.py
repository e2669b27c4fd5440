"""API route handlers for the chaincode host."""
import threading

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from docledger.database import get_db
from docledger.encoding import to_utf8
from docledger.ledger import LedgerBackend
from docledger.ledger.sql import SqlBackend
from docledger.logging import get_logger
from docledger.schemas import InitRequest, InvokeRequest, InvokeResponse
from docledger.services.contract import SmartContract
from docledger.services.host import ChaincodeHost
from docledger import shim

logger = get_logger(__name__)

router = APIRouter(prefix="/v1", tags=["chaincode"])

contract = SmartContract()

# One transaction at a time, across requests
invocation_lock = threading.Lock()


def get_backend(db: Session = Depends(get_db)) -> LedgerBackend:
    """Dependency that provides the ledger backend for one transaction."""
    return SqlBackend(db)


def _to_http(tx_id: str, response: shim.Response) -> JSONResponse:
    body = InvokeResponse(
        status=response.status,
        message=to_utf8(response.message).decode("utf-8"),
        payload=response.payload.decode("utf-8", "replace"),
        tx_id=tx_id,
    )
    return JSONResponse(
        status_code=200 if response.ok else 400,
        content=body.model_dump(),
    )


@router.post("/invoke", response_model=InvokeResponse)
def invoke(
    request_body: InvokeRequest,
    request: Request,
    backend: LedgerBackend = Depends(get_backend),
):
    """
    Submit a chaincode transaction.

    The named function runs with the given arguments; its writes are
    committed only when it succeeds. Contract errors are returned with
    HTTP 400 and the contract's message.
    """
    tx_id = getattr(request.state, "request_id", None)
    host = ChaincodeHost(contract, backend, lock=invocation_lock)

    logger.info(
        "invoke_requested",
        function=request_body.function,
        arg_count=len(request_body.args),
    )

    tx_id, response = host.invoke(request_body.function, request_body.args, tx_id=tx_id)
    return _to_http(tx_id, response)


@router.post("/init", response_model=InvokeResponse)
def init(
    request_body: InitRequest,
    request: Request,
    backend: LedgerBackend = Depends(get_backend),
):
    """Run the contract's instantiation entry point."""
    tx_id = getattr(request.state, "request_id", None)
    host = ChaincodeHost(contract, backend, lock=invocation_lock)

    tx_id, response = host.init(request_body.args, tx_id=tx_id)
    return _to_http(tx_id, response)
