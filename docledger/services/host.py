"""Development host that executes chaincode transactions against a backend."""
import threading
import time
from typing import Optional

import structlog

from docledger import metrics, shim
from docledger.ledger import ChaincodeStub, LedgerBackend, LedgerError, Timestamp
from docledger.logging import (
    TimedOperation,
    clear_invocation_context,
    generate_tx_id,
    log_invocation,
    set_invocation_context,
)
from docledger.services.contract import FUNCTION_NAMES, SmartContract

logger = structlog.get_logger()


class ChaincodeHost:
    """
    Plays the peer's role for a single contract.

    Each call runs as one transaction:
    1. Build a stub over the backend's committed state
    2. Execute the contract
    3. Commit the stub's write set if the response is a success,
       otherwise discard it

    Invocations sharing a host (or a lock) are serialized.
    """

    def __init__(
        self,
        contract: SmartContract,
        backend: LedgerBackend,
        lock: Optional[threading.Lock] = None,
    ):
        self.contract = contract
        self.backend = backend
        self._lock = lock or threading.Lock()

    def init(self, args: Optional[list[str]] = None, tx_id: Optional[str] = None) -> tuple[str, shim.Response]:
        """Run the contract's init entry point."""
        return self._execute("init", ["init", *(args or [])], tx_id, self.contract.init)

    def invoke(
        self,
        function: str,
        args: Optional[list[str]] = None,
        tx_id: Optional[str] = None,
        timestamp: Optional[Timestamp] = None,
    ) -> tuple[str, shim.Response]:
        """Invoke a contract function and return (tx_id, response)."""
        return self._execute(
            function, [function, *(args or [])], tx_id, self.contract.invoke, timestamp
        )

    def _execute(self, function, stub_args, tx_id, entry_point, timestamp=None):
        tx_id = tx_id or generate_tx_id()
        # Unknown names are grouped to keep metric labels bounded
        label = function if function in FUNCTION_NAMES or function == "init" else "unknown"

        with self._lock:
            set_invocation_context(tx_id, function=function)
            start_time = time.perf_counter()
            try:
                stub = ChaincodeStub(self.backend, tx_id, stub_args, timestamp)

                with TimedOperation("chaincode_execution", logger=logger):
                    response = entry_point(stub)

                write_count = len(stub.write_set)
                if response.ok:
                    try:
                        stub.commit()
                    except LedgerError as e:
                        response = shim.error(str(e))
                else:
                    stub.rollback()

                duration_seconds = time.perf_counter() - start_time
                log_invocation(
                    logger=logger,
                    function=function,
                    arg_count=len(stub_args) - 1,
                    status=response.status,
                    message=response.message,
                    payload_size=len(response.payload),
                    committed=response.ok,
                    duration_ms=duration_seconds * 1000,
                )
                metrics.record_invocation(
                    function=label,
                    success=response.ok,
                    latency_seconds=duration_seconds,
                    write_count=write_count,
                )
                return tx_id, response
            finally:
                clear_invocation_context()
