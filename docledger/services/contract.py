"""
Document ledger smart contract.

Tracks documents keyed by ID through their processing lifecycle. The
contract is stateless: every call reads and writes through the stub it is
handed, and every handler returns a Response rather than raising.
"""
from typing import Callable, Optional

import structlog

from docledger import shim
from docledger.config import Settings, settings as default_settings
from docledger.encoding import (
    DocDecodeError,
    build_history_payload,
    build_range_payload,
    marshal_doc,
    unmarshal_doc,
)
from docledger.ledger import ChaincodeStub, LedgerError
from docledger.schemas import StudentDoc

logger = structlog.get_logger()

Handler = Callable[[ChaincodeStub, list[str]], shim.Response]

QUERY_DOC = "queryStudentDoc"
INIT_LEDGER = "initLedger"
CREATE_DOC = "createStudentDoc"
QUERY_ALL_DOCS = "queryAllStudentDocs"
CHANGE_OWNER = "changeStudentDocOwner"
CHANGE_STATUS = "changeStudentDocStatus"
GET_HISTORY = "getHistoryForStudentDoc"

FUNCTION_NAMES = frozenset({
    QUERY_DOC,
    INIT_LEDGER,
    CREATE_DOC,
    QUERY_ALL_DOCS,
    CHANGE_OWNER,
    CHANGE_STATUS,
    GET_HISTORY,
})

SEED_DOCS = (
    StudentDoc(status="scanned", owner="Tomoko"),
    StudentDoc(status="transmitted responses", owner="Jack"),
    StudentDoc(status="received responses", owner="John"),
    StudentDoc(status="machine scored", owner="Mark"),
    StudentDoc(status="human scored", owner="Tim"),
    StudentDoc(status="scores exported", owner="Jane"),
    StudentDoc(status="transmitted scores", owner="Peter"),
    StudentDoc(status="received scores", owner="Sid"),
    StudentDoc(status="scores reported", owner="Mesut"),
)


def _arity_error(expected: int) -> shim.Response:
    return shim.error(f"Incorrect number of arguments. Expecting {expected}")


class SmartContract:
    """
    Chaincode entry points for the document ledger.

    ``init`` is called once when the contract is instantiated; ``invoke``
    routes every later transaction to a handler by function name.
    """

    def __init__(self, config: Optional[Settings] = None):
        self.config = config or default_settings
        self.routes = self._build_routes()
        missing = FUNCTION_NAMES - self.routes.keys()
        extra = self.routes.keys() - FUNCTION_NAMES
        if missing or extra:
            raise RuntimeError(
                f"Contract routes out of sync: missing={sorted(missing)} extra={sorted(extra)}"
            )

    def _build_routes(self) -> dict[str, Handler]:
        return {
            QUERY_DOC: self.query_doc,
            INIT_LEDGER: self.init_ledger,
            CREATE_DOC: self.create_doc,
            QUERY_ALL_DOCS: self.query_all_docs,
            CHANGE_OWNER: self.change_owner,
            CHANGE_STATUS: self.change_owner_and_status,
            GET_HISTORY: self.get_history,
        }

    def init(self, stub: ChaincodeStub) -> shim.Response:
        """Instantiate the contract. Ledger seeding is done by initLedger."""
        return shim.success()

    def invoke(self, stub: ChaincodeStub) -> shim.Response:
        """Dispatch the requested function to its handler."""
        function, args = stub.get_function_and_parameters()

        handler = self.routes.get(function)
        if handler is None:
            logger.warning("unknown_function", function=function)
            return shim.error(f"{function}: Invalid Smart Contract function name.")

        return handler(stub, args)

    # -------------------------------------------------------------------------
    # Handlers
    # -------------------------------------------------------------------------

    def query_doc(self, stub: ChaincodeStub, args: list[str]) -> shim.Response:
        if len(args) != 1:
            return _arity_error(1)

        try:
            return shim.success(stub.get_state(args[0]))
        except LedgerError as e:
            return shim.error(str(e))

    def init_ledger(self, stub: ChaincodeStub, args: list[str]) -> shim.Response:
        """Seed the ledger with the sample documents."""
        for index, doc in enumerate(SEED_DOCS):
            key = f"{self.config.key_prefix}{index}"
            if self._put_doc(stub, key, doc):
                logger.debug("seed_doc_added", key=key, status=doc.status, owner=doc.owner)

        return shim.success()

    def create_doc(self, stub: ChaincodeStub, args: list[str]) -> shim.Response:
        if len(args) != 3:
            return _arity_error(3)

        key, status, owner = args
        self._put_doc(stub, key, StudentDoc(status=status, owner=owner))
        return shim.success()

    def query_all_docs(self, stub: ChaincodeStub, args: list[str]) -> shim.Response:
        """Return every document in the seeded key range."""
        start_key = f"{self.config.key_prefix}0"
        end_key = f"{self.config.key_prefix}{self.config.range_end_suffix}"

        try:
            with stub.get_state_by_range(start_key, end_key) as results:
                payload = build_range_payload(results)
        except LedgerError as e:
            return shim.error(str(e))

        logger.debug("query_all_docs_result", payload=payload.decode("utf-8", "replace"))
        return shim.success(payload)

    def change_owner(self, stub: ChaincodeStub, args: list[str]) -> shim.Response:
        if len(args) != 2:
            return _arity_error(2)

        key, owner = args
        return self._update_doc(stub, key, owner=owner)

    def change_owner_and_status(self, stub: ChaincodeStub, args: list[str]) -> shim.Response:
        if len(args) != 3:
            return _arity_error(3)

        key, owner, status = args
        return self._update_doc(stub, key, owner=owner, status=status)

    def get_history(self, stub: ChaincodeStub, args: list[str]) -> shim.Response:
        """Return every recorded modification of a document, deletes included."""
        if len(args) != 1:
            return _arity_error(1)

        key = args[0]
        logger.debug("history_requested", key=key)

        try:
            with stub.get_history_for_key(key) as results:
                payload = build_history_payload(results, self.config.history_timezone)
        except LedgerError as e:
            return shim.error(str(e))

        logger.debug("history_result", key=key, payload=payload.decode("utf-8", "replace"))
        return shim.success(payload)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _update_doc(self, stub: ChaincodeStub, key: str, **changes: str) -> shim.Response:
        """Read-modify-write a stored document.

        Unless strict decoding is enabled, a missing or unreadable document
        is replaced by whatever string fields could be read (blank when
        none) plus the new fields.
        """
        try:
            doc = unmarshal_doc(stub.get_state(key))
        except DocDecodeError as e:
            if self.config.strict_decode:
                return shim.error(f"Failed to decode StudentDoc at key {key}")
            logger.debug("doc_decode_ignored", key=key, error=str(e))
            doc = e.partial
        except LedgerError as e:
            return shim.error(str(e))

        self._put_doc(stub, key, doc.model_copy(update=changes))
        return shim.success()

    def _put_doc(self, stub: ChaincodeStub, key: str, doc: StudentDoc) -> bool:
        """Write a document. A rejected write is logged and leaves nothing behind."""
        try:
            stub.put_state(key, marshal_doc(doc))
        except LedgerError as e:
            logger.warning("put_state_ignored", key=key, error=str(e))
            return False
        return True
