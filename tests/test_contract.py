"""
Tests for the document ledger contract.

Invocations run through a ChaincodeHost over the in-memory backend, so
every test exercises dispatch, the handler and the commit step together.
"""
import json

import pytest

from docledger import shim
from docledger.config import Settings
from docledger.ledger import KV, LedgerError, MemoryBackend, Timestamp
from docledger.services.contract import (
    FUNCTION_NAMES,
    SEED_DOCS,
    SmartContract,
)
from docledger.services.host import ChaincodeHost

# 2024-05-01 12:00:00 UTC
MAY_FIRST_NOON = 1714564800


def make_host(**overrides) -> ChaincodeHost:
    config = Settings(**overrides)
    return ChaincodeHost(SmartContract(config), MemoryBackend())


class TestDispatch:
    """Routing of function names to handlers."""

    def setup_method(self):
        self.host = make_host()

    def test_init_is_a_no_op_success(self):
        _, response = self.host.init()
        assert response.status == shim.OK
        assert response.payload == b""

    def test_unknown_function_names_the_function(self):
        _, response = self.host.invoke("deleteStudentDoc", ["doc1"])
        assert response.status == shim.ERROR
        assert response.message == "deleteStudentDoc: Invalid Smart Contract function name."

    def test_function_names_are_case_sensitive(self):
        _, response = self.host.invoke("querystudentdoc", ["doc1"])
        assert not response.ok

    def test_every_function_name_has_a_route(self):
        contract = SmartContract()
        assert set(contract.routes) == FUNCTION_NAMES
        assert len(FUNCTION_NAMES) == 7

    def test_route_table_must_cover_every_function(self):
        class IncompleteContract(SmartContract):
            def _build_routes(self):
                routes = super()._build_routes()
                del routes["initLedger"]
                return routes

        with pytest.raises(RuntimeError, match="initLedger"):
            IncompleteContract()


class TestArity:
    """Wrong argument counts always fail."""

    def setup_method(self):
        self.host = make_host()

    @pytest.mark.parametrize("function,args,expected", [
        ("queryStudentDoc", [], 1),
        ("queryStudentDoc", ["a", "b"], 1),
        ("createStudentDoc", ["doc1", "scanned"], 3),
        ("createStudentDoc", ["doc1", "scanned", "Alice", "extra"], 3),
        ("changeStudentDocOwner", ["doc1"], 2),
        ("changeStudentDocOwner", ["doc1", "Bob", "extra"], 2),
        ("changeStudentDocStatus", ["doc1", "Bob"], 3),
        ("changeStudentDocStatus", [], 3),
        ("getHistoryForStudentDoc", [], 1),
        ("getHistoryForStudentDoc", ["doc1", "doc2"], 1),
    ])
    def test_wrong_arity_fails(self, function, args, expected):
        _, response = self.host.invoke(function, args)
        assert response.status == shim.ERROR
        assert response.message == f"Incorrect number of arguments. Expecting {expected}"

    def test_failed_create_writes_nothing(self):
        self.host.invoke("createStudentDoc", ["doc1", "scanned"])
        _, response = self.host.invoke("queryStudentDoc", ["doc1"])
        assert response.payload == b""


class TestCreateAndQuery:
    """createStudentDoc / queryStudentDoc."""

    def setup_method(self):
        self.host = make_host()

    def test_create_then_query_returns_record(self):
        _, created = self.host.invoke("createStudentDoc", ["doc1", "scanned", "Alice"])
        assert created.status == shim.OK

        _, response = self.host.invoke("queryStudentDoc", ["doc1"])
        assert response.status == shim.OK
        assert response.payload == b'{"docStatus":"scanned","owner":"Alice"}'

    def test_create_overwrites_silently(self):
        self.host.invoke("createStudentDoc", ["doc1", "scanned", "Alice"])
        _, response = self.host.invoke("createStudentDoc", ["doc1", "human scored", "Bob"])
        assert response.ok

        _, response = self.host.invoke("queryStudentDoc", ["doc1"])
        assert json.loads(response.payload) == {"docStatus": "human scored", "owner": "Bob"}

    def test_query_missing_key_returns_empty_success(self):
        _, response = self.host.invoke("queryStudentDoc", ["nope"])
        assert response.status == shim.OK
        assert response.payload == b""

    def test_create_with_empty_key_succeeds_without_writing(self):
        _, response = self.host.invoke("createStudentDoc", ["", "scanned", "Alice"])
        assert response.status == shim.OK
        assert self.host.backend.get("") is None
        assert list(self.host.backend.history("")) == []

    def test_change_owner_with_empty_key_succeeds_without_writing(self):
        _, response = self.host.invoke("changeStudentDocStatus", ["", "Bob", "scanned"])
        assert response.status == shim.OK
        assert self.host.backend.get("") is None

    def test_unpaired_surrogate_is_stored_as_replacement_char(self):
        _, response = self.host.invoke("createStudentDoc", ["doc1", "\ud800", "Alice"])
        assert response.ok

        _, response = self.host.invoke("queryStudentDoc", ["doc1"])
        assert response.payload == b'{"docStatus":"\xef\xbf\xbd","owner":"Alice"}'

    def test_values_are_stored_verbatim(self):
        self.host.invoke("createStudentDoc", ["doc1", 'a "quoted" <status>', "Zoë"])
        _, response = self.host.invoke("queryStudentDoc", ["doc1"])
        assert json.loads(response.payload) == {"docStatus": 'a "quoted" <status>', "owner": "Zoë"}


class TestInitLedgerAndQueryAll:
    """initLedger / queryAllStudentDocs."""

    def setup_method(self):
        self.host = make_host()

    def test_seed_then_query_all_returns_nine_docs_in_order(self):
        _, seeded = self.host.invoke("initLedger")
        assert seeded.ok

        _, response = self.host.invoke("queryAllStudentDocs")
        assert response.ok
        entries = json.loads(response.payload)

        assert [entry["Key"] for entry in entries] == [f"StudentDoc{i}" for i in range(9)]
        for entry, doc in zip(entries, SEED_DOCS):
            assert entry["Record"] == {"docStatus": doc.status, "owner": doc.owner}

    def test_query_all_payload_layout(self):
        self.host.invoke("initLedger")
        _, response = self.host.invoke("queryAllStudentDocs")
        assert response.payload.startswith(
            b'[{"Key":"StudentDoc0", "Record":{"docStatus":"scanned","owner":"Tomoko"}},'
            b'{"Key":"StudentDoc1", "Record":{"docStatus":"transmitted responses","owner":"Jack"}}'
        )
        assert response.payload.endswith(
            b'{"Key":"StudentDoc8", "Record":{"docStatus":"scores reported","owner":"Mesut"}}]'
        )

    def test_seed_ignores_extra_arguments(self):
        _, response = self.host.invoke("initLedger", ["ignored"])
        assert response.ok

    def test_query_all_on_empty_ledger(self):
        _, response = self.host.invoke("queryAllStudentDocs")
        assert response.ok
        assert response.payload == b"[]"

    def test_query_all_range_bounds(self):
        for key in ["StudentDoc10", "StudentDoc999", "StudentDoc9990", "Other1", "StudentDo"]:
            self.host.invoke("createStudentDoc", [key, "scanned", "Alice"])
        self.host.invoke("createStudentDoc", ["StudentDoc0", "scanned", "Alice"])

        _, response = self.host.invoke("queryAllStudentDocs")
        keys = [entry["Key"] for entry in json.loads(response.payload)]
        # End key is exclusive and ordering is lexical
        assert keys == ["StudentDoc0", "StudentDoc10"]

    def test_custom_key_prefix(self):
        host = make_host(key_prefix="Doc")
        host.invoke("initLedger")
        _, response = host.invoke("queryAllStudentDocs")
        keys = [entry["Key"] for entry in json.loads(response.payload)]
        assert keys == [f"Doc{i}" for i in range(9)]


class TestChangeOwnerAndStatus:
    """changeStudentDocOwner / changeStudentDocStatus."""

    def setup_method(self):
        self.host = make_host()
        self.host.invoke("createStudentDoc", ["doc1", "scanned", "Alice"])

    def query(self, key: str) -> dict:
        _, response = self.host.invoke("queryStudentDoc", [key])
        return json.loads(response.payload)

    def test_change_owner_preserves_status(self):
        _, response = self.host.invoke("changeStudentDocOwner", ["doc1", "Bob"])
        assert response.ok
        assert self.query("doc1") == {"docStatus": "scanned", "owner": "Bob"}

    def test_change_owner_and_status_updates_both(self):
        _, response = self.host.invoke("changeStudentDocStatus", ["doc1", "Bob", "machine scored"])
        assert response.ok
        assert self.query("doc1") == {"docStatus": "machine scored", "owner": "Bob"}

    def test_change_owner_of_missing_doc_writes_blank_status(self):
        _, response = self.host.invoke("changeStudentDocOwner", ["ghost", "Bob"])
        assert response.ok
        assert self.query("ghost") == {"docStatus": "", "owner": "Bob"}

    def test_change_owner_of_undecodable_doc_writes_blank_status(self):
        self.host.backend.apply("tx-raw", Timestamp(MAY_FIRST_NOON), {"doc2": b"not json"})
        _, response = self.host.invoke("changeStudentDocOwner", ["doc2", "Bob"])
        assert response.ok
        assert self.query("doc2") == {"docStatus": "", "owner": "Bob"}

    def test_change_owner_keeps_readable_fields_of_mistyped_doc(self):
        self.host.backend.apply(
            "tx-raw", Timestamp(MAY_FIRST_NOON), {"doc3": b'{"docStatus":"scanned","owner":5}'}
        )
        _, response = self.host.invoke("changeStudentDocOwner", ["doc3", "Bob"])
        assert response.ok
        assert self.query("doc3") == {"docStatus": "scanned", "owner": "Bob"}


class TestStrictDecode:
    """Change functions with strict_decode enabled."""

    def setup_method(self):
        self.host = make_host(strict_decode=True)

    def test_missing_doc_is_a_declared_error(self):
        _, response = self.host.invoke("changeStudentDocOwner", ["ghost", "Bob"])
        assert response.status == shim.ERROR
        assert response.message == "Failed to decode StudentDoc at key ghost"

        _, query = self.host.invoke("queryStudentDoc", ["ghost"])
        assert query.payload == b""

    def test_valid_doc_still_updates(self):
        self.host.invoke("createStudentDoc", ["doc1", "scanned", "Alice"])
        _, response = self.host.invoke("changeStudentDocStatus", ["doc1", "Bob", "human scored"])
        assert response.ok


class TestHistory:
    """getHistoryForStudentDoc."""

    def setup_method(self):
        self.host = make_host()

    def test_history_lists_modifications_oldest_first(self):
        self.host.invoke("createStudentDoc", ["doc1", "scanned", "Alice"],
                         tx_id="tx1", timestamp=Timestamp(MAY_FIRST_NOON))
        self.host.invoke("changeStudentDocOwner", ["doc1", "Bob"],
                         tx_id="tx2", timestamp=Timestamp(MAY_FIRST_NOON + 60, 250_000_000))
        self.host.backend.apply("tx3", Timestamp(MAY_FIRST_NOON + 120), {"doc1": None})

        _, response = self.host.invoke("getHistoryForStudentDoc", ["doc1"])
        assert response.ok
        entries = json.loads(response.payload)

        assert [entry["TxId"] for entry in entries] == ["tx1", "tx2", "tx3"]
        assert entries[0]["Value"] == {"docStatus": "scanned", "owner": "Alice"}
        assert entries[1]["Value"] == {"docStatus": "scanned", "owner": "Bob"}
        assert entries[1]["Timestamp"] == "2024-05-01 12:01:00.25 +0000 UTC"
        for entry in entries:
            assert (entry["Value"] is None) == (entry["IsDelete"] == "true")
        assert entries[2]["IsDelete"] == "true"

    def test_history_payload_layout(self):
        self.host.invoke("createStudentDoc", ["doc1", "scanned", "Alice"],
                         tx_id="tx1", timestamp=Timestamp(MAY_FIRST_NOON))
        _, response = self.host.invoke("getHistoryForStudentDoc", ["doc1"])
        assert response.payload == (
            b'[{"TxId":"tx1", "Value":{"docStatus":"scanned","owner":"Alice"}, '
            b'"Timestamp":"2024-05-01 12:00:00 +0000 UTC", "IsDelete":"false"}]'
        )

    def test_history_of_unknown_key_is_empty(self):
        _, response = self.host.invoke("getHistoryForStudentDoc", ["ghost"])
        assert response.ok
        assert response.payload == b"[]"

    def test_failed_invocations_leave_no_history(self):
        self.host.invoke("createStudentDoc", ["doc1", "scanned"])
        _, response = self.host.invoke("getHistoryForStudentDoc", ["doc1"])
        assert response.payload == b"[]"


class FailingScanBackend(MemoryBackend):
    """Backend whose scans fail after yielding one entry."""

    def __init__(self):
        super().__init__()
        self.released = False

    def scan(self, start_key, end_key):
        try:
            yield KV("StudentDoc0", b"{}")
            raise LedgerError("cursor lost")
        finally:
            self.released = True

    def history(self, key):
        try:
            raise LedgerError("history unavailable")
            yield
        finally:
            self.released = True


class TestLedgerErrors:
    """Ledger failures surface as error responses and release cursors."""

    def setup_method(self):
        self.backend = FailingScanBackend()
        self.host = ChaincodeHost(SmartContract(Settings()), self.backend)

    def test_range_error_is_reported_verbatim(self):
        _, response = self.host.invoke("queryAllStudentDocs")
        assert response.status == shim.ERROR
        assert response.message == "cursor lost"
        assert self.backend.released

    def test_history_error_is_reported_verbatim(self):
        _, response = self.host.invoke("getHistoryForStudentDoc", ["doc1"])
        assert response.status == shim.ERROR
        assert response.message == "history unavailable"
        assert self.backend.released


class TestHostCommit:
    """Write sets are committed only for successful responses."""

    def test_error_response_discards_writes(self):
        class WriteThenFail(SmartContract):
            def invoke(self, stub):
                stub.put_state("doc1", b'{"docStatus":"x","owner":"y"}')
                return shim.error("rejected")

        backend = MemoryBackend()
        host = ChaincodeHost(WriteThenFail(Settings()), backend)

        _, response = host.invoke("anything")
        assert response.message == "rejected"
        assert backend.get("doc1") is None

    def test_generated_tx_ids_are_unique(self):
        host = make_host()
        first, _ = host.invoke("queryStudentDoc", ["doc1"])
        second, _ = host.invoke("queryStudentDoc", ["doc1"])
        assert first and second and first != second
