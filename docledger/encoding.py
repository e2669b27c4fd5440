"""
Wire encoding for ledger values and query results.

Record bytes use the same compact JSON layout the deployed chaincode has
always written, and query results are assembled by hand so that existing
callers keep receiving byte-identical payloads:

    [{"Key":"StudentDoc0", "Record":{"docStatus":"scanned","owner":"Tomoko"}}]
    [{"TxId":"ab12", "Value":{...}, "Timestamp":"2024-05-01 12:00:00 +0000 UTC", "IsDelete":"false"}]
"""
import json
import re
from datetime import datetime
from typing import Any, Iterable, Optional
from zoneinfo import ZoneInfo

from pydantic import ValidationError

from docledger.ledger import KV, KeyModification, Timestamp
from docledger.schemas import StudentDoc

_HTML_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


_LONE_SURROGATE = re.compile("[\ud800-\udfff]")


class DocDecodeError(ValueError):
    """Stored bytes could not be decoded into a StudentDoc.

    ``partial`` holds the string fields that did decode.
    """

    def __init__(self, message: str, partial: Optional[StudentDoc] = None):
        super().__init__(message)
        self.partial = partial or StudentDoc()


def to_utf8(text: str) -> bytes:
    """Encode text as UTF-8, writing U+FFFD for unpaired surrogates."""
    return _LONE_SURROGATE.sub("\ufffd", text).encode("utf-8")


def go_json(value: Any) -> bytes:
    """Encode value as compact JSON with HTML-safe escaping."""
    text = json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    for char, escaped in _HTML_ESCAPES.items():
        text = text.replace(char, escaped)
    return to_utf8(text)


def marshal_doc(doc: StudentDoc) -> bytes:
    return go_json(doc.model_dump(by_alias=True))


def unmarshal_doc(data: bytes) -> StudentDoc:
    """Decode stored bytes into a StudentDoc.

    Raises:
        DocDecodeError: If data is empty, not JSON, or not a document object.
            Readable string fields are kept on the error's ``partial`` doc.
    """
    try:
        return StudentDoc.model_validate_json(data)
    except ValidationError as e:
        raise DocDecodeError(str(e), partial=_partial_doc(data)) from e


def _partial_doc(data: bytes) -> StudentDoc:
    try:
        raw = json.loads(data)
    except ValueError:
        return StudentDoc()
    if not isinstance(raw, dict):
        return StudentDoc()

    fields = {}
    for name, field in StudentDoc.model_fields.items():
        value = raw.get(field.alias or name)
        if isinstance(value, str):
            fields[name] = value
    return StudentDoc(**fields)


def format_timestamp(timestamp: Timestamp, zone: str = "UTC") -> str:
    """Render a timestamp the way Go's time.Time.String() does.

    e.g. ``2024-05-01 12:00:00.25 +0000 UTC``
    """
    moment = datetime.fromtimestamp(timestamp.seconds, tz=ZoneInfo(zone))
    fraction = f".{timestamp.nanos:09d}".rstrip("0") if timestamp.nanos else ""
    return (
        moment.strftime("%Y-%m-%d %H:%M:%S")
        + fraction
        + moment.strftime(" %z %Z")
    )


def build_range_payload(entries: Iterable[KV]) -> bytes:
    """Assemble a JSON array of {"Key", "Record"} members from a range scan.

    Record values are written as-is since they are already JSON.
    """
    buffer = bytearray(b"[")
    for index, entry in enumerate(entries):
        if index:
            buffer += b","
        buffer += b'{"Key":"' + to_utf8(entry.key) + b'"'
        buffer += b', "Record":' + entry.value
        buffer += b"}"
    buffer += b"]"
    return bytes(buffer)


def build_history_payload(modifications: Iterable[KeyModification], zone: str = "UTC") -> bytes:
    """Assemble a JSON array describing each modification of a key.

    Deleted entries carry a null Value.
    """
    buffer = bytearray(b"[")
    for index, mod in enumerate(modifications):
        if index:
            buffer += b","
        buffer += b'{"TxId":"' + to_utf8(mod.tx_id) + b'"'
        buffer += b', "Value":' + (b"null" if mod.is_delete else mod.value)
        buffer += b', "Timestamp":"' + format_timestamp(mod.timestamp, zone).encode("utf-8") + b'"'
        buffer += b', "IsDelete":"' + (b"true" if mod.is_delete else b"false") + b'"'
        buffer += b"}"
    buffer += b"]"
    return bytes(buffer)
