"""Indirect object store backed by an in-memory PDF buffer.

The store reads the cross-reference data (classic tables, cross-reference
streams and hybrid files, following ``/Prev`` chains) and parses objects on
demand. Files whose cross-reference data is missing or inconsistent are
recovered by scanning the buffer for ``N G obj`` markers.
"""

from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass
from typing import Any, NamedTuple

from ..constants import DEFAULT_PDF_VERSION
from ..exceptions import ParseError
from .filters import apply_filters
from .syntax import (
    ObjectId,
    decode_text,
    parse_value,
    read_keyword,
    skip_whitespace,
    to_number,
)

__all__ = ["ObjectRecord", "ObjectStore"]

LOGGER = logging.getLogger("pdfreconx.store")

_HEADER_VERSION = re.compile(rb"%PDF-(\d+\.\d+)")
_OBJECT_HEADER = re.compile(
    rb"(\d+)[\x00\t\n\r\f ]+(\d+)[\x00\t\n\r\f ]+obj(?![^\x00\t\n\r\f ()<>\[\]{}/%])"
)
_OBJECT_MARKER = re.compile(
    rb"(?<![0-9])(\d+)[\x00\t\n\r\f ]+(\d+)[\x00\t\n\r\f ]+obj(?![^\x00\t\n\r\f ()<>\[\]{}/%])"
)
_TRAILER_MARKER = re.compile(rb"trailer[\x00\t\n\r\f ]*<<")
_MISSING = object()


@dataclass(slots=True, frozen=True)
class ObjectRecord:
    """Parsed indirect object; ``stream`` holds the raw (undecoded) payload."""

    object_id: ObjectId
    value: Any
    offset: int | None = None
    stream: bytes | None = None

    @property
    def is_stream(self) -> bool:
        return self.stream is not None

    @property
    def dictionary(self) -> dict[str, Any]:
        return self.value if isinstance(self.value, dict) else {}


class _XrefEntry(NamedTuple):
    kind: int
    field2: int
    field3: int


def _decode_be_integer(buffer: bytes) -> int:
    value = 0
    for byte in buffer:
        value = (value << 8) | byte
    return value


def _read_int(buffer: bytes, index: int) -> tuple[int, int]:
    index = skip_whitespace(buffer, index)
    token, end = read_keyword(buffer, index)
    number = to_number(token) if token else None
    if not isinstance(number, int):
        raise ValueError(f"Expected integer at offset {index}")
    return number, end


def _locate_startxref(data: bytes) -> int:
    marker = b"startxref"
    index = data.rfind(marker)
    if index == -1:
        raise ValueError("startxref marker not found")
    match = re.match(rb"\s*(\d+)", data[index + len(marker) : index + len(marker) + 32])
    if not match:
        raise ValueError("startxref offset not found")
    return int(match.group(1))


class ObjectStore:
    """Random-access, thread-safe view over the indirect objects of a PDF."""

    def __init__(self, data: bytes) -> None:
        self._data = data
        self._entries: dict[int, _XrefEntry] = {}
        self._scan: dict[int, tuple[int, int]] | None = None
        self._records: dict[int, tuple[ObjectRecord | None, tuple[str, ...]]] = {}
        self._object_streams: dict[int, dict[int, Any]] = {}
        self._decoded: dict[tuple[ObjectId, tuple[str, ...]], tuple[bytes, tuple[str, ...]]] = {}
        self._resolving: set[int] = set()
        self._lock = threading.RLock()
        self.trailer: dict[str, Any] = {}
        self.warnings: list[str] = []
        self.version = DEFAULT_PDF_VERSION
        self.startxref: int | None = None
        self.xref_kind: str | None = None
        self.root_ref: ObjectId | None = None

    # -- Construction --------------------------------------------------------

    @classmethod
    def parse(cls, data: bytes) -> "ObjectStore":
        """Index *data* and return a store; raise :class:`ParseError` if unusable."""

        if not data:
            raise ParseError("Empty PDF buffer")
        store = cls(bytes(data))
        store._load()
        return store

    def _load(self) -> None:
        self.version = self._detect_version()
        try:
            self.startxref = _locate_startxref(self._data)
            self._parse_cross_reference(self.startxref)
        except ValueError as exc:
            self._warn(f"Cross-reference data unusable ({exc}); using fallback object scanning")
            self._use_scan()

        root = self.trailer.get("/Root")
        if not isinstance(root, ObjectId) or not self._is_catalog(root):
            if self.xref_kind != "scan":
                self._warn("Document root not reachable from cross-reference; using fallback object scanning")
                self._use_scan()
            root = self._find_root()
        if root is None:
            raise ParseError("Unable to locate the document root")
        self.root_ref = root

        catalog_version = self.resolve(self.get_object(root).dictionary.get("/Version"))
        if isinstance(catalog_version, str):
            candidate = catalog_version.lstrip("/")
            if _version_key(candidate) > _version_key(self.version):
                self.version = candidate
        LOGGER.debug(
            "Indexed %d objects (xref=%s, version=%s, root=%s)",
            len(self._entries),
            self.xref_kind,
            self.version,
            root,
        )

    def _detect_version(self) -> str:
        match = _HEADER_VERSION.search(self._data[:1024])
        if match is None:
            self._warn(f"Missing %PDF- header; assuming version {DEFAULT_PDF_VERSION}")
            return DEFAULT_PDF_VERSION
        return match.group(1).decode("ascii")

    # -- Cross-reference -----------------------------------------------------

    def _parse_cross_reference(self, startxref: int) -> None:
        data = self._data
        if startxref < 0 or startxref >= len(data):
            raise ValueError(f"startxref offset {startxref} is outside the file")

        visited: set[int] = set()
        next_offset: int | None = startxref
        first = True
        while next_offset is not None and next_offset not in visited:
            visited.add(next_offset)
            try:
                entries, trailer, kind = self._parse_section(next_offset)
            except ValueError as exc:
                if first:
                    raise
                self._warn(f"Ignoring unreadable cross-reference section at {next_offset}: {exc}")
                break
            if first:
                self.xref_kind = kind
                first = False

            hybrid = trailer.get("/XRefStm")
            if isinstance(hybrid, int) and hybrid not in visited:
                visited.add(hybrid)
                try:
                    stream_entries, _, _ = self._parse_section(hybrid)
                except ValueError as exc:
                    self._warn(f"Ignoring unreadable /XRefStm section at {hybrid}: {exc}")
                else:
                    for number, entry in stream_entries.items():
                        current = entries.get(number)
                        if current is None or current.kind == 0:
                            entries[number] = entry

            for number, entry in entries.items():
                # Sections are walked newest first, so earlier entries win.
                self._entries.setdefault(number, entry)
            for key, value in trailer.items():
                self.trailer.setdefault(key, value)

            prev = trailer.get("/Prev")
            next_offset = int(prev) if isinstance(prev, (int, float)) else None

    def _parse_section(self, offset: int) -> tuple[dict[int, _XrefEntry], dict[str, Any], str]:
        index = skip_whitespace(self._data, offset)
        if self._data.startswith(b"xref", index):
            entries, trailer = self._parse_xref_table_section(index)
            return entries, trailer, "table"
        entries, trailer = self._parse_xref_stream_section(index)
        return entries, trailer, "stream"

    def _parse_xref_table_section(self, start: int) -> tuple[dict[int, _XrefEntry], dict[str, Any]]:
        data = self._data
        entries: dict[int, _XrefEntry] = {}
        index = start + len(b"xref")
        while True:
            index = skip_whitespace(data, index)
            if index >= len(data):
                raise ValueError("Cross-reference table has no trailer")
            if data.startswith(b"trailer", index):
                trailer, _ = parse_value(data, index + len(b"trailer"))
                if not isinstance(trailer, dict):
                    raise ValueError("Malformed trailer dictionary")
                return entries, trailer
            first_number, index = _read_int(data, index)
            count, index = _read_int(data, index)
            for position in range(count):
                offset, index = _read_int(data, index)
                generation, index = _read_int(data, index)
                index = skip_whitespace(data, index)
                flag = data[index : index + 1]
                if flag not in (b"n", b"f"):
                    raise ValueError(f"Malformed cross-reference entry at offset {index}")
                index += 1
                kind = 1 if flag == b"n" else 0
                entries[first_number + position] = _XrefEntry(kind, offset, generation)

    def _parse_xref_stream_section(self, start: int) -> tuple[dict[int, _XrefEntry], dict[str, Any]]:
        notes: list[str] = []
        record = self._read_object_at(start, None, notes)
        if record is None or not record.is_stream:
            raise ValueError(f"No cross-reference stream at offset {start}")
        dictionary = record.dictionary
        decoded = self.decode_stream(record, notes)
        self._report(notes, None)

        widths_obj = dictionary.get("/W")
        if not isinstance(widths_obj, list) or len(widths_obj) != 3:
            raise ValueError("Cross-reference stream has an invalid /W array")
        widths = [int(width) if isinstance(width, (int, float)) else 0 for width in widths_obj]
        entry_width = sum(widths)
        if entry_width <= 0:
            raise ValueError("Cross-reference stream has empty entries")

        size = dictionary.get("/Size")
        size = int(size) if isinstance(size, (int, float)) else 0
        index_obj = dictionary.get("/Index")
        if isinstance(index_obj, list) and len(index_obj) % 2 == 0 and index_obj:
            subsections = [
                (int(index_obj[i]), int(index_obj[i + 1])) for i in range(0, len(index_obj), 2)
            ]
        else:
            subsections = [(0, size)]

        entries: dict[int, _XrefEntry] = {}
        position = 0
        for first_number, count in subsections:
            for item in range(count):
                end = position + entry_width
                if end > len(decoded):
                    break
                w0, w1 = widths[0], widths[1]
                kind = _decode_be_integer(decoded[position : position + w0]) if w0 else 1
                field2 = _decode_be_integer(decoded[position + w0 : position + w0 + w1])
                field3 = _decode_be_integer(decoded[position + w0 + w1 : end])
                position = end
                if kind in (0, 1, 2):
                    entries[first_number + item] = _XrefEntry(kind, field2, field3)

        trailer = {key: value for key, value in dictionary.items() if key not in ("/Length", "/Filter", "/DecodeParms")}
        return entries, trailer

    # -- Fallback scanning ---------------------------------------------------

    def _scan_objects(self) -> dict[int, tuple[int, int]]:
        with self._lock:
            if self._scan is None:
                found: dict[int, tuple[int, int]] = {}
                for match in _OBJECT_MARKER.finditer(self._data):
                    # Later definitions of an object number replace earlier ones.
                    found[int(match.group(1))] = (match.start(), int(match.group(2)))
                self._scan = found
                LOGGER.debug("Fallback scan located %d object headers", len(found))
            return self._scan

    def _use_scan(self) -> None:
        if self.xref_kind == "scan":
            return
        self.xref_kind = "scan"
        scanned = self._scan_objects()
        self._entries = {
            number: _XrefEntry(1, offset, generation) for number, (offset, generation) in scanned.items()
        }
        with self._lock:
            self._records.clear()
            self._object_streams.clear()
            self._decoded.clear()
        for number in list(scanned):
            record = self.get_object(ObjectId(number, scanned[number][1]))
            if record is None or record.dictionary.get("/Type") != "/ObjStm":
                continue
            for member in self._object_stream(number, []):
                self._entries.setdefault(member, _XrefEntry(2, number, 0))

    def _find_root(self) -> ObjectId | None:
        for match in reversed(list(_TRAILER_MARKER.finditer(self._data))):
            try:
                trailer, _ = parse_value(self._data, match.start() + len(b"trailer"))
            except ValueError:
                continue
            if not isinstance(trailer, dict):
                continue
            root = trailer.get("/Root")
            if isinstance(root, ObjectId) and self._is_catalog(root):
                for key, value in trailer.items():
                    self.trailer.setdefault(key, value)
                self.trailer["/Root"] = root
                return root

        for number in sorted(self._entries, reverse=True):
            record = self.get_object(number)
            if record is None:
                continue
            dictionary = record.dictionary
            if dictionary.get("/Type") == "/XRef" and isinstance(dictionary.get("/Root"), ObjectId):
                root = dictionary["/Root"]
                if self._is_catalog(root):
                    self.trailer.setdefault("/Info", dictionary.get("/Info"))
                    self.trailer["/Root"] = root
                    return root
        for number in sorted(self._entries):
            record = self.get_object(number)
            if record is not None and record.dictionary.get("/Type") == "/Catalog":
                self.trailer["/Root"] = record.object_id
                return record.object_id
        return None

    def _is_catalog(self, ref: ObjectId) -> bool:
        record = self.get_object(ref)
        if record is None:
            return False
        dictionary = record.dictionary
        return dictionary.get("/Type") == "/Catalog" or "/Pages" in dictionary

    # -- Object access -------------------------------------------------------

    def get_object(self, ref: ObjectId | int, warnings: list[str] | None = None) -> ObjectRecord | None:
        """Return the parsed record for *ref*, or ``None`` when it cannot be found."""

        number = ref.number if isinstance(ref, ObjectId) else int(ref)
        with self._lock:
            cached = self._records.get(number, _MISSING)
            if cached is _MISSING:
                if number in self._resolving:
                    return None
                self._resolving.add(number)
                try:
                    notes: list[str] = []
                    record = self._load_record(number, notes)
                    cached = (record, tuple(notes))
                    self._records[number] = cached
                finally:
                    self._resolving.discard(number)
        record, notes = cached
        self._report(notes, warnings)
        return record

    def resolve(self, value: Any, warnings: list[str] | None = None) -> Any:
        """Follow references until a direct value is reached."""

        seen: set[int] = set()
        while isinstance(value, ObjectId):
            if value.number in seen:
                self._report((f"Reference cycle detected at object {value}",), warnings)
                return None
            seen.add(value.number)
            record = self.get_object(value, warnings)
            if record is None:
                return None
            value = record.value
        return value

    def get_stream_content(self, ref: ObjectId, warnings: list[str] | None = None) -> bytes | None:
        """Return the decoded payload of the stream object *ref*."""

        record = self.get_object(ref, warnings)
        if record is None or record.stream is None:
            return None
        return self.decode_stream(record, warnings)

    def stream_filters(self, dictionary: dict[str, Any]) -> tuple[list[str], list[dict[str, Any] | None]]:
        filters = self.resolve(dictionary.get("/Filter"))
        parms = self.resolve(dictionary.get("/DecodeParms"))
        if isinstance(filters, str):
            filters = [filters]
        elif isinstance(filters, list):
            filters = [name for name in (self.resolve(item) for item in filters) if isinstance(name, str)]
        else:
            filters = []
        if isinstance(parms, dict):
            parms = [parms]
        elif isinstance(parms, list):
            parms = [self.resolve(item) for item in parms]
        else:
            parms = []
        resolved_parms = [
            {key: self.resolve(value) for key, value in item.items()} if isinstance(item, dict) else None
            for item in parms
        ]
        return filters, resolved_parms

    def decode_stream(self, record: ObjectRecord, warnings: list[str] | None = None) -> bytes:
        """Apply the record's filter chain once and cache the result."""

        if record.stream is None:
            return b""
        filters, parms = self.stream_filters(record.dictionary)
        key = (record.object_id, tuple(filters))
        with self._lock:
            cached = self._decoded.get(key)
            if cached is None:
                notes: list[str] = []
                decoded = apply_filters(record.stream, filters, parms, notes)
                if notes:
                    notes = [f"Object {record.object_id.number}: {note}" for note in notes]
                cached = (decoded, tuple(notes))
                self._decoded[key] = cached
        decoded, notes = cached
        self._report(notes, warnings)
        return decoded

    def metadata(self) -> dict[str, str]:
        """Return the ``/Info`` dictionary with values decoded to text."""

        info = self.resolve(self.trailer.get("/Info"))
        if not isinstance(info, dict):
            return {}
        result: dict[str, str] = {}
        for key, value in info.items():
            resolved = self.resolve(value)
            if isinstance(resolved, (bytes, str, int, float)):
                result[key] = decode_text(resolved)
        return result

    def __len__(self) -> int:
        return sum(1 for entry in self._entries.values() if entry.kind != 0)

    # -- Internal helpers ----------------------------------------------------

    def _load_record(self, number: int, notes: list[str]) -> ObjectRecord | None:
        entry = self._entries.get(number)
        if entry is None or entry.kind == 0:
            if self.xref_kind == "scan" or entry is not None:
                return None
            scanned = self._scan_objects().get(number)
            if scanned is None:
                return None
            notes.append(f"Object {number} missing from cross-reference; recovered by scanning")
            return self._read_object_at(scanned[0], number, notes)

        if entry.kind == 2:
            members = self._object_stream(entry.field2, notes)
            if number not in members:
                notes.append(f"Object {number} not found in object stream {entry.field2}")
                return None
            return ObjectRecord(object_id=ObjectId(number, 0), value=members[number])

        record = self._read_object_at(entry.field2, number, notes)
        if record is None and self.xref_kind != "scan":
            scanned = self._scan_objects().get(number)
            if scanned is not None and scanned[0] != entry.field2:
                notes.append(f"Cross-reference offset for object {number} is invalid; recovered by scanning")
                record = self._read_object_at(scanned[0], number, notes)
        return record

    def _read_object_at(self, offset: int, expected: int | None, notes: list[str]) -> ObjectRecord | None:
        data = self._data
        if offset < 0 or offset >= len(data):
            return None
        index = skip_whitespace(data, offset)
        match = _OBJECT_HEADER.match(data, index)
        if match is None:
            return None
        number = int(match.group(1))
        generation = int(match.group(2))
        if expected is not None and number != expected:
            return None
        object_id = ObjectId(number, generation)
        try:
            value, index = parse_value(data, match.end())
        except ValueError as exc:
            notes.append(f"Unable to parse object {object_id}: {exc}")
            return None
        index = skip_whitespace(data, index)
        stream = None
        if isinstance(value, dict) and data.startswith(b"stream", index):
            stream = self._read_stream_payload(object_id, value, index + len(b"stream"), notes)
        return ObjectRecord(object_id=object_id, value=value, offset=match.start(), stream=stream)

    def _read_stream_payload(
        self,
        object_id: ObjectId,
        dictionary: dict[str, Any],
        index: int,
        notes: list[str],
    ) -> bytes:
        data = self._data
        if data.startswith(b"\r\n", index):
            index += 2
        elif data[index : index + 1] in (b"\n", b"\r"):
            index += 1

        length = dictionary.get("/Length")
        if isinstance(length, ObjectId):
            length = self.resolve(length)
        if isinstance(length, int) and length >= 0 and index + length <= len(data):
            end = index + length
            if data.startswith(b"endstream", skip_whitespace(data, end)):
                return data[index:end]

        end = data.find(b"endstream", index)
        if end == -1:
            notes.append(f"Stream of object {object_id} is truncated")
            return data[index:]
        notes.append(f"Stream length of object {object_id} is wrong; located endstream instead")
        if data[end - 2 : end] == b"\r\n":
            end -= 2
        elif data[end - 1 : end] in (b"\n", b"\r"):
            end -= 1
        return data[index:max(index, end)]

    def _object_stream(self, number: int, notes: list[str]) -> dict[int, Any]:
        with self._lock:
            cached = self._object_streams.get(number)
            if cached is not None:
                return cached
            members: dict[int, Any] = {}
            self._object_streams[number] = members
            record = self.get_object(ObjectId(number), notes)
            if record is None or not record.is_stream:
                notes.append(f"Object stream {number} is unavailable")
                return members
            decoded = self.decode_stream(record, notes)
            count = self.resolve(record.dictionary.get("/N"))
            first = self.resolve(record.dictionary.get("/First"))
            if not isinstance(count, int) or not isinstance(first, int):
                notes.append(f"Object stream {number} has no /N or /First entry")
                return members
            index = 0
            pairs: list[tuple[int, int]] = []
            try:
                for _ in range(count):
                    member, index = _read_int(decoded, index)
                    offset, index = _read_int(decoded, index)
                    pairs.append((member, offset))
            except ValueError as exc:
                notes.append(f"Object stream {number} header is malformed: {exc}")
            for member, offset in pairs:
                try:
                    value, _ = parse_value(decoded, first + offset)
                except ValueError as exc:
                    notes.append(f"Unable to parse object {member} in object stream {number}: {exc}")
                    continue
                members[member] = value
            return members

    def _warn(self, message: str) -> None:
        self._report((message,), None)

    def _report(self, notes: tuple[str, ...] | list[str], warnings: list[str] | None) -> None:
        if not notes:
            return
        target = self.warnings if warnings is None else warnings
        for note in notes:
            if warnings is None and note in self.warnings:
                continue
            LOGGER.warning(note)
            target.append(note)


def _version_key(version: str) -> tuple[int, ...]:
    try:
        return tuple(int(part) for part in version.split("."))
    except ValueError:
        return (0,)
