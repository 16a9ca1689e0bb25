"""
DBC Binary Codec.

Layout (little-endian throughout):

    header        magic[4] record_count field_count record_size string_block_size
    records       record_count * record_size bytes
    string block  string_block_size bytes, byte 0 is always NUL

Text fields hold a byte offset into the string block. Localized fields hold
one offset per locale followed by a flags value.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import Iterable, Union

from dbc_sync.core.schema import LOCALES, SLOT_SIZE, FieldKind, Schema
from dbc_sync.errors import FormatError
from dbc_sync.utils.logger import get_logger


logger = get_logger(__name__)

MAGIC = b"WDBC"
HEADER = struct.Struct("<4sIIII")
HEADER_SIZE = HEADER.size

_SCALAR_FORMATS = {
    FieldKind.INT32: struct.Struct("<i"),
    FieldKind.UINT32: struct.Struct("<I"),
    FieldKind.FLOAT: struct.Struct("<f"),
    FieldKind.STRING: struct.Struct("<I"),
}
_LOC_FORMAT = struct.Struct(f"<{len(LOCALES) + 1}I")


@dataclass(frozen=True)
class LocalizedText:
    """One string per locale plus the opaque flags value."""

    strings: tuple[str, ...] = ("",) * len(LOCALES)
    flags: int = 0

    def __post_init__(self) -> None:
        if len(self.strings) != len(LOCALES):
            raise ValueError(
                f"LocalizedText needs {len(LOCALES)} strings, got {len(self.strings)}"
            )

    @classmethod
    def from_mapping(cls, values: dict[str, str], flags: int = 0) -> "LocalizedText":
        """Build from a partial locale -> string mapping."""
        unknown = set(values) - set(LOCALES)
        if unknown:
            raise ValueError(f"Unknown locales: {sorted(unknown)}")
        return cls(tuple(values.get(loc, "") for loc in LOCALES), flags)

    def get(self, locale: str) -> str:
        return self.strings[LOCALES.index(locale)]


Value = Union[int, float, str, LocalizedText]
Record = dict[str, Value]


@dataclass
class DBCHeader:
    magic: bytes = MAGIC
    record_count: int = 0
    field_count: int = 0
    record_size: int = 0
    string_block_size: int = 0

    def pack(self) -> bytes:
        return HEADER.pack(
            self.magic,
            self.record_count,
            self.field_count,
            self.record_size,
            self.string_block_size,
        )


@dataclass
class DBCFile:
    """A decoded DBC: header plus records in on-disk order."""

    header: DBCHeader
    records: list[Record] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.records)


class StringBlockBuilder:
    """
    Incremental string block for one encode call.

    Offset 0 is the empty string. Identical strings share one offset.
    """

    def __init__(self) -> None:
        self._buffer = bytearray(b"\x00")
        self._offsets: dict[str, int] = {"": 0}

    def add(self, value: str) -> int:
        offset = self._offsets.get(value)
        if offset is not None:
            return offset
        offset = len(self._buffer)
        self._buffer += value.encode("utf-8")
        self._buffer.append(0)
        self._offsets[value] = offset
        return offset

    def __len__(self) -> int:
        return len(self._buffer)

    def getvalue(self) -> bytes:
        return bytes(self._buffer)


# =============================================================================
# Decoding
# =============================================================================
def read_header(data: bytes) -> DBCHeader:
    """Parse and validate the fixed header."""
    if len(data) < HEADER_SIZE:
        raise FormatError(
            f"Buffer too short for header: {len(data)} < {HEADER_SIZE} bytes"
        )
    header = DBCHeader(*HEADER.unpack_from(data, 0))
    if header.magic != MAGIC:
        raise FormatError(f"Bad magic {header.magic!r}, expected {MAGIC!r}")
    return header


def _read_string(block: bytes, offset: int, field_name: str) -> str:
    if offset == 0:
        return ""
    if offset >= len(block):
        raise FormatError(
            f"Field '{field_name}': string offset {offset} outside block "
            f"of {len(block)} bytes"
        )
    end = block.find(b"\x00", offset)
    if end < 0:
        raise FormatError(
            f"Field '{field_name}': string at offset {offset} is not terminated"
        )
    try:
        return block[offset:end].decode("utf-8")
    except UnicodeDecodeError as e:
        raise FormatError(
            f"Field '{field_name}': invalid UTF-8 at offset {offset}: {e}"
        ) from e


def decode(data: bytes, schema: Schema) -> DBCFile:
    """
    Decode a DBC buffer into records.

    Args:
        data: Whole file contents
        schema: Schema of this DBC kind

    Returns:
        DBCFile with records in on-disk order

    Raises:
        FormatError: on any layout violation
    """
    header = read_header(data)

    body_size = len(data) - HEADER_SIZE - header.string_block_size
    if body_size != header.record_count * header.record_size:
        raise FormatError(
            f"Size mismatch: {body_size} record bytes available, header declares "
            f"{header.record_count} x {header.record_size}"
        )
    if header.record_size != schema.record_size:
        raise FormatError(
            f"Record size {header.record_size} does not match schema stride "
            f"{schema.record_size} for {schema.file}"
        )
    if header.field_count != schema.slot_count:
        logger.warning(
            f"{schema.file}: header field count {header.field_count} differs "
            f"from schema slot count {schema.slot_count}",
            extra={"table": schema.table_name},
        )

    block_start = HEADER_SIZE + body_size
    block = data[block_start:]
    if block and block[0] != 0:
        raise FormatError("String block does not start with a NUL byte")

    records: list[Record] = []
    fields = schema.physical_fields
    for row in range(header.record_count):
        pos = HEADER_SIZE + row * header.record_size
        record: Record = {}
        for pf in fields:
            if pf.kind is FieldKind.LOC:
                slots = _LOC_FORMAT.unpack_from(data, pos)
                pos += _LOC_FORMAT.size
                record[pf.name] = LocalizedText(
                    tuple(_read_string(block, off, pf.name) for off in slots[:-1]),
                    slots[-1],
                )
                continue

            fmt = _SCALAR_FORMATS[pf.kind]
            (raw,) = fmt.unpack_from(data, pos)
            pos += SLOT_SIZE
            if pf.kind is FieldKind.STRING:
                record[pf.name] = _read_string(block, raw, pf.name)
            else:
                record[pf.name] = raw
        records.append(record)

    return DBCFile(header=header, records=records)


# =============================================================================
# Encoding
# =============================================================================
def _pack_scalar(kind: FieldKind, value: Value, field_name: str) -> bytes:
    try:
        return _SCALAR_FORMATS[kind].pack(value)
    except (struct.error, OverflowError) as e:
        raise FormatError(f"Field '{field_name}': cannot encode {value!r}: {e}") from e


def encode(records: Iterable[Record], schema: Schema) -> bytes:
    """
    Encode records into a DBC buffer.

    Rows are written in input order; callers that need a particular order
    sort beforehand. String deduplication is scoped to this call.

    Raises:
        FormatError: when a record lacks a field or a value does not fit its kind
    """
    strings = StringBlockBuilder()
    body = bytearray()
    count = 0
    fields = schema.physical_fields

    for index, record in enumerate(records):
        for pf in fields:
            try:
                value = record[pf.name]
            except KeyError:
                raise FormatError(
                    f"Record {index} is missing field '{pf.name}'"
                ) from None

            if pf.kind is FieldKind.LOC:
                if not isinstance(value, LocalizedText):
                    raise FormatError(
                        f"Field '{pf.name}': expected LocalizedText, got "
                        f"{type(value).__name__}"
                    )
                offsets = [strings.add(s) for s in value.strings]
                try:
                    body += _LOC_FORMAT.pack(*offsets, value.flags)
                except (struct.error, OverflowError) as e:
                    raise FormatError(
                        f"Field '{pf.name}': cannot encode flags {value.flags!r}: {e}"
                    ) from e
            elif pf.kind is FieldKind.STRING:
                body += _pack_scalar(pf.kind, strings.add(str(value)), pf.name)
            else:
                body += _pack_scalar(pf.kind, value, pf.name)
        count += 1

    record_size = schema.record_size
    if record_size % SLOT_SIZE != 0:
        raise RuntimeError(f"record size {record_size} of {schema.file} is not slot aligned")

    header = DBCHeader(
        magic=MAGIC,
        record_count=count,
        field_count=schema.slot_count,
        record_size=record_size,
        string_block_size=len(strings),
    )
    return header.pack() + bytes(body) + strings.getvalue()
