"""Interface description (ABI) codec.

Parses JSON ABI files and encodes them into the canonical ``abi_def``
binary form expected by the system contract's ``setabi`` action:

  version            string
  types              vector<type_def>
  structs            vector<struct_def>
  actions            vector<action_def>
  tables             vector<table_def>
  ricardian_clauses  vector<clause_pair>
  error_messages     vector<error_message>
  abi_extensions     vector<pair<uint16, bytes>>
  variants           vector<variant_def>       (binary extension)
  action_results     vector<action_result_def> (binary extension)

Strings and byte arrays are prefixed with a varuint32 length. Names are
packed into a little-endian uint64 using the 5-bit name alphabet.
"""

from __future__ import annotations

import json
import struct
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from retester.core.errors import ParseError

NAME_CHARS = ".12345abcdefghijklmnopqrstuvwxyz"
_NAME_MAX_LEN = 13


# ── Schema ───────────────────────────────────────────────────────────────────


class _AbiModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class TypeDef(_AbiModel):
    new_type_name: str
    type: str


class FieldDef(_AbiModel):
    name: str
    type: str


class StructDef(_AbiModel):
    name: str
    base: str = ""
    fields: list[FieldDef] = Field(default_factory=list)


class ActionDef(_AbiModel):
    name: str
    type: str
    ricardian_contract: str = ""


class TableDef(_AbiModel):
    name: str
    index_type: str = "i64"
    key_names: list[str] = Field(default_factory=list)
    key_types: list[str] = Field(default_factory=list)
    type: str


class ClausePair(_AbiModel):
    id: str
    body: str = ""


class ErrorMessage(_AbiModel):
    error_code: int = Field(ge=0, lt=2**64)
    error_msg: str = ""


class AbiExtension(_AbiModel):
    tag: int = Field(ge=0, lt=2**16)
    value: str = ""  # hex

    @field_validator("value")
    @classmethod
    def _hex(cls, v: str) -> str:
        bytes.fromhex(v)
        return v


class VariantDef(_AbiModel):
    name: str
    types: list[str] = Field(default_factory=list)


class ActionResultDef(_AbiModel):
    name: str
    result_type: str


class AbiDefinition(_AbiModel):
    """A parsed contract ABI."""

    version: str = "eosio::abi/1.2"
    types: list[TypeDef] = Field(default_factory=list)
    structs: list[StructDef] = Field(default_factory=list)
    actions: list[ActionDef] = Field(default_factory=list)
    tables: list[TableDef] = Field(default_factory=list)
    ricardian_clauses: list[ClausePair] = Field(default_factory=list)
    error_messages: list[ErrorMessage] = Field(default_factory=list)
    abi_extensions: list[AbiExtension] = Field(default_factory=list)
    variants: list[VariantDef] = Field(default_factory=list)
    action_results: list[ActionResultDef] = Field(default_factory=list)

    @field_validator("abi_extensions", mode="before")
    @classmethod
    def _pairs(cls, v: Any) -> Any:
        # Extensions are commonly serialized as [tag, hex] pairs
        if isinstance(v, list):
            return [
                {"tag": item[0], "value": item[1]} if isinstance(item, (list, tuple)) else item
                for item in v
            ]
        return v


# ── Parsing ──────────────────────────────────────────────────────────────────


def parse_abi(source: str | bytes | Mapping[str, Any], path: str | None = None) -> AbiDefinition:
    """Parse ABI JSON text or an already-decoded mapping."""
    if isinstance(source, (str, bytes)):
        try:
            source = json.loads(source)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ParseError(path, f"invalid JSON: {e}") from e
    if not isinstance(source, Mapping):
        raise ParseError(path, f"expected a JSON object, got {type(source).__name__}")
    try:
        return AbiDefinition.model_validate(dict(source))
    except ValidationError as e:
        raise ParseError(path, str(e)) from e


# ── Encoding ─────────────────────────────────────────────────────────────────


def encode_name(name: str) -> int:
    """Pack an account/action name into its uint64 value."""
    if len(name) > _NAME_MAX_LEN:
        raise ParseError(None, f"name {name!r} is longer than {_NAME_MAX_LEN} characters")
    value = 0
    for i in range(_NAME_MAX_LEN):
        c = 0
        if i < len(name):
            c = NAME_CHARS.find(name[i])
            if c < 0:
                raise ParseError(None, f"name {name!r} contains invalid character {name[i]!r}")
        if i < 12:
            value |= (c & 0x1F) << (64 - 5 * (i + 1))
        else:
            if c > 0x0F:
                raise ParseError(None, f"thirteenth character of name {name!r} must be in [.1-5a-j]")
            value |= c & 0x0F
    return value


class _Writer:
    def __init__(self) -> None:
        self._buf = bytearray()

    def varuint32(self, value: int) -> None:
        if value < 0 or value >= 2**32:
            raise ParseError(None, f"varuint32 out of range: {value}")
        while True:
            byte = value & 0x7F
            value >>= 7
            if value:
                self._buf.append(byte | 0x80)
            else:
                self._buf.append(byte)
                return

    def bytes_(self, data: bytes) -> None:
        self.varuint32(len(data))
        self._buf += data

    def string(self, value: str) -> None:
        self.bytes_(value.encode("utf-8"))

    def name(self, value: str) -> None:
        self._buf += struct.pack("<Q", encode_name(value))

    def uint16(self, value: int) -> None:
        self._buf += struct.pack("<H", value)

    def uint64(self, value: int) -> None:
        self._buf += struct.pack("<Q", value)

    def strings(self, values: list[str]) -> None:
        self.varuint32(len(values))
        for v in values:
            self.string(v)

    def getvalue(self) -> bytes:
        return bytes(self._buf)


def encode_abi(abi: AbiDefinition) -> bytes:
    """Encode a parsed ABI into its canonical binary form."""
    w = _Writer()
    w.string(abi.version)

    w.varuint32(len(abi.types))
    for t in abi.types:
        w.string(t.new_type_name)
        w.string(t.type)

    w.varuint32(len(abi.structs))
    for s in abi.structs:
        w.string(s.name)
        w.string(s.base)
        w.varuint32(len(s.fields))
        for f in s.fields:
            w.string(f.name)
            w.string(f.type)

    w.varuint32(len(abi.actions))
    for a in abi.actions:
        w.name(a.name)
        w.string(a.type)
        w.string(a.ricardian_contract)

    w.varuint32(len(abi.tables))
    for t in abi.tables:
        w.name(t.name)
        w.string(t.index_type)
        w.strings(t.key_names)
        w.strings(t.key_types)
        w.string(t.type)

    w.varuint32(len(abi.ricardian_clauses))
    for c in abi.ricardian_clauses:
        w.string(c.id)
        w.string(c.body)

    w.varuint32(len(abi.error_messages))
    for e in abi.error_messages:
        w.uint64(e.error_code)
        w.string(e.error_msg)

    w.varuint32(len(abi.abi_extensions))
    for ext in abi.abi_extensions:
        w.uint16(ext.tag)
        w.bytes_(bytes.fromhex(ext.value))

    w.varuint32(len(abi.variants))
    for v in abi.variants:
        w.string(v.name)
        w.strings(v.types)

    w.varuint32(len(abi.action_results))
    for r in abi.action_results:
        w.name(r.name)
        w.string(r.result_type)

    return w.getvalue()


def encode_abi_hex(source: str | bytes | Mapping[str, Any], path: str | None = None) -> str:
    """Parse and encode an ABI, returning the hex string ``setabi`` expects."""
    return encode_abi(parse_abi(source, path=path)).hex()
