"""
Reversible encodings applied to a store's serialized records before they
are written to the persistence area.

Every codec must round-trip losslessly: decode(encode(records)) == records.
"""
import base64
import json
import zlib
from abc import ABC, abstractmethod
from typing import Any, Dict, List


class Codec(ABC):
    """Encodes a record list to a string and back."""

    name: str = ""

    @abstractmethod
    def encode(self, records: List[Dict[str, Any]]) -> str:
        """Encode records into a string."""

    @abstractmethod
    def decode(self, encoded: str) -> List[Dict[str, Any]]:
        """Decode a string produced by encode()."""


class JsonCodec(Codec):
    """Re-serializes the records as JSON text without any size reduction."""

    name = "json"

    def encode(self, records: List[Dict[str, Any]]) -> str:
        return json.dumps(records, ensure_ascii=False)

    def decode(self, encoded: str) -> List[Dict[str, Any]]:
        records = json.loads(encoded)
        if not isinstance(records, list):
            raise ValueError(f"Decoded payload is {type(records).__name__}, expected list")
        return records


class ZlibCodec(Codec):
    """Compresses the JSON text with zlib and base64-encodes the result."""

    name = "zlib"

    def __init__(self, level: int = 6):
        self.level = level

    def encode(self, records: List[Dict[str, Any]]) -> str:
        raw = json.dumps(records, ensure_ascii=False).encode("utf-8")
        return base64.b64encode(zlib.compress(raw, self.level)).decode("ascii")

    def decode(self, encoded: str) -> List[Dict[str, Any]]:
        raw = zlib.decompress(base64.b64decode(encoded.encode("ascii"), validate=True))
        records = json.loads(raw.decode("utf-8"))
        if not isinstance(records, list):
            raise ValueError(f"Decoded payload is {type(records).__name__}, expected list")
        return records


_CODECS = {
    JsonCodec.name: JsonCodec,
    ZlibCodec.name: ZlibCodec,
}


def get_codec(name: str) -> Codec:
    """
    Resolve a codec by name.

    Args:
        name: Codec name ("json" or "zlib")

    Returns:
        A new codec instance

    Raises:
        ValueError: If no codec has that name
    """
    codec_class = _CODECS.get(name.strip().lower())
    if codec_class is None:
        raise ValueError(f"Unknown codec: {name}")
    return codec_class()
