"""CBOR (RFC 7049) 编解码库.

提供 CBOR 数据项模型、流式解码器与编码器、序列化(dumps)和反序列化(loads)功能.
"""

from .adapter import CborTypeAdapter, from_json, from_python, to_python
from .api import dump, dumps, encoded_length, iter_loads, load, loads
from .buffer import (
    ByteCursor,
    ByteSink,
    CountingWriter,
    DataReader,
    DataWriter,
    FixedWriter,
    IOReader,
    IOWriter,
)
from .config import CborConfig
from .const import (
    BASE64,
    BASE64URL,
    BIGFLOAT,
    BIGNUM_NEG,
    BIGNUM_POS,
    CBOR_DATA_ITEM,
    EXPECTED_BASE16,
    EXPECTED_BASE64,
    FRACTION,
    REGEX,
    SELF_DESCRIBE_CBOR,
    TAG_MAX,
    TIME_DATE_STRING,
    TIMESTAMP_UNIX,
    UNTAGGED,
    URI,
    MajorType,
)
from .decoder import CborDecoder
from .encoder import CborEncoder
from .exceptions import (
    CborConversionError,
    CborError,
    CborExhaustedError,
    CborIOError,
    CborOverflowError,
    CborParseError,
    CborPartialDataError,
    CborTypeError,
    CborValueError,
)
from .options import CborOption
from .stream import CborStreamReader, CborStreamWriter
from .types import (
    FALSE,
    NULL,
    TRUE,
    UNDEFINED,
    CborArray,
    CborByteString,
    CborFloat,
    CborInteger,
    CborItem,
    CborMap,
    CborSimple,
    CborTextString,
    FloatWidth,
    Kind,
)

__version__ = "0.1.0"

__all__ = [
    "BASE64",
    "BASE64URL",
    "BIGFLOAT",
    "BIGNUM_NEG",
    "BIGNUM_POS",
    "CBOR_DATA_ITEM",
    "EXPECTED_BASE16",
    "EXPECTED_BASE64",
    "FALSE",
    "FRACTION",
    "NULL",
    "REGEX",
    "SELF_DESCRIBE_CBOR",
    "TAG_MAX",
    "TIMESTAMP_UNIX",
    "TIME_DATE_STRING",
    "TRUE",
    "UNDEFINED",
    "UNTAGGED",
    "URI",
    "ByteCursor",
    "ByteSink",
    "CborArray",
    "CborByteString",
    "CborConfig",
    "CborConversionError",
    "CborDecoder",
    "CborEncoder",
    "CborError",
    "CborExhaustedError",
    "CborFloat",
    "CborIOError",
    "CborInteger",
    "CborItem",
    "CborMap",
    "CborOption",
    "CborOverflowError",
    "CborParseError",
    "CborPartialDataError",
    "CborSimple",
    "CborStreamReader",
    "CborStreamWriter",
    "CborTextString",
    "CborTypeAdapter",
    "CborTypeError",
    "CborValueError",
    "CountingWriter",
    "DataReader",
    "DataWriter",
    "FixedWriter",
    "FloatWidth",
    "IOReader",
    "IOWriter",
    "Kind",
    "MajorType",
    "__version__",
    "dump",
    "dumps",
    "encoded_length",
    "from_json",
    "from_python",
    "iter_loads",
    "load",
    "loads",
    "to_python",
]
