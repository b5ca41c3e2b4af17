"""cssdecode: Declarative HTML decoding with CSS selector annotations."""

from cssdecode.decoder import Decoder
from cssdecode.exceptions import CssDecodeError, Reason, UnmarshalError
from cssdecode.markers import IGNORE, Query
from cssdecode.record import DecodeConfig, Record
from cssdecode.selection import Document, Nodes, Selection, node_selector
from cssdecode.shapes import Unmarshaler
from cssdecode.tag import Tag
from cssdecode.unmarshal import unmarshal, unmarshal_selection

__all__ = [
    # Core types
    "Record",
    "DecodeConfig",
    "Unmarshaler",
    # Markers
    "Query",
    "IGNORE",
    # Decoding
    "unmarshal",
    "unmarshal_selection",
    "Decoder",
    "Tag",
    # Selections
    "Document",
    "Selection",
    "Nodes",
    "node_selector",
    # Exceptions
    "CssDecodeError",
    "UnmarshalError",
    "Reason",
]
