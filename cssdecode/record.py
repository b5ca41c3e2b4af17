"""Record base class for decodable models.

Records are Pydantic models that:
- Declare decodable fields with ``Annotated[T, Query("...")]``
- Accept raw lxml nodes and custom decoder types as field types
- Carry per-class decoding settings in ``decode_config``
"""

from __future__ import annotations

from typing import ClassVar, Self, TypedDict

from pydantic import BaseModel, ConfigDict

from cssdecode.selection import Selection
from cssdecode.unmarshal import unmarshal, unmarshal_selection


class DecodeConfig(TypedDict, total=False):
    """Per-record configuration for cssdecode-specific settings.

    Standalone TypedDict -- NOT extending Pydantic's ConfigDict.
    Pydantic config lives in model_config; decoding config lives here.
    """

    validate: bool
    """Build the record with ``model_validate`` instead of ``model_construct``."""


class Record(BaseModel):
    """Base class for models decoded from HTML.

    ```python
    class Story(Record):
        title: Annotated[str, Query("a.storylink")]
        link: Annotated[str, Query("a.storylink,[href]")]

    class FrontPage(Record):
        stories: Annotated[list[Story], Query("tr.athing")]

    page = FrontPage.from_html(html_bytes)
    ```

    By default a decoded record is assembled with ``model_construct``: the
    decoder has already converted every value, and fields it did not touch
    keep their declared defaults. Set ``decode_config = DecodeConfig(validate=True)``
    to run full Pydantic validation on the decoded values instead.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)
    decode_config: ClassVar[DecodeConfig] = DecodeConfig()

    @classmethod
    def from_html(cls, data: bytes | str) -> Self:
        """Parse ``data`` and decode it into a new instance."""
        return unmarshal(data, cls)

    @classmethod
    def from_selection(cls, selection: Selection) -> Self:
        """Decode an already-parsed selection into a new instance."""
        return unmarshal_selection(selection, cls)
