"""Reader-based decoding.

Decoder mirrors the shape of stream decoders elsewhere: construct it from a
source, then decode into as many destinations as needed. The whole document
is parsed up front; there is no incremental decoding.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import IO, Any

from lxml import etree

from cssdecode.exceptions import Reason, UnmarshalError
from cssdecode.selection import Document
from cssdecode.unmarshal import unmarshal_selection

logger = logging.getLogger(__name__)


class Decoder:
    """Decode one parsed document into annotated destinations.

    Usage:
    ```python
    with open("page.html", "rb") as fh:
        page = Decoder(fh).decode(FrontPage)

    # or, from a path
    page = Decoder("page.html").decode(FrontPage)
    ```

    Errors reading or parsing the source are held and raised by ``decode``.
    """

    def __init__(
        self,
        source: IO[bytes] | IO[str] | str | os.PathLike[str] | None = None,
        *,
        document: Document | None = None,
    ):
        self.document = document
        self.error: Exception | None = None
        if source is not None:
            try:
                data = source.read() if hasattr(source, "read") else Path(source).read_bytes()
                self.document = Document.parse(data)
            except (OSError, ValueError, etree.LxmlError) as e:
                logger.debug("failed to load document from %r: %s", source, e)
                self.error = e

    def decode(self, dest: Any) -> Any:
        """Decode the document into ``dest``.

        Raises:
            OSError, ValueError, lxml.etree.LxmlError: Reading or parsing the
                source failed.
            UnmarshalError: There is no document, or decoding failed.
        """
        if self.error is not None:
            raise self.error
        if self.document is None:
            raise UnmarshalError(Reason.NIL_DOCUMENT)
        return unmarshal_selection(self.document, dest)
