"""Find the patch hash and tool calls recorded in a message's parts."""

import logging
from collections.abc import Iterator

from .core import Part, PatchPart, ToolPart, parse_part
from .storage import StorageIndex, safe_read_json

logger = logging.getLogger(__name__)


class PatchLocator:
    def __init__(self, index: StorageIndex):
        self.index = index

    def iter_parts(self, message_id: str) -> Iterator[Part]:
        """Yield parsed parts; malformed files are skipped."""
        for part_file in self.index.list_part_files(message_id):
            part = parse_part(safe_read_json(part_file.path))
            if part is not None:
                yield part

    def patch_hash(self, message_id: str) -> str | None:
        # First match wins. Enumeration order is not authoring order, so a
        # message with several patch parts gets an arbitrary one.
        for part in self.iter_parts(message_id):
            if isinstance(part, PatchPart):
                return part.hash
        return None

    def tools_used(self, message_id: str) -> list[str]:
        return [part.tool for part in self.iter_parts(message_id) if isinstance(part, ToolPart)]
