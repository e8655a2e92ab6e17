#!/usr/bin/env python3
"""
Request batching for the IGC flight import toolkit

Splits an ordered list of import items into chunks bounded by item count and
by the serialized JSON size of the chunk, without dropping or reordering.
"""

import json
import logging
from dataclasses import asdict, is_dataclass
from datetime import date
from enum import Enum
from typing import Any, List, Optional, Sequence

from igc_constants import CHUNK_ENVELOPE_BYTES, CHUNK_SEPARATOR_BYTES

# Configure logger
logger = logging.getLogger(__name__)


def _json_default(obj: Any) -> Any:
    if hasattr(obj, 'to_payload'):
        return obj.to_payload()
    if is_dataclass(obj) and not isinstance(obj, type):
        return asdict(obj)
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, (set, frozenset)):
        return sorted(obj)
    if isinstance(obj, bytes):
        return obj.decode('utf-8', errors='ignore')
    return str(obj)


def serializePayload(value: Any) -> str:
    """Compact JSON encoding used for size estimates and payload files"""
    return json.dumps(value, ensure_ascii=False, separators=(',', ':'), default=_json_default)


def estimateJsonBytes(value: Any) -> int:
    """UTF-8 byte length of the compact JSON encoding"""
    return len(serializePayload(value).encode('utf-8'))


class BatchChunker:
    """
    Greedy single-pass packing of items into request-sized chunks.
    Unset bounds are unbounded.
    """

    def __init__(self, max_items: Optional[int] = None, max_payload_bytes: Optional[int] = None):
        """Initialize with the chunk bounds"""
        if max_items is not None and max_items <= 0:
            raise ValueError(f"max_items must be positive, got {max_items}")
        if max_payload_bytes is not None and max_payload_bytes <= 0:
            raise ValueError(f"max_payload_bytes must be positive, got {max_payload_bytes}")
        self.max_items = max_items
        self.max_payload_bytes = max_payload_bytes

    def chunk(self, items: Sequence[Any]) -> List[List[Any]]:
        """
        Split items into chunks. A chunk is closed when it is full by count
        or when the next item would push "[" + items + "," separators + "]"
        past the byte budget. An item larger than the budget on its own
        still gets a chunk of its own.
        """
        chunks: List[List[Any]] = []
        current: List[Any] = []
        current_bytes = CHUNK_ENVELOPE_BYTES

        for item in items:
            item_bytes = max(1, estimateJsonBytes(item))
            full_by_count = self.max_items is not None and len(current) >= self.max_items
            full_by_size = (
                self.max_payload_bytes is not None
                and len(current) > 0
                and current_bytes + item_bytes + CHUNK_SEPARATOR_BYTES > self.max_payload_bytes
            )

            if full_by_count or full_by_size:
                chunks.append(current)
                current = []
                current_bytes = CHUNK_ENVELOPE_BYTES

            if self.max_payload_bytes is not None and item_bytes + CHUNK_ENVELOPE_BYTES > self.max_payload_bytes:
                logger.warning(f"Item of {item_bytes} bytes exceeds the {self.max_payload_bytes} byte budget on its own")

            current.append(item)
            current_bytes += item_bytes + CHUNK_SEPARATOR_BYTES

        if current:
            chunks.append(current)

        logger.debug(f"Split {len(items)} items into {len(chunks)} chunks")
        return chunks


# Public functions

def chunkItems(items: Sequence[Any], max_items: Optional[int] = None,
               max_payload_bytes: Optional[int] = None) -> List[List[Any]]:
    """Split items into request-sized chunks, preserving order"""
    return BatchChunker(max_items, max_payload_bytes).chunk(items)
