#!/usr/bin/env python3
"""
ZIP archive reader for the IGC flight import toolkit

Walks the central directory of an in-memory archive and extracts the flight
files it contains. Only stored and deflated entries are supported; entry
names are sanitized so nothing can escape the archive root.
"""

import logging
import re
import struct
import zlib
from dataclasses import dataclass, field
from typing import List, Optional

from igc_config import ZipLimits
from igc_errors import FormatError, LimitExceededError, UnsupportedCompressionError
from igc_model import FileType, ZipEntry
from igc_utils import inferImportFileType
from igc_constants import (
    FileType as FileTypeConstants,
    ZIP_CENTRAL_FILE_HEADER_SIGNATURE,
    ZIP_CENTRAL_HEADER_SIZE,
    ZIP_EOCD_MAX_SEARCH,
    ZIP_EOCD_MIN_SIZE,
    ZIP_EOCD_SIGNATURE,
    ZIP_LOCAL_FILE_HEADER_SIGNATURE,
    ZIP_LOCAL_HEADER_SIZE,
    ZIP_METHOD_DEFLATE,
    ZIP_METHOD_STORED,
)

# Configure logger
logger = logging.getLogger(__name__)

_DRIVE_LETTER = re.compile(r'^[A-Za-z]:/')


@dataclass
class ZipExtraction:
    """Extracted entries in central-directory order, plus per-entry failures"""
    entries: List[ZipEntry] = field(default_factory=list)
    errors: List[UnsupportedCompressionError] = field(default_factory=list)


def sanitizeZipPath(entry_name: str) -> Optional[str]:
    """
    Normalize an archive member name, or return None if it must be skipped:
    directories, parent-directory escapes and absolute drive paths.
    """
    normalized = str(entry_name or '').replace('\\', '/').lstrip('/')
    if not normalized or normalized.endswith('/'):
        return None
    if '../' in normalized:
        return None
    if _DRIVE_LETTER.match(normalized):
        return None
    return normalized


class ZipReader:
    """
    Minimal ZIP reader working on a byte buffer.
    Resource limits are checked against the declared sizes before inflating
    and against the bytes actually produced while inflating.
    """

    def __init__(self, limits: Optional[ZipLimits] = None):
        """Initialize with extraction limits"""
        self.limits = limits or ZipLimits()

    def _is_supported(self, path: str) -> bool:
        file_type = inferImportFileType(path)
        if file_type == FileTypeConstants.IGC:
            return True
        return file_type == FileTypeConstants.CSV and self.limits.allow_csv

    @staticmethod
    def find_eocd_offset(data: bytes) -> int:
        """Scan backwards for the end-of-central-directory record; -1 if absent"""
        min_offset = max(0, len(data) - ZIP_EOCD_MAX_SEARCH)
        for offset in range(len(data) - ZIP_EOCD_MIN_SIZE, min_offset - 1, -1):
            if struct.unpack_from('<I', data, offset)[0] == ZIP_EOCD_SIGNATURE:
                return offset
        return -1

    @staticmethod
    def inflate(compressed: bytes, path: str, max_length: Optional[int] = None) -> bytes:
        """
        Raw-inflate a deflate stream (no zlib header). With max_length set,
        output beyond it raises LimitExceededError instead of being produced.
        """
        try:
            decompressor = zlib.decompressobj(-zlib.MAX_WBITS)
            if max_length is None:
                return decompressor.decompress(compressed) + decompressor.flush()
            output = decompressor.decompress(compressed, max_length + 1)
            if len(output) <= max_length and not decompressor.unconsumed_tail:
                output += decompressor.flush()
        except zlib.error as e:
            raise FormatError(f"Invalid ZIP: corrupt deflate data for {path}: {e}", path) from e

        if len(output) > max_length or decompressor.unconsumed_tail:
            raise LimitExceededError(
                f"ZIP entry inflates past the uncompressed limit: {path}",
                'max_uncompressed_bytes', len(output), max_length, path,
            )
        return output

    def _read_entry_data(self, data: bytes, local_offset: int, compressed_size: int, path: str) -> bytes:
        if local_offset + ZIP_LOCAL_HEADER_SIZE > len(data):
            raise FormatError("Invalid ZIP: local header out of range", path)
        if struct.unpack_from('<I', data, local_offset)[0] != ZIP_LOCAL_FILE_HEADER_SIGNATURE:
            raise FormatError(f"Invalid ZIP: malformed local header for {path}", path)

        name_length, extra_length = struct.unpack_from('<HH', data, local_offset + 26)
        data_start = local_offset + ZIP_LOCAL_HEADER_SIZE + name_length + extra_length
        data_end = data_start + compressed_size
        if data_end > len(data):
            raise FormatError(f"Invalid ZIP: compressed data out of range for {path}", path)

        return data[data_start:data_end]

    def extract_entries(self, data: bytes, archive_name: str = 'archive.zip') -> ZipExtraction:
        """
        Extract supported flight files from the archive.

        Raises FormatError for a malformed container and LimitExceededError when
        a configured ceiling is hit. Unsupported compression methods are
        collected in the result per entry while the other entries continue.
        """
        if len(data) < ZIP_EOCD_MIN_SIZE:
            raise FormatError("Invalid ZIP: missing end of central directory", archive_name)

        eocd_offset = self.find_eocd_offset(data)
        if eocd_offset < 0:
            raise FormatError("Invalid ZIP: missing end of central directory", archive_name)

        total_entries = struct.unpack_from('<H', data, eocd_offset + 10)[0]
        central_dir_size, central_dir_offset = struct.unpack_from('<II', data, eocd_offset + 12)

        if total_entries > self.limits.max_entries:
            raise LimitExceededError(
                f"ZIP contains too many entries ({total_entries} > {self.limits.max_entries})",
                'max_entries', total_entries, self.limits.max_entries, archive_name,
            )
        if central_dir_offset + central_dir_size > len(data):
            raise FormatError("Invalid ZIP: central directory out of range", archive_name)

        result = ZipExtraction()
        cursor = central_dir_offset
        total_uncompressed = 0

        for _ in range(total_entries):
            if cursor + ZIP_CENTRAL_HEADER_SIZE > len(data):
                raise FormatError("Invalid ZIP: truncated central directory entry", archive_name)
            if struct.unpack_from('<I', data, cursor)[0] != ZIP_CENTRAL_FILE_HEADER_SIGNATURE:
                raise FormatError("Invalid ZIP: malformed central directory signature", archive_name)

            method = struct.unpack_from('<H', data, cursor + 10)[0]
            compressed_size, uncompressed_size = struct.unpack_from('<II', data, cursor + 20)
            name_length, extra_length, comment_length = struct.unpack_from('<HHH', data, cursor + 28)
            local_offset = struct.unpack_from('<I', data, cursor + 42)[0]

            name_start = cursor + ZIP_CENTRAL_HEADER_SIZE
            name_end = name_start + name_length
            if name_end > len(data):
                raise FormatError("Invalid ZIP: file name out of range", archive_name)

            raw_name = data[name_start:name_end].decode('utf-8', errors='replace')
            cursor = name_end + extra_length + comment_length

            safe_path = sanitizeZipPath(raw_name)
            if not safe_path:
                logger.debug(f"Skipping unsafe or directory entry: {raw_name!r}")
                continue
            if not self._is_supported(safe_path):
                logger.debug(f"Skipping unsupported entry: {safe_path}")
                continue

            if uncompressed_size > self.limits.max_uncompressed_bytes:
                raise LimitExceededError(
                    f"ZIP entry too large: {safe_path}",
                    'max_uncompressed_bytes', uncompressed_size, self.limits.max_uncompressed_bytes, safe_path,
                )
            if total_uncompressed + uncompressed_size > self.limits.max_uncompressed_bytes:
                raise LimitExceededError(
                    f"ZIP exceeds uncompressed limit ({self.limits.max_uncompressed_bytes} bytes)",
                    'max_uncompressed_bytes', total_uncompressed + uncompressed_size,
                    self.limits.max_uncompressed_bytes, archive_name,
                )

            compressed = self._read_entry_data(data, local_offset, compressed_size, safe_path)
            budget = self.limits.max_uncompressed_bytes - total_uncompressed

            if method == ZIP_METHOD_STORED:
                file_bytes = bytes(compressed)
            elif method == ZIP_METHOD_DEFLATE:
                file_bytes = self.inflate(compressed, safe_path, budget)
            else:
                error = UnsupportedCompressionError(
                    f"Unsupported ZIP compression method {method} for {safe_path}",
                    method, f"{archive_name}/{safe_path}",
                )
                logger.warning(error.message)
                result.errors.append(error)
                continue

            # Actual size must match the central directory
            if len(file_bytes) != uncompressed_size:
                raise FormatError(
                    f"Invalid ZIP: {safe_path} holds {len(file_bytes)} bytes, header declares {uncompressed_size}",
                    safe_path,
                )
            total_uncompressed += len(file_bytes)

            result.entries.append(ZipEntry(
                path=f"{archive_name}/{safe_path}",
                inferred_type=FileType(inferImportFileType(safe_path)),
                file_bytes=file_bytes,
            ))

        logger.debug(f"Extracted {len(result.entries)} entries from {archive_name}")
        return result


# Public functions

def extractEntries(data: bytes, limits: Optional[ZipLimits] = None, archive_name: str = 'archive.zip') -> ZipExtraction:
    """Extract supported flight files from an in-memory ZIP archive"""
    return ZipReader(limits).extract_entries(data, archive_name)
