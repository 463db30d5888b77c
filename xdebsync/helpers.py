"""Helper methods for use with Xdebsync."""

import os
import gzip
import lzma
import math
import zlib
import tempfile
import logging
from enum import Enum
from pathlib import Path
from urllib.parse import urlsplit

import zstandard

from xdebsync.errors import DecodeError, UnsupportedFormatError, WriteError

logger = logging.getLogger(__name__)

# Storage size matters more than speed, snapshots are written once per sync
COMPRESSION_LEVEL = 19
COMPRESSED_SUFFIX = ".zst"

class CompressionFormat(Enum):
    """
        Compression formats of remote Index files.

        Section 1.1.2 of the DebianRepository Format document states that
        an index may be compressed with no extension, or as XZ (.xz) or
        Gzip (.gz) among others.
        - https://wiki.debian.org/DebianRepository/Format#Compression_of_indices
    """
    Plain = ""
    Xz    = ".xz"
    Gzip  = ".gz"

    @staticmethod
    def FromUrl(url: str) -> "CompressionFormat":
        """Determine the format from the suffix of the path of a Url."""
        path = urlsplit(url).path

        if path.endswith(CompressionFormat.Xz.value):
            return CompressionFormat.Xz
        elif path.endswith(CompressionFormat.Gzip.value):
            return CompressionFormat.Gzip

        return CompressionFormat.Plain

def Compress(data: bytes) -> bytes:
    """Compress data into a single zstd frame."""
    compressor = zstandard.ZstdCompressor(level=COMPRESSION_LEVEL)
    return compressor.compress(data)

def Decompress(data: bytes) -> bytes:
    """
        Decompress a single zstd frame.

        Raises DecodeError if the data is not a complete zstd frame.
    """
    decompressor = zstandard.ZstdDecompressor().decompressobj()

    try:
        output = decompressor.decompress(data)
    except zstandard.ZstdError as e:
        raise DecodeError(f"Invalid zstd data: {e}") from e

    if not decompressor.eof:
        raise DecodeError("Invalid zstd data: incomplete frame")

    if decompressor.unused_data:
        raise DecodeError(f"Invalid zstd data: {len(decompressor.unused_data)} bytes after frame")

    return output

def DecompressRemote(data: bytes, formatHint) -> bytes:
    """
        Decompress a remote Index file.

        The hint is either a CompressionFormat or the suffix it represents.
    """
    try:
        compression = CompressionFormat(formatHint)
    except ValueError:
        raise UnsupportedFormatError(f"Unsupported compression format '{formatHint}'") from None

    try:
        if compression == CompressionFormat.Xz:
            return lzma.decompress(data, format=lzma.FORMAT_XZ)
        elif compression == CompressionFormat.Gzip:
            return gzip.decompress(data)
    except (lzma.LZMAError, OSError, EOFError, zlib.error) as e:
        raise DecodeError(f"Invalid {compression.name} data: {e}") from e

    return data

def DecompressFile(path: str) -> bytes:
    """Read a zstd compressed file and return its decompressed contents."""
    with open(path, "rb") as f:
        data = f.read()

    return Decompress(data)

def WriteFile(path: str, data: bytes, compress: bool) -> str:
    """
        Write data to a file, creating any missing directories.

        When compress is set, the data is compressed and the suffix ".zst"
        is appended to the path. The file is replaced in a single step so
        that readers never see a partially written file.

        Returns the path of the written file.
    """

    fullPath = path
    if compress:
        data = Compress(data)
        fullPath = f"{path}{COMPRESSED_SUFFIX}"

    directory = Path(fullPath).parent

    try:
        os.makedirs(directory, exist_ok=True)
        fd, temporaryPath = tempfile.mkstemp(dir=directory, prefix=".xdebsync-")
    except OSError as e:
        raise WriteError(f"Could not write file {fullPath}: {e}") from e

    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(temporaryPath, fullPath)
    except OSError as e:
        if os.path.isfile(temporaryPath):
            os.remove(temporaryPath)
        raise WriteError(f"Could not write file {fullPath}: {e}") from e

    logger.debug(f"Wrote {fullPath} ({ConvertSize(len(data))})")
    return fullPath

def ConvertSize(size: int) -> str:
    """Convert a number of bytes into a number with a suitable unit."""
    if size <= 0:
        return "0 B"

    sizeName = ("B", "KB", "MB", "GB", "TB", "PB", "EB", "ZB", "YB")
    i = min(int(math.floor(math.log(size, 1024))), len(sizeName) - 1)
    p = math.pow(1024, i)
    s = round(size / p, 2)
    return f"{s} {sizeName[i]}"
