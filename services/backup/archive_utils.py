"""
Archive utilities for backup compression using gzip.

Dumps can be larger than memory, so the file is streamed through the
compressor in fixed-size chunks.
"""

import gzip
import shutil
from pathlib import Path

from services.errors import CompressionError
from services.interfaces import ILogger

CHUNK_SIZE = 1024 * 1024
COMPRESSION_LEVEL = 6


def compressed_path_for(source: Path) -> Path:
    return source.with_name(source.name + ".gz")


def compress_file(source: Path, logger: ILogger, level: int = COMPRESSION_LEVEL) -> Path:
    """
    Compress ``source`` into ``<source>.gz`` next to it.

    Args:
        source: Path to the dump file
        logger: Logger instance for logging
        level: gzip compression level (1-9)

    Returns:
        Path to the compressed file

    Raises:
        CompressionError: if the source cannot be read or the archive cannot be written
    """
    source = Path(source)
    target = compressed_path_for(source)
    logger.info(f"Compressing file {source.name}")

    try:
        with source.open("rb") as src, gzip.open(target, "wb", compresslevel=level) as dst:
            shutil.copyfileobj(src, dst, CHUNK_SIZE)
    except OSError as e:
        raise CompressionError(f"Compression of {source.name} failed: {e}") from e

    original_size = source.stat().st_size
    archive_size = target.stat().st_size
    ratio = (1 - archive_size / original_size) * 100 if original_size > 0 else 0
    logger.info(
        f"Archive created: {target.name} "
        f"({original_size / (1024 ** 2):.2f} MB -> {archive_size / (1024 ** 2):.2f} MB, saved {ratio:.1f}%)"
    )
    return target
