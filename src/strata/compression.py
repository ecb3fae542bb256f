"""
Page compression codecs.

Codec libraries other than gzip are optional dependencies and are only
imported when a page actually uses them.
"""

from __future__ import annotations

import io

from .enums import Compression
from .exceptions import CompressionError


def get_brotli():
    try:
        import brotli
    except ImportError:
        raise CompressionError(
            'Brotli compression requires brotli package',
        ) from None
    return brotli


def get_gzip():
    import gzip

    return gzip


def get_lz4():
    try:
        import lz4.block
    except ImportError:
        raise CompressionError(
            'LZ4 compression requires lz4 package',
        ) from None
    return lz4.block


def get_lzo():
    try:
        import lzo
    except ImportError:
        raise CompressionError(
            'LZO compression requires python-lzo package',
        ) from None
    return lzo


def get_snappy():
    try:
        import snappy
    except ImportError:
        raise CompressionError(
            'Snappy compression requires python-snappy package',
        ) from None
    return snappy


def get_zstd():
    try:
        import zstandard
    except ImportError:
        raise CompressionError(
            'Zstandard compression requires zstandard package',
        ) from None
    return zstandard


CODEC_LIBRARIES = {
    Compression.SNAPPY: get_snappy,
    Compression.GZIP: get_gzip,
    Compression.LZO: get_lzo,
    Compression.BROTLI: get_brotli,
    Compression.LZ4: get_lz4,
    Compression.ZSTD: get_zstd,
}


def check_codec(codec: Compression) -> None:
    """Raise CompressionError now if ``codec`` could not be used later."""
    if codec == Compression.UNCOMPRESSED:
        return
    get_library = CODEC_LIBRARIES.get(codec)
    if get_library is None:
        raise CompressionError(f'Unsupported compression codec: {codec}')
    get_library()


def compress(data: bytes, codec: Compression) -> bytes:
    match codec:
        case Compression.UNCOMPRESSED:
            return data
        case Compression.SNAPPY:
            return get_snappy().compress(data)
        case Compression.GZIP:
            # mtime=0 keeps identical pages byte-identical
            return get_gzip().compress(data, mtime=0)
        case Compression.LZO:
            return get_lzo().compress(data)
        case Compression.BROTLI:
            return get_brotli().compress(data)
        case Compression.LZ4:
            return get_lz4().compress(data, store_size=False)
        case Compression.ZSTD:
            return get_zstd().ZstdCompressor().compress(data)
        case _:
            raise CompressionError(f'Unsupported compression codec: {codec}')


def decompress(data: bytes, codec: Compression, uncompressed_size: int) -> bytes:
    match codec:
        case Compression.UNCOMPRESSED:
            return data
        case Compression.SNAPPY:
            return get_snappy().decompress(data)
        case Compression.GZIP:
            return get_gzip().decompress(data)
        case Compression.LZO:
            return get_lzo().decompress(data)
        case Compression.BROTLI:
            return get_brotli().decompress(data)
        case Compression.LZ4:
            return get_lz4().decompress(data, uncompressed_size=uncompressed_size)
        case Compression.ZSTD:
            dctx = get_zstd().ZstdDecompressor()
            # Use streaming decompression for frames without content size
            reader = dctx.stream_reader(io.BytesIO(data))
            return reader.readall()
        case _:
            raise CompressionError(f'Unsupported compression codec: {codec}')
