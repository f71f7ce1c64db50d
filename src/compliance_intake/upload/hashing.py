"""Content hashing for duplicate detection.

Hashes are computed just before transfer, never at staging time, and off the
event loop since hashing is CPU-bound.
"""

import asyncio
import hashlib

from compliance_intake.upload.files import FileHandle


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def _read_and_hash(handle: FileHandle) -> tuple[str, bytes]:
    data = handle.read()
    return sha256_hex(data), data


async def hash_file(handle: FileHandle) -> tuple[str, bytes]:
    """Read a file and compute its SHA-256 in a worker thread.

    Returns:
        ``(hex_digest, contents)`` so the transfer can reuse the bytes.
    """
    return await asyncio.to_thread(_read_and_hash, handle)
