"""ZIP packager (Store method) for deployable site files"""

import re
import struct
import logging
from typing import List

from birthbuild.models.checkpoint import SiteFile
from birthbuild.models.errors import ApplicationError, ErrorCode

logger = logging.getLogger(__name__)

MAX_FILES = 50
MAX_FILE_SIZE = 5 * 1024 * 1024
MAX_ZIP_SIZE = 50 * 1024 * 1024
MAX_PATH_LENGTH = 100
SAFE_PATH_RE = re.compile(
    r"^[a-zA-Z0-9_\-][a-zA-Z0-9_\-/]*\.(html|xml|txt|css|js|json|ico|svg|webmanifest)$"
)

LOCAL_HEADER_SIGNATURE = 0x04034B50
CENTRAL_HEADER_SIGNATURE = 0x02014B50
END_OF_CENTRAL_DIR_SIGNATURE = 0x06054B50
ZIP_VERSION = 20  # 2.0
UTF8_NAME_FLAG = 0x0800

LOCAL_HEADER = struct.Struct("<IHHHHHIIIHH")              # 30 bytes
CENTRAL_HEADER = struct.Struct("<IHHHHHHIIIHHHHHII")      # 46 bytes
END_OF_CENTRAL_DIR = struct.Struct("<IHHHHIIH")           # 22 bytes


def _make_crc_table() -> List[int]:
    table = []
    for n in range(256):
        c = n
        for _ in range(8):
            c = (0xEDB88320 ^ (c >> 1)) if c & 1 else (c >> 1)
        table.append(c)
    return table


CRC_TABLE = _make_crc_table()


def crc32(data: bytes) -> int:
    """Reflected table-driven CRC-32 (IEEE 802.3)"""
    crc = 0xFFFFFFFF
    for byte in data:
        crc = CRC_TABLE[(crc ^ byte) & 0xFF] ^ (crc >> 8)
    return crc ^ 0xFFFFFFFF


def _fail(message: str) -> ApplicationError:
    logger.error(f"[PACKAGER] {message}")
    return ApplicationError(code=ErrorCode.PACKAGING_FAILED, message=message)


def validate_files(files: List[SiteFile]) -> None:
    """Check count, path and size limits before any bytes are written"""
    if not files:
        raise _fail("No files to package.")
    if len(files) > MAX_FILES:
        raise _fail(f"Too many files: {len(files)} (maximum {MAX_FILES}).")

    seen = set()
    projected = END_OF_CENTRAL_DIR.size
    for site_file in files:
        path = site_file.path
        if len(path) > MAX_PATH_LENGTH:
            raise _fail(f"File path too long: {path[:40]}... ({len(path)} characters, maximum {MAX_PATH_LENGTH}).")
        if ".." in path or path.startswith("/") or not SAFE_PATH_RE.match(path):
            raise _fail(f"Unsafe file path: {path!r}.")
        if path in seen:
            raise _fail(f"Duplicate file path: {path!r}.")
        seen.add(path)
        size = len(site_file.content.encode("utf-8"))
        if size > MAX_FILE_SIZE:
            raise _fail(f"File {path} is too large ({size} bytes, maximum {MAX_FILE_SIZE}).")
        name_size = len(path.encode("utf-8"))
        projected += LOCAL_HEADER.size + CENTRAL_HEADER.size + 2 * name_size + size

    if projected > MAX_ZIP_SIZE:
        raise _fail(f"Site archive too large ({projected} bytes, maximum {MAX_ZIP_SIZE}).")


def package_site(files: List[SiteFile]) -> bytes:
    """
    Serialise files into an uncompressed ZIP archive.

    Layout: [local header + name + data] per file, then the central directory,
    then the end-of-central-directory record.

    Raises:
        ApplicationError: PACKAGING_FAILED when any limit is exceeded
    """
    validate_files(files)

    local_parts: List[bytes] = []
    central_parts: List[bytes] = []
    offset = 0

    for site_file in files:
        name = site_file.path.encode("utf-8")
        data = site_file.content.encode("utf-8")
        checksum = crc32(data)
        size = len(data)

        local = LOCAL_HEADER.pack(
            LOCAL_HEADER_SIGNATURE,
            ZIP_VERSION,        # version needed
            UTF8_NAME_FLAG,     # flags
            0,                  # method: store
            0, 0,               # mod time, mod date
            checksum,
            size,               # compressed size
            size,               # uncompressed size
            len(name),
            0,                  # extra length
        )
        local_parts.append(local + name + data)

        central = CENTRAL_HEADER.pack(
            CENTRAL_HEADER_SIGNATURE,
            ZIP_VERSION,        # version made by
            ZIP_VERSION,        # version needed
            UTF8_NAME_FLAG,
            0,                  # method: store
            0, 0,               # mod time, mod date
            checksum,
            size,
            size,
            len(name),
            0,                  # extra length
            0,                  # comment length
            0,                  # disk number start
            0,                  # internal attributes
            0,                  # external attributes
            offset,             # local header offset
        )
        central_parts.append(central + name)
        offset += len(local) + len(name) + size

    central_directory = b"".join(central_parts)
    end_record = END_OF_CENTRAL_DIR.pack(
        END_OF_CENTRAL_DIR_SIGNATURE,
        0, 0,                   # this disk, disk with central directory
        len(files),             # entries on this disk
        len(files),             # total entries
        len(central_directory),
        offset,                 # central directory offset
        0,                      # comment length
    )

    archive = b"".join(local_parts) + central_directory + end_record

    logger.info(f"[PACKAGER] Packaged {len(files)} file(s) into {len(archive)} bytes")
    return archive
