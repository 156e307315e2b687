"""Monitor protocol structures, callback interfaces, checksums, handle and lock helpers, and task loopers."""

__version__ = "0.1.0"
__all__ = ["protocol", "extension", "crc", "helpers", "handle", "sync", "looper"]