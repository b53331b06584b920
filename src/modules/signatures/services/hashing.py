import hashlib
from typing import Union


def sha256_hex(data: Union[bytes, bytearray, str]) -> str:
    """SHA-256 hex digest, used alike for PDF bytes and signature payloads"""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()
