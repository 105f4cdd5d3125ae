import hashlib


def content_hash(content: bytes | str) -> str:
    """Fingerprint raw content with sha256.

    Args:
        content: Bytes, or text which is encoded as UTF-8 first

    Returns:
        Hex digest string (sha256)
    """
    if isinstance(content, str):
        content = content.encode("utf-8")
    return hashlib.sha256(content).hexdigest()
