import hashlib
import json
from typing import Any


def digest(data: bytes | str) -> str:
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def composite_digest(*fields: bytes | str | int) -> str:
    """Hash an ordered tuple of fields.

    Each field is hashed on its own and the field hashes are joined before the
    final hash, so no separator can be forged by field contents.
    """
    h = hashlib.sha256()
    for index, field in enumerate(fields):
        if isinstance(field, int):
            field = str(field)
        if index:
            h.update(b"|")
        h.update(digest(field).encode("ascii"))
    return h.hexdigest()


def canonical_json_digest(value: Any) -> str:
    payload = json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return digest(payload)
