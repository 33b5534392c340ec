"""General utility helpers shared across modules."""

from __future__ import annotations

import hashlib
import json
import secrets
import string
from typing import Sequence

import numpy as np

from .models import Track

_ID_ALPHABET = string.ascii_lowercase + string.digits


def generate_light_id(length: int = 8) -> str:
    """Return a short random base-36 identifier."""

    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(max(1, length)))


def string_to_number_hash(value: str) -> int:
    """Return a stable non-negative 32-bit hash (``h * 31 + c``) of ``value``."""

    acc = 0
    for char in value:
        acc = (acc * 31 + ord(char)) & 0xFFFFFFFF
    if acc & 0x80000000:
        acc -= 1 << 32
    return abs(acc)


def track_color(key: str) -> str:
    """Return a golden-angle HSL colour derived from ``key``."""

    hue = (string_to_number_hash(key) * 137.508) % 360
    return f"hsl({hue:.1f}, 70%, 50%)"


def track_set_fingerprint(tracks: Sequence[Track]) -> str:
    """Return a content hash identifying an ordered track collection.

    Two collections share a fingerprint only when they hold the same tracks,
    in the same order, with identical coordinates.
    """

    digest = hashlib.sha256()
    for track in tracks:
        header = {
            "id": track.id,
            "filename": track.filename,
            "fragment": track.fragment,
            "count": len(track.points),
        }
        digest.update(
            json.dumps(header, sort_keys=True, separators=(",", ":")).encode("utf-8")
        )
        coords = np.asarray(
            [(p.lat, p.lon) for p in track.points], dtype=np.float64
        )
        digest.update(coords.tobytes())
    return digest.hexdigest()
