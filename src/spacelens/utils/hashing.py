"""
Stable non-cryptographic hashing.

32-bit FNV-1a over UTF-16 code units, so results match hashes computed over
the same strings by JavaScript clients.
"""
from typing import Iterable, Tuple

FNV_PRIME = 0x01000193
FNV_OFFSET_BASIS = 0x811C9DC5
# Extra seeds for the second and third output coordinates
SEED_Y = 0x01234567
SEED_Z = 0xDEADBEEF

U32_MAX = 0xFFFFFFFF

TEXT_SEPARATOR = " | "


def _utf16_units(text: str) -> Iterable[int]:
    data = text.encode("utf-16-le", errors="surrogatepass")
    for i in range(0, len(data), 2):
        yield data[i] | (data[i + 1] << 8)


def fnv1a32(text: str, seed: int = FNV_OFFSET_BASIS) -> int:
    """32-bit FNV-1a hash of ``text`` starting from ``seed``."""
    h = seed & U32_MAX
    for unit in _utf16_units(text):
        h ^= unit
        h = (h * FNV_PRIME) & U32_MAX
    return h


def u32_to_unit(value: int) -> float:
    """Map an unsigned 32-bit integer to [0, 1]."""
    return (value & U32_MAX) / U32_MAX


def normalize_text_parts(parts: Iterable[object]) -> str:
    """Lower-case and trim each part, drop empty ones and join them."""
    cleaned = []
    for part in parts:
        text = "" if part is None else str(part).strip().lower()
        if text:
            cleaned.append(text)
    return TEXT_SEPARATOR.join(cleaned)


def text_to_vec3(parts: Iterable[object]) -> Tuple[float, float, float]:
    """
    Hash text fields into a point of the unit cube.

    The same normalized text always yields the same vector.
    """
    text = normalize_text_parts(parts)
    return (
        u32_to_unit(fnv1a32(text, FNV_OFFSET_BASIS)),
        u32_to_unit(fnv1a32(text, SEED_Y)),
        u32_to_unit(fnv1a32(text, SEED_Z)),
    )


def identity_jitter(identity: str, axis: str) -> float:
    """Repeatable pseudo-random offset in [-0.5, 0.5] for a point identity and axis."""
    return u32_to_unit(fnv1a32(f"{identity}:{axis}")) - 0.5
