# loader.py: big-endian .obj image loading
import logging
from pathlib import Path
from typing import Iterable, Union

from .encoding import BYTE_PER_WORD, bytes_to_word, bytes_to_words, word_to_bytes
from .errors import ImageLoadError
from .memory import Memory

log = logging.getLogger(__name__)


def parse_image(data: bytes):
    """
    Split an image into (origin, words).
    The first big-endian word is the load origin; the rest is the payload.
    """
    if data is None:
        raise ImageLoadError("No image data")
    if len(data) < BYTE_PER_WORD:
        raise ImageLoadError(f"Image too short: {len(data)} bytes (need at least {BYTE_PER_WORD})")
    if len(data) % BYTE_PER_WORD:
        raise ImageLoadError(f"Image has odd byte count: {len(data)}")
    origin = bytes_to_word(data[:BYTE_PER_WORD])
    return origin, bytes_to_words(data[BYTE_PER_WORD:])


def load_image(memory: Memory, data: bytes) -> int:
    """Load an image into memory and return its origin."""
    origin, words = parse_image(data)
    count = memory.load_words(origin, words)
    log.info("Loaded %d words at origin 0x%04X", count, origin)
    return origin


def read_image_file(path: Union[str, Path]) -> bytes:
    try:
        return Path(path).read_bytes()
    except OSError as e:
        raise ImageLoadError(f"Cannot read image '{path}': {e}") from e


def load_image_file(memory: Memory, path: Union[str, Path]) -> int:
    return load_image(memory, read_image_file(path))


def pack_image(origin: int, words: Iterable[int]) -> bytes:
    """Build an image: origin word followed by the payload words, big-endian."""
    return word_to_bytes(origin) + b"".join(word_to_bytes(w) for w in words)
