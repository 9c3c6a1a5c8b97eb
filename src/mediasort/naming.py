"""Render destination names from resolved metadata."""

import re
from typing import Any

from mediasort.errors import MediaSortError

# Tags that are zero padded
PAD_TAGS = {"episode_number", "season_number"}

_TAG = re.compile(r"(#[a-z_]+?#)")
_INVALID_CHARS = re.compile(r'[/\\?<>:*|"\x00-\x1f\x80-\x9f]')
_STRIPPED_CHARS = re.compile(r"[!()\[\]]")


class MissingTagError(MediaSortError):
    """A template tag has no value in the metadata."""

    def __init__(self, tag: str):
        self.tag = tag
        super().__init__(f"Missing metadata for tag: {tag}")


def fix_filename(piece: Any) -> str:
    """Make a metadata value safe to use in a filename."""
    piece = _INVALID_CHARS.sub(" ", str(piece))
    piece = _STRIPPED_CHARS.sub("", piece)
    return re.sub(r"\s{2,}", " ", piece).strip()


def pad_zero(value: Any) -> str:
    """Pad a number to at least two digits."""
    return str(value).zfill(2)


def render_name(meta: dict[str, Any], template: str, pad: bool = True) -> str:
    """Fill a ``#tag#`` template from metadata.

    Args:
        meta: Merged metadata of a candidate
        template: Template such as "#name# (#year#)"
        pad: Zero pad season and episode numbers

    Returns:
        The rendered name, without extension

    Raises:
        ValueError: If the template has no tags
        MissingTagError: If a tag has no metadata value
    """
    if not template or "#" not in template:
        raise ValueError(f"Bad format, cannot construct name: {template!r}")

    bits = _TAG.split(template)
    for idx, bit in enumerate(bits):
        if not (bit.startswith("#") and bit.endswith("#") and len(bit) > 2):
            continue

        tag = bit[1:-1]
        if meta.get(tag) is None:
            raise MissingTagError(tag)

        if pad and tag in PAD_TAGS:
            bits[idx] = pad_zero(meta[tag])
        else:
            bits[idx] = fix_filename(meta[tag])

    return "".join(bits)
