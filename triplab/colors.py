"""Traveler colour palette and deterministic assignment by join order."""

from __future__ import annotations

from typing import NamedTuple, Sequence


class PaletteColor(NamedTuple):
    name: str
    hex: str
    light: str
    dark: str


USER_COLORS: tuple[PaletteColor, ...] = (
    PaletteColor("Coral", "#E07A5F", "#F4A393", "#C56A52"),
    PaletteColor("Sage", "#81B29A", "#A8D4B8", "#5F9178"),
    PaletteColor("Mustard", "#E9C46A", "#F5DDA0", "#D4A84A"),
    PaletteColor("Ocean", "#457B9D", "#7AAFC9", "#365F7A"),
    PaletteColor("Terracotta", "#BC6C4C", "#D99A7C", "#9A5A3F"),
    PaletteColor("Plum", "#9C6B8A", "#C49DB3", "#7D566E"),
    PaletteColor("Teal", "#2A9D8F", "#6BC4B8", "#228276"),
    PaletteColor("Rose", "#D4A5A5", "#E8CACA", "#B88A8A"),
    PaletteColor("Olive", "#8B9556", "#B5C085", "#6F7744"),
    PaletteColor("Slate", "#5C6B73", "#8A9BA5", "#4A565C"),
)


def color_by_index(index: int) -> PaletteColor:
    return USER_COLORS[index % len(USER_COLORS)]


def _string_hash(value: str) -> int:
    """Java-style 32-bit ``hashCode`` so the fallback matches across clients."""
    h = 0
    for ch in value:
        h = (h * 31 + ord(ch)) & 0xFFFFFFFF
    return h - (1 << 32) if h & 0x80000000 else h


def color_for_user(user_id: str, join_order: Sequence[str]) -> PaletteColor:
    """Colour by position in ``join_order``; unknown ids fall back to a hash."""
    try:
        return color_by_index(list(join_order).index(user_id))
    except ValueError:
        return USER_COLORS[abs(_string_hash(user_id)) % len(USER_COLORS)]


def initials(display_name: str | None) -> str:
    if not display_name:
        return "?"
    return "".join(word[0] for word in display_name.split()).upper()[:2]


def contrast_color(hex_color: str) -> str:
    """Dark text on light backgrounds, white text on dark ones."""
    value = hex_color.lstrip("#")
    r, g, b = (int(value[i:i + 2], 16) for i in (0, 2, 4))
    luminance = (0.299 * r + 0.587 * g + 0.114 * b) / 255
    return "#3D405B" if luminance > 0.5 else "#FFFFFF"
