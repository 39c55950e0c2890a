"""Jar appearance defaults and limits."""

from __future__ import annotations

JAR_COLORS = [
    "#FF6B6B",
    "#4ECDC4",
    "#FFE66D",
    "#A78BFA",
    "#60A5FA",
    "#34D399",
    "#F472B6",
    "#FB923C",
]

DEFAULT_JAR_EMOJI = "💰"
DEFAULT_JAR_COLOR = JAR_COLORS[0]
JAR_NAME_MAX_LENGTH = 64
