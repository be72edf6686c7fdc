"""Content-type fixes for proxied media.

Strict players reject subtitle tracks served with the wrong type, so
``.vtt`` and ``.srt`` are typed by extension regardless of what the
upstream declared.
"""

from urllib.parse import urlsplit

_SUBTITLE_TYPES = {
    ".vtt": "text/vtt; charset=utf-8",
    ".srt": "text/plain; charset=utf-8",
}

DEFAULT_CONTENT_TYPE = "application/octet-stream"


def correct_content_type(url: str, upstream_type: str | None) -> str:
    path = urlsplit(url).path.lower()
    for ext, content_type in _SUBTITLE_TYPES.items():
        if path.endswith(ext):
            return content_type
    return upstream_type or DEFAULT_CONTENT_TYPE


def is_manifest(url: str, content_type: str | None) -> bool:
    ct = (content_type or "").lower()
    if "mpegurl" in ct or "m3u8" in ct:
        return True
    return ".m3u8" in urlsplit(url).path.lower()
