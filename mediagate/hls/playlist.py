"""HLS playlist parsing and proxy rewriting.

A playlist is kept as a list of lines.  Only URI-bearing constructs are
touched: the quoted ``URI`` attribute of key/map/rendition tags, and the
bare segment / variant-playlist lines.  Everything else, including line
endings, is emitted byte-for-byte, so the line count never changes.  Lines
end at LF only; a leading byte-order mark is dropped.

Rewritten URIs take the form ``<proxy_base>?url=<absolute>&referer=<ref>``
with ``proxy_base`` absolute, so players resolve them the same way no matter
where the playlist was loaded from.
"""

import re
from dataclasses import dataclass
from enum import Enum
from urllib.parse import quote, urlencode, urljoin


class LineKind(str, Enum):
    BLANK = "blank"
    COMMENT = "comment"
    KEY_URI = "key_uri"
    MAP_URI = "map_uri"
    RENDITION_URI = "rendition_uri"
    SEGMENT_OR_PLAYLIST = "segment_or_playlist"


_TAG_KINDS = {
    "#EXT-X-KEY:": LineKind.KEY_URI,
    "#EXT-X-SESSION-KEY:": LineKind.KEY_URI,
    "#EXT-X-MAP:": LineKind.MAP_URI,
    "#EXT-X-MEDIA:": LineKind.RENDITION_URI,
    "#EXT-X-I-FRAME-STREAM-INF:": LineKind.RENDITION_URI,
}

_URI_ATTR = re.compile(r'(URI=")([^"]*)(")')

# Playlists are LF-delimited; other Unicode line breaks belong to the line.
_LINE = re.compile(r"[^\n]*\n|[^\n]+")


@dataclass
class PlaylistLine:
    raw: str
    kind: LineKind
    ending: str = ""

    @property
    def is_resource(self) -> bool:
        return self.kind not in (LineKind.BLANK, LineKind.COMMENT)


def _classify(content: str) -> LineKind:
    if not content.strip():
        return LineKind.BLANK
    if content.startswith("#"):
        for tag, kind in _TAG_KINDS.items():
            if content.startswith(tag) and _URI_ATTR.search(content):
                return kind
        return LineKind.COMMENT
    return LineKind.SEGMENT_OR_PLAYLIST


def resolve(base_url: str, uri: str) -> str:
    """RFC 3986 resolution of ``uri`` against ``base_url``; absolute URIs pass through."""
    return urljoin(base_url, uri.strip())


def proxy_url(proxy_base: str, target: str, referer: str | None = None) -> str:
    params = {"url": target}
    if referer:
        params["referer"] = referer
    return f"{proxy_base}?{urlencode(params, quote_via=quote)}"


class PlaylistDocument:
    def __init__(self, lines: list[PlaylistLine]):
        self.lines = lines

    @classmethod
    def parse(cls, text: str) -> "PlaylistDocument":
        lines = []
        text = text.removeprefix("\ufeff")
        for raw in _LINE.findall(text):
            content = raw.rstrip("\r\n")
            lines.append(PlaylistLine(raw=content, kind=_classify(content), ending=raw[len(content):]))
        return cls(lines)

    def rewrite(self, base_url: str, proxy_base: str, referer: str | None = None) -> "PlaylistDocument":
        """Point every resource reference at ``proxy_base``.  Mutates and returns self."""

        def _sub_uri(match: re.Match) -> str:
            target = resolve(base_url, match.group(2))
            return f"{match.group(1)}{proxy_url(proxy_base, target, referer)}{match.group(3)}"

        for line in self.lines:
            if line.kind == LineKind.SEGMENT_OR_PLAYLIST:
                line.raw = proxy_url(proxy_base, resolve(base_url, line.raw), referer)
            elif line.is_resource:
                line.raw = _URI_ATTR.sub(_sub_uri, line.raw, count=1)
        return self

    def serialize(self) -> str:
        return "".join(line.raw + line.ending for line in self.lines)

    def resources(self) -> list[PlaylistLine]:
        return [line for line in self.lines if line.is_resource]


def rewrite_playlist(text: str, base_url: str, proxy_base: str, referer: str | None = None) -> str:
    return PlaylistDocument.parse(text).rewrite(base_url, proxy_base, referer).serialize()
