"""Source map decoding.

Handles the two variants seen in the wild: regular (flat `sources` /
`sourcesContent` / `mappings`) and indexed (`sections`, each wrapping a
nested map at a generated-code offset). Indexed maps are flattened into a
single regular map so callers only ever deal with one shape.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional

from .errors import UnsupportedSourceMap

logger = logging.getLogger(__name__)

XSSI_PREFIX = ")]}'"

# Mapping of base64 letter -> integer value.
B64_CHARS = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/"
B64 = dict((c, i) for i, c in enumerate(B64_CHARS))


def parse_vlq(segment):
    """Parse a string of VLQ-encoded data into a list of integers."""
    values = []

    cur, shift = 0, 0
    for c in segment:
        try:
            val = B64[c]
        except KeyError:
            raise ValueError(f"invalid base64 character {c!r} in mapping")
        # 5 bits of value, the high bit is the continuation.
        val, cont = val & 0b11111, val >> 5
        cur += val << shift
        shift += 5

        if not cont:
            # The low bit of the unpacked value is the sign.
            cur, sign = cur >> 1, cur & 1
            if sign:
                cur = -cur
            values.append(cur)
            cur, shift = 0, 0

    if cur or shift:
        raise ValueError("leftover cur/shift in vlq decode")

    return values


def encode_vlq(values):
    out = []
    for value in values:
        vlq = (-value << 1) | 1 if value < 0 else value << 1
        while True:
            digit = vlq & 0b11111
            vlq >>= 5
            if vlq:
                digit |= 0b100000
            out.append(B64_CHARS[digit])
            if not vlq:
                break
    return "".join(out)


def decode_mappings(mappings: str):
    """Decode a mappings string into per-line lists of absolute segments.

    Each segment is a tuple (dst_col, src, src_line, src_col, name) where src
    and the positions are None for unmapped segments, and name is None when
    the segment carries no name.
    """
    lines = []
    src_id, src_line, src_col, name_id = 0, 0, 0, 0
    for line in mappings.split(";") if mappings else []:
        dst_col = 0
        segments = []
        for segment in line.split(","):
            if not segment:
                continue
            parsed = parse_vlq(segment)
            if len(parsed) not in (1, 4, 5):
                raise ValueError(f"invalid mapping segment {segment!r}")
            dst_col += parsed[0]
            if len(parsed) == 1:
                segments.append((dst_col, None, None, None, None))
                continue
            src_id += parsed[1]
            src_line += parsed[2]
            src_col += parsed[3]
            name = None
            if len(parsed) == 5:
                name_id += parsed[4]
                name = name_id
            segments.append((dst_col, src_id, src_line, src_col, name))
        lines.append(segments)
    return lines


def encode_mappings(lines) -> str:
    encoded_lines = []
    prev_src, prev_src_line, prev_src_col, prev_name = 0, 0, 0, 0
    for segments in lines:
        prev_dst_col = 0
        encoded = []
        for dst_col, src, src_line, src_col, name in segments:
            values = [dst_col - prev_dst_col]
            prev_dst_col = dst_col
            if src is not None:
                values += [src - prev_src, src_line - prev_src_line, src_col - prev_src_col]
                prev_src, prev_src_line, prev_src_col = src, src_line, src_col
                if name is not None:
                    values.append(name - prev_name)
                    prev_name = name
            encoded.append(encode_vlq(values))
        encoded_lines.append(",".join(encoded))
    return ";".join(encoded_lines)


@dataclass
class SourceMap:
    """A regular (flat) source map."""

    sources: List[str]
    sources_content: List[Optional[str]]
    names: List[str] = field(default_factory=list)
    mappings: str = ""
    file: Optional[str] = None
    source_root: Optional[str] = None

    def iter_sources(self):
        """Yield (logical path, content or None) pairs in map order."""
        return zip(self.sources, self.sources_content)

    def to_dict(self):
        rv = {
            "version": 3,
            "sources": list(self.sources),
            "sourcesContent": list(self.sources_content),
            "names": list(self.names),
            "mappings": self.mappings,
        }
        if self.file is not None:
            rv["file"] = self.file
        if self.source_root:
            rv["sourceRoot"] = self.source_root
        return rv


@dataclass
class Section:
    line: int
    column: int
    map: Optional[dict] = None
    url: Optional[str] = None


@dataclass
class IndexedSourceMap:
    sections: List[Section]
    file: Optional[str] = None


@dataclass
class OtherSourceMap:
    """A map variant that is recognised but not handled (e.g. Hermes)."""

    kind: str
    raw: dict


def _read_payload(data) -> str:
    if hasattr(data, "read"):
        data = data.read()
    if isinstance(data, (bytes, bytearray)):
        data = bytes(data).decode("utf-8-sig")
    elif data.startswith("\ufeff"):
        data = data[1:]
    if data.startswith(XSSI_PREFIX):
        _, _, data = data.partition("\n")
    return data


def _regular_from_dict(raw: dict) -> SourceMap:
    sources = raw.get("sources")
    if not isinstance(sources, list):
        raise UnsupportedSourceMap("source map has no sources list")
    sources = ["" if s is None else str(s) for s in sources]

    contents = raw.get("sourcesContent") or []
    if not isinstance(contents, list):
        raise UnsupportedSourceMap("sourcesContent is not a list")
    contents = [c if isinstance(c, str) else None for c in contents[: len(sources)]]
    contents += [None] * (len(sources) - len(contents))

    mappings = raw.get("mappings", "")
    if not isinstance(mappings, str):
        raise UnsupportedSourceMap("mappings is not a string")

    return SourceMap(
        sources=sources,
        sources_content=contents,
        names=[str(n) for n in raw.get("names") or []],
        mappings=mappings,
        file=raw.get("file"),
        source_root=raw.get("sourceRoot") or None,
    )


def _indexed_from_dict(raw: dict) -> IndexedSourceMap:
    sections = []
    for entry in raw["sections"]:
        offset = entry.get("offset") or {}
        sections.append(Section(
            line=int(offset.get("line", 0)),
            column=int(offset.get("column", 0)),
            map=entry.get("map"),
            url=entry.get("url"),
        ))
    return IndexedSourceMap(sections=sections, file=raw.get("file"))


def decode_dict(raw):
    """Classify an already parsed source map object into its variant."""
    if not isinstance(raw, dict):
        raise UnsupportedSourceMap("source map is not a JSON object")
    version = raw.get("version", 3)
    if version != 3:
        raise UnsupportedSourceMap(f"unsupported source map version {version!r}")

    if "sections" in raw:
        return _indexed_from_dict(raw)
    if "x_facebook_sources" in raw:
        return OtherSourceMap(kind="hermes", raw=raw)
    if "mappings" in raw or "sources" in raw:
        return _regular_from_dict(raw)
    return OtherSourceMap(kind="unknown", raw=raw)


def decode(data):
    """Decode a source map from bytes, text or a file-like object."""
    return decode_dict(json.loads(_read_payload(data)))


def _join_source_root(root, source):
    if not root or "://" in source or source.startswith("/"):
        return source
    return root.rstrip("/") + "/" + source


def _load_local_contents(sources, contents, base_path):
    base = os.path.abspath(base_path or os.getcwd())
    for idx, source in enumerate(sources):
        if contents[idx] is not None:
            continue
        path = source[len("file://"):] if source.startswith("file://") else source
        if not path or os.path.isabs(path) or "://" in path:
            continue
        candidate = os.path.abspath(os.path.join(base, path))
        if os.path.commonpath([base, candidate]) != base or not os.path.isfile(candidate):
            continue
        try:
            with open(candidate, "r", encoding="utf-8") as f:
                contents[idx] = f.read()
        except (OSError, UnicodeDecodeError) as e:
            logger.debug(f"Could not load local source {candidate}: {e}")


def flatten(index: IndexedSourceMap, load_local_source_contents=False, base_path=None) -> SourceMap:
    """Merge the sections of an indexed map into one regular map.

    Sources are deduplicated by name; the first section providing content for
    a source wins.
    """
    sources, contents, source_ids = [], [], {}
    names, name_ids = [], {}
    lines = []

    for section in index.sections:
        if section.map is None:
            logger.warning(f"Skipping section referencing external map {section.url}")
            continue
        inner = decode_dict(section.map)
        if isinstance(inner, IndexedSourceMap):
            inner = flatten(inner)
        elif not isinstance(inner, SourceMap):
            raise UnsupportedSourceMap(f"unsupported {inner.kind} map inside section")

        src_map = []
        for source, content in inner.iter_sources():
            source = _join_source_root(inner.source_root, source)
            if source not in source_ids:
                source_ids[source] = len(sources)
                sources.append(source)
                contents.append(content)
            elif contents[source_ids[source]] is None:
                contents[source_ids[source]] = content
            src_map.append(source_ids[source])

        name_map = []
        for name in inner.names:
            if name not in name_ids:
                name_ids[name] = len(names)
                names.append(name)
            name_map.append(name_ids[name])

        for line_no, segments in enumerate(decode_mappings(inner.mappings)):
            target = section.line + line_no
            while len(lines) <= target:
                lines.append([])
            col_offset = section.column if line_no == 0 else 0
            for dst_col, src, src_line, src_col, name in segments:
                lines[target].append((
                    dst_col + col_offset,
                    None if src is None else src_map[src],
                    src_line,
                    src_col,
                    None if name is None else name_map[name],
                ))

    for segments in lines:
        segments.sort(key=lambda s: s[0])

    if load_local_source_contents:
        _load_local_contents(sources, contents, base_path)

    return SourceMap(
        sources=sources,
        sources_content=contents,
        names=names,
        mappings=encode_mappings(lines),
        file=index.file,
    )


def load_sourcemap(data, load_local_source_contents=True, base_path=None) -> SourceMap:
    """Decode a payload into a flat SourceMap or raise UnsupportedSourceMap."""
    try:
        decoded = decode(data)
        if isinstance(decoded, SourceMap):
            return decoded
        if isinstance(decoded, IndexedSourceMap):
            return flatten(
                decoded,
                load_local_source_contents=load_local_source_contents,
                base_path=base_path,
            )
    except UnsupportedSourceMap:
        raise
    except (ValueError, KeyError, IndexError, TypeError, AttributeError, RecursionError) as e:
        raise UnsupportedSourceMap(f"could not decode source map: {e}") from e
    raise UnsupportedSourceMap(f"unsupported source map variant {decoded.kind}")
