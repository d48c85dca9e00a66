"""Named, marker-delimited regions that remote sources contribute to hosts content.

A source named ``S`` owns the text between::

    \\n\\n# ===== BEGIN S =====\\n
    ...remote body...
    \\n# ===== S END =====\\n\\n

Content is parsed into literal blocks and regions; ``render(parse(text))``
always reproduces ``text``. ``clean`` and ``merge`` operate on that structure.
"""

import re
from dataclasses import dataclass

BEGIN_PREFIX = "\n\n# ===== BEGIN "
_BEGIN_RE = re.compile(r"\n\n# ===== BEGIN (?P<name>[^\n]*?) =====\n")


def begin_marker(name: str) -> str:
    return f"{BEGIN_PREFIX}{name} =====\n"


def end_marker(name: str) -> str:
    return f"\n# ===== {name} END =====\n\n"


@dataclass(frozen=True)
class Literal:
    text: str

    @property
    def raw(self):
        return self.text


@dataclass(frozen=True)
class Region:
    name: str
    body: str
    closed: bool

    @property
    def raw(self):
        tail = end_marker(self.name) if self.closed else ""
        return begin_marker(self.name) + self.body + tail


def parse(content: str) -> list:
    """Splits ``content`` into :class:`Literal` and :class:`Region` segments.

    A region is closed by its own end marker unless a begin marker of the
    same name comes first; begin markers of other names inside the body are
    part of the body. Without its own end marker a region is truncated and
    runs up to the next begin marker (of any source), or to the end of the
    content.
    """
    segments = []
    pos = 0
    match = _BEGIN_RE.search(content, pos)
    while match:
        if match.start() > pos:
            segments.append(Literal(content[pos:match.start()]))
        name = match.group("name")
        body_start = match.end()

        end = content.find(end_marker(name), body_start)
        reopened = content.find(begin_marker(name), body_start)
        if end != -1 and (reopened == -1 or end < reopened):
            segments.append(Region(name, content[body_start:end], closed=True))
            pos = end + len(end_marker(name))
            match = _BEGIN_RE.search(content, pos)
        else:
            following = _BEGIN_RE.search(content, body_start)
            limit = following.start() if following else len(content)
            segments.append(Region(name, content[body_start:limit], closed=False))
            pos = limit
            match = following
    if pos < len(content):
        segments.append(Literal(content[pos:]))
    return segments


def render(segments) -> str:
    return "".join(segment.raw for segment in segments)


def regions_for(content: str, name: str) -> list:
    return [s for s in parse(content) if isinstance(s, Region) and s.name == name]


def clean(content: str, name: str) -> str:
    """Removes every region owned by ``name``. Idempotent."""
    while True:
        segments = parse(content)
        kept = [s for s in segments if not (isinstance(s, Region) and s.name == name)]
        if len(kept) == len(segments):
            return content
        content = render(kept)


def merge(current: str, remote: str, name: str) -> str:
    """Replaces the region for ``name`` with ``remote``, appended at the end.

    The begin marker opens with blank lines, so whatever precedes it is
    always newline-terminated.
    """
    return clean(current, name) + begin_marker(name) + remote + end_marker(name)
