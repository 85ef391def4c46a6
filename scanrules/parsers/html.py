"""Immutable HTML document model built with stdlib html.parser.

Elements live in one tuple in document order and point at each other by
index (``parent``/``children``). Every element remembers the span it covers
in the source, so rules can quote markup exactly as the server sent it.
"""

import re
from dataclasses import dataclass
from html.parser import HTMLParser
from typing import Dict, Iterator, List, Optional, Tuple

VOID_ELEMENTS = frozenset({
    "area", "base", "basefont", "br", "col", "command", "embed", "frame",
    "hr", "img", "input", "isindex", "keygen", "link", "meta", "param",
    "source", "track", "wbr",
})

_PUBLIC_ID_RX = re.compile(r"\bPUBLIC\s+([\"'])(.*?)\1", re.I | re.S)
_ATTR_RX = re.compile(r"""([^\s"'<>/=]+)(?:\s*=\s*(?:"([^"]*)"|'([^']*)'|([^\s>]+)))?""")


@dataclass(frozen=True)
class Element:
    index: int
    tag: str
    attrs: Tuple[Tuple[str, Optional[str]], ...]
    parent: int                 # -1 at top level
    children: Tuple[int, ...]
    start: int                  # offset of "<" in the source
    end: int                    # offset just past the element's markup
    text: str                   # direct character data
    tag_end: int = -1           # offset just past the start tag

    def attr(self, name: str) -> Optional[str]:
        """Attribute value ("" for valueless attributes), None if absent."""
        for key, value in self.attrs:
            if key == name:
                return value if value is not None else ""
        return None

    def has_attr(self, name: str) -> bool:
        return any(key == name for key, _ in self.attrs)


@dataclass(frozen=True)
class Doctype:
    raw: str
    public_id: str


@dataclass(frozen=True)
class Document:
    source: str
    elements: Tuple[Element, ...]
    doctype: Optional[Doctype] = None
    complete: bool = True       # False when the parser gave up part way

    @classmethod
    def parse(cls, source: str) -> "Document":
        builder = _TreeBuilder(source)
        complete = True
        try:
            builder.feed(source)
            builder.close()
        except AssertionError:
            # html.parser asserts on some malformed declarations; keep what was built
            complete = False
        return builder.document(complete)

    def select(self, tag: Optional[str] = None, attr: Optional[str] = None) -> List[Element]:
        """Elements in document order matching ``tag`` and/or carrying ``attr``."""
        return [e for e in self.elements
                if (tag is None or e.tag == tag) and (attr is None or e.has_attr(attr))]

    def ancestors(self, element: Element) -> Iterator[Element]:
        idx = element.parent
        while idx >= 0:
            parent = self.elements[idx]
            yield parent
            idx = parent.parent

    def within(self, element: Element, tag: str) -> bool:
        return any(a.tag == tag for a in self.ancestors(element))

    def in_head(self, element: Element) -> bool:
        """True for elements the browser places in <head> (anything not under <body>)."""
        return element.tag != "body" and not self.within(element, "body")

    def outer_html(self, element: Element) -> str:
        return self.source[element.start:element.end]

    def start_tag(self, element: Element) -> str:
        return self.source[element.start:element.tag_end]

    def raw_attr(self, element: Element, name: str) -> Optional[str]:
        """Attribute value as written in the source, character references untouched."""
        for m in _ATTR_RX.finditer(self.start_tag(element), 1):
            if m.group(1).lower() != name:
                continue
            for value in m.group(2, 3, 4):
                if value is not None:
                    return value
            return ""
        return None


class _TreeBuilder(HTMLParser):

    def __init__(self, source: str):
        super().__init__(convert_charrefs=True)
        self._source = source
        self._line_starts = [0] + [m.end() for m in re.finditer("\n", source)]
        self._nodes: List[Dict] = []
        self._stack: List[int] = []
        self._doctype: Optional[Doctype] = None

    def _offset(self) -> int:
        line, col = self.getpos()
        return self._line_starts[line - 1] + col

    def _open(self, tag, attrs) -> int:
        start = self._offset()
        end = start + len(self.get_starttag_text() or "")
        idx = len(self._nodes)
        parent = self._stack[-1] if self._stack else -1
        self._nodes.append({
            "tag": tag, "attrs": tuple(attrs), "parent": parent, "children": [],
            "start": start, "end": end, "tag_end": end, "text": [],
        })
        if parent >= 0:
            self._nodes[parent]["children"].append(idx)
        return idx

    def _pop_until(self, tag: str, end: int, implied_end: int) -> bool:
        open_tags = [self._nodes[i]["tag"] for i in self._stack]
        if tag not in open_tags:
            return False
        while self._stack:
            idx = self._stack.pop()
            node = self._nodes[idx]
            if node["tag"] == tag:
                node["end"] = end
                return True
            node["end"] = implied_end
        return True

    def handle_starttag(self, tag, attrs):
        if tag == "body":
            pos = self._offset()
            self._pop_until("head", pos, pos)
        idx = self._open(tag, attrs)
        if tag not in VOID_ELEMENTS:
            self._stack.append(idx)

    def handle_startendtag(self, tag, attrs):
        self._open(tag, attrs)

    def handle_endtag(self, tag):
        pos = self._offset()
        close = self._source.find(">", pos)
        end = close + 1 if close >= 0 else len(self._source)
        self._pop_until(tag, end, pos)

    def handle_data(self, data):
        if self._stack:
            self._nodes[self._stack[-1]]["text"].append(data)

    def handle_decl(self, decl):
        if self._doctype is not None or self._nodes:
            return
        if decl.lower().startswith("doctype"):
            m = _PUBLIC_ID_RX.search(decl)
            self._doctype = Doctype(raw=decl, public_id=m.group(2) if m else "")

    def document(self, complete: bool = True) -> Document:
        for idx in self._stack:
            self._nodes[idx]["end"] = len(self._source)
        self._stack = []
        elements = tuple(
            Element(index=i, tag=n["tag"], attrs=n["attrs"], parent=n["parent"],
                    children=tuple(n["children"]), start=n["start"], end=n["end"],
                    text="".join(n["text"]), tag_end=n["tag_end"])
            for i, n in enumerate(self._nodes))
        return Document(source=self._source, elements=elements, doctype=self._doctype,
                        complete=complete)
