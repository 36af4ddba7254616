"""
Maven descriptor (pom.xml) reader and writer.

The document is parsed with ElementTree to read its model (artifact id,
version, parent and properties). Writes never re-serialize the tree:
only the text of the elements that were changed is replaced in the
original file content, so comments, formatting, namespaces, element
order and the declared encoding survive untouched.
"""

import codecs
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple
from xml.sax.saxutils import escape

VERSION_PATH = ("project", "version")
PARENT_VERSION_PATH = ("project", "parent", "version")
PROPERTIES_PATH = ("project", "properties")

DEFAULT_ENCODING = "utf-8"
_BOM_ENCODING = "utf-8-sig"

# Markup tokens: comments, CDATA, processing instructions and doctype are
# matched first so that tags inside them are never taken as elements.
_TOKEN = re.compile(
    r"<!--.*?-->"
    r"|<!\[CDATA\[.*?\]\]>"
    r"|<\?.*?\?>"
    r"|<!DOCTYPE[^>]*>"
    r"|<(?P<close>/)?(?P<name>[^\s/>!?]+)(?:[^>\"']|\"[^\"]*\"|'[^']*')*?(?P<empty>/)?>",
    re.DOTALL,
)

# Markup that may sit inside an element's text content
_INLINE_MARKUP = re.compile(
    r"<!--.*?-->|<\?.*?\?>|<!\[CDATA\[(?P<cdata>.*?)\]\]>", re.DOTALL
)

_XML_DECLARATION_ENCODING = re.compile(
    rb"^\s*<\?xml[^>]*?encoding\s*=\s*[\"']([A-Za-z][A-Za-z0-9._-]*)[\"']"
)


class PomError(Exception):
    """Raised when a descriptor cannot be read, parsed or written."""

    def __init__(self, path, message: str):
        super().__init__(f"{message} [{path}]")
        self.path = path


@dataclass
class PomParent:
    """Parent reference declared by a descriptor."""

    artifact_id: str
    version: Optional[str] = None


@dataclass
class _Span:
    """Location of an element's text content in the raw document."""

    start: int
    end: int
    tag: str
    self_closing: bool = False


@dataclass
class PomDocument:
    """
    In-memory view of a single pom.xml.

    Attributes:
        path: Location of the descriptor on disk
        content: Decoded file content as read
        encoding: Codec the file is read and written with
        artifact_id: The project's artifactId
        version: The project's own version, None when inherited
        parent: Parent reference, None when the descriptor has no parent
        properties: Declared properties in document order
    """

    path: Path
    content: str
    encoding: str = DEFAULT_ENCODING
    artifact_id: str = ""
    version: Optional[str] = None
    parent: Optional[PomParent] = None
    properties: Dict[str, str] = field(default_factory=dict)
    _edits: Dict[Tuple[str, ...], str] = field(default_factory=dict, repr=False)

    @classmethod
    def read(cls, path) -> "PomDocument":
        """
        Read and parse a descriptor in the encoding its XML declaration names.

        Raises:
            PomError: If the file cannot be read or decoded, or is not
                well-formed XML
        """
        path = Path(path)
        try:
            with open(path, "rb") as f:
                raw = f.read()
        except OSError as e:
            raise PomError(path, f"Failed to read descriptor: {e}") from e

        encoding = _detect_encoding(raw)
        try:
            content = raw.decode(encoding)
        except LookupError as e:
            raise PomError(path, f"Descriptor declares an unknown encoding [{encoding}]") from e
        except UnicodeDecodeError as e:
            raise PomError(path, f"Descriptor is not valid {encoding}: {e}") from e
        return cls.parse(content, path, encoding)

    @classmethod
    def parse(cls, content: str, path, encoding: str = DEFAULT_ENCODING) -> "PomDocument":
        try:
            root = ET.fromstring(content.encode(encoding))
        except (ET.ParseError, UnicodeEncodeError) as e:
            raise PomError(path, f"Failed to parse descriptor: {e}") from e

        if _local(root.tag) != "project":
            raise PomError(path, f"Root element is <{_local(root.tag)}>, expected <project>")

        document = cls(path=Path(path), content=content, encoding=encoding)
        document.artifact_id = _child_text(root, "artifactId") or ""
        document.version = _child_text(root, "version")

        parent_el = _child(root, "parent")
        if parent_el is not None:
            document.parent = PomParent(
                artifact_id=_child_text(parent_el, "artifactId") or "",
                version=_child_text(parent_el, "version"),
            )

        properties_el = _child(root, "properties")
        if properties_el is not None:
            for prop in properties_el:
                if not isinstance(prop.tag, str):
                    continue
                document.properties[_local(prop.tag)] = (prop.text or "").strip()

        return document

    @property
    def changed(self) -> bool:
        return bool(self._edits)

    def set_version(self, version: str) -> None:
        if self.version is None:
            raise PomError(self.path, "Descriptor declares no <version> to update")
        self.version = version
        self._edits[VERSION_PATH] = version

    def set_parent_version(self, version: str) -> None:
        if self.parent is None or self.parent.version is None:
            raise PomError(self.path, "Descriptor declares no <parent><version> to update")
        self.parent.version = version
        self._edits[PARENT_VERSION_PATH] = version

    def set_property(self, key: str, value: str) -> None:
        if key not in self.properties:
            raise PomError(self.path, f"Descriptor declares no <{key}> property to update")
        self.properties[key] = value
        self._edits[PROPERTIES_PATH + (key,)] = value

    def render(self) -> str:
        """Original content with all recorded edits applied."""
        if not self.changed:
            return self.content
        spans = _element_spans(self.content)
        content = self.content
        replacements = []
        for path, value in self._edits.items():
            span = spans.get(path)
            if span is None:
                raise PomError(self.path, f"Cannot locate <{'/'.join(path)}> in descriptor")
            replacements.append((span, value))

        # Replace from the end so earlier offsets stay valid
        for span, value in sorted(replacements, key=lambda r: r[0].start, reverse=True):
            value = escape(value)
            if span.self_closing:
                new_text = f"<{span.tag}>{value}</{span.tag}>"
            else:
                new_text = _replace_text(content[span.start:span.end], value)
            content = content[: span.start] + new_text + content[span.end:]
        return content

    def write(self) -> bool:
        """
        Persist recorded edits.

        Returns:
            True if the file was written, False if nothing changed

        Raises:
            PomError: If the file cannot be written, or a value cannot be
                represented in the descriptor's encoding
        """
        if not self.changed:
            return False
        new_content = self.render()
        try:
            raw = new_content.encode(self.encoding)
        except UnicodeEncodeError as e:
            raise PomError(self.path, f"Updated descriptor is not representable as {self.encoding}: {e}") from e
        try:
            with open(self.path, "wb") as f:
                f.write(raw)
        except OSError as e:
            raise PomError(self.path, f"Failed to write descriptor: {e}") from e
        self.content = new_content
        self._edits.clear()
        return True

    def element_text(self, path: Tuple[str, ...]) -> Optional[str]:
        """Raw XML of an element as written in the file, e.g. for messages."""
        span = _element_spans(self.content).get(path)
        if span is None:
            return None
        if span.self_closing:
            return self.content[span.start:span.end]
        open_start = self.content.rfind("<", 0, span.start)
        close_end = self.content.find(">", span.end) + 1
        return self.content[open_start:close_end]


def _detect_encoding(raw: bytes) -> str:
    """Codec for a descriptor: BOM first, then the XML declaration, else UTF-8."""
    if raw.startswith(codecs.BOM_UTF8):
        return _BOM_ENCODING
    match = _XML_DECLARATION_ENCODING.match(raw)
    if match:
        return match.group(1).decode("ascii").lower()
    return DEFAULT_ENCODING


def _replace_text(old_text: str, value: str) -> str:
    """
    Replace the text run of an element's content with an escaped value.

    Comments and processing instructions around the text are kept, as is
    the whitespace surrounding it. A value held in CDATA is replaced
    together with its CDATA section.
    """
    position = 0
    for match in _INLINE_MARKUP.finditer(old_text):
        run = old_text[position:match.start()]
        if run.strip():
            return old_text[:position] + _replace_run(run, value) + old_text[match.start():]
        if match.group("cdata") is not None and match.group("cdata").strip():
            return old_text[:match.start()] + value + old_text[match.end():]
        position = match.end()

    run = old_text[position:]
    if run.strip():
        return old_text[:position] + _replace_run(run, value)
    if not old_text.strip():
        return value
    # Only markup, no text yet
    return value + old_text


def _replace_run(run: str, value: str) -> str:
    stripped = run.strip()
    leading = run[: run.index(stripped)]
    trailing = run[len(leading) + len(stripped):]
    return f"{leading}{value}{trailing}"


def _local(tag: str) -> str:
    return tag.split("}", 1)[-1]


def _child(element: ET.Element, name: str) -> Optional[ET.Element]:
    for child in element:
        if isinstance(child.tag, str) and _local(child.tag) == name:
            return child
    return None


def _child_text(element: ET.Element, name: str) -> Optional[str]:
    child = _child(element, name)
    if child is None:
        return None
    return (child.text or "").strip()


def _element_spans(content: str) -> Dict[Tuple[str, ...], _Span]:
    """
    Map element paths to the location of their text content.

    Only the first element seen at a given path is recorded. For
    self-closing elements the span covers the whole tag.
    """
    spans: Dict[Tuple[str, ...], _Span] = {}
    stack: List[Tuple[str, str, int]] = []

    for match in _TOKEN.finditer(content):
        tag = match.group("name")
        if tag is None:
            continue
        local = tag.split(":", 1)[-1]
        names = tuple(entry[0] for entry in stack)

        if match.group("close"):
            if not stack:
                break
            _, open_tag, start = stack.pop()
            spans.setdefault(names, _Span(start, match.start(), open_tag))
        elif match.group("empty"):
            spans.setdefault(
                names + (local,),
                _Span(match.start(), match.end(), tag, self_closing=True),
            )
        else:
            stack.append((local, tag, match.end()))

    return spans
