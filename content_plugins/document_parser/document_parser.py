"""
Markdown document parser for the content build.

Turns a raw markdown file (optional YAML front matter + body) into a
structured ``Document``: ordered block nodes, a heading tree with stable
anchor ids, and the metadata fields the collection index queries on.
"""

import hashlib
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePosixPath
from typing import Any, Dict, List, Optional, Tuple

import yaml
from mkdocs.utils import log

# Module scope regex variables

# "---\n---" is an empty front-matter block
FM_PATTERN = re.compile(r"^---[ \t]*\n(?:(.*?)\n)??---[ \t]*(?:\n|$)", re.DOTALL)
HEADING_RE = re.compile(r"^ {0,3}(#{1,6})(?:[ \t]+(.*?))?(?:[ \t]+#+)?[ \t]*$")
SETEXT_RE = re.compile(r"^ {0,3}(=+|-+)\s*$")
FENCE_RE = re.compile(r"^(\s{0,3})(`{3,}|~{3,})\s*([^`\s]*)?.*$")
LIST_ITEM_RE = re.compile(r"^\s{0,3}(?:[-*+]|\d{1,9}[.)])(?:\s+|$)")
QUOTE_RE = re.compile(r"^\s{0,3}>")
HTML_BLOCK_RE = re.compile(r"^\s{0,3}<(?:[A-Za-z][A-Za-z0-9-]*|!--)")
ORDER_PREFIX_RE = re.compile(r"^\d+\.")
INLINE_MARKUP_RE = re.compile(r"[`*_~]+")
INLINE_LINK_RE = re.compile(r"!?\[([^\]]*)\]\([^)]*\)")

MARKDOWN_EXTENSIONS = (".md", ".mdx", ".markdown")


class ParseErrorKind(str, Enum):
    MALFORMED_FRONT_MATTER = "MalformedFrontMatter"
    UNREADABLE_SOURCE = "UnreadableSource"


class ParseError(Exception):
    """Raised when a source file cannot be turned into a Document."""

    def __init__(self, kind: ParseErrorKind, source_path: str, message: str):
        super().__init__(f"{source_path}: {message}")
        self.kind = kind
        self.source_path = source_path
        self.message = message


class BlockKind(str, Enum):
    HEADING = "heading"
    PARAGRAPH = "paragraph"
    CODE = "code"
    LIST = "list"
    QUOTE = "quote"
    HTML = "html"
    TEXT = "text"


@dataclass(frozen=True)
class CodeBlock:
    language: str
    text: str
    highlighted: bool = False
    tokens: Tuple[Tuple[str, str], ...] = ()


@dataclass
class HeadingNode:
    level: int
    text: str
    anchor: str
    children: List["HeadingNode"] = field(default_factory=list)


@dataclass(frozen=True)
class Block:
    kind: BlockKind
    text: str
    heading: Optional[HeadingNode] = None
    code: Optional[CodeBlock] = None


@dataclass(frozen=True)
class Document:
    path: str
    source_path: str
    stem: str
    extension: str
    front_matter: Dict[str, Any]
    title: str
    description: str
    body: str
    blocks: Tuple[Block, ...]
    headings: Tuple[HeadingNode, ...]
    outline: Tuple[HeadingNode, ...]
    word_count: int = 0
    token_estimate: int = 0
    content_hash: str = ""
    toc: Optional[tuple] = None

    def code_blocks(self) -> List[CodeBlock]:
        return [b.code for b in self.blocks if b.kind is BlockKind.CODE]


class DocumentParser:
    """
    Lenient markdown parser.

    Only malformed front matter fails a document; anything the block
    tokenizer cannot make sense of is kept as an opaque ``text`` block so a
    typo in user-authored content never aborts the build.
    """

    def __init__(self, content_root: str = "", preview_chars: int = 500):
        self.content_root = content_root
        self.preview_chars = preview_chars

    def parse(self, raw_text: str, source_path: str) -> Document:
        front_matter, body = self.split_front_matter(raw_text, source_path)
        blocks = self.tokenize(body, source_path)
        headings = tuple(b.heading for b in blocks if b.kind is BlockKind.HEADING)
        outline = tuple(self.nest_headings(headings))

        rel_path = self.relative_source(source_path)
        pure = PurePosixPath(rel_path)
        stem = pure.stem
        path = front_matter.get("path")
        if not isinstance(path, str) or not path.strip():
            path = self.derive_path(rel_path)

        title = front_matter.get("title")
        if not title:
            first_h1 = next((h for h in headings if h.level == 1), None)
            title = first_h1.text if first_h1 else self.humanize(stem)
        description = front_matter.get("description") or front_matter.get("summary")
        if not description:
            description = self.extract_preview(body, max_chars=self.preview_chars)

        return Document(
            path=path,
            source_path=rel_path,
            stem=str(pure.with_suffix("")),
            extension=pure.suffix.lstrip("."),
            front_matter=front_matter,
            title=str(title),
            description=str(description),
            body=body,
            blocks=tuple(blocks),
            headings=headings,
            outline=outline,
            word_count=self.word_count(body),
            token_estimate=self.estimate_tokens(body),
            content_hash=self.sha256_text(body),
        )

    # Front-matter helpers

    @staticmethod
    def split_front_matter(source_text: str, source_path: str = "<string>"):
        """
        Return (front_matter_dict, body_text). If no FM, dict={} and body=source_text.
        """
        source_text = source_text.lstrip("\ufeff").replace("\r\n", "\n")
        m = FM_PATTERN.match(source_text)
        if not m:
            return {}, source_text
        if m.group(1) is None:
            return {}, source_text[m.end() :]
        try:
            fm = yaml.safe_load(m.group(1))
        except yaml.YAMLError as exc:
            raise ParseError(
                ParseErrorKind.MALFORMED_FRONT_MATTER, source_path, f"invalid YAML: {exc}"
            ) from exc
        if fm is None:
            fm = {}
        if not isinstance(fm, dict):
            raise ParseError(
                ParseErrorKind.MALFORMED_FRONT_MATTER,
                source_path,
                f"front matter must be a mapping, got {type(fm).__name__}",
            )
        return fm, source_text[m.end() :]

    # Block tokenizer

    def tokenize(self, body: str, source_path: str = "<string>") -> List[Block]:
        lines = body.split("\n")
        blocks: List[Block] = []
        anchors_seen: Dict[str, int] = {}
        para: List[str] = []

        def flush_para():
            if para:
                blocks.append(Block(BlockKind.PARAGRAPH, "\n".join(para)))
                para.clear()

        def heading_block(level: int, raw: str, source: str) -> Block:
            text = self.plain_text(raw)
            node = HeadingNode(level, text, self.slugify_anchor(text, anchors_seen))
            return Block(BlockKind.HEADING, source, heading=node)

        i = 0
        while i < len(lines):
            line = lines[i]

            m_fence = FENCE_RE.match(line)
            if m_fence:
                flush_para()
                fence = m_fence.group(2)
                language = (m_fence.group(3) or "").strip("{}.").lower()
                end = None
                for j in range(i + 1, len(lines)):
                    closing = lines[j].strip()
                    if closing.startswith(fence[0] * len(fence)) and not closing.strip(fence[0]):
                        end = j
                        break
                if end is None:
                    log.debug(f"[document_parser] unterminated code fence in {source_path} at line {i + 1}")
                    blocks.append(Block(BlockKind.TEXT, "\n".join(lines[i:])))
                    break
                code_text = "\n".join(lines[i + 1 : end])
                blocks.append(
                    Block(
                        BlockKind.CODE,
                        "\n".join(lines[i : end + 1]),
                        code=CodeBlock(language=language, text=code_text),
                    )
                )
                i = end + 1
                continue

            if not line.strip():
                flush_para()
                i += 1
                continue

            m_heading = HEADING_RE.match(line)
            if m_heading:
                flush_para()
                blocks.append(
                    heading_block(len(m_heading.group(1)), m_heading.group(2) or "", line)
                )
                i += 1
                continue

            m_setext = SETEXT_RE.match(line)
            if m_setext and len(para) == 1:
                level = 1 if m_setext.group(1).startswith("=") else 2
                source = f"{para[0]}\n{line}"
                raw = para.pop()
                blocks.append(heading_block(level, raw.strip(), source))
                i += 1
                continue

            if not para and (LIST_ITEM_RE.match(line) or QUOTE_RE.match(line)):
                is_list = bool(LIST_ITEM_RE.match(line))
                group = [line]
                i += 1
                while i < len(lines) and lines[i].strip():
                    nxt = lines[i]
                    if HEADING_RE.match(nxt) or FENCE_RE.match(nxt):
                        break
                    group.append(nxt)
                    i += 1
                kind = BlockKind.LIST if is_list else BlockKind.QUOTE
                blocks.append(Block(kind, "\n".join(group)))
                continue

            if not para and HTML_BLOCK_RE.match(line):
                group = [line]
                i += 1
                while i < len(lines) and lines[i].strip():
                    group.append(lines[i])
                    i += 1
                blocks.append(Block(BlockKind.HTML, "\n".join(group)))
                continue

            para.append(line)
            i += 1

        flush_para()
        return blocks

    @staticmethod
    def nest_headings(headings) -> List[HeadingNode]:
        """Attach every heading under the nearest preceding heading of lower level."""
        roots: List[HeadingNode] = []
        stack: List[HeadingNode] = []
        for node in headings:
            while stack and stack[-1].level >= node.level:
                stack.pop()
            if stack:
                stack[-1].children.append(node)
            else:
                roots.append(node)
            stack.append(node)
        return roots

    # Anchors and text helpers

    @staticmethod
    def plain_text(raw: str) -> str:
        text = INLINE_LINK_RE.sub(r"\1", raw)
        text = INLINE_MARKUP_RE.sub("", text)
        return " ".join(text.split())

    @staticmethod
    def slugify_anchor(text: str, seen: Dict[str, int]) -> str:
        value = text.strip().lower()
        value = re.sub(r"[\W_]+", "-", value, flags=re.UNICODE).strip("-")
        if not value:
            value = "section"
        if value not in seen:
            seen[value] = 1
            return value
        while True:
            seen[value] += 1
            candidate = f"{value}-{seen[value]}"
            if candidate not in seen:
                seen[candidate] = 1
                return candidate

    @staticmethod
    def humanize(stem: str) -> str:
        name = ORDER_PREFIX_RE.sub("", stem)
        return re.sub(r"[-_]+", " ", name).strip().capitalize() or "Untitled"

    # Paths

    def relative_source(self, source_path: str) -> str:
        posix = str(source_path).replace("\\", "/")
        root = str(self.content_root).replace("\\", "/").rstrip("/")
        if root and posix.startswith(root + "/"):
            posix = posix[len(root) + 1 :]
        return posix.lstrip("/")

    @staticmethod
    def derive_path(rel_source: str) -> str:
        """
        Logical path from a content-relative source path:
        - extension dropped
        - numeric ordering prefixes ("1.getting-started") dropped per segment
        - trailing "index" segment dropped
        """
        route = rel_source.replace("\\", "/")
        for ext in MARKDOWN_EXTENSIONS:
            if route.endswith(ext):
                route = route[: -len(ext)]
                break
        segments = [ORDER_PREFIX_RE.sub("", s) for s in route.split("/") if s]
        if segments and segments[-1] == "index":
            segments.pop()
        return "/" + "/".join(segments)

    # Word count & token estimation

    @staticmethod
    def word_count(content: str) -> int:
        return len(re.findall(r"\b\w+\b", content, flags=re.UNICODE))

    @staticmethod
    def estimate_tokens(content: str) -> int:
        return len(re.findall(r"\w+|[^\s\w]", content, flags=re.UNICODE))

    @staticmethod
    def sha256_text(content: str) -> str:
        return "sha256:" + hashlib.sha256(content.encode("utf-8")).hexdigest()

    @staticmethod
    def extract_preview(body: str, max_chars: int = 500) -> str:
        lines = body.splitlines()
        in_code = False
        para: List[str] = []

        def bad_start(s: str) -> bool:
            s = s.lstrip()
            return (
                not s
                or s.startswith("#")
                or s.startswith(">")
                or s.startswith("<")
                or s.startswith("- ")
                or s.startswith("* ")
                or re.match(r"^\d+\.\s", s) is not None
            )

        for line in lines:
            if re.match(r"^(\s*)(`{3,}|~{3,})", line):
                in_code = not in_code
                if para:
                    break
                continue
            if in_code:
                continue
            if line.strip() == "":
                if para:
                    break
                continue
            if not para and bad_start(line):
                continue
            para.append(line)

        text = " ".join(" ".join(para).split())
        return text[:max_chars].rstrip()
