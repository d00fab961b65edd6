"""
Writers for llms.txt and llms-full.txt.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import List, Sequence

from mkdocs.utils import log

from content_plugins.document_parser.document_parser import Document
from content_plugins.llms_sections.section_extractor import SectionView, union_documents


@dataclass(frozen=True)
class LlmsSettings:
    domain: str = ""
    title: str = "Documentation"
    description: str = ""
    full_title: str = ""
    full_description: str = ""
    txt_path: str = "llms.txt"
    full_path: str = "llms-full.txt"


class LlmsWriter:
    """Render the machine-readable ``llms.txt`` / ``llms-full.txt`` views of the docs."""

    def __init__(self, settings: LlmsSettings):
        self.settings = settings

    def url_for(self, doc: Document) -> str:
        domain = self.settings.domain.rstrip("/")
        return f"{domain}{doc.path}"

    @staticmethod
    def one_line(text: str) -> str:
        return " ".join((text or "").split())

    def render_index(self, sections: Sequence[SectionView]) -> str:
        lines: List[str] = [f"# {self.settings.title}", ""]
        if self.settings.description:
            lines.extend([f"> {self.one_line(self.settings.description)}", ""])

        for section in sections:
            lines.append(f"## {section.name}")
            lines.append("")
            if section.description:
                lines.extend([section.description.strip(), ""])
            for doc in section.documents:
                entry = f"- [{doc.title}]({self.url_for(doc)})"
                description = self.one_line(doc.description)
                if description:
                    entry += f": {description}"
                lines.append(entry)
            lines.append("")

        return "\n".join(lines).rstrip() + "\n"

    def render_full(self, sections: Sequence[SectionView]) -> str:
        title = self.settings.full_title or self.settings.title
        description = self.settings.full_description or self.settings.description
        lines: List[str] = [f"# {title}", ""]
        if description:
            lines.extend([f"> {self.one_line(description)}", ""])

        for doc in union_documents(sections):
            lines.append(f"# {doc.title}")
            lines.append("")
            lines.append(f"Source: {self.url_for(doc)}")
            lines.append("")
            body = doc.body.strip()
            if body:
                lines.extend([body, ""])

        return "\n".join(lines).rstrip() + "\n"

    def write(self, sections: Sequence[SectionView], site_dir: Path) -> List[Path]:
        written = []
        for rel, content in (
            (self.settings.txt_path, self.render_index(sections)),
            (self.settings.full_path, self.render_full(sections)),
        ):
            out_path = Path(rel)
            if not out_path.is_absolute():
                out_path = (Path(site_dir) / out_path).resolve()
            out_path.parent.mkdir(parents=True, exist_ok=True)
            out_path.write_text(content, encoding="utf-8")
            log.info(f"[llms_sections] wrote {out_path}")
            written.append(out_path)
        return written
