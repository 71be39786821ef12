"""Pydantic models for static analysis output."""

from pydantic import BaseModel, Field


class ImportEdge(BaseModel):
    """A resolved import between two corpus files."""

    source_file: str
    target_file: str
    specifier: str


class ImportGraph(BaseModel):
    """Resolved import edges for a corpus, indexed both ways."""

    paths: list[str] = Field(default_factory=lambda: list[str]())
    edges: list[ImportEdge] = Field(default_factory=lambda: list[ImportEdge]())
    # Raw distinct specifiers per file, resolved or not
    specifiers: dict[str, list[str]] = Field(
        default_factory=lambda: dict[str, list[str]]()
    )
    imports: dict[str, list[str]] = Field(
        default_factory=lambda: dict[str, list[str]]()
    )
    imported_by: dict[str, list[str]] = Field(
        default_factory=lambda: dict[str, list[str]]()
    )

    def add(self, edge: ImportEdge) -> None:
        outgoing = self.imports.setdefault(edge.source_file, [])
        if edge.target_file in outgoing:
            return
        outgoing.append(edge.target_file)
        self.imported_by.setdefault(edge.target_file, []).append(
            edge.source_file
        )
        self.edges.append(edge)

    def in_degree(self, path: str) -> int:
        return len(self.imported_by.get(path, []))

    def out_degree(self, path: str) -> int:
        """Distinct import specifiers written in ``path``."""
        return len(self.specifiers.get(path, []))
