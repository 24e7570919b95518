"""sexp TUI Viewer - Main Textual app: object tree beside a detail panel."""

from __future__ import annotations

import sys
from pathlib import Path

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal
from textual.widgets import Footer, Header, Tree

from sexp.objects import SexpObject
from sexp.reader import SexpReader
from sexp.syntax import DEFAULT_LINE_LENGTH
from sexp.tui.widgets import DetailPanel, ObjectTree


class SexpViewerApp(App):
    """TUI viewer for S-expression files. Tree on the left, details on the right."""

    TITLE = "sexp Viewer"
    CSS = """
    Screen {
        layout: vertical;
    }
    #main-area {
        height: 1fr;
    }
    """

    BINDINGS = [
        Binding("q", "quit", "Quit", show=True),
        Binding("e", "expand_all", "Expand", show=True),
        Binding("c", "collapse_all", "Collapse", show=True),
        Binding("j", "cursor_down", "Next", show=True),
        Binding("k", "cursor_up", "Prev", show=True),
    ]

    def __init__(self, path: str | Path, max_column: int = DEFAULT_LINE_LENGTH, **kwargs) -> None:
        super().__init__(**kwargs)
        self._path = Path(path)
        self._max_column = max_column
        self._objects: list[SexpObject] = []

    def compose(self) -> ComposeResult:
        self._objects = SexpReader.read_all(self._path)
        self.title = f"sexp Viewer - {self._path.name}"

        yield Header()
        with Horizontal(id="main-area"):
            yield ObjectTree(self._objects, self._path.name, id="tree")
            yield DetailPanel(max_column=self._max_column, id="detail")
        yield Footer()

    def on_mount(self) -> None:
        """Show the first object and focus the tree for keyboard nav."""
        if self._objects:
            self.query_one("#detail", DetailPanel).show_object(self._objects[0])
        self.query_one("#tree", ObjectTree).focus()

    def on_tree_node_highlighted(self, event: Tree.NodeHighlighted) -> None:
        self.query_one("#detail", DetailPanel).show_object(event.node.data)

    def action_expand_all(self) -> None:
        self.query_one("#tree", ObjectTree).root.expand_all()

    def action_collapse_all(self) -> None:
        tree = self.query_one("#tree", ObjectTree)
        tree.root.collapse_all()
        tree.root.expand()

    def action_cursor_down(self) -> None:
        self.query_one("#tree", ObjectTree).action_cursor_down()

    def action_cursor_up(self) -> None:
        self.query_one("#tree", ObjectTree).action_cursor_up()


def run_viewer(path: str | Path, max_column: int = DEFAULT_LINE_LENGTH) -> None:
    """Launch the TUI viewer."""
    path = Path(path)
    if not path.exists():
        print(f"Error: File not found: {path}", file=sys.stderr)
        sys.exit(1)
    if not SexpReader.is_sexp(path):
        print(f"Error: Not an S-expression file: {path}", file=sys.stderr)
        sys.exit(1)
    try:
        SexpReader.read_all(path)
    except ValueError as e:
        print(f"Error: parse error: {e}", file=sys.stderr)
        sys.exit(1)

    app = SexpViewerApp(path, max_column=max_column)
    app.run()
