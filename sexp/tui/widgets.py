"""sexp TUI Widgets - Object tree and detail panel for the viewer."""

from __future__ import annotations

import io

from rich.text import Text
from textual.app import ComposeResult
from textual.widgets import Label, Static, Tree

from sexp.objects import SexpList, SexpObject, SimpleString, StringForm
from sexp.security import canonical_bytes, fingerprint
from sexp.syntax import DEFAULT_LINE_LENGTH, PrintMode
from sexp.writer import OutputStream, SexpWriter

PREVIEW_LIMIT = 40


def display_simple_string(ss: SimpleString, limit: int = PREVIEW_LIMIT) -> str:
    """Short one-line rendering: text as-is, anything else as #hex#."""
    if ss.can_print_as_quoted_string():
        shown = ss[:limit].decode("ascii")
        if not ss.can_print_as_token():
            shown = f'"{shown}"'
    else:
        shown = "#" + ss[:limit].hex().upper() + "#"
    if len(ss) > limit:
        shown += "..."
    return shown


def node_label(obj: SexpObject) -> str:
    if isinstance(obj, SexpList):
        return f"list ({len(obj)})"
    label = display_simple_string(obj.data)
    if obj.presentation_hint is not None:
        label = f"[{display_simple_string(obj.presentation_hint)}] {label}"
    return label


def describe_object(obj: SexpObject, max_column: int = DEFAULT_LINE_LENGTH) -> list[str]:
    """Detail lines for the selected object."""
    probe = OutputStream(io.BytesIO(), max_column=max_column)
    lines = []
    if isinstance(obj, SexpList):
        lines.append(f"list of {len(obj)} items")
    else:
        lines.append(f"string of {len(obj.data)} octets")
        if obj.presentation_hint is not None:
            lines.append(f"hint: {display_simple_string(obj.presentation_hint)}")
        best = obj.data.advanced_form(probe)
        legal = obj.data.legal_forms(probe)
        for form in StringForm:
            marker = "*" if form == best else " "
            if form in legal:
                lines.append(f" {marker} {form.value:12s} {obj.data.printed_length(form):>6d}")
            else:
                lines.append(f"   {form.value:12s}      -")
    lines.append(f"canonical size: {len(canonical_bytes(obj))}")
    lines.append(f"advanced size:  {obj.advanced_length(probe)}")
    lines.append(f"sha256: {fingerprint(obj)}")
    return lines


class ObjectTree(Tree):
    """Expandable tree of an S-expression; each node carries its object."""

    DEFAULT_CSS = """
    ObjectTree {
        width: 1fr;
        border: solid $accent;
    }
    """

    def __init__(self, objects: list[SexpObject], title: str, **kwargs) -> None:
        super().__init__(Text(title), **kwargs)
        for obj in objects:
            self._add(self.root, obj)
        self.root.expand()

    def _add(self, parent, obj: SexpObject) -> None:
        if isinstance(obj, SexpList):
            branch = parent.add(Text(node_label(obj)), data=obj, expand=True)
            for child in obj:
                self._add(branch, child)
        else:
            parent.add_leaf(Text(node_label(obj)), data=obj)


class DetailPanel(Static):
    """Details of the highlighted object plus its advanced rendering."""

    DEFAULT_CSS = """
    DetailPanel {
        width: 1fr;
        border: solid $accent;
        padding: 1;
        overflow: auto;
    }
    DetailPanel .detail-title {
        text-style: bold;
        color: $accent;
        margin-bottom: 1;
    }
    DetailPanel .detail-preview {
        margin-top: 1;
        color: $text-muted;
    }
    """

    def __init__(self, max_column: int = DEFAULT_LINE_LENGTH, **kwargs) -> None:
        super().__init__(**kwargs)
        self._max_column = max_column
        self._title_widget: Label | None = None
        self._body_widget: Static | None = None
        self._preview_widget: Static | None = None

    def compose(self) -> ComposeResult:
        self._title_widget = Label("Select a node", classes="detail-title")
        self._body_widget = Static("")
        self._preview_widget = Static("", classes="detail-preview")
        yield self._title_widget
        yield self._body_widget
        yield self._preview_widget

    def show_object(self, obj: SexpObject | None) -> None:
        if obj is None:
            return
        kind = "list" if isinstance(obj, SexpList) else "string"
        if self._title_widget:
            self._title_widget.update(f"--- {kind} ---")
        if self._body_widget:
            self._body_widget.update(Text("\n".join(describe_object(obj, self._max_column))))
        if self._preview_widget:
            preview = SexpWriter.serialize(obj, PrintMode.ADVANCED, self._max_column)
            self._preview_widget.update(Text(preview.decode("latin-1")))
        self.scroll_home()
