"""Interactive feature editor.

Three screens, walked with the arrow keys: packages (workspaces only),
dependencies of the selected package, and features of the selected
dependency. Typing filters the current list with a fuzzy search. Every toggle
is written to the manifest straight away.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Callable, Sequence

from rich.console import Console
from rich.live import Live
from rich.text import Text

from cargo_features.cli.ui import get_key
from cargo_features.core.errors import ManifestError, StaleSelection
from cargo_features.dependencies.dependency import Dependency, DependencyKind
from cargo_features.dependencies.search import SearchMatch, filter_names
from cargo_features.manifest.document import Document

SELECT_KEYS = {"enter", "right", " "}
BACK_KEYS = {"escape", "left"}

_KIND_ICONS = {
    DependencyKind.DEVELOPMENT: "🧪",
    DependencyKind.BUILD: "🛠️",
    DependencyKind.UNKNOWN: "❔",
}


class EditorState(StrEnum):
    PACKAGE = "package"
    DEPENDENCY = "dependency"
    FEATURE = "feature"


class Selector:
    """A list with a wrapping cursor."""

    def __init__(self, items: Sequence[SearchMatch] = (), what: str = "item"):
        self.items = list(items)
        self.selected_index = 0
        self.what = what

    def has_data(self) -> bool:
        return bool(self.items)

    def shift(self, delta: int) -> None:
        if not self.items:
            self.selected_index = 0
            return
        self.selected_index = (self.selected_index + delta) % len(self.items)

    def get_selected(self) -> SearchMatch:
        if not 0 <= self.selected_index < len(self.items):
            raise StaleSelection(self.selected_index, len(self.items), self.what)
        return self.items[self.selected_index]

    def index_of(self, name: str) -> int | None:
        for index, item in enumerate(self.items):
            if item.name == name:
                return index
        return None


def visible_range(selected: int, total: int, height: int, reserved: int = 0) -> range:
    """Rows of a list that fit in ``height`` lines, keeping ``selected`` centred.

    One line is taken by the title; ``reserved`` extra lines are kept free for
    detail rows drawn under the selection.
    """
    rows = max(1, height - 1 - reserved)
    start = min(selected - height // 2 + 1, total - rows)
    start = max(0, start)
    return range(start, min(total, start + rows))


def _highlight(match: SearchMatch, base_style: str = "", highlight_style: str = "red") -> Text:
    text = Text(match.name, style=base_style)
    for index in match.highlighted:
        text.stylize(highlight_style, index, index + 1)
    return text


class Editor:
    """Keyboard-driven editor over a loaded ``Document``."""

    def __init__(self, document: Document, console: Console | None = None):
        self.document = document
        self.console = console or Console()
        self.search_text = ""
        self.state = EditorState.PACKAGE if document.is_workspace else EditorState.DEPENDENCY

        self.package_selector = Selector(filter_names(document.package_names(), ""), "package")
        self.dependency_selector = Selector(document.dependencies_view(0, ""), "dependency")
        self.feature_selector = Selector((), "feature")

    # ------------------------------------------------------------------
    # navigation

    @property
    def package_index(self) -> int:
        return self.package_selector.selected_index

    def current_dependency(self) -> Dependency:
        name = self.dependency_selector.get_selected().name
        return self.document.get_dependency(self.package_index, name)

    def select_dependency(self, name: str) -> None:
        """Open the feature list of dependency ``name`` in the current package."""
        index = self.dependency_selector.index_of(name)
        if index is None:
            raise ManifestError(f"dependency {name} not found in {self.document.get_package(self.package_index).name}")
        self.dependency_selector.selected_index = index
        self.state = EditorState.DEPENDENCY
        self._open_dependency()

    def _open_package(self) -> None:
        self.state = EditorState.DEPENDENCY
        self.search_text = ""
        self.dependency_selector = Selector(self.document.dependencies_view(self.package_index, ""), "dependency")

    def _open_dependency(self) -> None:
        if not self.dependency_selector.has_data():
            return
        dependency = self.current_dependency()
        if not dependency.has_features():
            return
        self.state = EditorState.FEATURE
        self.search_text = ""
        self.feature_selector = Selector(filter_names(dependency.graph.names(), ""), "feature")

    def toggle_selected(self) -> None:
        if not self.feature_selector.has_data():
            return
        dependency = self.current_dependency()
        dependency.toggle_feature(self.feature_selector.get_selected().name)
        self.document.persist(self.package_index, dependency)

    def _refresh_view(self) -> None:
        if self.state == EditorState.DEPENDENCY:
            self.dependency_selector.items = self.document.dependencies_view(self.package_index, self.search_text)
            self.dependency_selector.shift(0)
        elif self.state == EditorState.FEATURE:
            names = self.current_dependency().graph.names()
            self.feature_selector.items = filter_names(names, self.search_text)
            self.feature_selector.shift(0)

    def _move_back(self) -> bool:
        if self.state == EditorState.PACKAGE:
            return False
        if self.state == EditorState.DEPENDENCY:
            if not self.document.is_workspace:
                return False
            self.state = EditorState.PACKAGE
            self.search_text = ""
            return True

        current = self.dependency_selector.get_selected().name
        self.state = EditorState.DEPENDENCY
        self.search_text = ""
        self._refresh_view()
        self.dependency_selector.selected_index = self.dependency_selector.index_of(current) or 0
        return True

    def _active_selector(self) -> Selector:
        return {
            EditorState.PACKAGE: self.package_selector,
            EditorState.DEPENDENCY: self.dependency_selector,
            EditorState.FEATURE: self.feature_selector,
        }[self.state]

    def handle_key(self, key: str) -> bool:
        """Apply one keypress; returns False once the editor should close."""
        if key == "up":
            self._active_selector().shift(-1)
        elif key == "down":
            self._active_selector().shift(1)
        elif key in SELECT_KEYS:
            if self.state == EditorState.PACKAGE:
                self._open_package()
            elif self.state == EditorState.DEPENDENCY:
                self._open_dependency()
            else:
                self.toggle_selected()
        elif key in BACK_KEYS:
            return self._move_back()
        elif key == "backspace":
            if self.state != EditorState.PACKAGE and self.search_text:
                self.search_text = self.search_text[:-1]
                self._refresh_view()
        elif len(key) == 1 and key.isprintable() and self.state != EditorState.PACKAGE:
            self.search_text += key
            self._refresh_view()
        return True

    # ------------------------------------------------------------------
    # rendering

    def _title(self) -> Text:
        if self.state == EditorState.PACKAGE:
            title = Text("Packages", style="bold")
        elif self.state == EditorState.DEPENDENCY:
            title = Text("Dependencies", style="bold")
        else:
            dependency = self.current_dependency()
            title = Text(f"{dependency.name} {dependency.display_version}", style="bold")
        if self.search_text:
            title.append(f" - {self.search_text}", style="cyan")
        return title

    def _package_lines(self, height: int) -> list[Text]:
        selector = self.package_selector
        lines = []
        for index in visible_range(selector.selected_index, len(selector.items), height):
            pointer = ">" if index == selector.selected_index else " "
            lines.append(Text(f"{pointer} ") + Text(selector.items[index].name))
        return lines

    def _dependency_lines(self, height: int) -> list[Text]:
        selector = self.dependency_selector
        lines = []
        for index in visible_range(selector.selected_index, len(selector.items), height):
            match = selector.items[index]
            dependency = self.document.get_dependency(self.package_index, match.name)
            pointer = ">" if index == selector.selected_index else " "
            line = Text(f"{pointer} ")
            if dependency.kind.label:
                line.append(f"{_KIND_ICONS.get(dependency.kind, '')} {dependency.kind.label} ", style="bright_black")
            if dependency.has_features():
                line.append_text(_highlight(match))
            else:
                line.append_text(_highlight(match, base_style="bright_black", highlight_style="dark_red"))
            lines.append(line)
        return lines

    def _feature_lines(self, height: int) -> list[Text]:
        selector = self.feature_selector
        dependency = self.current_dependency()
        graph = dependency.graph

        reserved = 0
        if selector.has_data() and graph.get(selector.get_selected().name).raw_implies:
            reserved = 1

        lines = []
        for index in visible_range(selector.selected_index, len(selector.items), height, reserved):
            match = selector.items[index]
            feature = graph.get(match.name)
            selected = index == selector.selected_index

            line = Text(">" if selected else " ")
            line.append(" ")
            line.append("[X]" if feature.enabled else "[ ]", style="green" if feature.is_default else "")
            line.append(" ")
            locked = bool(graph.active_dependents(match.name))
            line.append_text(_highlight(match, base_style="bright_black" if locked else ""))
            lines.append(line)

            if selected and feature.raw_implies:
                lines.append(Text("      └ " + " ".join(feature.raw_implies), style="bright_black"))
        return lines

    def render(self, height: int | None = None) -> Text:
        height = height or self.console.size.height
        body_height = max(2, height - 1)  # last line is the key hint

        if self.state == EditorState.PACKAGE:
            lines = self._package_lines(body_height)
        elif self.state == EditorState.DEPENDENCY:
            lines = self._dependency_lines(body_height)
        else:
            lines = self._feature_lines(body_height)

        hint = Text(
            "↑/↓ move · Enter/Space select · type to search · Esc back",
            style="dim",
        )
        return Text("\n").join([self._title(), *lines, hint])

    def run(self, read_key: Callable[[], str] | None = None) -> None:
        """Drive the editor until the user leaves the top screen."""
        read_key = read_key or get_key

        with Live(self.render(), console=self.console, transient=True, auto_refresh=False) as live:
            while True:
                try:
                    key = read_key()
                except KeyboardInterrupt:
                    break
                if not self.handle_key(key):
                    break
                live.update(self.render(), refresh=True)


__all__ = ["Editor", "EditorState", "Selector", "visible_range"]
