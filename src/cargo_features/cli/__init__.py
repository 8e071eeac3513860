"""CLI helpers exposed for other modules."""

from .editor import Editor, EditorState, Selector
from .ui import PruneTracker, get_key

__all__ = ["Editor", "EditorState", "PruneTracker", "Selector", "get_key"]
