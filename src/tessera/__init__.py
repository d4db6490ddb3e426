"""tessera: terminal dashboard framework with cell-diff rendering."""

# Application loop
from tessera.app import App, AppContext, run_app

# Cell storage
from tessera.buffer import Canvas, Cell, CellBuffer, glyph_width, iter_glyphs, text_width

# Configuration and logging
from tessera.config import Config, configure_logging

# Errors
from tessera.errors import (
    ConfigurationError,
    InvocationFault,
    LayoutInconsistency,
    NavigationFailure,
    NavigationRejected,
    TesseraError,
)

# Input
from tessera.events import InputBuffer, InputEvent, ResizeEvent, decode_input

# Safe capability dispatch
from tessera.gateway import NOOP, Diagnostic, InvocationGateway, InvocationResult

# Geometry
from tessera.geometry import Rect, Size, Thickness

# Overlays
from tessera.layers import LayerHandle, LayerStack

# Layout
from tessera.layout import (
    Alignment,
    GridLayout,
    LayoutStrategy,
    Orientation,
    StackLayout,
    TrackDef,
    TrackSpec,
    align_span,
    resolve_tracks,
    track_offsets,
)

# Component tree
from tessera.node import CAPABILITIES, Capability, Node, Panel, Screen, is_focusable

# Rendering
from tessera.renderer import CellSink, CellUpdate, DiffRenderer

# Navigation
from tessera.router import (
    BackResult,
    Breadcrumb,
    HistoryEntry,
    NavigationEvent,
    NavigationResult,
    NavigationState,
    Route,
    Router,
    RouterPhase,
    normalize_path,
)

# Styling
from tessera.style import DEFAULT_STYLE, Attr, Color, Style

# Background work
from tessera.tasks import BackgroundTask, TaskRunner

# Terminal interface and implementations
from tessera.terminal import ProcessTerminal, Terminal, encode_cells, sgr

# Widgets
from tessera.widgets import Button, Label, ProgressBar, Table, TextInput

__all__ = [
    # App
    "App",
    "AppContext",
    "run_app",
    # Buffer
    "Canvas",
    "Cell",
    "CellBuffer",
    "glyph_width",
    "iter_glyphs",
    "text_width",
    # Config
    "Config",
    "configure_logging",
    # Errors
    "ConfigurationError",
    "InvocationFault",
    "LayoutInconsistency",
    "NavigationFailure",
    "NavigationRejected",
    "TesseraError",
    # Events
    "InputBuffer",
    "InputEvent",
    "ResizeEvent",
    "decode_input",
    # Gateway
    "NOOP",
    "Diagnostic",
    "InvocationGateway",
    "InvocationResult",
    # Geometry
    "Rect",
    "Size",
    "Thickness",
    # Layers
    "LayerHandle",
    "LayerStack",
    # Layout
    "Alignment",
    "GridLayout",
    "LayoutStrategy",
    "Orientation",
    "StackLayout",
    "TrackDef",
    "TrackSpec",
    "align_span",
    "resolve_tracks",
    "track_offsets",
    # Nodes
    "CAPABILITIES",
    "Capability",
    "Node",
    "Panel",
    "Screen",
    "is_focusable",
    # Renderer
    "CellSink",
    "CellUpdate",
    "DiffRenderer",
    # Router
    "BackResult",
    "Breadcrumb",
    "HistoryEntry",
    "NavigationEvent",
    "NavigationResult",
    "NavigationState",
    "Route",
    "Router",
    "RouterPhase",
    "normalize_path",
    # Style
    "DEFAULT_STYLE",
    "Attr",
    "Color",
    "Style",
    # Tasks
    "BackgroundTask",
    "TaskRunner",
    # Terminal
    "ProcessTerminal",
    "Terminal",
    "encode_cells",
    "sgr",
    # Widgets
    "Button",
    "Label",
    "ProgressBar",
    "Table",
    "TextInput",
]
