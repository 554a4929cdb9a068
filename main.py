import json
import logging
import os
import sys

from PyQt6.QtWidgets import QApplication, QMainWindow, QFileDialog, QMessageBox, QVBoxLayout, QWidget, QLabel, QSplitter, QTextEdit
from PyQt6.QtGui import QAction, QPalette, QColor
from PyQt6.QtCore import Qt

from ui.graph_widget import GraphWidget

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

SAMPLE_NODES = [
    {"id": "jhn-3-16", "type": "VERSE", "label": "John 3:16"},
    {"id": "rom-5-8", "type": "VERSE", "label": "Romans 5:8"},
    {"id": "1jn-4-9", "type": "VERSE", "label": "1 John 4:9"},
    {"id": "isa-53-5", "type": "VERSE", "label": "Isaiah 53:5"},
    {"id": "1pe-2-24", "type": "VERSE", "label": "1 Peter 2:24"},
    {"id": "grp-love", "type": "GROUP", "label": "God's love"},
    {"id": "note-1", "type": "NOTE", "label": "Note on John 3:16"},
    {"id": "tag-grace", "type": "TAG", "label": "grace"},
]
SAMPLE_EDGES = [
    {"id": "c1", "source": "jhn-3-16", "target": "rom-5-8", "type": "CROSS_REFERENCE"},
    {"id": "c2", "source": "jhn-3-16", "target": "1jn-4-9", "type": "THEME"},
    {"id": "c3", "source": "isa-53-5", "target": "1pe-2-24", "type": "PROPHECY", "weight": 2},
    {"id": "g1", "source": "grp-love", "target": "jhn-3-16", "type": "GROUP_MEMBER"},
    {"id": "g2", "source": "grp-love", "target": "rom-5-8", "type": "GROUP_MEMBER"},
    {"id": "n1", "source": "note-1", "target": "jhn-3-16", "type": "NOTE"},
    {"id": "t1", "source": "tag-grace", "target": "rom-5-8", "type": "THEMATIC"},
]


def load_graph_file(path):
    """Read ``{"nodes": [...], "edges": [...]}`` from a JSON file."""
    with open(path, encoding="utf-8") as fh:
        doc = json.load(fh)
    if not isinstance(doc, dict):
        raise ValueError("Expected a JSON object with 'nodes' and 'edges'")
    return doc.get("nodes", []), doc.get("edges", [])


class MainWindow(QMainWindow):
    def __init__(self):
        super().__init__()
        self.setWindowTitle("VerseGraph - Study Graph")
        self.resize(1200, 800)

        self.current_theme = "Light"
        self.init_ui()
        self.setup_theme(self.current_theme)

    def init_ui(self):
        self.central_widget = QWidget()
        self.setCentralWidget(self.central_widget)

        self.main_layout = QVBoxLayout(self.central_widget)
        self.main_layout.setContentsMargins(0, 0, 0, 0)

        self.info_label = QLabel("Tap a node to view details, drag to move it.")
        self.main_layout.addWidget(self.info_label)

        self.splitter = QSplitter(Qt.Orientation.Horizontal)
        self.main_layout.addWidget(self.splitter)

        self.details_panel = QTextEdit()
        self.details_panel.setReadOnly(True)
        self.details_panel.setText("Select a node to view details.")
        self.splitter.addWidget(self.details_panel)

        self.graph_widget = GraphWidget()
        self.graph_widget.nodeSelected.connect(self.on_node_selected)
        self.graph_widget.nodeDragged.connect(self.on_node_dragged)
        self.graph_widget.edgeSelected.connect(self.on_edge_selected)
        self.splitter.addWidget(self.graph_widget)

        self.splitter.setStretchFactor(0, 25)
        self.splitter.setStretchFactor(1, 75)

        self.create_menu()

    def create_menu(self):
        menu = self.menuBar()
        menu.clear()

        file_menu = menu.addMenu("&File")
        open_action = QAction("Open graph...", self)
        open_action.setShortcut("Ctrl+O")
        open_action.triggered.connect(self.open_file_dialog)
        file_menu.addAction(open_action)

        sample_action = QAction("Load sample", self)
        sample_action.triggered.connect(self.load_sample)
        file_menu.addAction(sample_action)

        exit_action = QAction("Exit", self)
        exit_action.triggered.connect(self.close)
        file_menu.addAction(exit_action)

        view_menu = menu.addMenu("&View")
        reset_action = QAction("Reset view", self)
        reset_action.triggered.connect(self.graph_widget.reset_view)
        view_menu.addAction(reset_action)

        theme_action = QAction("Toggle dark theme", self)
        theme_action.triggered.connect(self.toggle_theme)
        view_menu.addAction(theme_action)

    def toggle_theme(self):
        self.current_theme = "Light" if self.current_theme == "Dark" else "Dark"
        self.setup_theme(self.current_theme)

    def setup_theme(self, theme_name):
        app = QApplication.instance()
        app.setStyle("Fusion")

        palette = QPalette()
        if theme_name == "Dark":
            palette.setColor(QPalette.ColorRole.Window, QColor(53, 53, 53))
            palette.setColor(QPalette.ColorRole.WindowText, Qt.GlobalColor.white)
            palette.setColor(QPalette.ColorRole.Base, QColor(25, 25, 25))
            palette.setColor(QPalette.ColorRole.Text, Qt.GlobalColor.white)
            palette.setColor(QPalette.ColorRole.Button, QColor(53, 53, 53))
            palette.setColor(QPalette.ColorRole.ButtonText, Qt.GlobalColor.white)
            palette.setColor(QPalette.ColorRole.Highlight, QColor(42, 130, 218))
            self.graph_widget.bg_color = QColor("#121212")
            self.graph_widget.label_color = QColor("#dddddd")
        else:
            palette.setColor(QPalette.ColorRole.Window, QColor(240, 240, 240))
            palette.setColor(QPalette.ColorRole.WindowText, Qt.GlobalColor.black)
            palette.setColor(QPalette.ColorRole.Base, Qt.GlobalColor.white)
            palette.setColor(QPalette.ColorRole.Text, Qt.GlobalColor.black)
            palette.setColor(QPalette.ColorRole.Button, QColor(240, 240, 240))
            palette.setColor(QPalette.ColorRole.ButtonText, Qt.GlobalColor.black)
            palette.setColor(QPalette.ColorRole.Highlight, QColor(76, 163, 224))
            self.graph_widget.bg_color = QColor("#f5f5f5")
            self.graph_widget.label_color = QColor("#333333")

        app.setPalette(palette)
        self.graph_widget.update()

    def on_node_selected(self, node_id):
        """Show the tapped node and its connections."""
        self.graph_widget.center_on_node(node_id)
        node = self.graph_widget.engine.node(node_id)
        if node is None:
            return

        kind = getattr(node.type, "value", node.type)
        text = f"<h2>{node.label or node.id}</h2><p><i>{kind}</i></p>"
        text += "<h3>Connections</h3><ul>"
        links = [e for e in self.graph_widget.engine.edges if node_id in (e.source, e.target)]
        for edge in links:
            other = edge.target if edge.source == node_id else edge.source
            other_node = self.graph_widget.engine.node(other)
            label = other_node.label if other_node is not None and other_node.label else other
            text += f"<li>{getattr(edge.type, 'value', edge.type)}: {label}</li>"
        if not links:
            text += "<li><i>No connections</i></li>"
        text += "</ul>"
        self.details_panel.setHtml(text)

    def on_node_dragged(self, node_id, x, y):
        self.info_label.setText(f"Moving {node_id} to ({x:.0f}, {y:.0f})")

    def on_edge_selected(self, edge_id):
        edge = next((e for e in self.graph_widget.engine.edges if e.id == edge_id), None)
        if edge is None:
            return
        labels = []
        for node_id in (edge.source, edge.target):
            node = self.graph_widget.engine.node(node_id)
            labels.append(node.label if node is not None and node.label else node_id)
        kind = getattr(edge.type, "value", edge.type)
        self.details_panel.setHtml(f"<h2>{labels[0]} &rarr; {labels[1]}</h2><p><i>{kind}</i></p>")

    def load_sample(self):
        self.graph_widget.set_graph(SAMPLE_NODES, SAMPLE_EDGES)
        self.info_label.setText(f"Sample graph: {len(SAMPLE_NODES)} nodes, {len(SAMPLE_EDGES)} connections")

    def open_file_dialog(self):
        fname, _ = QFileDialog.getOpenFileName(self, "Open graph", "", "Graph JSON (*.json);;All Files (*)")
        if fname:
            self.load_file(fname)

    def load_file(self, path):
        try:
            nodes, edges = load_graph_file(path)
            self.graph_widget.set_graph(nodes, edges)
        except (OSError, ValueError) as e:
            logger.error("Failed to load %s: %s", path, e)
            QMessageBox.critical(self, "Error", f"Could not load graph: {e}")
            return
        self.graph_widget.reset_view()
        self.info_label.setText(f"Loaded {os.path.basename(path)}: {len(nodes)} nodes, {len(edges)} connections")


if __name__ == "__main__":
    app = QApplication(sys.argv)
    window = MainWindow()
    if len(sys.argv) > 1:
        window.load_file(sys.argv[1])
    else:
        window.load_sample()
    window.show()
    sys.exit(app.exec())
