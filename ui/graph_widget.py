from PyQt6.QtWidgets import QWidget
from PyQt6.QtCore import Qt, QPointF, QRectF, pyqtSignal
from PyQt6.QtGui import QPainter, QColor, QPen, QBrush, QFont, QTransform

from graph_engine import GraphEngine
from graph_model import ConnectionKind, NodeType
from interaction import Camera, InteractionController
from ui.frame_scheduler import QtFrameScheduler

NODE_COLORS = {
    NodeType.VERSE: QColor("#1e88e5"),  # Blue
    NodeType.GROUP: QColor("#43a047"),  # Green
    NodeType.NOTE: QColor("#ffb300"),   # Amber
    NodeType.TAG: QColor("#e53935"),    # Red
}
EDGE_COLORS = {
    ConnectionKind.CROSS_REFERENCE: QColor("#1e88e5"),
    ConnectionKind.THEME: QColor("#43a047"),
    ConnectionKind.NOTE: QColor("#ffb300"),
    ConnectionKind.PROPHECY: QColor("#8e24aa"),
}
DEFAULT_COLOR = QColor("#9e9e9e")  # Grey


class GraphWidget(QWidget):
    nodeSelected = pyqtSignal(str)
    nodeDragged = pyqtSignal(str, float, float)
    edgeSelected = pyqtSignal(str)

    def __init__(self, config=None, parent=None, show_labels=True):
        super().__init__(parent)
        self.show_labels = show_labels

        # Rendering settings
        self.bg_color = QColor("#f5f5f5")
        self.label_color = QColor("#333333")
        self.selected_color = QColor("#ff5722")

        self.scheduler = QtFrameScheduler(self)
        self.engine = GraphEngine(self.scheduler, viewport=(max(self.width(), 1), max(self.height(), 1)),
                                  config=config)
        self.camera = Camera()
        self.controller = InteractionController(self.engine, self.camera,
                                                on_select=self._on_select,
                                                on_drag=self._on_drag,
                                                on_select_edge=self.edgeSelected.emit)
        self.selected_node = None
        self.positions = self.engine.snapshot()
        self._unsubscribe = self.engine.subscribe(self._on_snapshot)

    def set_graph(self, nodes, edges):
        self.engine.set_graph(nodes, edges)
        if self.selected_node is not None and not self.engine.has_node(self.selected_node):
            self.selected_node = None

    def _on_snapshot(self, positions):
        self.positions = positions
        self.update()

    def _on_select(self, node_id):
        self.selected_node = node_id
        self.nodeSelected.emit(node_id)
        self.update()

    def _on_drag(self, node_id, x, y):
        self.nodeDragged.emit(node_id, x, y)

    def resizeEvent(self, event):
        size = event.size()
        if size.width() > 0 and size.height() > 0:
            self.engine.set_viewport(size.width(), size.height())
        super().resizeEvent(event)

    def closeEvent(self, event):
        self.dispose()
        super().closeEvent(event)

    def dispose(self):
        self._unsubscribe()
        self.engine.dispose()

    def center_on_node(self, node_id):
        pos = self.positions.get(node_id)
        if pos is not None:
            self.camera.center_on(pos[0], pos[1], self.width(), self.height())
            self.update()

    def reset_view(self):
        self.camera.reset()
        self.update()

    def paintEvent(self, event):
        painter = QPainter(self)
        painter.setRenderHint(QPainter.RenderHint.Antialiasing)
        painter.fillRect(self.rect(), self.bg_color)

        transform = QTransform()
        transform.translate(self.camera.offset_x, self.camera.offset_y)
        transform.scale(self.camera.scale, self.camera.scale)
        painter.setTransform(transform)

        state = self.engine.state
        if state is None:
            return

        # Draw Edges
        for edge in self.engine.edges:
            p1 = self.positions.get(edge.source)
            p2 = self.positions.get(edge.target)
            if p1 is None or p2 is None:
                continue
            width = 1 + min(edge.weight, 3) if edge.weight else 1.5
            painter.setPen(QPen(EDGE_COLORS.get(edge.type, DEFAULT_COLOR), width))
            painter.drawLine(QPointF(*p1), QPointF(*p2))

        # Draw Nodes
        painter.setFont(QFont("Segoe UI", 9))
        for node in state.nodes:
            pos = self.positions.get(node.id)
            if pos is None:
                continue
            x, y = pos
            r = node.radius or self.engine.config.default_radius
            selected = node.id == self.selected_node

            painter.setBrush(QBrush(NODE_COLORS.get(node.type, DEFAULT_COLOR)))
            painter.setPen(QPen(self.selected_color if selected else QColor("#ffffff"), 2.5 if selected else 1.5))
            painter.drawEllipse(QRectF(x - r, y - r, r * 2, r * 2))

            if self.show_labels and node.label:
                font = painter.font()
                font.setBold(selected)
                painter.setFont(font)
                painter.setPen(self.label_color)
                painter.drawText(QRectF(x - 60, y + r + 2, 120, 16),
                                 Qt.AlignmentFlag.AlignCenter, node.label)

    def mousePressEvent(self, event):
        pos = event.position()
        if event.button() == Qt.MouseButton.RightButton:
            # Right button always pans, even over a node
            self.controller.begin_pan(pos.x(), pos.y())
            self.setCursor(Qt.CursorShape.ClosedHandCursor)
            return

        if event.button() == Qt.MouseButton.LeftButton:
            if self.controller.pointer_down(pos.x(), pos.y()) is not None:
                self.setCursor(Qt.CursorShape.PointingHandCursor)
            else:
                self.setCursor(Qt.CursorShape.ClosedHandCursor)

    def mouseMoveEvent(self, event):
        pos = event.position()
        self.controller.pointer_move(pos.x(), pos.y())
        self.update()

    def mouseReleaseEvent(self, event):
        pos = event.position()
        self.controller.pointer_up(pos.x(), pos.y())
        self.setCursor(Qt.CursorShape.ArrowCursor)

    def wheelEvent(self, event):
        angle = event.angleDelta().y()
        factor = 1.1 if angle > 0 else 0.9
        pos = event.position()
        if self.camera.zoom(factor, anchor=(pos.x(), pos.y())):
            self.update()
