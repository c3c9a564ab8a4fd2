"""Diagram view: async layout refresh feeding the focus controller."""
import logging
from typing import Literal, Optional

from bowtie_layout.config import LayoutOptions, Spacing
from bowtie_layout.focus.controller import FocusController
from bowtie_layout.graph.builder import build_bowtie_graph
from bowtie_layout.graph.details import NodeDetails, get_node_details
from bowtie_layout.layout.engine import layout_bowtie_diagram
from bowtie_layout.layout.layered import LayoutError
from bowtie_layout.models.bowtie import BowtieDiagram
from bowtie_layout.models.graph import BowtieGraph

logger = logging.getLogger(__name__)

RENDER_ERROR_MESSAGE = "Unable to render bowtie diagram."

ViewStatus = Literal["loading", "ready", "error"]


class BowtieDiagramView:
    """Keeps the rendered graph in step with the latest diagram.

    Every :meth:`refresh` takes a new request token. When a slower, older
    layout resolves after a newer one was requested its result is dropped,
    so a stale layout never overwrites a newer render state.
    """

    def __init__(self, spacing: Optional[Spacing] = None):
        self.spacing = spacing or Spacing()
        self.controller = FocusController()
        self.diagram: Optional[BowtieDiagram] = None
        self.graph: Optional[BowtieGraph] = None
        self.status: ViewStatus = "loading"
        self.error: Optional[str] = None
        self._request_token = 0

    async def refresh(self, diagram: BowtieDiagram, view_level: float = 0) -> Optional[BowtieGraph]:
        """Lay out and build *diagram*.

        Returns:
            The new graph, or None when the result was superseded or the
            layout failed (see :attr:`status`).
        """
        self._request_token += 1
        token = self._request_token
        self.status = "loading"
        self.error = None

        options = LayoutOptions(view_level=view_level, spacing=self.spacing)
        try:
            layout_nodes = await layout_bowtie_diagram(diagram, options)
        except LayoutError as e:
            if token != self._request_token:
                logger.debug(f"Discarding layout failure for superseded request {token}")
                return None
            logger.error(f"Failed to layout bowtie diagram {diagram.id!r}: {e}")
            self.status = "error"
            self.error = RENDER_ERROR_MESSAGE
            return None

        if token != self._request_token:
            logger.warning(
                f"Discarding stale layout for {diagram.id!r} (request {token}, latest {self._request_token})"
            )
            return None

        graph = build_bowtie_graph(layout_nodes, diagram)
        self.diagram = diagram
        self.graph = graph
        self.controller.load_graph(graph)
        self.status = "ready"
        return graph

    def render(self) -> BowtieGraph:
        return self.controller.render()

    def selected_details(self) -> Optional[NodeDetails]:
        selected = self.controller.filters.selected_node_id
        if self.graph is None or self.diagram is None or not selected:
            return None
        return get_node_details(self.graph.node(selected), self.diagram)
