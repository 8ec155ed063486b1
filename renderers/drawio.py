# renderers/drawio.py
"""
Minimal draw.io (mxGraph) document model and writer.

- One document holds one page whose root contains a flat list of cells.
- Vertices are placed with absolute canvas coordinates; when a vertex has a
  container parent its stored geometry is made relative to that parent, as
  draw.io expects for containment.
- Edges may only reference cells already present in the document.
"""

import os
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from exceptions import ArtifactWriteError

ROOT_ID = "0"
LAYER_ID = "1"
ICON_SIZE = 50.0

_ICON = ("aspect=fixed;html=1;points=[];align=center;image;fontSize=12;image=img/lib/azure2/{path};"
         "labelPosition=bottom;verticalLabelPosition=top;verticalAlign=bottom;")

ICON_STYLES = {
    "vnet": _ICON.format(path="networking/Virtual_Networks.svg"),
    "nsg": _ICON.format(path="networking/Network_Security_Groups.svg"),
    "routetable": _ICON.format(path="networking/Route_Tables.svg"),
    "loadbalancer": _ICON.format(path="networking/Load_Balancers.svg"),
    "natgateway": _ICON.format(path="networking/NAT.svg"),
    "publicip": _ICON.format(path="networking/Public_IP_Addresses.svg"),
    "nic": _ICON.format(path="networking/Network_Interfaces.svg"),
    "vm": _ICON.format(path="compute/Virtual_Machine.svg"),
    "functionapp": _ICON.format(path="compute/Function_Apps.svg"),
    "appserviceplan": _ICON.format(path="compute/App_Service_Plans.svg"),
    "storage": _ICON.format(path="storage/Storage_Accounts.svg"),
}
DEFAULT_ICON_STYLE = _ICON.format(path="general/Azure.svg")

CONTAINER_STYLES = {
    "vnet": "rounded=1;whiteSpace=wrap;html=1;fillColor=#dae8fc;strokeColor=#0078D4;strokeWidth=2;"
            "dashed=1;dashPattern=5 5;fontSize=14;fontStyle=1;verticalAlign=top;align=left;spacingLeft=10;",
    "subnet": "rounded=0;whiteSpace=wrap;html=1;fillColor=#e1d5e7;strokeColor=#9673a6;strokeWidth=1;"
              "dashed=1;dashPattern=3 3;fontSize=12;verticalAlign=top;align=left;spacingLeft=6;container=1;",
    "resourcegroup": "rounded=1;whiteSpace=wrap;html=1;fillColor=#f5f5f5;strokeColor=#666666;strokeWidth=2;"
                     "fontSize=16;fontStyle=1;",
}
DEFAULT_CONTAINER_STYLE = "rounded=1;whiteSpace=wrap;html=1;fillColor=#f5f5f5;strokeColor=#666666;"

EDGE_STYLES = {
    "peering": "endArrow=classic;startArrow=classic;html=1;rounded=0;strokeWidth=2;strokeColor=#0078D4;"
               "dashed=1;dashPattern=5 5;",
    "association": "endArrow=classic;html=1;rounded=0;strokeWidth=1.5;strokeColor=#666666;",
    "routing": "endArrow=classic;html=1;rounded=0;strokeWidth=1.5;strokeColor=#9673a6;dashed=1;dashPattern=3 3;",
    "natgw": "endArrow=classic;html=1;rounded=0;strokeWidth=1.5;strokeColor=#d79b00;",
}
DEFAULT_EDGE_STYLE = "endArrow=classic;html=1;rounded=0;strokeWidth=1;strokeColor=#666666;"

TEXT_STYLE = ("text;html=1;strokeColor=none;fillColor=none;align=left;verticalAlign=middle;"
              "whiteSpace=wrap;rounded=0;fontSize=14;fontStyle=1")
TITLE_STYLE = ("text;html=1;strokeColor=none;fillColor=none;align=center;verticalAlign=middle;"
               "whiteSpace=wrap;rounded=0;fontSize=20;fontStyle=1")


@dataclass
class Vertex:
    id: str
    label: str
    style: str
    parent: str
    x: float
    y: float
    width: float
    height: float
    kind: str = "shape"

    @property
    def is_container(self) -> bool:
        return self.kind == "container"


@dataclass
class Edge:
    id: str
    label: str
    style: str
    source: str
    target: str
    parent: str = LAYER_ID


def slug(value: str) -> str:
    """File- and id-safe form of a resource name."""
    cleaned = re.sub(r"[^A-Za-z0-9._-]+", "_", value.strip()).strip("_")
    return cleaned or "diagram"


class DiagramDocument:
    """One draw.io file with a single page."""

    def __init__(self, name: str):
        self.name = name
        self.cells: List[object] = []
        self._ids = {ROOT_ID, LAYER_ID}
        # absolute origin of every vertex, used for containment and hit checks
        self._origin: Dict[str, Tuple[float, float]] = {LAYER_ID: (0.0, 0.0)}

    # --- lookup -------------------------------------------------------------

    def has_cell(self, cell_id: str) -> bool:
        return cell_id in self._ids

    def vertices(self) -> List[Vertex]:
        return [c for c in self.cells if isinstance(c, Vertex)]

    def edges(self) -> List[Edge]:
        return [c for c in self.cells if isinstance(c, Edge)]

    def vertex(self, cell_id: str) -> Optional[Vertex]:
        for c in self.cells:
            if isinstance(c, Vertex) and c.id == cell_id:
                return c
        return None

    def absolute_position(self, cell_id: str) -> Tuple[float, float]:
        return self._origin[cell_id]

    def children(self, parent_id: str) -> List[Vertex]:
        return [v for v in self.vertices() if v.parent == parent_id]

    # --- building -----------------------------------------------------------

    def _new_id(self, key: str) -> str:
        cell_id = f"cell-{key}"
        if cell_id in self._ids:
            raise ValueError(f"duplicate cell id {cell_id}")
        return cell_id

    def add_vertex(self, key: str, label: str, style: str, x: float, y: float,
                   width: float, height: float, parent: str = LAYER_ID, kind: str = "shape") -> str:
        """Add a vertex at absolute (x, y); returns its cell id."""
        if parent not in self._origin:
            raise ValueError(f"unknown parent cell {parent}")
        cell_id = self._new_id(key)
        px, py = self._origin[parent]
        self.cells.append(Vertex(cell_id, label, style, parent, x - px, y - py, width, height, kind))
        self._ids.add(cell_id)
        self._origin[cell_id] = (x, y)
        return cell_id

    def add_rectangle(self, key: str, label: str, x: float, y: float, width: float, height: float,
                      style: str, parent: str = LAYER_ID) -> str:
        return self.add_vertex(key, label, style, x, y, width, height, parent)

    def add_icon(self, key: str, label: str, icon_type: str, x: float, y: float,
                 parent: str = LAYER_ID) -> str:
        style = ICON_STYLES.get(icon_type, DEFAULT_ICON_STYLE)
        return self.add_vertex(key, label, style, x, y, ICON_SIZE, ICON_SIZE, parent, kind=icon_type)

    def add_container(self, key: str, label: str, container_type: str, x: float, y: float,
                      width: float, height: float, parent: str = LAYER_ID) -> str:
        style = CONTAINER_STYLES.get(container_type, DEFAULT_CONTAINER_STYLE)
        return self.add_vertex(key, label, style, x, y, width, height, parent, kind="container")

    def add_edge(self, key: str, label: str, source: str, target: str, connection_type: str = "") -> str:
        """Connect two existing cells; raises ValueError for unknown endpoints."""
        for endpoint in (source, target):
            if endpoint not in self._ids or endpoint in (ROOT_ID, LAYER_ID):
                raise ValueError(f"edge endpoint {endpoint} is not a cell of {self.name}")
        cell_id = self._new_id(f"edge-{key}")
        style = EDGE_STYLES.get(connection_type, DEFAULT_EDGE_STYLE)
        self.cells.append(Edge(cell_id, label, style, source, target))
        self._ids.add(cell_id)
        return cell_id

    def fit_container(self, cell_id: str, padding: float = 20.0) -> None:
        """Grow a container so every direct child lies inside it; never shrinks."""
        v = self.vertex(cell_id)
        if v is None:
            raise ValueError(f"unknown cell {cell_id}")
        ox, oy = self._origin[cell_id]
        for child in self.children(cell_id):
            cx, cy = self._origin[child.id]
            v.width = max(v.width, cx - ox + child.width + padding)
            v.height = max(v.height, cy - oy + child.height + padding)

    def occupied(self, parent: str, x: float, y: float, ignore: Optional[str] = None) -> bool:
        """True if a sibling under parent already sits at absolute (x, y)."""
        for v in self.children(parent):
            if v.id != ignore and self._origin[v.id] == (x, y):
                return True
        return False

    def contains_point(self, container_id: str, x: float, y: float) -> bool:
        v = self.vertex(container_id)
        if v is None:
            return False
        cx, cy = self._origin[container_id]
        return cx <= x <= cx + v.width - ICON_SIZE and cy <= y <= cy + v.height - ICON_SIZE

    def move_vertex(self, cell_id: str, x: float, y: float) -> bool:
        """Move a leaf vertex to absolute (x, y) inside its parent; False if refused."""
        v = self.vertex(cell_id)
        if v is None or v.is_container or any(c.parent == cell_id for c in self.vertices()):
            return False
        if v.parent != LAYER_ID and not self.contains_point(v.parent, x, y):
            return False
        if self.occupied(v.parent, x, y, ignore=cell_id):
            return False
        px, py = self._origin[v.parent]
        v.x, v.y = x - px, y - py
        self._origin[cell_id] = (x, y)
        return True

    # --- serialization ------------------------------------------------------

    def to_element(self) -> ET.Element:
        mxfile = ET.Element("mxfile", {"host": "app.diagrams.net", "type": "device", "version": "21.6.5"})
        diagram = ET.SubElement(mxfile, "diagram", {"name": self.name, "id": slug(self.name)})
        model = ET.SubElement(diagram, "mxGraphModel", {"grid": "1", "gridSize": "10", "page": "1"})
        root = ET.SubElement(model, "root")
        ET.SubElement(root, "mxCell", {"id": ROOT_ID})
        ET.SubElement(root, "mxCell", {"id": LAYER_ID, "parent": ROOT_ID})
        for cell in self.cells:
            if isinstance(cell, Vertex):
                c = ET.SubElement(root, "mxCell", {
                    "id": cell.id, "value": cell.label, "style": cell.style,
                    "vertex": "1", "parent": cell.parent,
                })
                ET.SubElement(c, "mxGeometry", {
                    "x": _num(cell.x), "y": _num(cell.y),
                    "width": _num(cell.width), "height": _num(cell.height), "as": "geometry",
                })
            else:
                c = ET.SubElement(root, "mxCell", {
                    "id": cell.id, "value": cell.label, "style": cell.style, "edge": "1",
                    "parent": cell.parent, "source": cell.source, "target": cell.target,
                })
                ET.SubElement(c, "mxGeometry", {"relative": "1", "as": "geometry"})
        return mxfile

    def to_xml(self) -> str:
        element = self.to_element()
        ET.indent(element)
        return '<?xml version="1.0" encoding="UTF-8"?>\n' + ET.tostring(element, encoding="unicode") + "\n"

    def save(self, path: str) -> str:
        """Write the document; any failure is raised as ArtifactWriteError naming the file."""
        try:
            os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
            with open(path, "w", encoding="utf-8") as fh:
                fh.write(self.to_xml())
        except OSError as e:
            raise ArtifactWriteError(path, e) from e
        return path


def _num(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def parse_cells(xml_text: str) -> List[Dict[str, str]]:
    """Flat list of mxCell attribute dicts (geometry merged in), in document order."""
    root = ET.fromstring(xml_text)
    cells = []
    for c in root.iter("mxCell"):
        attrs = dict(c.attrib)
        geo = c.find("mxGeometry")
        if geo is not None:
            for key in ("x", "y", "width", "height"):
                if key in geo.attrib:
                    attrs[key] = geo.attrib[key]
        cells.append(attrs)
    return cells
