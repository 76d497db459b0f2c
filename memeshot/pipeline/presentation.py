"""Presentation tree handles and the scoped capture guard.

The capture needs two temporary changes on the target subtree: placeholder
prompts are hidden and the box shadow is suppressed, so neither ends up in
the raster. ``PresentationGuard`` applies both on entry and restores every
touched property on exit, whichever way the block is left.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple

from memeshot.scene.model import LayoutMetrics, Scene

logger = logging.getLogger(__name__)

VISIBILITY = "visibility"
BOX_SHADOW = "box-shadow"


@dataclass(eq=False)
class PresentationNode:
    name: str
    width: float = 0.0
    height: float = 0.0
    style: Dict[str, str] = field(default_factory=dict)
    placeholder: bool = False
    children: List["PresentationNode"] = field(default_factory=list)

    def iter_nodes(self) -> Iterator["PresentationNode"]:
        yield self
        for child in self.children:
            yield from child.iter_nodes()

    def find(self, name: str) -> Optional["PresentationNode"]:
        return next((n for n in self.iter_nodes() if n.name == name), None)


@dataclass
class ScenePresentation:
    """The two capture roots the page exposes: image area and full wrapper."""

    image_area: Optional[PresentationNode] = None
    wrapper: Optional[PresentationNode] = None


class PresentationGuard:
    """Hide placeholders and suppress the shadow for the duration of a ``with`` block."""

    def __init__(self, target: PresentationNode) -> None:
        self.target = target
        self._saved: List[Tuple[PresentationNode, str, Optional[str]]] = []

    def _set(self, node: PresentationNode, prop: str, value: str) -> None:
        self._saved.append((node, prop, node.style.get(prop)))
        node.style[prop] = value

    def __enter__(self) -> "PresentationGuard":
        try:
            for node in self.target.iter_nodes():
                if node.placeholder:
                    self._set(node, VISIBILITY, "hidden")
            self._set(self.target, BOX_SHADOW, "none")
        except BaseException:
            self.restore()
            raise
        logger.debug("Presentation guard applied %d style changes", len(self._saved))
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.restore()
        return False

    def restore(self) -> None:
        # reverse order so a property touched twice ends at its original value
        while self._saved:
            node, prop, previous = self._saved.pop()
            if previous is None:
                node.style.pop(prop, None)
            else:
                node.style[prop] = previous


def build_presentation(scene: Scene, layout: LayoutMetrics) -> ScenePresentation:
    """Create the wrapper / image-area / field node structure the editor renders for ``scene``."""
    image = layout.image_area
    image_area = PresentationNode("image-area", width=image.width, height=image.height)
    for text_field in scene.regular_text_fields:
        image_area.children.append(PresentationNode(f"text-{text_field.id}", placeholder=text_field.is_placeholder))
    for image_field in scene.image_fields:
        image_area.children.append(PresentationNode(f"image-{image_field.id}"))

    children: List[PresentationNode] = []
    height = image.height
    width = image.width
    if scene.header is not None and scene.header.has_visible_text and layout.header is not None:
        children.append(PresentationNode("header", width=layout.header.width, height=layout.header.height))
        height += layout.header.height
        width = max(width, layout.header.width)
    children.append(image_area)
    if scene.footer is not None and scene.footer.has_visible_text and layout.footer is not None:
        children.append(PresentationNode("footer", width=layout.footer.width, height=layout.footer.height))
        height += layout.footer.height
        width = max(width, layout.footer.width)

    wrapper = PresentationNode("wrapper", width=width, height=height, children=children)
    return ScenePresentation(image_area=image_area, wrapper=wrapper)
