import pytest

from memeshot.pipeline.presentation import PresentationGuard, PresentationNode, build_presentation
from memeshot.scene.model import LayoutMetrics, Rect, Scene, TextField, TextKind


def _tree():
    prompt = PresentationNode("prompt", placeholder=True, style={"visibility": "visible"})
    caption = PresentationNode("caption")
    return PresentationNode("root", width=400, height=300, children=[prompt, caption])


def test_guard_hides_placeholders_and_shadow_then_restores():
    root = _tree()
    root.style["box-shadow"] = "0 2px 8px gray"
    with PresentationGuard(root):
        assert root.find("prompt").style["visibility"] == "hidden"
        assert root.style["box-shadow"] == "none"
        assert root.find("caption").style == {}
    assert root.find("prompt").style == {"visibility": "visible"}
    assert root.style == {"box-shadow": "0 2px 8px gray"}


def test_guard_removes_properties_it_added():
    root = PresentationNode("root", children=[PresentationNode("prompt", placeholder=True)])
    with PresentationGuard(root):
        pass
    assert root.style == {}
    assert root.find("prompt").style == {}


def test_guard_restores_when_block_raises():
    root = _tree()
    with pytest.raises(RuntimeError):
        with PresentationGuard(root):
            raise RuntimeError("rasterizer exploded")
    assert root.find("prompt").style == {"visibility": "visible"}
    assert "box-shadow" not in root.style


def test_build_presentation_without_bars():
    scene = Scene(text_fields=[TextField(id=1, kind=TextKind.HEADER, text=""), TextField(id=7, text="")])
    presentation = build_presentation(scene, LayoutMetrics(image_area=Rect(0, 40, 400, 300), header=Rect(0, 0, 400, 40)))
    assert [n.name for n in presentation.wrapper.children] == ["image-area"]
    assert (presentation.wrapper.width, presentation.wrapper.height) == (400, 300)
    assert presentation.image_area.find("text-7").placeholder


def test_build_presentation_with_header_and_footer():
    scene = Scene(
        text_fields=[
            TextField(id=1, kind=TextKind.HEADER, text="TOP"),
            TextField(id=2, kind=TextKind.FOOTER, text="END"),
        ]
    )
    layout = LayoutMetrics(
        image_area=Rect(0, 40, 400, 300),
        header=Rect(0, 0, 400, 40),
        footer=Rect(0, 340, 400, 30),
    )
    presentation = build_presentation(scene, layout)
    assert [n.name for n in presentation.wrapper.children] == ["header", "image-area", "footer"]
    assert presentation.wrapper.height == 370


def test_blank_header_adds_no_bar_node():
    scene = Scene(text_fields=[TextField(id=1, kind=TextKind.HEADER, text="   ")])
    layout = LayoutMetrics(image_area=Rect(0, 40, 400, 300), header=Rect(0, 0, 400, 40))
    presentation = build_presentation(scene, layout)
    assert [n.name for n in presentation.wrapper.children] == ["image-area"]
    assert presentation.wrapper.height == 300
