"""Meme scene export: capture trimming and fallback reconstruction.

Packages:
- memeshot.scene: Scene snapshot model and JSON loaders
- memeshot.image: Pixel buffers and border trimming
- memeshot.geometry: Capture-relative geometry resolution
- memeshot.render: Fallback compositor (fonts, filters, drawing)
- memeshot.pipeline: Export orchestration and collaborator interfaces
"""

__version__ = "0.1.0"
