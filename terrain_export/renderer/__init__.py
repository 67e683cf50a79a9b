"""Rendering subpackage.

Turns an immutable :class:`~terrain_export.model.TerrainMap` plus its texture
atlas into a composited preview raster. The renderer focuses on:

* Strictly ordered passes (base tiles, primary blends, three-way blends) over
  a single raster owned by one export.
* Alpha-masked overlays built from the shared :class:`~terrain_export.masks.MaskLibrary`.
* Lightweight Pillow + NumPy based compositing.

See :mod:`terrain_export.renderer.compositor` for the pass implementations.
"""
