import numpy as np
import numpy.typing as npt
from PIL import Image
from typing import Tuple

# Type aliases for clarity
UInt8Array = npt.NDArray[np.uint8]


def to_rgba(image: Image.Image) -> Image.Image:
    if image.mode != "RGBA":
        return image.convert("RGBA")
    return image


def flip_image(image: Image.Image, horizontally: bool, vertically: bool) -> Image.Image:
    """
    Pixel-exact reflection. Column x swaps with width-1-x when ``horizontally``,
    row y with height-1-y when ``vertically``. All four channels are moved as-is,
    so flipping twice returns the original bitmap.
    """
    arr: UInt8Array = np.array(to_rgba(image), dtype=np.uint8)
    if horizontally:
        arr = arr[:, ::-1, :]
    if vertically:
        arr = arr[::-1, :, :]
    return Image.fromarray(np.ascontiguousarray(arr))


def flip_horizontal(image: Image.Image) -> Image.Image:
    return flip_image(image, horizontally=True, vertically=False)


def flip_vertical(image: Image.Image) -> Image.Image:
    return flip_image(image, horizontally=False, vertically=True)


def flip_both(image: Image.Image) -> Image.Image:
    return flip_image(image, horizontally=True, vertically=True)


def apply_alpha_mask(base: Image.Image, mask: Image.Image) -> Image.Image:
    """
    Replace the alpha channel of ``base`` with the alpha channel of ``mask``.
    RGB is copied unchanged from ``base``. Both images must share dimensions.
    """
    if base.size != mask.size:
        raise ValueError(f"Mask size {mask.size} does not match image size {base.size}")

    arr: UInt8Array = np.array(to_rgba(base), dtype=np.uint8)
    mask_arr: UInt8Array = np.array(to_rgba(mask), dtype=np.uint8)

    out: UInt8Array = arr.copy()
    out[..., 3] = mask_arr[..., 3]
    return Image.fromarray(out)


def crop_cell(image: Image.Image, offset: Tuple[int, int], cell_size: int) -> Image.Image:
    """Copy the ``cell_size`` square at ``offset`` out of an atlas image."""
    x, y = offset
    if x < 0 or y < 0 or x + cell_size > image.width or y + cell_size > image.height:
        raise ValueError(
            f"Cell {(x, y)}+{cell_size} outside atlas image {image.size}"
        )
    return image.crop((x, y, x + cell_size, y + cell_size))


def fit_cell(image: Image.Image, size: int) -> Image.Image:
    """Resize a cell to the preview cell size; no-op when it already matches."""
    if image.size == (size, size):
        return image
    return image.resize((size, size), Image.Resampling.NEAREST)


def pixel_rgb(image: Image.Image, x: int, y: int) -> Tuple[int, int, int]:
    r, g, b, *_ = to_rgba(image).getpixel((x, y))
    return int(r), int(g), int(b)
