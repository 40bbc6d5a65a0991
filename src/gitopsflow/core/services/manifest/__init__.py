from .core import apply_image_patch, render_image_patch, render_scalar, strategic_merge

from .exceptions import ManifestPatchError

__all__ = [
    "apply_image_patch",
    "render_image_patch",
    "render_scalar",
    "strategic_merge",
    "ManifestPatchError",
]
