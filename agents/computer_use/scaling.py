"""
Computer Use Agent - Coordinate Scaling

Maps the physical display to the bounded logical resolution the model sees,
and maps model coordinates back to physical pixels.
"""
import math
from dataclasses import dataclass

# Model-space bounds: longest edge and total pixel budget of the screenshot.
MAX_LONG_EDGE_PX = 1568
MAX_TOTAL_PIXELS = 1_150_000


def calculate_scale_factor(
    width: int,
    height: int,
    max_long_edge: int = MAX_LONG_EDGE_PX,
    max_pixels: int = MAX_TOTAL_PIXELS,
) -> float:
    """Return the downscale factor for a display, in (0, 1].

    Args:
        width: Physical display width in pixels
        height: Physical display height in pixels
        max_long_edge: Upper bound for the longest model-space edge
        max_pixels: Upper bound for the model-space pixel count

    Returns:
        The largest factor <= 1.0 satisfying both bounds
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Display size must be positive, got {width}x{height}")

    long_edge_scale = max_long_edge / max(width, height)
    total_pixels_scale = math.sqrt(max_pixels / (width * height))
    return min(long_edge_scale, total_pixels_scale, 1.0)


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


@dataclass(frozen=True)
class DisplayGeometry:
    """Physical display size plus the scale factor used for the model."""

    width: int
    height: int
    scale: float

    @classmethod
    def for_display(cls, width: int, height: int) -> "DisplayGeometry":
        return cls(width=int(width), height=int(height), scale=calculate_scale_factor(width, height))

    @property
    def logical_size(self) -> tuple[int, int]:
        # Floor keeps the logical image inside both bounds.
        return (
            max(1, int(self.width * self.scale)),
            max(1, int(self.height * self.scale)),
        )

    def to_physical(self, x: float, y: float) -> tuple[int, int]:
        """Convert a model-space point to physical pixels, clamped to the display."""
        physical_x = int(round(float(x) / self.scale))
        physical_y = int(round(float(y) / self.scale))
        return (
            _clamp(physical_x, 0, self.width - 1),
            _clamp(physical_y, 0, self.height - 1),
        )

    def to_logical(self, x: float, y: float) -> tuple[int, int]:
        """Convert a physical point to model-space pixels."""
        logical_width, logical_height = self.logical_size
        return (
            _clamp(int(round(float(x) * self.scale)), 0, logical_width - 1),
            _clamp(int(round(float(y) * self.scale)), 0, logical_height - 1),
        )
