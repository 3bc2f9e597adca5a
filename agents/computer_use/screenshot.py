"""
Computer Use Agent - Screen Capture

Grabs the primary display and encodes it at the model's logical resolution.
"""
import base64
import io

from PIL import Image, ImageGrab

MEDIA_TYPES = {
    "png": "image/png",
    "jpeg": "image/jpeg",
}


class ScreenCaptureError(Exception):
    """Raised when the display cannot be captured or encoded."""


def _default_grab() -> Image.Image:
    try:
        return ImageGrab.grab()
    except Exception as e:
        print(f"[ScreenCapture] ImageGrab failed, falling back to pyautogui: {e}")

    import pyautogui

    return pyautogui.screenshot()


class ScreenCapture:
    """Captures the primary display as base64 image text.

    Args:
        logical_width: Width of the encoded screenshot in pixels
        logical_height: Height of the encoded screenshot in pixels
        image_format: "png" or "jpeg"
        grabber: Optional callable returning a PIL image, used instead of the display
    """

    def __init__(self, logical_width: int, logical_height: int, image_format: str = "png", grabber=None):
        image_format = (image_format or "png").lower()
        if image_format == "jpg":
            image_format = "jpeg"
        if image_format not in MEDIA_TYPES:
            raise ValueError(f"Unsupported screenshot format: {image_format}")
        if logical_width <= 0 or logical_height <= 0:
            raise ValueError(f"Logical size must be positive, got {logical_width}x{logical_height}")

        self.logical_width = int(logical_width)
        self.logical_height = int(logical_height)
        self.image_format = image_format
        self._grab = grabber or _default_grab

    @property
    def media_type(self) -> str:
        return MEDIA_TYPES[self.image_format]

    def logical_size(self) -> tuple[int, int]:
        return self.logical_width, self.logical_height

    def capture(self) -> str:
        """Capture the screen, resize to the logical size, and return base64 text.

        Raises:
            ScreenCaptureError: If grabbing or encoding fails
        """
        try:
            image = self._grab()
        except Exception as e:
            raise ScreenCaptureError(f"Failed to capture screen: {e}") from e
        if image is None:
            raise ScreenCaptureError("Failed to capture screen: no image returned")

        converted = None
        resized = None
        buffer = io.BytesIO()
        try:
            converted = image.convert("RGB")
            target = self.logical_size()
            if converted.size != target:
                resized = converted.resize(target, Image.Resampling.LANCZOS)
            (resized or converted).save(buffer, format=self.image_format.upper())
            payload = buffer.getvalue()
        except Exception as e:
            raise ScreenCaptureError(f"Failed to encode screenshot: {e}") from e
        finally:
            buffer.close()
            for item in (resized, converted, image):
                if item is not None:
                    item.close()

        if not payload:
            raise ScreenCaptureError("Failed to encode screenshot: empty image")
        return base64.b64encode(payload).decode("ascii")
