import asyncio
import io
import logging

import mss
from PIL import Image

from focus_voyage.config.settings import settings
from focus_voyage.services.errors import ImageError

logger = logging.getLogger(__name__)

class ScreenshotError(ImageError):
    """Exception raised when screenshot capture fails"""
    pass

class CompressionError(ImageError):
    """Exception raised when image compression fails"""
    pass

class ImageManager:
    """Captures screen snapshots for the content classifier"""

    def __init__(
        self,
        max_dimension: int = settings.SNAPSHOT_MAX_DIMENSION,
        jpeg_quality: int = settings.SNAPSHOT_JPEG_QUALITY,
        monitor_index: int = 0
    ):
        """Initialize the image manager

        Args:
            max_dimension: Max width/height of encoded snapshots
            jpeg_quality: JPEG compression quality
            monitor_index: mss monitor index, 0 is all monitors combined
        """
        self.max_dimension = max_dimension
        self.jpeg_quality = jpeg_quality
        self.monitor_index = monitor_index
        self._sct = None

    def _grabber(self):
        if self._sct is None:
            try:
                self._sct = mss.mss()
            except Exception as e:
                raise ScreenshotError(f"Failed to initialize screenshot manager: {e}")
        return self._sct

    async def capture_snapshot(self) -> bytes:
        """Capture the screen and return it as compressed JPEG bytes

        Raises:
            ScreenshotError: If screenshot capture fails
        """
        try:
            sct = self._grabber()
            try:
                screenshot = sct.grab(sct.monitors[self.monitor_index])
            except Exception as e:
                raise ScreenshotError(f"Failed to grab screenshot: {e}")

            try:
                img = Image.frombytes('RGB', screenshot.size, screenshot.bgra, 'raw', 'BGRX')
            except Exception as e:
                raise ScreenshotError(f"Failed to convert screenshot: {e}")

            # Encoding is CPU bound, keep it off the event loop
            return await asyncio.to_thread(self.encode, img)

        except ImageError:
            raise
        except Exception as e:
            raise ScreenshotError(f"Failed to capture screenshot: {e}")

    def encode(self, img: Image.Image) -> bytes:
        """Downsize and JPEG-encode an image

        Args:
            img: PIL Image to process

        Returns:
            bytes: Encoded JPEG data
        """
        try:
            # Convert to RGB (remove alpha channel)
            if img.mode in ('RGBA', 'LA') or (img.mode == 'P' and 'transparency' in img.info):
                img = img.convert('RGBA')
                background = Image.new('RGB', img.size, (255, 255, 255))
                background.paste(img, mask=img.split()[-1])
                img = background
            elif img.mode != 'RGB':
                img = img.convert('RGB')

            if max(img.size) > self.max_dimension:
                ratio = self.max_dimension / max(img.size)
                new_size = tuple(max(1, int(dim * ratio)) for dim in img.size)
                img = img.resize(new_size, Image.Resampling.LANCZOS)

            buffer = io.BytesIO()
            img.save(buffer, format="JPEG", quality=self.jpeg_quality, optimize=True)
            return buffer.getvalue()

        except Exception as e:
            raise CompressionError(f"Failed to process screenshot: {e}")

    def cleanup(self) -> None:
        """Release the screen grabber"""
        if self._sct is None:
            return
        try:
            self._sct.close()
        except Exception as e:
            logger.warning(f"Failed to close screenshot manager: {e}")
        finally:
            self._sct = None
