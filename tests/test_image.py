import pytest
import io
from unittest.mock import patch, MagicMock
from PIL import Image

from focus_voyage.services.image import CompressionError, ImageManager, ScreenshotError

@pytest.fixture
def image_manager():
    manager = ImageManager(max_dimension=640, jpeg_quality=70)
    yield manager
    manager.cleanup()

def test_encode_downsizes_and_returns_jpeg(image_manager):
    data = image_manager.encode(Image.new('RGB', (1920, 1080), color='white'))

    img = Image.open(io.BytesIO(data))
    assert img.format == "JPEG"
    assert max(img.size) == 640

def test_encode_keeps_small_images(image_manager):
    data = image_manager.encode(Image.new('RGB', (320, 200), color='blue'))
    assert Image.open(io.BytesIO(data)).size == (320, 200)

def test_encode_flattens_alpha(image_manager):
    data = image_manager.encode(Image.new('RGBA', (100, 100), color=(255, 0, 0, 128)))
    assert Image.open(io.BytesIO(data)).mode == "RGB"

def test_encode_failure(image_manager):
    with pytest.raises(CompressionError):
        image_manager.encode(None)

@pytest.mark.asyncio
async def test_capture_snapshot(image_manager):
    shot = MagicMock()
    shot.size = (800, 600)
    shot.bgra = bytes(800 * 600 * 4)
    sct = MagicMock()
    sct.monitors = [{"top": 0, "left": 0, "width": 800, "height": 600}]
    sct.grab.return_value = shot

    with patch('mss.mss', return_value=sct):
        data = await image_manager.capture_snapshot()

    assert Image.open(io.BytesIO(data)).size == (640, 480)
    sct.grab.assert_called_once_with(sct.monitors[0])

@pytest.mark.asyncio
async def test_capture_failure(image_manager):
    sct = MagicMock()
    sct.monitors = [{}]
    sct.grab.side_effect = Exception("no display")

    with patch('mss.mss', return_value=sct):
        with pytest.raises(ScreenshotError):
            await image_manager.capture_snapshot()
