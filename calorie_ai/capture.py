# capture.py
import logging
import mimetypes
import os
from contextlib import contextmanager
from typing import BinaryIO, Iterator, Optional, Union

import cv2
import numpy as np
from PIL import Image, UnidentifiedImageError

from .utils.image_utils import JPEG_MIME_TYPE, EncodedImage, encode_jpeg

logger = logging.getLogger(__name__)

CAMERA_IDEAL_WIDTH = 1920
CAMERA_IDEAL_HEIGHT = 1080
PREVIEW_WINDOW = "calorie-ai camera"

CAPTURE_KEYS = {13, 32}  # enter, space
CANCEL_KEYS = {27, ord("q")}  # esc, q

# Picker filter for uploads; the Streamlit uploader takes extensions
IMAGE_UPLOAD_TYPES = ["jpg", "jpeg", "png", "webp", "gif"]


class DeviceError(Exception):
    """Camera could not be acquired or read"""
    pass


class CaptureCancelled(Exception):
    """The user closed the camera preview without taking a photo"""
    pass


class InputTracker:
    """
    Remembers the last file seen per input widget.

    Streamlit returns the same upload on every rerun; a widget only counts as
    having new input when its own file changes.
    """

    def __init__(self):
        self._last_ids = {}

    def is_new(self, widget: str, file) -> bool:
        if file is None:
            self._last_ids.pop(widget, None)
            return False
        file_id = getattr(file, "file_id", None) or (getattr(file, "name", None), getattr(file, "size", None))
        if self._last_ids.get(widget) == file_id:
            return False
        self._last_ids[widget] = file_id
        return True

    def reset(self):
        self._last_ids.clear()


def capture_from_file(file: Union[str, os.PathLike, BinaryIO], mime_type: Optional[str] = None) -> EncodedImage:
    """
    Wrap a user-selected file as an EncodedImage without recompressing it

    Args:
        file: Path or binary file-like object (e.g. a Streamlit UploadedFile)
        mime_type: Optional explicit MIME type

    Returns:
        EncodedImage holding the file's bytes unchanged
    """
    if isinstance(file, (str, os.PathLike)):
        name = os.fspath(file)
        with open(name, "rb") as f:
            data = f.read()
    else:
        name = getattr(file, "name", "") or ""
        mime_type = mime_type or getattr(file, "type", None)
        data = file.getvalue() if hasattr(file, "getvalue") else file.read()

    mime_type = mime_type or mimetypes.guess_type(name)[0] or JPEG_MIME_TYPE
    logger.info(f"Loaded image {name or '<stream>'} ({mime_type}, {len(data)} bytes)")
    return EncodedImage(mime_type=mime_type, data=data)


def capture_from_snapshot(snapshot: BinaryIO) -> EncodedImage:
    """Re-encode a browser camera snapshot as JPEG"""
    try:
        image = Image.open(snapshot)
        image.load()
    except (UnidentifiedImageError, OSError) as e:
        logger.error(f"Unreadable camera snapshot: {str(e)}")
        raise DeviceError("Could not read the camera snapshot")
    return encode_jpeg(image)


def encode_frame(frame: np.ndarray) -> EncodedImage:
    """Encode an OpenCV BGR frame as JPEG"""
    rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
    return encode_jpeg(Image.fromarray(rgb))


@contextmanager
def open_camera(device_index: int = 0) -> Iterator[cv2.VideoCapture]:
    """
    Acquire the camera for the duration of the block.

    The device is released on every exit path, including failures while
    opening it.
    """
    try:
        camera = cv2.VideoCapture(device_index)
    except cv2.error as e:
        logger.error(f"Camera {device_index} could not be opened: {str(e)}")
        raise DeviceError("Could not access camera. Please ensure you have granted camera permissions.")

    try:
        if not camera.isOpened():
            logger.error(f"Camera {device_index} is unavailable")
            raise DeviceError("Could not access camera. Please ensure you have granted camera permissions.")
        camera.set(cv2.CAP_PROP_FRAME_WIDTH, CAMERA_IDEAL_WIDTH)
        camera.set(cv2.CAP_PROP_FRAME_HEIGHT, CAMERA_IDEAL_HEIGHT)
        logger.info(f"Camera {device_index} acquired")
        yield camera
    finally:
        camera.release()
        logger.info(f"Camera {device_index} released")


def _read_frame(camera: cv2.VideoCapture) -> np.ndarray:
    ok, frame = camera.read()
    if not ok or frame is None:
        raise DeviceError("Could not read a frame from the camera")
    return frame


def _preview_until_capture(camera: cv2.VideoCapture) -> np.ndarray:
    while True:
        frame = _read_frame(camera)
        try:
            cv2.imshow(PREVIEW_WINDOW, frame)
            key = cv2.waitKey(1) & 0xFF
        except cv2.error as e:
            raise DeviceError(f"Camera preview is unavailable: {str(e)}")
        if key in CAPTURE_KEYS:
            return frame
        if key in CANCEL_KEYS:
            raise CaptureCancelled("Camera capture cancelled")


def _close_preview():
    try:
        cv2.destroyAllWindows()
    except cv2.error:
        # headless OpenCV builds have no window support
        logger.debug("No preview windows to close")


def capture_from_camera(device_index: int = 0, preview: bool = True) -> EncodedImage:
    """
    Capture one frame from the environment-facing camera

    Args:
        device_index: OpenCV device index
        preview: Show a live preview and wait for SPACE/ENTER (ESC or q cancels);
            when False the first frame is taken

    Returns:
        The captured frame as a JPEG EncodedImage

    Raises:
        DeviceError: Camera unavailable or unreadable
        CaptureCancelled: User closed the preview
    """
    with open_camera(device_index) as camera:
        try:
            frame = _preview_until_capture(camera) if preview else _read_frame(camera)
        finally:
            if preview:
                _close_preview()
    return encode_frame(frame)
