# session.py
import logging
from enum import Enum
from typing import Any, BinaryIO, Callable, Optional

from .capture import CaptureCancelled, DeviceError, capture_from_camera, capture_from_file, capture_from_snapshot
from .config import ConfigError
from .schemas.food import AnalysisResult
from .usecases.food_analyser import AnalysisFailedError, FoodAnalyser
from .utils.image_utils import EncodedImage
from .utils.response_parser import FormatError

logger = logging.getLogger(__name__)

ANALYSIS_ERROR_MESSAGE = "Failed to analyze the image. Please try again."


class SessionState(str, Enum):
    IDLE = "idle"
    IMAGE_SELECTED = "image-selected"
    ANALYZING = "analyzing"
    RESULT_READY = "result-ready"
    ERROR = "error"


class ErrorKind(str, Enum):
    DEVICE = "device"
    ANALYSIS = "analysis"
    CONFIGURATION = "configuration"


class AnalysisSession:
    """
    UI state for one user: the current photo, the current result and the
    transitions between them.

    Every transition is triggered by a user action except the completion of
    an analysis. Each analysis takes a sequence number; a completion whose
    number is no longer the latest (the photo was replaced or a newer
    analysis started) is dropped.
    """

    def __init__(self, analyser: FoodAnalyser, camera: Callable[..., EncodedImage] = capture_from_camera):
        self.analyser = analyser
        self._camera = camera
        self.state = SessionState.IDLE
        self.image: Optional[EncodedImage] = None
        self.result: Optional[AnalysisResult] = None
        self.error: Optional[str] = None
        self.error_kind: Optional[ErrorKind] = None
        self._sequence = 0

    @property
    def is_analyzing(self) -> bool:
        return self.state == SessionState.ANALYZING

    @property
    def total_calories(self):
        return self.result.total_calories if self.result else 0

    def _discard(self):
        self._sequence += 1
        self.image = None
        self.result = None
        self.error = None
        self.error_kind = None

    def _fail(self, kind: ErrorKind, message: str):
        self.error_kind = kind
        self.error = message
        self.state = SessionState.ERROR

    # image selection

    def _selection_blocked(self) -> bool:
        if self.is_analyzing:
            logger.debug("Analysis in progress; ignoring photo selection")
            return True
        return False

    def _replace_image(self, image: EncodedImage) -> SessionState:
        self._discard()
        self.image = image
        self.state = SessionState.IMAGE_SELECTED
        return self.state

    def select_image(self, image: EncodedImage) -> SessionState:
        """Make ``image`` the current photo, dropping any previous result"""
        if self._selection_blocked():
            return self.state
        return self._replace_image(image)

    def upload(self, file: Any, mime_type: Optional[str] = None) -> SessionState:
        if self._selection_blocked():
            return self.state
        return self._replace_image(capture_from_file(file, mime_type=mime_type))

    def take_photo(self, **camera_options) -> SessionState:
        """Capture from the local camera; a cancelled preview changes nothing"""
        if self._selection_blocked():
            return self.state
        try:
            image = self._camera(**camera_options)
        except CaptureCancelled:
            logger.info("Camera capture cancelled")
            return self.state
        except DeviceError as e:
            logger.error(f"Camera error: {str(e)}")
            self._discard()
            self._fail(ErrorKind.DEVICE, str(e))
            return self.state
        return self._replace_image(image)

    def take_snapshot(self, snapshot: BinaryIO) -> SessionState:
        """Use a browser camera snapshot as the current photo"""
        if self._selection_blocked():
            return self.state
        try:
            image = capture_from_snapshot(snapshot)
        except DeviceError as e:
            self._discard()
            self._fail(ErrorKind.DEVICE, str(e))
            return self.state
        return self._replace_image(image)

    def new_photo(self, image: Optional[EncodedImage] = None) -> SessionState:
        """Discard the current photo and result; start over with ``image`` if given"""
        if image is not None:
            return self._replace_image(image)
        self._discard()
        self.state = SessionState.IDLE
        return self.state

    # analysis

    def _begin(self, allowed) -> Optional[int]:
        if self.image is None:
            logger.debug("No image selected; ignoring analysis request")
            return None
        if self.state not in allowed:
            logger.debug(f"Analysis request ignored in state {self.state.value}")
            return None
        self._sequence += 1
        self.result = None
        self.error = None
        self.error_kind = None
        self.state = SessionState.ANALYZING
        return self._sequence

    def _settle(self, sequence: int, result: Optional[AnalysisResult] = None,
                error: Optional[Exception] = None) -> SessionState:
        if sequence != self._sequence:
            logger.warning(f"Discarding stale analysis response #{sequence} (latest #{self._sequence})")
            return self.state

        if error is None:
            self.result = result
            self.state = SessionState.RESULT_READY
        elif isinstance(error, ConfigError):
            logger.error(f"Configuration error: {str(error)}")
            self._fail(ErrorKind.CONFIGURATION, str(error))
        elif isinstance(error, FormatError):
            logger.error(f"Analysis #{sequence} returned unusable data: {str(error)}")
            self._fail(ErrorKind.ANALYSIS, ANALYSIS_ERROR_MESSAGE)
        elif isinstance(error, AnalysisFailedError):
            logger.error(f"Analysis #{sequence} request failed: {str(error)}")
            self._fail(ErrorKind.ANALYSIS, ANALYSIS_ERROR_MESSAGE)
        else:
            logger.error(f"Analysis #{sequence} failed unexpectedly: {error!r}")
            self._fail(ErrorKind.ANALYSIS, ANALYSIS_ERROR_MESSAGE)
        return self.state

    def _run(self, sequence: int) -> SessionState:
        try:
            result = self.analyser.run(self.image)
        except Exception as e:
            return self._settle(sequence, error=e)
        return self._settle(sequence, result=result)

    async def _run_async(self, sequence: int) -> SessionState:
        try:
            result = await self.analyser.run_async(self.image)
        except Exception as e:
            return self._settle(sequence, error=e)
        return self._settle(sequence, result=result)

    _ANALYZE_FROM = (SessionState.IMAGE_SELECTED, SessionState.ERROR)
    _REANALYZE_FROM = (SessionState.IMAGE_SELECTED, SessionState.RESULT_READY, SessionState.ERROR)

    def analyze(self) -> SessionState:
        """Analyze the current photo, blocking until the call settles"""
        sequence = self._begin(self._ANALYZE_FROM)
        if sequence is None:
            return self.state
        return self._run(sequence)

    def reanalyze(self) -> SessionState:
        """Drop the current result and analyze the same photo again"""
        sequence = self._begin(self._REANALYZE_FROM)
        if sequence is None:
            return self.state
        return self._run(sequence)

    async def analyze_async(self) -> SessionState:
        sequence = self._begin(self._ANALYZE_FROM)
        if sequence is None:
            return self.state
        return await self._run_async(sequence)

    async def reanalyze_async(self) -> SessionState:
        sequence = self._begin(self._REANALYZE_FROM)
        if sequence is None:
            return self.state
        return await self._run_async(sequence)
