from abc import ABC, abstractmethod
from typing import Any, Optional
import numpy as np

from .types import Frame, CameraView


class ISession(ABC):
    """Recorded capture session with a single forward read cursor"""

    @abstractmethod
    def open(self):
        pass

    @abstractmethod
    def seek(self, offset_usec: int):
        pass

    @abstractmethod
    def next_frame(self) -> Optional[Frame]:
        """Next frame, or None once the stream is exhausted."""
        pass

    @abstractmethod
    def get_calibration(self) -> Any:
        pass

    @property
    def length_usec(self) -> int:
        return 0

    @abstractmethod
    def close(self):
        pass

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


class ITransformContext(ABC):
    """Reprojects between depth camera, color camera and 3-D point space"""

    @abstractmethod
    def depth_to_color(self, depth: np.ndarray) -> np.ndarray:
        pass

    @abstractmethod
    def color_to_depth(self, depth: np.ndarray, color_bgra: np.ndarray) -> np.ndarray:
        pass

    @abstractmethod
    def depth_to_point_cloud(self, depth: np.ndarray, view: CameraView) -> np.ndarray:
        pass

    @abstractmethod
    def destroy(self):
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.destroy()
        return False
