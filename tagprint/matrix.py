"""
QR codes for item tags.

The QR encoder itself is the ``qrcode`` library; this module sizes its
output for a tag and resolves the QR images of a whole batch on a
thread pool, one independent future per label.
"""

from concurrent.futures import CancelledError, Executor, Future
from typing import Callable, List, Optional, Sequence

import qrcode
from PIL import Image

from .exceptions import MatrixImageUnavailable
from .logging_config import get_logger

logger = get_logger(__name__)

MatrixEncoder = Callable[[str, int], Image.Image]


def create_qr_image(payload: str, size: int) -> Image.Image:
    """
    Render ``payload`` as a ``size`` x ``size`` QR code.

    Medium error correction and a one-module border; scaled with
    nearest-neighbour so modules stay sharp.
    """
    if not payload:
        raise ValueError("QR payload is empty")
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=10,
        border=1,
    )
    qr.add_data(payload)
    qr.make(fit=True)
    qr_img = qr.make_image(fill_color="black", back_color="white").convert("RGB")
    return qr_img.resize((size, size), Image.Resampling.NEAREST)


class MatrixResult:
    """QR image of one label, or the reason it is missing."""

    def __init__(self, tag_code: str, image: Optional[Image.Image] = None,
                 error: Optional[MatrixImageUnavailable] = None):
        self.tag_code = tag_code
        self.image = image
        self.error = error

    @property
    def ok(self) -> bool:
        return self.image is not None


def submit_matrix_jobs(executor: Executor, payloads: Sequence[str], size: int,
                       encoder: MatrixEncoder = create_qr_image) -> List[Future]:
    """Start one QR job per payload; futures are in payload order."""
    return [executor.submit(encoder, payload, size) for payload in payloads]


def collect_matrix_results(tag_codes: Sequence[str], futures: Sequence[Future],
                           is_cancelled: Callable[[], bool] = lambda: False
                           ) -> Optional[List[MatrixResult]]:
    """
    Wait for the QR jobs in order and pair them with their tags.

    A failed job yields a MatrixResult carrying MatrixImageUnavailable;
    the other labels are unaffected. Returns None when ``is_cancelled``
    turns true while waiting.
    """
    results = []
    for tag_code, future in zip(tag_codes, futures):
        if is_cancelled():
            return None
        try:
            image = future.result()
        except CancelledError:
            return None
        except Exception as e:
            error = MatrixImageUnavailable(tag_code, str(e) or type(e).__name__)
            logger.warning(str(error))
            results.append(MatrixResult(tag_code, error=error))
            continue
        results.append(MatrixResult(tag_code, image=image))
    return results
