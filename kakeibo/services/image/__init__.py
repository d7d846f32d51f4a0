"""Receipt photo processing package."""

from kakeibo.services.image.receipt_image import (
    ReceiptImageError,
    assess_receipt_quality,
    prepare_receipt_image,
)

__all__ = [
    "ReceiptImageError",
    "assess_receipt_quality",
    "prepare_receipt_image",
]
