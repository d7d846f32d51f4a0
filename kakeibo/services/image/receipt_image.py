"""
Receipt Photo Preparation

Runs locally with Pillow before any Gemini call:
1. Decode the upload (camera frame or file) and apply its EXIF rotation
2. Downscale large photos so requests stay small
3. Re-encode as JPEG
4. Note obvious quality problems (too small, too dark, washed out)

DESIGN DECISION: Quality problems are reported, not enforced. Gemini
reads poor photos better than simple heuristics predict, and the user
checks every extracted field before saving anyway. Only a file that
cannot be decoded at all is rejected.
"""

from io import BytesIO

from PIL import Image, ImageOps, UnidentifiedImageError

from kakeibo.models.records import PreparedReceiptImage, ReceiptImage


MIN_READABLE_SIDE_PX = 300
JPEG_QUALITY = 85


class ReceiptImageError(Exception):
    """The upload could not be opened as an image."""
    pass


def assess_receipt_quality(img: Image.Image) -> list[str]:
    """
    Simple heuristics on size and brightness.

    Returns user-facing descriptions of each problem found.
    """
    issues = []

    width, height = img.size
    if min(width, height) < MIN_READABLE_SIDE_PX:
        issues.append("The photo resolution is low, so small text may be misread")

    histogram = img.convert("L").histogram()
    total_pixels = sum(histogram)

    if sum(histogram[:50]) / total_pixels > 0.7:
        issues.append("The photo is very dark")
    if sum(histogram[200:]) / total_pixels > 0.7:
        issues.append("The photo is overexposed")

    # Range holding the middle 90% of pixel values
    cumulative = 0
    low = None
    high = 255
    for value, count in enumerate(histogram):
        cumulative += count
        if low is None and cumulative >= total_pixels * 0.05:
            low = value
        if cumulative >= total_pixels * 0.95:
            high = value
            break
    if high - (low or 0) < 50:
        issues.append("The photo has very low contrast")

    return issues


def prepare_receipt_image(
    image_bytes: bytes,
    upload: ReceiptImage,
    max_side_px: int = 2048,
) -> PreparedReceiptImage:
    """
    Decode, orient, downscale and re-encode a receipt photo.

    Raises:
        ReceiptImageError: If the bytes are not a readable image
    """
    try:
        with Image.open(BytesIO(image_bytes)) as opened:
            img = ImageOps.exif_transpose(opened)
            img.load()
    except (UnidentifiedImageError, OSError) as e:
        raise ReceiptImageError(
            "This file could not be opened as an image. Please try another photo."
        ) from e

    if img.mode != "RGB":
        img = img.convert("RGB")

    resized = max(img.size) > max_side_px
    if resized:
        img.thumbnail((max_side_px, max_side_px))

    buffer = BytesIO()
    img.save(buffer, format="JPEG", quality=JPEG_QUALITY)

    return PreparedReceiptImage(
        upload_id=upload.upload_id,
        data=buffer.getvalue(),
        width=img.width,
        height=img.height,
        resized=resized,
        quality_issues=assess_receipt_quality(img),
    )
