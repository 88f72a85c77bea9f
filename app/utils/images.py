import io

from PIL import Image, ImageOps, UnidentifiedImageError


class InvalidImageError(ValueError):
    pass


def square_jpeg(image_bytes: bytes, size: int = 800, quality: int = 85) -> bytes:
    """Center-crop ``image_bytes`` to a ``size`` x ``size`` JPEG."""
    try:
        img = Image.open(io.BytesIO(image_bytes))
        img = ImageOps.exif_transpose(img).convert("RGB")
    except (UnidentifiedImageError, OSError) as exc:
        raise InvalidImageError("File is not a readable image") from exc

    img = ImageOps.fit(img, (size, size), method=Image.Resampling.LANCZOS)
    out = io.BytesIO()
    img.save(out, format="JPEG", quality=quality)
    return out.getvalue()
