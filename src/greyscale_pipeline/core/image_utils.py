"""Image processing utilities for the greyscale pipeline."""

import io
from typing import Any, Dict
from urllib.parse import urlsplit

from PIL import Image

from .exceptions import DecodeError, EncodeError, InputError
from .models import DEFAULT_OUTPUT_PREFIX, JPEG_MIME_TYPE, PNG_MIME_TYPE

# MIME type -> Pillow format name
ENCODER_FORMATS: Dict[str, str] = {
    JPEG_MIME_TYPE: "JPEG",
    PNG_MIME_TYPE: "PNG",
}

_ALPHA_MODES = ("RGBA", "LA", "PA", "RGBa", "La")


def has_alpha(img: "Image.Image") -> bool:
    """Return True if the image carries an alpha channel or palette transparency."""
    if img.mode in _ALPHA_MODES:
        return True
    return img.mode == "P" and "transparency" in img.info


def decode_image(data: bytes) -> "Image.Image":
    """
    Decode raw bytes into a pixel-addressable image.

    The format is sniffed from the content, never from a file name. The result
    is fully loaded and normalised to ``RGB``, or ``RGBA`` when the source has
    an alpha channel.

    Args:
        data: Encoded image bytes (JPEG, PNG or any other format Pillow reads)

    Returns:
        Loaded PIL Image in RGB or RGBA mode

    Raises:
        DecodeError: If the bytes are empty, truncated or not an image
    """
    if not data:
        raise DecodeError("cannot decode image: source object is empty")

    try:
        with Image.open(io.BytesIO(data)) as source:
            source.load()
            source_format = source.format
            target_mode = "RGBA" if has_alpha(source) else "RGB"
            image = source if source.mode == target_mode else source.convert(target_mode)
            image = image.copy() if image is source else image
    except (OSError, EOFError, SyntaxError, ValueError, Image.DecompressionBombError) as exc:
        # UnidentifiedImageError is an OSError subclass
        raise DecodeError(f"cannot decode image: {exc}") from exc

    image.format = source_format
    return image


def greyscale(img: "Image.Image") -> "Image.Image":
    """
    Convert an RGB or RGBA image to greyscale in place.

    Every pixel's colour channels are replaced with its ITU-R 601-2 luma
    (``L = R * 299/1000 + G * 587/1000 + B * 114/1000``). Width, height and the
    alpha channel are left untouched. Applying it twice gives the same pixels
    as applying it once.

    Args:
        img: Decoded image in RGB or RGBA mode

    Returns:
        The same image object, for chaining
    """
    luma = img.convert("L")
    if img.mode == "RGBA":
        img.paste(Image.merge("RGBA", (luma, luma, luma, img.getchannel("A"))))
    else:
        img.paste(Image.merge("RGB", (luma, luma, luma)))
    return img


def encode_image(img: "Image.Image", mime_type: str, quality: int = 95) -> bytes:
    """
    Encode an image to the requested MIME type.

    The input image is not modified. JPEG has no alpha channel, so an RGBA
    image is flattened by dropping alpha on a copy.

    Args:
        img: Image to serialise
        mime_type: "image/jpeg" or "image/png"
        quality: JPEG quality (ignored for PNG)

    Returns:
        Encoded bytes

    Raises:
        EncodeError: If the format is unsupported or the encoder fails
    """
    format_type = ENCODER_FORMATS.get(mime_type.lower())
    if format_type is None:
        raise EncodeError(
            f"unsupported output format {mime_type!r}, expected one of {sorted(ENCODER_FORMATS)}"
        )

    output_stream = io.BytesIO()
    try:
        if format_type == "JPEG":
            to_save = img if img.mode in ("RGB", "L") else img.convert("RGB")
            to_save.save(output_stream, format=format_type, quality=quality)
        else:
            img.save(output_stream, format=format_type)
    except (OSError, ValueError, MemoryError) as exc:
        raise EncodeError(f"cannot encode image as {mime_type}: {exc}") from exc

    return output_stream.getvalue()


def object_name_from_url(url: str) -> str:
    """
    Extract the object name from a source locator.

    The name is the final path segment of the URL, case preserving and with no
    further sanitisation. Query string and fragment are not part of the path.

    Raises:
        InputError: If the URL is empty or ends in "/"
    """
    if not url:
        raise InputError("missing URL")
    path = urlsplit(url).path if "://" in url else url.split("?", 1)[0].split("#", 1)[0]
    name = path.rsplit("/", 1)[-1]
    if not name:
        raise InputError("missing blob name")
    return name


def output_object_name(object_name: str, prefix: str = DEFAULT_OUTPUT_PREFIX) -> str:
    """
    Calculate the destination object name from the source object name.

    Args:
        object_name: Source object name (final path segment)
        prefix: Literal prefix prepended to the name

    Returns:
        Destination object name, e.g. "processed-cat.png"
    """
    return f"{prefix}{object_name}"


def describe_image(img: "Image.Image") -> Dict[str, Any]:
    """Basic image information for log lines."""
    return {
        "width": img.width,
        "height": img.height,
        "format": img.format or "unknown",
        "mode": img.mode,
    }
