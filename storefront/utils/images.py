# storefront/utils/images.py
import re

from ..errors import ValidationError

_DATA_URL = re.compile(r"^data:image/(jpeg|jpg|png|gif|webp|avif);base64,")


def is_valid_base64_image(value) -> bool:
    return isinstance(value, str) and bool(_DATA_URL.match(value))


def require_image(value, field="image"):
    """Return the data URL unchanged, or raise if it is not an accepted image."""
    if not is_valid_base64_image(value):
        raise ValidationError(f"{field} must be a base64 data URL (jpeg, png, gif, webp or avif)")
    return value


def clean_images(values, field="images"):
    if values is None:
        return []
    if not isinstance(values, list):
        raise ValidationError(f"{field} must be a list")
    return [require_image(v, field) for v in values]
