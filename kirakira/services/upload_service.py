import base64
import binascii
import os
import re
import time

DATA_URL_PATTERN = re.compile(r"^data:image/(\w+);base64,(.+)$", re.DOTALL)


class InvalidImageData(ValueError):
    pass


def decode_data_url(data_url: str):
    """
    Split a ``data:image/<ext>;base64,<payload>`` URL into (extension, bytes).

    Raises:
        InvalidImageData: If the URL is not a base64 image data URL
    """
    match = DATA_URL_PATTERN.match(data_url or "")
    if not match:
        raise InvalidImageData("Not a base64 image data URL")
    try:
        content = base64.b64decode(match.group(2), validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidImageData(str(e))
    if not content:
        raise InvalidImageData("Image data is empty")
    return match.group(1), content


def store_file(upload_root: str, directory: str, filename: str, content: bytes) -> str:
    """Write ``content`` under ``upload_root/directory`` and return its public URL."""
    target_dir = os.path.join(upload_root, directory)
    os.makedirs(target_dir, exist_ok=True)
    with open(os.path.join(target_dir, filename), "wb") as f:
        f.write(content)
    return f"/uploads/{directory}/{filename}"


def save_data_url(upload_root: str, directory: str, prefix: str, data_url: str) -> str:
    extension, content = decode_data_url(data_url)
    filename = f"{prefix}_{int(time.time() * 1000)}.{extension}"
    return store_file(upload_root, directory, filename, content)
