"""Image intake for commissions."""
import logging

from ..errors import CommdeskError, VALIDATION
from ..repositories.file_storage import FileStorage, PENDINGS_FOLDER
from .validation_service import require, validate_filename, validate_id, validate_name

MAX_IMAGE_SIZE = 10 * 1024 * 1024
IMAGES_FOLDER = 'images'


def sniff_image_format(data: bytes):
    """Return ``'jpeg'``, ``'png'``, ``'gif'``, ``'bmp'`` or ``'webp'``, or ``None``."""
    if len(data) < 4:
        return None
    if data[:3] == b'\xff\xd8\xff':
        return 'jpeg'
    if data[:4] == b'\x89PNG':
        return 'png'
    if data[:4] == b'GIF8':
        return 'gif'
    if data[:2] == b'BM':
        return 'bmp'
    if data[:4] == b'RIFF':
        return 'webp' if data[8:12] == b'WEBP' else None
    return None


class ImageService:
    """Stores uploaded images beside the client's pending commissions.

    Images always go under ``pendings/<client>/images/`` regardless of the
    owning commission's status.
    """

    def __init__(self, storage: FileStorage) -> None:
        self._storage = storage
        self._log = logging.getLogger('commdesk.service.image')

    def save_commission_image(self, commission_id: str, client_name: str,
                              image_data: bytes, filename: str) -> str:
        """Validate and write an image.

        Returns:
            The reference ``images/<id>_<filename>`` to record in the
            commission's ``images`` list.

        Raises:
            CommdeskError: an argument is invalid, the payload is too large
                or not a recognised image, or the write fails.  Nothing is
                written on a validation failure.
        """
        require(validate_id(commission_id))
        require(validate_name(client_name, 'Client name'))
        require(validate_filename(filename))

        if len(image_data) > MAX_IMAGE_SIZE:
            raise CommdeskError("Image file too large (max 10MB)", VALIDATION)
        if len(image_data) < 4:
            raise CommdeskError("Invalid image data", VALIDATION)
        if sniff_image_format(image_data) is None:
            raise CommdeskError("Invalid image format", VALIDATION)

        stored_name = f"{commission_id}_{self._storage.sanitize_filename(filename)}"
        target = self._storage.path(
            PENDINGS_FOLDER, self._storage.sanitize_filename(client_name),
            IMAGES_FOLDER, stored_name)
        self._storage.write_bytes_file(target, image_data)
        self._log.info("Saved image %s (%d bytes)", target, len(image_data))
        return f"{IMAGES_FOLDER}/{stored_name}"
