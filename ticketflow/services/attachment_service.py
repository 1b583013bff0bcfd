"""Attachment Service - Stores action attachments on local disk"""
import base64
import binascii
import os
import re
from typing import Iterable, List

from ..domain.models import AttachmentPayload
from ..domain.errors import AttachmentError, AttachmentTooLargeError, InvalidMimeTypeError
from ..config.settings import settings
from ..utils.time import millis_timestamp, utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)


class AttachmentService:
    """
    Saves inbound files under the ticket's folder

    Only the returned relative path (``tickets/<ticket number>/<stored name>``)
    is ever persisted on the ticket; callers never rebuild storage paths.
    """

    def __init__(self, base_path: str = None):
        self.base_path = base_path or settings.attachments_base_path

    def save(self, ticket_number: str, payload: AttachmentPayload) -> str:
        """
        Validate and write one attachment

        Returns the relative path of the stored file.

        Raises:
            InvalidMimeTypeError: mime type not in the allow list
            AttachmentTooLargeError: decoded size exceeds the limit
            AttachmentError: payload is not valid base64 or the write failed
        """
        if payload.mime_type not in settings.allowed_mime_types_list:
            raise InvalidMimeTypeError(
                f"File type {payload.mime_type} is not allowed",
                details={"mime_type": payload.mime_type, "file_name": payload.name}
            )

        content = self._decode(payload)
        if len(content) > settings.attachments_max_bytes:
            raise AttachmentTooLargeError(
                f"File exceeds maximum size of {settings.attachments_max_mb}MB",
                details={"size_bytes": len(content), "max_bytes": settings.attachments_max_bytes}
            )

        stored_filename = f"{millis_timestamp(utc_now())}_{self._sanitize_filename(payload.name)}"
        relative_dir = f"tickets/{self._sanitize_filename(ticket_number)}"
        storage_dir = os.path.join(self.base_path, relative_dir)
        storage_path = os.path.join(storage_dir, stored_filename)

        try:
            os.makedirs(storage_dir, exist_ok=True)
            with open(storage_path, "wb") as f:
                f.write(content)
        except OSError as e:
            if os.path.exists(storage_path):
                os.remove(storage_path)
            raise AttachmentError(
                f"Failed to store attachment {payload.name}: {e}",
                details={"file_name": payload.name}
            )

        relative_path = f"{relative_dir}/{stored_filename}"
        logger.info(
            f"Stored attachment {relative_path} ({len(content)} bytes)",
            extra={"ticket_number": ticket_number}
        )
        return relative_path

    def save_all(self, ticket_number: str, payloads: Iterable[AttachmentPayload]) -> List[str]:
        """
        Best-effort save of several attachments

        A file that fails is logged and left out of the result; it never
        aborts the caller or the files saved before it.
        """
        paths: List[str] = []
        for payload in payloads:
            try:
                paths.append(self.save(ticket_number, payload))
            except AttachmentError as e:
                logger.warning(
                    f"Dropping attachment {payload.name}: {e.message}",
                    extra={"ticket_number": ticket_number, "error_code": e.error_code}
                )
            except Exception as e:
                logger.error(
                    f"Unexpected error storing attachment {payload.name}: {e}",
                    extra={"ticket_number": ticket_number},
                    exc_info=True
                )
        return paths

    def discard(self, relative_paths: Iterable[str]) -> None:
        """Remove stored files whose ticket update never committed"""
        for relative_path in relative_paths:
            storage_path = os.path.join(self.base_path, relative_path)
            try:
                os.remove(storage_path)
                logger.info(f"Discarded uncommitted attachment {relative_path}")
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.warning(f"Could not discard attachment {relative_path}: {e}")

    def _decode(self, payload: AttachmentPayload) -> bytes:
        data = payload.data
        # Accept data URLs as produced by browsers' FileReader
        if data.startswith("data:") and "," in data:
            data = data.split(",", 1)[1]
        try:
            return base64.b64decode(data, validate=True)
        except (binascii.Error, ValueError):
            raise AttachmentError(
                f"Attachment {payload.name} is not valid base64",
                details={"file_name": payload.name}
            )

    def _sanitize_filename(self, filename: str) -> str:
        """Sanitize filename for storage"""
        safe = re.sub(r"[^A-Za-z0-9.\-]", "_", filename).replace("..", "_")
        # Limit length
        if len(safe) > 100:
            name, ext = os.path.splitext(safe)
            safe = name[:96] + ext
        return safe or "unnamed"
