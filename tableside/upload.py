import logging
import mimetypes
import os

from .api import ApiError

logger = logging.getLogger(__name__)

MAX_PROOF_BYTES = 5 * 1024 * 1024


class ProofValidationError(Exception):
    pass


def validate_proof(filename, content_type, size):
    """Check a proof image before anything is sent."""
    name = filename or "File"
    if not (content_type or "").lower().startswith("image/"):
        raise ProofValidationError(f"{name} harus berupa gambar (JPG, PNG, atau WebP)")
    if size is None or size <= 0:
        raise ProofValidationError(f"{name} kosong")
    if size > MAX_PROOF_BYTES:
        raise ProofValidationError(f"Ukuran {name} melebihi batas maksimal 5MB")


def _size_of(fileobj):
    pos = fileobj.tell()
    fileobj.seek(0, os.SEEK_END)
    size = fileobj.tell()
    fileobj.seek(pos)
    return size


class ProofUploader:
    def __init__(self, client):
        self.client = client

    def upload(self, session, source, filename=None, content_type=None, now=None) -> str:
        """Upload a proof for ``session`` and return the stored URL.

        ``source`` is a path or a binary file object. Invalid files and
        expired sessions are refused without a request.
        """
        if isinstance(source, (str, os.PathLike)):
            filename = filename or os.path.basename(source)
            content_type = content_type or mimetypes.guess_type(filename)[0]
            validate_proof(filename, content_type, os.path.getsize(source))
            self._ensure_open(session, now)
            with open(source, "rb") as fh:
                return self._send(session, fh, filename, content_type)

        filename = filename or os.path.basename(getattr(source, "name", "") or "bukti-pembayaran")
        content_type = content_type or mimetypes.guess_type(filename)[0]
        validate_proof(filename, content_type, _size_of(source))
        self._ensure_open(session, now)
        return self._send(session, source, filename, content_type)

    def _ensure_open(self, session, now):
        if not session.can_upload_proof(now):
            raise ProofValidationError("Waktu pembayaran sudah habis, silakan buat pembayaran baru")

    def _send(self, session, fileobj, filename, content_type) -> str:
        try:
            result = self.client.upload_proof(session.order_id, session.transaction_id, fileobj, filename, content_type)
        except ApiError as e:
            logger.error("Proof upload for order %s failed: %s", session.order_id, e)
            raise
        session.status = "processing"
        session.proof_url = result.get("proof_url")
        return session.proof_url
