import logging
from datetime import datetime
from typing import Any, BinaryIO, Dict, Optional, Tuple

from bson import ObjectId
from bson.errors import InvalidId
from gridfs.errors import NoFile

from oms.config import settings
from oms.database import db
from oms.errors import NotFoundError
from oms.models.enums import AttachmentKind
from oms.models.invoice import AttachmentRef

logger = logging.getLogger(__name__)

class AttachmentStore:
    """
    Opaque blob store for invoice documents, backed by GridFS.
    Returns a file name and URL; content is never inspected.
    """
    async def store(self,
                    file_name: str,
                    stream: BinaryIO,
                    invoice_id: str,
                    kind: AttachmentKind,
                    uploaded_by: Optional[str] = None) -> AttachmentRef:
        file_id = await db.fs.upload_from_stream(
            file_name,
            stream,
            metadata={"invoice_id": invoice_id, "kind": kind.value, "uploaded_by": uploaded_by}
        )
        ref = AttachmentRef(
            file_name=file_name,
            url=self.url_for(str(file_id)),
            uploaded_by=uploaded_by,
            uploaded_at=datetime.utcnow(),
        )
        logger.info(f"Stored {kind.value} attachment {file_name} for {invoice_id}")
        return ref

    async def fetch(self, file_id: str) -> Tuple[str, bytes, Dict[str, Any]]:
        """Return (file name, content, metadata) of a stored attachment."""
        try:
            grid_out = await db.fs.open_download_stream(ObjectId(file_id))
        except (InvalidId, NoFile):
            raise NotFoundError(f"Attachment {file_id} not found", entity="Attachment", entity_id=file_id)
        content = await grid_out.read()
        return grid_out.filename, content, grid_out.metadata or {}

    def url_for(self, file_id: str) -> str:
        base = (settings.PUBLIC_BASE_URL or "").rstrip("/")
        return f"{base}/api/attachments/{file_id}"

attachment_store = AttachmentStore()
