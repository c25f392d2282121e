"""
Issue intake: validate a submission, store its photo, persist the record and
hand back the ticket.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from janmitra.errors import InputError, MediaStorageFailure
from janmitra.media import LocalMediaStore
from janmitra.storage import IssueRepository
from janmitra.utils import blank_to_none, format_ticket_id, parse_coordinate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImageUpload:
    """Binary image payload with the file name the client sent."""
    data: bytes
    filename: Optional[str] = None


@dataclass(frozen=True)
class Submission:
    id: int
    ticket_id: str
    image_url: str


class IntakeService:
    """
    Accepts issue reports.

    The image is stored before the record is inserted because the record
    references the storage key. If the insert fails the stored image is
    removed again.
    """

    def __init__(self, repository: IssueRepository, media_store: LocalMediaStore):
        self.repository = repository
        self.media_store = media_store

    async def submit_issue(
        self,
        image: Optional[ImageUpload],
        description: Optional[str] = None,
        category: Optional[str] = None,
        lat: Optional[str] = None,
        lon: Optional[str] = None,
    ) -> Submission:
        """
        Submit a new civic issue.

        Args:
            image: The photo; required
            description: Free text, blank treated as absent
            category: Free-form tag, blank treated as absent
            lat: Latitude as sent by the client, coerced to float or None
            lon: Longitude as sent by the client, coerced to float or None

        Returns:
            Submission with the generated id, ticket id and public image URL

        Raises:
            InputError: no image was supplied; nothing has been stored
            MediaStorageFailure: the image could not be written
            PersistenceFailure: the record could not be inserted; the image is removed
        """
        if image is None or not image.filename:
            raise InputError("Image is required")

        try:
            key = await self.media_store.save(image.data, image.filename)
        except OSError as e:
            logger.error(f"Failed to store upload {image.filename!r}: {e}")
            raise MediaStorageFailure("Image upload failed") from e

        try:
            issue = self.repository.insert(
                filename=key,
                originalname=image.filename,
                description=blank_to_none(description),
                category=blank_to_none(category),
                lat=parse_coordinate(lat),
                lon=parse_coordinate(lon),
            )
        except Exception:
            await self.media_store.delete(key)
            raise

        ticket_id = format_ticket_id(issue.id)
        logger.info(f"Issue {issue.id} submitted as {ticket_id}")

        return Submission(
            id=issue.id,
            ticket_id=ticket_id,
            image_url=self.media_store.public_url(key),
        )
