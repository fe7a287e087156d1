"""Fetches media bytes for classified anchors."""

import logging
import posixpath
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Deque, Iterator, List, Optional, Tuple, Union

from .archive_reader import ArchiveReader
from .models import ClassifiedAnchor, ClassifiedImage
from .utils.exceptions import ExtractionCancelled, MediaNotFound, PartNotFound

logger = logging.getLogger(__name__)

DEFAULT_MEDIA_DIRECTORY = "xl/media"

MaterializeOutcome = Tuple[ClassifiedAnchor, Union[ClassifiedImage, MediaNotFound]]


class MediaMaterializer:
    """Turns classified anchors into images backed by archive bytes."""

    def __init__(
        self,
        reader: ArchiveReader,
        media_directory: str = DEFAULT_MEDIA_DIRECTORY,
    ) -> None:
        self.reader = reader
        self.media_directory = media_directory.rstrip("/")

    def media_path(self, media_name: str) -> str:
        return posixpath.join(self.media_directory, media_name)

    def fetch(self, media_name: str) -> bytes:
        """Return media bytes, raising MediaNotFound when absent."""
        path = self.media_path(media_name)
        try:
            return self.reader.get(path)
        except PartNotFound:
            raise MediaNotFound(path)

    def materialize(self, item: ClassifiedAnchor) -> ClassifiedImage:
        payload = self.fetch(item.media_file_name)
        return ClassifiedImage(
            row_key=item.row_key,
            role=item.role,
            original_media_name=item.media_file_name,
            derived_output_name=item.derived_output_name,
            payload=payload,
            row_position=item.row_position,
            sheet_row=item.anchor.sheet_row,
            sheet_column=item.anchor.sheet_column,
        )

    def _outcome(self, item: ClassifiedAnchor) -> MaterializeOutcome:
        try:
            return item, self.materialize(item)
        except MediaNotFound as e:
            return item, e

    def materialize_all(
        self,
        classified: List[ClassifiedAnchor],
        on_image: Optional[Callable[[ClassifiedImage], None]] = None,
        max_workers: int = 1,
        cancel_event=None,
        retain_payloads: bool = True,
    ) -> Iterator[MaterializeOutcome]:
        """Materialize classified anchors, yielding outcomes in input order.

        Missing media is yielded as a MediaNotFound outcome instead of raised,
        so one absent file never blocks the other rows. When ``on_image`` is
        given, each image is handed to it; with ``retain_payloads`` false its
        payload is released afterwards to bound memory on large catalogs.
        ``cancel_event`` is checked before the first read of every row.
        """
        if max_workers > 1 and len(classified) > 1:
            outcomes = self._materialize_concurrently(
                classified, max_workers, cancel_event
            )
        else:
            outcomes = self._materialize_sequentially(classified, cancel_event)

        try:
            for item, outcome in outcomes:
                if isinstance(outcome, ClassifiedImage) and on_image is not None:
                    on_image(outcome)
                    if not retain_payloads:
                        outcome.payload = None
                yield item, outcome
        finally:
            outcomes.close()

    def _rows_checked(
        self, classified: List[ClassifiedAnchor], cancel_event
    ) -> Iterator[ClassifiedAnchor]:
        """Iterate items, raising ExtractionCancelled when a new row starts after cancel."""
        previous_row = None
        for item in classified:
            if item.row_position != previous_row:
                if cancel_event is not None and cancel_event.is_set():
                    raise ExtractionCancelled(
                        f"Extraction cancelled before row '{item.row_key}'"
                    )
                previous_row = item.row_position
            yield item

    def _materialize_sequentially(
        self, classified: List[ClassifiedAnchor], cancel_event
    ) -> Iterator[MaterializeOutcome]:
        for item in self._rows_checked(classified, cancel_event):
            yield self._outcome(item)

    def _materialize_concurrently(
        self, classified: List[ClassifiedAnchor], max_workers: int, cancel_event
    ) -> Iterator[MaterializeOutcome]:
        logger.debug(
            f"Materializing {len(classified)} images with {max_workers} workers"
        )
        # At most max_workers reads are in flight; results leave in submission order
        pending: Deque[Tuple[ClassifiedAnchor, Future]] = deque()
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            try:
                for item in self._rows_checked(classified, cancel_event):
                    pending.append((item, executor.submit(self._outcome, item)))
                    if len(pending) >= max_workers:
                        done_item, future = pending.popleft()
                        yield done_item, future.result()
                while pending:
                    done_item, future = pending.popleft()
                    yield done_item, future.result()
            finally:
                for _, future in pending:
                    future.cancel()
