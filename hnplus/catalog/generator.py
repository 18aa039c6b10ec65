"""Sale catalog orchestration: fetch, assemble, render and serialize."""

import asyncio
import io
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence, Union

from reportlab.lib.pagesizes import LETTER
from reportlab.pdfgen import canvas as pdf_canvas

from hnplus.catalog.layout import PageCursor
from hnplus.catalog.lineage import AncestorResolver
from hnplus.catalog.page import (
    MARGIN_RIGHT,
    MARGIN_TOP,
    PAGE_HEIGHT,
    PAGE_WIDTH,
    PedigreePage,
    PedigreePageBuilder,
)
from hnplus.catalog.run_state import CatalogRunLock, RunStateStore
from hnplus.config import settings, utc_now
from hnplus.errors import HorseMismatchError, ScraperError, UnsupportedPlatformError
from hnplus.scrapers.harnessnation import HarnessNationClient

logger = logging.getLogger(__name__)

WATERMARK_SIZE = 32
WATERMARK_DROP = 54.2
WATERMARK_OPACITY = 0.125

SubjectId = Union[int, tuple[int, Union[int, str, None]]]


@dataclass
class CatalogDocument:
    """A generated PDF and the filename it should be saved under."""

    content: bytes
    filename: str
    pages: int


def _coerce_hip(value, position: int) -> int:
    if value is None or value == "":
        return position
    try:
        return max(1, int(str(value).strip()))
    except ValueError:
        return position


def resolve_hip_numbers(ids: Sequence[SubjectId], hip_numbers: Union[bool, None] = False) -> list[tuple[int, Optional[int]]]:
    """Pair each subject with the hip number printed on its page.

    ``ids`` holds plain ids or ``(id, hip)`` pairs. Hip numbers are only
    shown when ``hip_numbers`` is true; pairs without a usable hip fall back
    to their 1-based position.
    """
    subjects = []
    for position, entry in enumerate(ids, start=1):
        horse_id, hip = entry if isinstance(entry, (tuple, list)) else (entry, None)
        subjects.append((int(horse_id), _coerce_hip(hip, position) if hip_numbers else None))
    return subjects


class CatalogGenerator:
    """Builds pedigree catalogs. One run at a time per process and database.

    Args:
        client: HarnessNation client shared by every page of a run.
        store: Run state persistence for the lock and telemetry.
        enabled: False on deployments that can't produce documents.
    """

    def __init__(
        self,
        client: HarnessNationClient,
        store: RunStateStore,
        enabled: Optional[bool] = None,
        watermark_path: Optional[Path] = None,
        batch_size: Optional[int] = None,
    ):
        self.client = client
        self.store = store
        self.run_lock = CatalogRunLock(store)
        self.enabled = settings.catalog_enabled if enabled is None else enabled
        self.watermark_path = Path(watermark_path or settings.watermark_path)
        self.batch_size = batch_size or settings.fetch_batch_size

    @property
    def running(self) -> bool:
        return self.run_lock.locked

    async def generate_page(self, horse_id: int, hip_number: Union[int, str, bool, None] = None,
                            full_pedigree: bool = False) -> CatalogDocument:
        """Single-page catalog. ``hip_number=True`` prints hip 1."""
        if hip_number is True:
            hip_number = 1
        show_hip = hip_number is not None and hip_number is not False
        return await self.generate_catalog([(horse_id, hip_number if show_hip else None)], show_hip, full_pedigree)

    async def generate_catalog(self, ids: Sequence[SubjectId], hip_numbers: Union[bool, None] = False,
                               full_pedigree: bool = False) -> CatalogDocument:
        """Render one page per subject into a single PDF."""
        if not self.enabled:
            raise UnsupportedPlatformError("Pedigree catalog generation is not available on this platform")
        if not ids:
            raise ValueError("At least one horse id is required")

        subjects = resolve_hip_numbers(ids, hip_numbers)

        async with self.run_lock:
            self.client.reset_abort()
            started = time.monotonic()
            pages = await self._build_pages(subjects, full_pedigree)
            content = self._render(pages)

            if len(pages) == 1:
                filename = f"{pages[0].profile.name}.pdf"
            else:
                filename = f"hnplus-pedigree-catalog-{utc_now().strftime('%Y%m%d%H%M%S')}.pdf"

            duration = time.monotonic() - started
            await self.store.record_run(duration, len(pages))

        logger.info(f"Generated {filename}: {len(pages)} pages in {duration:.1f}s")
        return CatalogDocument(content, filename, len(pages))

    async def _build_pages(self, subjects: list[tuple[int, Optional[int]]],
                           full_pedigree: bool) -> list[PedigreePage]:
        token = await self.client.get_signing_token()
        if token is None:
            raise ScraperError("Could not find a request signing token")

        resolver = AncestorResolver(self.client, token, self.batch_size)

        # Every subject is checked before any page is assembled
        for horse_id, _ in subjects:
            profile = await resolver.profile(horse_id)
            if profile.id != horse_id:
                raise HorseMismatchError(horse_id)

        builder = PedigreePageBuilder(resolver, full_pedigree)
        pages: list[Optional[PedigreePage]] = [None] * len(subjects)

        for start in range(0, len(subjects), self.batch_size):
            batch = range(start, min(start + self.batch_size, len(subjects)))
            results = await asyncio.gather(*(builder.build(*subjects[i]) for i in batch))
            for i, page in zip(batch, results):
                pages[i] = page

        return pages

    def _render(self, pages: list[PedigreePage]) -> bytes:
        buffer = io.BytesIO()
        pdf = pdf_canvas.Canvas(buffer, pagesize=LETTER)
        pdf.setTitle("HarnessNation Pedigree Catalog")
        pdf.setCreator("hnplus")

        for page in pages:
            page.render(PageCursor(pdf, PAGE_WIDTH, PAGE_HEIGHT))
            self._draw_watermark(pdf)
            pdf.showPage()

        pdf.save()
        return buffer.getvalue()

    def _draw_watermark(self, pdf: pdf_canvas.Canvas) -> None:
        """Faint logo in the top-right corner of the content area."""
        if not self.watermark_path.is_file():
            logger.warning(f"Watermark image not found: {self.watermark_path}")
            return

        x = PAGE_WIDTH - MARGIN_RIGHT
        y = PAGE_HEIGHT - MARGIN_TOP
        pdf.saveState()
        pdf.setFillAlpha(WATERMARK_OPACITY)
        pdf.drawImage(
            str(self.watermark_path),
            x - WATERMARK_SIZE,
            y - WATERMARK_DROP,
            width=WATERMARK_SIZE,
            height=WATERMARK_SIZE,
            mask="auto",
        )
        pdf.restoreState()
