"""Bulk ingestion of the Open Food Facts product dump into the food cache."""

import csv
import heapq
import logging
import math
import sys
import time
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path

from food_search.domain.errors import IngestionFatalError, StoreError
from food_search.domain.foods import (
    DEFAULT_SERVING_SIZE,
    DataSource,
    FoodRecord,
    build_search_terms,
    clean_name,
    first_brand,
    kilojoules_to_kcal,
    main_category,
)
from food_search.domain.scoring import (
    MIN_DATA_QUALITY,
    data_quality_score,
    is_acceptable,
    total_score,
    whole_food_score,
)
from food_search.services.food_cache import UPSERT_BATCH_SIZE, FoodCacheRepository

DUMP_URL = (
    "https://static.openfoodfacts.org/data/en.openfoodfacts.org.products.csv.gz"
)
WHOLE_FOOD_THRESHOLD = 5
POPULAR_THRESHOLD = 100

_QUALITY_COLUMNS = {
    "brand": "brands",
    "category": "categories",
    "protein": "proteins_100g",
    "carbs": "carbohydrates_100g",
    "fat": "fat_100g",
    "fiber": "fiber_100g",
    "sugar": "sugars_100g",
}

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScoredCandidate:
    """A parsed row with its transient ranking scores."""

    food: FoodRecord
    whole_food_score: int
    popularity_rank: int
    total_score: float


@dataclass
class IngestionReport:
    """Counters for one ingestion run."""

    processed: int = 0
    skipped: int = 0
    rejected: int = 0
    accepted: int = 0
    selected: int = 0
    inserted: int = 0
    failed_batches: int = 0
    whole_foods: int = 0
    popular_foods: int = 0
    quality_total: float = 0.0
    errors: list[str] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def average_quality(self) -> float:
        """Mean data quality of the selected records."""
        if not self.selected:
            return 0.0
        return self.quality_total / self.selected

    def summary_lines(self) -> list[str]:
        """Human readable run summary."""
        minutes = self.duration_seconds / 60
        lines = [
            f"Duration: {minutes:.1f} minutes",
            f"Rows processed: {self.processed:,}",
            f"Rows skipped: {self.skipped:,}",
            f"Rows rejected: {self.rejected:,}",
            f"Foods selected: {self.selected:,}",
            f"Foods inserted: {self.inserted:,}",
            f"Whole foods: {self.whole_foods:,}",
            f"Popular foods: {self.popular_foods:,}",
            f"Average quality: {self.average_quality:.2f}",
            f"Failed batches: {self.failed_batches}",
        ]
        lines.extend(f"Error: {error}" for error in self.errors[:10])
        if len(self.errors) > 10:
            lines.append(f"... {len(self.errors) - 10} more errors")
        return lines


def read_rows(path: Path) -> Iterator[dict[str, str]]:
    """Stream rows from a tab separated product dump."""
    csv.field_size_limit(sys.maxsize)
    with path.open("r", encoding="utf-8", errors="replace", newline="") as handle:
        yield from csv.DictReader(handle, delimiter="\t", quoting=csv.QUOTE_NONE)


def score_row(row: Mapping[str, object]) -> ScoredCandidate | None:
    """Parse and score one dump row; ``None`` when required data is missing."""
    code = _text(row, "code")
    raw_name = _text(row, "product_name")
    kcal_raw = _text(row, "energy-kcal_100g")
    kj_raw = _text(row, "energy_100g")
    if not code or not raw_name or not (kcal_raw or kj_raw):
        return None

    calories = _number(kcal_raw) or kilojoules_to_kcal(_number(kj_raw))
    if round(calories) <= 0:
        return None

    name = clean_name(raw_name)
    if not name:
        return None
    brand = first_brand(_text(row, "brands"))
    categories = _text(row, "categories")
    category = main_category(categories)
    popularity_rank = max(int(_number(_text(row, "unique_scans_n"))), 0)

    present = {"name", "energy"}
    present.update(key for key, column in _QUALITY_COLUMNS.items() if _text(row, column))
    quality = data_quality_score(present)
    whole_food = whole_food_score(raw_name, categories, _text(row, "ingredients_text"))

    food = FoodRecord(
        food_id=code,
        barcode=code,
        name=name,
        brand=brand,
        category=category,
        calories=round(calories),
        protein=_nutrient(row, "proteins_100g"),
        carbs=_nutrient(row, "carbohydrates_100g"),
        fat=_nutrient(row, "fat_100g"),
        fiber=_nutrient(row, "fiber_100g"),
        sugar=_nutrient(row, "sugars_100g"),
        sodium=_nutrient(row, "sodium_100g") * 1000,
        serving_size=DEFAULT_SERVING_SIZE,
        serving_unit="g",
        data_source=DataSource.EXTERNAL_DATASET,
        data_quality=quality,
        popularity_score=popularity_rank,
        search_terms=build_search_terms(name, brand, category),
    )
    return ScoredCandidate(
        food=food,
        whole_food_score=whole_food,
        popularity_rank=popularity_rank,
        total_score=total_score(whole_food, popularity_rank, quality),
    )


@dataclass
class IngestionEngine:
    """Filter, rank and batch-load dump rows into the food cache."""

    repository: FoodCacheRepository
    batch_size: int = UPSERT_BATCH_SIZE
    min_quality: float = MIN_DATA_QUALITY
    progress_every: int = 50_000

    def run(self, source: Path, target_count: int | None = None) -> IngestionReport:
        """Ingest a dump file; keep only the best ``target_count`` when given."""
        if not source.is_file():
            raise IngestionFatalError(
                f"Source file not found: {source}. Download it with "
                f"'curl -O {DUMP_URL}' and extract it with 'gzip -d'."
            )
        _logger.info("Ingesting foods from %s", source)
        return self.ingest_rows(read_rows(source), target_count=target_count)

    def ingest_rows(
        self, rows: Iterable[Mapping[str, object]], target_count: int | None = None
    ) -> IngestionReport:
        """Ingest already parsed rows."""
        if target_count is not None and target_count < 1:
            raise ValueError("target_count must be positive")
        report = IngestionReport()
        started = time.monotonic()

        candidates = self._accepted_candidates(rows, report)
        if target_count is not None:
            candidates = iter(
                heapq.nlargest(target_count, candidates, key=lambda c: c.total_score)
            )
            _logger.info(
                "Selected top %s of %s accepted foods", target_count, report.accepted
            )
        self._load(candidates, report)

        report.duration_seconds = time.monotonic() - started
        _logger.info(
            "Ingestion finished: processed=%s selected=%s inserted=%s failed_batches=%s",
            report.processed,
            report.selected,
            report.inserted,
            report.failed_batches,
        )
        return report

    def _accepted_candidates(
        self, rows: Iterable[Mapping[str, object]], report: IngestionReport
    ) -> Iterator[ScoredCandidate]:
        for row in rows:
            report.processed += 1
            if report.processed % self.progress_every == 0:
                _logger.info("Processed %s rows", f"{report.processed:,}")
            try:
                candidate = score_row(row)
            except (TypeError, ValueError, OverflowError) as exc:
                _logger.debug("Skipping malformed row %s: %s", report.processed, exc)
                candidate = None
            if candidate is None:
                report.skipped += 1
                continue
            if not is_acceptable(
                candidate.whole_food_score,
                candidate.popularity_rank,
                candidate.food.data_quality,
                self.min_quality,
            ):
                report.rejected += 1
                continue
            report.accepted += 1
            yield candidate

    def _load(
        self, candidates: Iterator[ScoredCandidate], report: IngestionReport
    ) -> None:
        batch: list[FoodRecord] = []
        for candidate in candidates:
            report.selected += 1
            report.quality_total += candidate.food.data_quality
            if candidate.whole_food_score >= WHOLE_FOOD_THRESHOLD:
                report.whole_foods += 1
            if candidate.popularity_rank >= POPULAR_THRESHOLD:
                report.popular_foods += 1
            batch.append(candidate.food)
            if len(batch) >= self.batch_size:
                self._flush(batch, report)
                batch = []
        if batch:
            self._flush(batch, report)

    def _flush(self, batch: list[FoodRecord], report: IngestionReport) -> None:
        try:
            report.inserted += self.repository.upsert(batch)
        except StoreError as exc:
            report.failed_batches += 1
            report.errors.append(str(exc))
            _logger.error("Batch of %s foods failed: %s", len(batch), exc)
            return
        _logger.info("Inserted batch of %s foods (total %s)", len(batch), report.inserted)


def _text(row: Mapping[str, object], key: str) -> str | None:
    value = row.get(key)
    if not isinstance(value, str):
        return None
    return value.strip() or None


def _number(raw: str | None) -> float:
    if not raw:
        return 0.0
    try:
        value = float(raw)
    except ValueError:
        return 0.0
    return value if math.isfinite(value) else 0.0


def _nutrient(row: Mapping[str, object], key: str) -> float:
    return max(_number(_text(row, key)), 0.0)
