"""Run statistics returned by the pipeline jobs."""

from dataclasses import dataclass, field

__all__ = [
    "BackfillResult",
    "IngestionResult",
    "RefreshResult",
]


@dataclass
class BackfillResult:
    """Statistics from the legacy repair passes."""

    original_names_filled: int = 0
    types_filled: int = 0
    non_medical_removed: int = 0
    categories_filled: int = 0

    @property
    def changed(self) -> bool:
        return any(
            (
                self.original_names_filled,
                self.types_filled,
                self.non_medical_removed,
                self.categories_filled,
            )
        )


@dataclass
class IngestionResult:
    """Statistics from one discovery pass."""

    discovered: int = 0
    classified: int = 0
    topics_added: int = 0
    topics_merged: int = 0
    topics_renamed: int = 0
    skipped_non_medical: int = 0
    skipped_unclassifiable: int = 0
    skipped_untriaged: int = 0
    skipped_filtered: int = 0
    skipped_too_short: int = 0
    skipped_distinct: int = 0
    extraction_failures: int = 0
    flagged_for_reprocessing: int = 0
    stale_removed: int = 0
    backfill: BackfillResult = field(default_factory=BackfillResult)
    cancelled: bool = False
    errors: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(
            self.topics_added
            or self.topics_merged
            or self.topics_renamed
            or self.stale_removed
            or self.backfill.changed
        )


@dataclass
class RefreshResult:
    """Statistics from one refresh sweep."""

    topics_checked: int = 0
    sources_changed: int = 0
    sources_text_updated: int = 0
    fetch_failures: int = 0
    reprocessed: int = 0
    reprocess_still_low_quality: int = 0
    reprocess_skipped: int = 0
    extraction_failures: int = 0
    renames_rejected: int = 0
    categories_filled: int = 0
    cancelled: bool = False
    errors: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(
            self.topics_checked
            or self.reprocessed
            or self.reprocess_still_low_quality
            or self.reprocess_skipped
            or self.categories_filled
        )
