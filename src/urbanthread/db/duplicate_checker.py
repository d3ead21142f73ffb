"""Database-backed duplicate checker for strict submissions."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from urbanthread.config import Settings
from urbanthread.db.client import db_cursor
from urbanthread.intake.quality_gate import DuplicateKey


class DatabaseDuplicateChecker:
    """Check strict duplicates against the reports table."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or Settings()

    def find_duplicate(self, key: DuplicateKey, submitted_at: datetime) -> Optional[str]:
        window = timedelta(hours=self.settings.duplicate_window_hours)
        precision = self.settings.duplicate_coord_precision

        # Same normalisation as utils.text.normalize_for_dedupe: strip URLs,
        # collapse whitespace, lowercase.
        query = (
            "select id from reports where user_id = %s "
            "and created_at between %s and %s "
            "and round(lat::numeric, %s) = %s "
            "and round(lng::numeric, %s) = %s "
            "and lower(btrim(regexp_replace(regexp_replace(description, 'https?://[^\\s]+|www\\.[^\\s]+', '', 'g'), "
            "'\\s+', ' ', 'g'))) = %s "
            "limit 1"
        )
        params: list[object] = [
            key.user_id,
            submitted_at - window,
            submitted_at + window,
            precision,
            key.lat_round,
            precision,
            key.lng_round,
            key.description,
        ]

        with db_cursor(self.settings) as cursor:
            cursor.execute(query, params)
            row = cursor.fetchone()
        if row:
            return str(row[0])
        return None
