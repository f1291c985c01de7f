"""CSV export of result records."""
from __future__ import annotations

import csv
import io
import json
from typing import Iterable

from .results import ResultRecord

CSV_HEADERS = [
    "id",
    "ts",
    "date_iso",
    "session_id",
    "candidate_name",
    "tg_id",
    "tg_username",
    "score",
    "total",
    "percent",
    "passed",
    "finish_reason",
    "duration_sec",
    "blur_count",
    "hidden_count",
    "leave_count",
    "answers_json",
    "meta_json",
]


def to_csv(results: Iterable[ResultRecord]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for record in results:
        writer.writerow(
            [
                record.id,
                record.ts,
                record.date_iso,
                record.session_id,
                record.candidate_name,
                record.tg_id,
                record.tg_username,
                record.score,
                record.total,
                record.percent,
                "true" if record.passed else "false",
                record.finish_reason.value,
                "" if record.duration_sec is None else record.duration_sec,
                record.blur_count,
                record.hidden_count,
                record.leave_count,
                json.dumps(record.answers, ensure_ascii=False),
                json.dumps(record.meta, ensure_ascii=False),
            ]
        )
    return buffer.getvalue()


__all__ = ["CSV_HEADERS", "to_csv"]
