#!/usr/bin/env python
from __future__ import annotations

import json
from datetime import datetime, timezone

from sqlalchemy import create_engine, text

from hris.db import _normalize_database_url
from hris.services.schema_guard import EXPECTED_REVISION, verify_runtime_schema
from hris.settings import get_settings


def run() -> dict:
    engine = create_engine(_normalize_database_url(get_settings().database_url))
    report: dict = {
        "generated_at_utc": datetime.now(timezone.utc).isoformat(),
        "checks": [],
    }

    def add(name: str, status: str, details: dict) -> None:
        report["checks"].append(
            {
                "name": name,
                "status": status,
                "details": details,
            }
        )

    guard = verify_runtime_schema(engine)
    add("schema_guard", "ok" if guard.ok else "fail", guard.to_dict())

    with engine.connect() as conn:
        current_versions = [
            row[0]
            for row in conn.execute(text("select version_num from alembic_version")).fetchall()
        ]
        add(
            "migration_up_to_date",
            "ok" if EXPECTED_REVISION in current_versions else "warn",
            {"expected_head": EXPECTED_REVISION, "current": current_versions},
        )

        # remaining must equal amount minus the sum of recorded payments
        ledger_mismatches = conn.execute(
            text(
                """
                select d.id, d.amount, d.remaining, coalesce(sum(p.amount), 0) as paid
                from debts d
                left join debt_payments p on p.debt_id = d.id
                group by d.id, d.amount, d.remaining
                having d.amount - d.remaining <> coalesce(sum(p.amount), 0)
                limit 20
                """
            )
        ).fetchall()
        add(
            "debt_ledger_mismatch",
            "fail" if ledger_mismatches else "ok",
            {"rows": [[str(item) for item in row] for row in ledger_mismatches]},
        )

        status_mismatches = conn.execute(
            text(
                """
                select id, status, remaining
                from debts
                where (status = 'PAID' and remaining <> 0)
                   or (status = 'ACTIVE' and remaining = 0)
                limit 20
                """
            )
        ).fetchall()
        add(
            "debt_status_mismatch",
            "fail" if status_mismatches else "ok",
            {"rows": [[str(item) for item in row] for row in status_mismatches]},
        )

        unpriced_overtime = conn.execute(
            text(
                """
                select id
                from overtimes
                where status = 'APPROVED' and amount is null
                limit 20
                """
            )
        ).fetchall()
        add(
            "approved_overtime_without_amount",
            "warn" if unpriced_overtime else "ok",
            {"sample_ids": [row[0] for row in unpriced_overtime]},
        )

        open_attendance = conn.execute(
            text(
                """
                select id, employee_id, day_date
                from attendances
                where check_in is not null
                  and check_out is null
                  and day_date < current_date - 1
                limit 20
                """
            )
        ).fetchall()
        add(
            "attendance_missing_checkout",
            "warn" if open_attendance else "ok",
            {"rows": [[str(item) for item in row] for row in open_attendance]},
        )

    return report


if __name__ == "__main__":
    print(json.dumps(run(), ensure_ascii=False, indent=2))
