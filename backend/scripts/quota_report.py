"""Read-only monthly quota report for one tenant.

Usage: python scripts/quota_report.py <tenant_id>
"""

import argparse
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

from qaplus.core.errors import ConfigurationFault  # noqa: E402
from qaplus.db.session import SessionLocal  # noqa: E402
from qaplus.usage.service import quota_usage  # noqa: E402


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("tenant_id")
    args = parser.parse_args(argv)

    db = SessionLocal()
    try:
        report = quota_usage(db, tenant_id=args.tenant_id)
    except ConfigurationFault as exc:
        print(f"[FAIL] {type(exc).__name__}: tenant={args.tenant_id}")
        return 1
    finally:
        db.close()

    usage = report["queries_monthly"]
    print(f"Tenant:  {report['tenant_id']} ({report['tenant_status']})")
    print(f"Plan:    {report['plan']['code']} / {report['plan']['name']}")
    print(f"Window:  since {report['window_start'].isoformat()} UTC")
    if usage["max"] is None:
        print(f"Queries: {usage['current']} (unlimited)")
        return 0

    print(f"Queries: {usage['current']} / {usage['max']}")
    if usage["current"] >= usage["max"]:
        print("[LIMIT] Monthly query quota reached")
    else:
        print(f"[OK] {usage['max'] - usage['current']} queries remaining")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
