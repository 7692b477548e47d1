import argparse
import sys
from pathlib import Path

_REPO_ROOT = Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))


def main() -> int:
    parser = argparse.ArgumentParser(
        description=(
            "Validate the PRODUCTION persistence profile of the document workflow service: "
            "PostgreSQL document store, writable blob root and applied migrations."
        )
    )
    parser.add_argument(
        "--check-migrations",
        action="store_true",
        help="Connect to DOCUMENT_POSTGRES_DSN and require every checked-in migration.",
    )
    args = parser.parse_args()

    from src.api.production_cutover_contract import validate_production_cutover_contract

    try:
        validate_production_cutover_contract(check_migrations=args.check_migrations)
    except RuntimeError as exc:
        print(f"Production cutover contract validation failed: {exc}", file=sys.stderr)
        return 1
    print("Production cutover contract validation passed.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
