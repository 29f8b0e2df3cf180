import argparse
import getpass
import json
import logging
from pathlib import Path

from pydantic import ValidationError

from exam_api.config import LOG_LEVEL
from exam_api.database import SessionLocal, init_db
from exam_api.logging_setup import setup_console_logging
from exam_api.models.catalog import CatalogImport
from exam_api.models.db.user import UserRole
from exam_api.errors import Conflict
from exam_api.services.auth_service import register_user
from exam_api.services.catalog_service import import_catalog

setup_console_logging(LOG_LEVEL)
logger = logging.getLogger("cli")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Exam attempts administration")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("init-db", help="Create database tables")

    import_parser = commands.add_parser(
        "import-catalog", help="Import tests and groups from a JSON file"
    )
    import_parser.add_argument("file", type=Path, help="Path to catalog JSON file")

    user_parser = commands.add_parser("create-user", help="Create an account")
    user_parser.add_argument("username")
    user_parser.add_argument("email")
    user_parser.add_argument(
        "--role",
        choices=[role.value for role in UserRole],
        default=UserRole.STUDENT.value,
        help="Account role",
    )
    user_parser.add_argument(
        "--password",
        help="Password (prompted when omitted)",
    )
    return parser.parse_args()


def run_import(path: Path) -> int:
    try:
        payload = CatalogImport.model_validate(
            json.loads(path.read_text(encoding="utf-8"))
        )
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        logger.error(f"Cannot read catalog {path}: {e}")
        return 1

    db = SessionLocal()
    try:
        counts = import_catalog(db, payload)
    except ValueError as e:
        logger.error(f"Import failed: {e}")
        return 1
    finally:
        db.close()

    print(json.dumps(counts))
    return 0


def run_create_user(args: argparse.Namespace) -> int:
    password = args.password or getpass.getpass("Password: ")
    db = SessionLocal()
    try:
        user = register_user(db, args.username, args.email, password, role=UserRole(args.role))
    except Conflict as e:
        logger.error(f"Cannot create {args.username}: {e.code}")
        return 1
    finally:
        db.close()
    print(f"Created {user.role} {user.username} ({user.id})")
    return 0


def main() -> int:
    args = parse_args()
    init_db()
    if args.command == "import-catalog":
        return run_import(args.file)
    if args.command == "create-user":
        return run_create_user(args)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
