"""Entry point for python -m genai_chat."""

import argparse

import uvicorn

from .config import settings


def main() -> None:
    """Run the chat API server, or create the tables on a local endpoint."""
    parser = argparse.ArgumentParser(prog="genai_chat")
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="create missing DynamoDB tables (DYNAMODB_ENDPOINT_URL) and exit",
    )
    args = parser.parse_args()

    if args.create_tables:
        from .storage import create_tables

        create_tables()
        return

    uvicorn.run(
        "genai_chat.api:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
