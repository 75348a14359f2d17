#!/usr/bin/env python3
"""CLI for SitePilot - serve the API or inspect configuration."""

import argparse
import json
import sys
from typing import List, Optional

from sitepilot.core.config import load_config
from sitepilot.core.logging import setup_logging
from sitepilot.services.generation_backends import MODEL_CATALOG


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="sitepilot",
        description="AI website editing with preview branches and approval",
    )
    parser.add_argument("--config", default=None, help="Path to YAML config (default: configs/app.yaml)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the workflow API")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=8000)

    subparsers.add_parser("models", help="List supported generation models")

    args = parser.parse_args(argv)

    if args.command == "models":
        print(json.dumps(MODEL_CATALOG, indent=2))
        return 0

    if args.command == "serve":
        import uvicorn
        from sitepilot.agents.orchestrator import build_coordinator
        from sitepilot.core.auth import StaticTokenIdentityProvider
        from sitepilot.ui.fastapi_app import create_app

        config = load_config(args.config)
        setup_logging(config.logging.level, config.logging.structured)
        app = create_app(
            coordinator=build_coordinator(config),
            identity=StaticTokenIdentityProvider(config.auth.tokens),
        )
        uvicorn.run(app, host=args.host, port=args.port)
        return 0

    parser.error(f"Unknown command: {args.command}")
    return 2


if __name__ == "__main__":
    sys.exit(main())
