#!/usr/bin/env python3
"""
Run the payment pipeline webhook server.

    python scripts/run_server.py            # port from PORT / config (default 8080)
    python scripts/run_server.py --reload
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import uvicorn
from dotenv import load_dotenv

load_dotenv()

from payment_pipeline.utils.config_loader import load_pipeline_config


def main() -> int:
    parser = argparse.ArgumentParser(description="Run the Stripe webhook server")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=None, help="Overrides PORT / config port")
    parser.add_argument("--reload", action="store_true")
    args = parser.parse_args()

    config = load_pipeline_config()
    port = args.port or config.port
    print(f"Starting payment pipeline on http://{args.host}:{port} (mode={config.integrations_mode})")

    uvicorn.run(
        "payment_pipeline.api.main:app",
        host=args.host,
        port=port,
        reload=args.reload,
        log_level="info",
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
