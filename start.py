"""
Convenience launcher — starts the PomoUno API, optionally mirroring to a sync server.

Usage:
    python start.py                                   # local only
    python start.py --sync-url https://sync.example   # local + remote mirror
    python start.py --port 9000
"""

from __future__ import annotations

import argparse
import os
import subprocess
import sys


def start_engine(env: dict) -> subprocess.Popen:
    return subprocess.Popen(
        [sys.executable, "-m", "pomouno.main"],
        stdout=sys.stdout,
        stderr=sys.stderr,
        env=env,
    )


def main() -> None:
    parser = argparse.ArgumentParser(description="Start the PomoUno API")
    parser.add_argument("--port", type=int, help="Override the API port")
    parser.add_argument("--sync-url", help="Mirror every local write to this sync server")
    parser.add_argument("--data-dir", help="Directory holding the local store")
    args = parser.parse_args()

    env = dict(os.environ)
    if args.port:
        env["POMO_API_PORT"] = str(args.port)
    if args.sync_url:
        env["POMO_SYNC_URL"] = args.sync_url
    if args.data_dir:
        env["POMO_DATA_DIR"] = args.data_dir

    print("Starting PomoUno…")
    engine_proc = start_engine(env)

    port = env.get("POMO_API_PORT", "8766")
    print(f"\nAPI → http://127.0.0.1:{port}  (docs at /docs)")
    if args.sync_url:
        print(f"Mirroring to {args.sync_url}")
    print("Press Ctrl+C to stop.\n")

    try:
        engine_proc.wait()
    except KeyboardInterrupt:
        print("\nShutting down…")
        engine_proc.terminate()
        engine_proc.wait()


if __name__ == "__main__":
    main()
