"""Command-line entrypoint that runs the ROI calculator under Streamlit."""

from __future__ import annotations

import argparse
import os
import pathlib
import sys


def _app_dir() -> pathlib.Path:
    # Frozen builds unpack app.py into the bundle directory.
    if getattr(sys, "frozen", False):
        return pathlib.Path(getattr(sys, "_MEIPASS"))
    return pathlib.Path(__file__).resolve().parent


def _home_dir() -> pathlib.Path:
    if getattr(sys, "frozen", False):
        return pathlib.Path(sys.executable).resolve().parent
    return pathlib.Path.cwd()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="roi-scenarios", description="Run the outreach ROI scenario calculator.")
    parser.add_argument(
        "--storage-root",
        help="Directory for saved scenarios, users and the runtime log (default: $ROI_STORAGE_ROOT or ./.local_store).",
    )
    parser.add_argument(
        "--admin-emails",
        help="Comma-separated emails that get the admin role at sign-in (default: $ROI_ADMIN_EMAILS).",
    )
    parser.add_argument("--port", type=int, help="Port for the Streamlit server.")
    parser.add_argument("--headless", action="store_true", help="Do not open a browser window.")
    return parser


def streamlit_argv(args: argparse.Namespace, app_path: pathlib.Path) -> list[str]:
    argv = ["streamlit", "run", str(app_path), "--browser.gatherUsageStats=false"]
    if args.port:
        argv.append(f"--server.port={args.port}")
    if args.headless:
        argv.append("--server.headless=true")
    return argv


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)

    # Storage settings are read from the environment when the app modules import.
    if args.storage_root:
        os.environ["ROI_STORAGE_ROOT"] = args.storage_root
    else:
        os.environ.setdefault("ROI_STORAGE_ROOT", str(_home_dir() / ".local_store"))
    if args.admin_emails is not None:
        os.environ["ROI_ADMIN_EMAILS"] = args.admin_emails
    os.environ.setdefault("STREAMLIT_BROWSER_GATHER_USAGE_STATS", "false")

    from streamlit.web import cli as stcli

    sys.argv = streamlit_argv(args, _app_dir() / "app.py")
    raise SystemExit(stcli.main())


if __name__ == "__main__":
    main()
