from __future__ import annotations

from pathlib import Path

import launcher


def test_streamlit_argv_adds_port_and_headless():
    args = launcher.build_parser().parse_args(["--port", "8600", "--headless"])
    argv = launcher.streamlit_argv(args, Path("/opt/app/app.py"))
    assert argv[:3] == ["streamlit", "run", str(Path("/opt/app/app.py"))]
    assert "--server.port=8600" in argv
    assert "--server.headless=true" in argv


def test_streamlit_argv_defaults():
    args = launcher.build_parser().parse_args([])
    argv = launcher.streamlit_argv(args, Path("app.py"))
    assert argv == ["streamlit", "run", "app.py", "--browser.gatherUsageStats=false"]
    assert args.storage_root is None
    assert args.admin_emails is None
