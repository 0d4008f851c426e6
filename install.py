#!/usr/bin/env python3
"""Install recap-bot into a local virtual environment and prepare its session store.

Usage:
    python install.py          # Production install
    python install.py --dev    # Development install (includes test tools)

After installing the package, the script copies the example config files,
creates the SQLite session store through ``recap-bot init`` and validates the
configuration with ``recap-bot config-check``.
"""

import os
import platform
import shutil
import subprocess
import sys

MIN_PYTHON = (3, 11)
CONFIG_FILES = [("config.example.yaml", "config.yaml"), (".env.example", ".env")]


def _check_python() -> None:
    if sys.version_info < MIN_PYTHON:
        sys.exit(
            f"Error: Python {MIN_PYTHON[0]}.{MIN_PYTHON[1]}+ is required. "
            f"You have {sys.version_info.major}.{sys.version_info.minor}."
        )
    print(f"Python {sys.version_info.major}.{sys.version_info.minor} detected. OK.")


def _venv_executable(venv_dir: str, name: str) -> str:
    bin_dir = "Scripts" if platform.system() == "Windows" else "bin"
    return os.path.join(venv_dir, bin_dir, name)


def _install_package(project_dir: str, venv_dir: str, dev: bool) -> None:
    if not os.path.isdir(venv_dir):
        print("Creating virtual environment...")
        subprocess.check_call([sys.executable, "-m", "venv", venv_dir])

    pip = _venv_executable(venv_dir, "pip")
    subprocess.check_call([pip, "install", "--quiet", "--upgrade", "pip"])

    target = ["-e", ".[dev]"] if dev else ["."]
    print(f"Installing recap-bot ({'development' if dev else 'production'})...")
    subprocess.check_call([pip, "install", *target], cwd=project_dir)


def _copy_config_files(project_dir: str) -> None:
    for src, dst in CONFIG_FILES:
        dst_path = os.path.join(project_dir, dst)
        if os.path.exists(dst_path):
            print(f"{dst} already exists, keeping it.")
            continue
        shutil.copy(os.path.join(project_dir, src), dst_path)
        print(f"Created {dst} from {src}")


def _prepare_session_store(project_dir: str, venv_dir: str) -> bool:
    """Create the session_state table and validate config. Returns False on failure."""
    python_exe = _venv_executable(venv_dir, "python")
    for command in ("init", "config-check"):
        result = subprocess.run([python_exe, "-m", "recap_bot", command], cwd=project_dir)
        if result.returncode != 0:
            print(f"'recap-bot {command}' failed; fix config.yaml and rerun it.")
            return False
    return True


def main() -> None:
    _check_python()

    dev = "--dev" in sys.argv
    project_dir = os.path.dirname(os.path.abspath(__file__))
    venv_dir = os.path.join(project_dir, ".venv")

    _install_package(project_dir, venv_dir, dev)
    _copy_config_files(project_dir)
    ready = _prepare_session_store(project_dir, venv_dir)

    if platform.system() == "Windows":
        activate_cmd = r".\.venv\Scripts\activate"
    else:
        activate_cmd = "source .venv/bin/activate"

    print()
    print("recap-bot is installed." if ready else "recap-bot is installed, setup incomplete.")
    print(f"  Activate:   {activate_cmd}")
    print("  API key:    set ANTHROPIC_API_KEY in .env (or use ai.backend: claude_code)")
    print("  Chat:       recap-bot chat")
    print("  One-shot:   recap-bot ask -s demo https://example.com")
    if dev:
        print("  Tests:      pytest")


if __name__ == "__main__":
    main()
