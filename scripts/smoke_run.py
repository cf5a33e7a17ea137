"""Automated smoke-run for craftdb.

Checks:
- runs `craftdb init` against a throwaway database directory
- imports data/sample_recipes.json twice (second run must create nothing)
- lists the stored recipes
- optionally starts uvicorn and checks /recipes if --start-server

Usage:
  python scripts/smoke_run.py [--start-server]

Exit code: 0 on success (all checks), non-zero if any step fails.
"""

import os
import sys
import subprocess
import tempfile
import time
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()
ROOT = Path(__file__).resolve().parents[1]
PY = sys.executable
SAMPLE = ROOT / "data" / "sample_recipes.json"


def run_cli(args, env, timeout=120):
    cmd = [PY, "-m", "craftdb.cli"] + args
    print("\n>>> Running:", " ".join(cmd))
    p = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout, env=env)
    print("--- stdout ---")
    print(p.stdout[:8000])
    print("--- stderr ---")
    print(p.stderr[:8000])
    return p.returncode, p.stdout, p.stderr


def check_http(url="http://127.0.0.1:8000/recipes", timeout=5):
    print(f"\nChecking HTTP {url} ...")
    try:
        import urllib.request
        resp = urllib.request.urlopen(url, timeout=timeout)
        data = resp.read(4096).decode("utf8", errors="replace")
        print(f"HTTP {resp.status} {resp.reason}")
        print(data[:1000])
        return True
    except Exception as e:
        print("HTTP check failed:", e)
        return False


if __name__ == "__main__":
    start_server = "--start-server" in sys.argv

    db_dir = tempfile.mkdtemp(prefix="craftdb_smoke_")
    env = {**os.environ, "DB_DIR": db_dir, "DB_NAME": "smoke"}
    print("Python:", PY)
    print("Database dir:", db_dir)

    failed = False
    rc, _, _ = run_cli(["init"], env)
    failed |= rc != 0

    rc, out, _ = run_cli(["import", str(SAMPLE)], env)
    failed |= rc != 0 or "already known" not in out

    rc, out, _ = run_cli(["import", str(SAMPLE)], env)
    if rc != 0 or "0 new" not in out:
        print("second import was expected to create nothing")
        failed = True

    rc, _, _ = run_cli(["list"], env)
    failed |= rc != 0

    if start_server:
        print("\nStarting uvicorn (background) ...")
        server_env = {**env, "DB_PATH": str(Path(db_dir) / "smoke.sqlite3")}
        server_proc = subprocess.Popen(
            [PY, "-m", "uvicorn", "craftdb.main:app", "--port", "8000"], env=server_env
        )
        time.sleep(2)
        if not check_http():
            print("Server check failed after start")
            failed = True
        server_proc.terminate()
        try:
            server_proc.wait(timeout=5)
        except Exception:
            server_proc.kill()

    if failed:
        print("\nSMOKE RUN: FAIL")
        sys.exit(2)
    print("\nSMOKE RUN: SUCCESS")
    sys.exit(0)
