#!/usr/bin/env python3
"""Development server with auto-reload and the in-process job worker."""

import os
import subprocess


def main():
    os.environ.setdefault("JOB_BACKEND", "local")

    cmd = ["uvicorn", "main:app", "--app-dir", "src", "--reload", "--host", "0.0.0.0", "--port", "8080"]
    cmd += ["--log-level", "debug"]

    print("Starting matching engine (development)...")
    print(f"Command: {' '.join(cmd)}")
    print(f"Job backend: {os.environ['JOB_BACKEND']}")
    print("API docs at: http://localhost:8080/docs")
    print("-" * 50)

    subprocess.run(cmd)


if __name__ == "__main__":
    main()
