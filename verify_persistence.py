"""
Restart-persistence check against a locally started server.

Registers a client, then restarts the server. The same credentials must
still log in and /auth/me must return the same account.
"""

import time
import subprocess
import httpx
import sys
import os
import signal

BASE_URL = "http://127.0.0.1:8000"
API_PREFIX = "/v1"

EMAIL = "persist_client@example.com"
PASSWORD = "securePassword123"


def start_server(echo: bool = False) -> subprocess.Popen:
    return subprocess.Popen(
        [sys.executable, "-m", "uvicorn", "backend.app.main:app", "--host", "127.0.0.1", "--port", "8000"],
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        env={**os.environ, "DB_ECHO": "True" if echo else "False"},
    )


def stop_server(proc: subprocess.Popen):
    proc.send_signal(signal.SIGTERM)
    proc.wait()


def wait_for_server(retries=10, delay=2):
    url = f"{BASE_URL}/health"
    print(f"Waiting for server at {url}...")
    for _ in range(retries):
        try:
            resp = httpx.get(url)
            if resp.status_code == 200:
                print("Server is up")
                return True
        except httpx.ConnectError:
            pass
        time.sleep(delay)
    print("Server failed to start")
    return False


def run_verification():
    print("\n--- [Step 1] Starting server ---")
    proc = start_server(echo=True)
    try:
        if not wait_for_server():
            stdout, stderr = proc.communicate(timeout=2)
            print("Server stdout:", stdout.decode())
            print("Server stderr:", stderr.decode())
            raise RuntimeError("Server start failed")

        print("\n--- [Step 2] Registering client ---")
        resp = httpx.post(f"{BASE_URL}{API_PREFIX}/auth/register", json={
            "name": "Persistence Check",
            "email": EMAIL,
            "password": PASSWORD,
            "phone": "9876543210",
            "role": "client",
        })
        if resp.status_code == 400 and "already registered" in resp.text:
            print("Client already exists (kept from a previous run)")
        elif resp.status_code == 201:
            print("Client registered:", resp.json()["user"]["id"])
        else:
            raise RuntimeError(f"Registration failed: {resp.status_code} {resp.text}")
    finally:
        print("\n--- [Step 3] Stopping server ---")
        stop_server(proc)

    time.sleep(2)  # port release

    print("\n--- [Step 4] Restarting server ---")
    proc = start_server()
    try:
        if not wait_for_server():
            raise RuntimeError("Server restart failed")

        print("\n--- [Step 5] Logging in after restart ---")
        resp = httpx.post(f"{BASE_URL}{API_PREFIX}/auth/login", json={"email": EMAIL, "password": PASSWORD})
        if resp.status_code != 200:
            raise RuntimeError(f"Login failed after restart: {resp.status_code} {resp.text}")
        token = resp.json()["access_token"]

        print("\n--- [Step 6] Verifying identity ---")
        resp = httpx.get(f"{BASE_URL}{API_PREFIX}/auth/me", headers={"Authorization": f"Bearer {token}"})
        if resp.status_code != 200 or resp.json()["email"] != EMAIL:
            raise RuntimeError(f"Identity check failed: {resp.status_code} {resp.text}")
        print("Account persisted:", resp.json()["email"])
    finally:
        print("\n--- [Step 7] Stopping server ---")
        stop_server(proc)


if __name__ == "__main__":
    run_verification()
