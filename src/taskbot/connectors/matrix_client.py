# src/taskbot/connectors/matrix_client.py

from __future__ import annotations

import contextlib
import json
import logging
import os
from pathlib import Path
from typing import Any

from nio import AsyncClient, AsyncClientConfig, LoginResponse

logger = logging.getLogger(__name__)

SESSION_FILE = "session.json"


def _load_session(path: Path) -> dict[str, str]:
    data: Any = json.loads(path.read_text("utf-8"))
    if not isinstance(data, dict):
        raise ValueError("Expected JSON object")
    missing = [k for k in ("access_token", "user_id", "device_id") if not data.get(k)]
    if missing:
        raise ValueError(f"{SESSION_FILE} is missing {', '.join(missing)}")
    return {k: str(data[k]) for k in ("access_token", "user_id", "device_id")}


def _save_session(path: Path, resp: LoginResponse) -> None:
    tmp = path.with_suffix(".tmp")
    tmp.write_text(
        json.dumps(
            {"access_token": resp.access_token, "user_id": resp.user_id, "device_id": resp.device_id},
            ensure_ascii=False,
        ),
        "utf-8",
    )
    os.replace(tmp, path)
    with contextlib.suppress(OSError):
        # Access token inside; keep it private on disk.
        os.chmod(path, 0o600)


async def create_matrix_client(settings) -> AsyncClient | None:
    """
    Create a Matrix AsyncClient (no E2EE: reminders go to plain rooms).

    The access token is kept in <matrix_store_path>/session.json so restarts
    reuse the device instead of logging in again. The password is only needed
    for the first login.
    """
    homeserver = (getattr(settings, "matrix_homeserver", "") or "").strip()
    user_id = (getattr(settings, "matrix_user_id", "") or "").strip()
    password = (getattr(settings, "matrix_password", "") or "").strip()
    store_dir = Path(getattr(settings, "matrix_store_path", Path(".local/taskbot/matrix_store")))

    if not homeserver or not user_id:
        logger.error("Matrix is not configured: set TASKBOT_MATRIX_HOMESERVER and TASKBOT_MATRIX_USER_ID")
        return None

    store_dir.mkdir(parents=True, exist_ok=True)
    session_file = store_dir / SESSION_FILE

    client = AsyncClient(
        homeserver,
        user_id,
        config=AsyncClientConfig(encryption_enabled=False, store_sync_tokens=False),
    )

    if session_file.exists():
        try:
            session = _load_session(session_file)
            client.restore_login(
                user_id=session["user_id"],
                device_id=session["device_id"],
                access_token=session["access_token"],
            )
            logger.info("Matrix session restored for %s", client.user_id)
            return client
        except (OSError, ValueError) as e:
            logger.warning("Failed to restore Matrix %s, will try password login: %r", SESSION_FILE, e)

    if not password:
        logger.error(
            "Matrix %s not found and password is not set. "
            "Set TASKBOT_MATRIX_PASSWORD once to bootstrap a session.",
            SESSION_FILE,
        )
        await client.close()
        return None

    device_name = f"{getattr(settings, 'app_name', 'taskbot')} (Python)"
    logger.info("Logging in to Matrix (device_name=%r)...", device_name)

    resp = await client.login(password=password, device_name=device_name)
    if not isinstance(resp, LoginResponse):
        logger.error("Matrix login failed: %r", resp)
        await client.close()
        return None

    try:
        _save_session(session_file, resp)
        logger.info("Matrix session saved to %s (user=%s)", session_file, resp.user_id)
    except OSError:
        logger.exception("Failed to write Matrix %s", session_file)

    return client
