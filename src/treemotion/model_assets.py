from __future__ import annotations

import logging
import os
import ssl
import subprocess
import urllib.request


log = logging.getLogger(__name__)


HAND_LANDMARKER_TASK_URL = (
    "https://storage.googleapis.com/mediapipe-models/hand_landmarker/hand_landmarker/float16/latest/hand_landmarker.task"
)


def _ssl_context() -> ssl.SSLContext:
    # python.org macOS builds often lack root certificates; certifi ships its own bundle.
    try:
        import certifi  # type: ignore
    except ImportError:
        return ssl.create_default_context()
    return ssl.create_default_context(cafile=certifi.where())


def _remove_partial(path: str) -> None:
    if os.path.exists(path):
        os.remove(path)


def _download_urllib(url: str, path: str, timeout_s: int) -> None:
    with urllib.request.urlopen(url, context=_ssl_context(), timeout=timeout_s) as r, open(path, "wb") as f:
        f.write(r.read())


def _download_curl(url: str, path: str) -> subprocess.CompletedProcess:
    return subprocess.run(
        ["curl", "-L", "-o", path, url],
        check=False,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
    )


def ensure_hand_landmarker_task(model_path: str, *, url: str = HAND_LANDMARKER_TASK_URL, timeout_s: int = 30) -> str:
    """
    Return `model_path`, downloading the HandLandmarker `.task` model first if missing.

    Tries urllib, then curl. Raises FileNotFoundError when both fail.
    """

    if os.path.exists(model_path):
        return model_path

    os.makedirs(os.path.dirname(model_path) or ".", exist_ok=True)
    log.info("downloading hand landmark model to %s", model_path)

    try:
        _download_urllib(url, model_path, timeout_s)
        return model_path
    except OSError as e:
        log.warning("urllib download failed (%s), trying curl", e)
        _remove_partial(model_path)

    try:
        proc = _download_curl(url, model_path)
    except OSError as e:
        proc = None
        log.warning("curl unavailable: %s", e)

    if proc is not None and proc.returncode == 0 and os.path.exists(model_path) and os.path.getsize(model_path) > 0:
        return model_path
    _remove_partial(model_path)

    curl_err = f"\ncurl stderr:\n{proc.stderr.strip()}" if proc is not None else ""
    raise FileNotFoundError(
        "Missing MediaPipe Tasks model file and auto-download failed.\n"
        f"Expected model at: {model_path}\n"
        "Download it manually:\n"
        f'  mkdir -p "{os.path.dirname(model_path) or "."}"\n'
        f'  curl -L -o "{model_path}" "{url}"'
        f"{curl_err}"
    )
