"""Configuration: env, Spotify credentials, playback timings, local audio."""
import os
from pathlib import Path

from dotenv import load_dotenv

# Base paths (project root = parent of soundboard package)
BASE_DIR = Path(__file__).resolve().parent.parent

# Load .env from project root so SPOTIFY_CLIENT_ID etc. are set
load_dotenv(BASE_DIR / ".env")

DATA_DIR = Path(os.getenv("SOUNDBOARD_DATA_DIR", str(BASE_DIR / "data")))
# File-backed key/value store (verifier copy + access token survive a restart)
LOCAL_STORAGE_PATH = DATA_DIR / "local_storage.json"

# API
API_HOST = os.getenv("SOUNDBOARD_API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("SOUNDBOARD_API_PORT", "8000"))
LOG_LEVEL = os.getenv("SOUNDBOARD_LOG_LEVEL", "INFO").upper()

# Spotify (PKCE; no client secret needed)
SPOTIFY_CLIENT_ID = os.getenv("SPOTIFY_CLIENT_ID", "")
SPOTIFY_REDIRECT_URI = os.getenv("SPOTIFY_REDIRECT_URI", "http://localhost:8000/api/spotify/callback")
SPOTIFY_SCOPES = " ".join(
    [
        "streaming",
        "user-read-email",
        "user-read-private",
        "user-read-playback-state",
        "user-modify-playback-state",
        "playlist-read-private",
        "playlist-read-collaborative",
    ]
)
SPOTIFY_AUTHORIZE_URL = "https://accounts.spotify.com/authorize"
SPOTIFY_TOKEN_URL = "https://accounts.spotify.com/api/token"
SPOTIFY_REQUEST_TIMEOUT = int(os.getenv("SPOTIFY_REQUEST_TIMEOUT", "10"))
# After OAuth callback, redirect here (e.g. http://localhost:5173 for Vite dev)
SOUNDBOARD_WEB_ORIGIN = os.getenv("SOUNDBOARD_WEB_ORIGIN", "")

# Spotify Connect receiver (librespot / spotifyd) that plays remote tracks
SPOTIFY_DEVICE_NAME = os.getenv("SPOTIFY_DEVICE_NAME", "RPG Sound Assistant")
SPOTIFY_DEVICE_POLL_SEC = float(os.getenv("SPOTIFY_DEVICE_POLL_SEC", "3"))

# Playback timings
TRANSFER_SETTLE_SEC = 0.5  # wait between transfer and start on the remote device
ERROR_CLEAR_DELAY_SEC = 5.0
DEFAULT_VOLUME = 0.7

# Local audio (mpv over JSON IPC)
MPV_BINARY = os.getenv("MPV_BINARY", "mpv")
MPV_IPC_SOCKET = os.getenv("MPV_IPC_SOCKET", "/tmp/soundboard-mpv.sock")
MPV_LOAD_TIMEOUT_SEC = 5.0

# Audio simulation (for development without an audio device)
SIMULATE_AUDIO = os.getenv("SOUNDBOARD_SIMULATE_AUDIO", "0").lower() in ("1", "true", "yes")


def ensure_data_dir() -> None:
    DATA_DIR.mkdir(parents=True, exist_ok=True)
