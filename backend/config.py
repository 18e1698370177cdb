"""Central configuration constants for the HubFetch backend."""

APP_NAME = "HubFetch"
APP_VERSION = "1.1.0"

DEFAULT_HEADERS = {
    "Accept": "*/*",
    "User-Agent": "hubfetch/1.1 (+https://github.com/SteamAutoCracks/ManifestHub)",
}

USER_AGENT = DEFAULT_HEADERS["User-Agent"]

# Every "<appid>" occurrence in a template is replaced with the target id.
LUA_SOURCES = (
    "https://raw.githubusercontent.com/SteamAutoCracks/ManifestHub/<appid>/<appid>.lua",
    "https://cdn.jsdelivr.net/gh/SteamAutoCracks/ManifestHub@<appid>/<appid>.lua",
    "https://gcore.jsdelivr.net/gh/SteamAutoCracks/ManifestHub@<appid>/<appid>.lua",
    "https://fastly.jsdelivr.net/gh/SteamAutoCracks/ManifestHub@<appid>/<appid>.lua",
)

ARCHIVE_SOURCE = "https://walftech.com/proxy.php?url=https://steamgames554.s3.us-east-1.amazonaws.com/<appid>.zip"

DEPOTKEY_SOURCES = (
    "https://raw.githubusercontent.com/SteamAutoCracks/ManifestHub/main/depotkeys.json",
    "https://cdn.jsdmirror.com/gh/SteamAutoCracks/ManifestHub@main/depotkeys.json",
    "https://raw.gitmirror.com/SteamAutoCracks/ManifestHub/main/depotkeys.json",
    "https://raw.dgithub.xyz/SteamAutoCracks/ManifestHub/main/depotkeys.json",
    "https://gh.akass.cn/SteamAutoCracks/ManifestHub/main/depotkeys.json",
)

METADATA_URL = "https://api.steamcmd.net/v1/info/<appid>"
SEARCH_URL = "https://steamui.com/api/loadGames.php"

LUA_SOURCE_TIMEOUT_SECONDS = 3
DEPOTKEY_TIMEOUT_SECONDS = 5
METADATA_TIMEOUT_SECONDS = 10
SEARCH_TIMEOUT_SECONDS = 10

ARCHIVE_PROBE_TIMEOUT_SECONDS = 5
ARCHIVE_MAX_ATTEMPTS = 3
ARCHIVE_CHUNK_SIZE = 32 * 1024
ARCHIVE_WATCHDOG_INTERVAL_SECONDS = 1.0

# Minimum sustained throughput assumptions used to size the archive timeouts.
ARCHIVE_MIN_RATE_BYTES = 32 * 1024
ARCHIVE_MIN_TIMEOUT_BUFFER_SECONDS = 10
ARCHIVE_MIN_TIMEOUT_FLOOR_SECONDS = 30
ARCHIVE_IDLE_RATE_BYTES = 8 * 1024
ARCHIVE_IDLE_TIMEOUT_BUFFER_SECONDS = 60
ARCHIVE_IDLE_TIMEOUT_FLOOR_SECONDS = 60
ARCHIVE_UNKNOWN_SIZE_TIMEOUT_SECONDS = 90
ARCHIVE_UNKNOWN_SIZE_IDLE_SECONDS = 120

LUA_EXTENSION = ".lua"
SET_MANIFEST_MARKER = "setManifest"
LUA_COMMENT_PREFIX = "--"
DEPOTKEY_FLAG = 1

SETTINGS_FILE = "config.ini"
DEFAULT_DOWNLOAD_PATH = "."

DIVISION = "=" * 40
