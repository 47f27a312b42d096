SOURCE_EXTENSION = ".flac"
TARGET_EXTENSION = ".mp3"

DEFAULT_BITRATE = "320k"
ID3V2_VERSION = "3"
FFMPEG_BINARY = "ffmpeg"
DEFAULT_WORKERS = 1

LOG_FILE = "flac_to_mp3_conversion_log.txt"
TIMESTAMP_FORMAT = "%Y-%m-%d_%H:%M:%S"
