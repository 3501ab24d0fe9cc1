#!/usr/bin/env python3
"""
Shared constants for the subtitle pipeline

Single source of truth for quota limits, file names, release tags and
language mappings. DO NOT duplicate these lists in other modules - import
from here instead.
"""

# OMDb free tier: hard ceiling per UTC day, and the ceiling we actually stop at.
# The 10-call gap absorbs retries and a racing second invocation.
API_LIMIT = 500
API_BUDGET_LIMIT = 490

# Usage counts at which a warning is logged (90%, 95%, 98%)
API_WARNING_THRESHOLDS = {
    450: "Approaching API limit",
    475: "Near API limit",
    490: "Very close to API limit",
}

# Seconds added past UTC midnight before the quota is considered reset
API_RESET_BUFFER_SECONDS = 2

# Survey mode pacing
SURVEY_COOLDOWN_SECONDS = 3600
SURVEY_HIGH_USAGE_THRESHOLD = 400
SURVEY_MIDNIGHT_BUFFER_SECONDS = 300

# State files (relative to the configured state directory, $HOME by default)
API_STATE_FILENAME = '.sublingual_api_state'
IMDB_MAPPING_FILENAME = '.sublingual_imdb_map'
SURVEY_STATE_FILENAME = '.sublingual_survey_state'

# Video files that mark a directory as a movie directory
VIDEO_EXTENSIONS = ('.mkv', '.mp4', '.avi')

# Subtitle files produced by the download backends
SUBTITLE_EXTENSIONS = ('.srt', '.sub', '.ass', '.ssa', '.vtt', '.idx', '.txt')

# Fallback NFO name when the directory holds no video file
DEFAULT_NFO_NAME = 'movie.nfo'

# Oldest year accepted in directory names and NFO records
MIN_YEAR = 1920

# OMDb marks missing fields with this literal
OMDB_UNAVAILABLE = 'N/A'

# Encoding/release metadata stripped from directory names, not film metadata
RELEASE_TAGS = [
    'BluRay',
    'BRRip',
    'WEBRip',
    'WEB-DL',
    'HDRip',
    'DVDRip',
    'x264',
    'x265',
    'h264',
    'h265',
    'HEVC',
    'AAC',
    'AC3',
    'DTS',
    '5.1',
    '7.1',
    'YIFY',
    'YTS',
    'RARBG',
    'GeneMige',
]

# WxH video heights (or widths) mapped to a resolution tag
RESOLUTION_BY_DIMENSION = {
    '2160': '2160p',
    '2140': '2160p',
    '2076': '2160p',
    '2048': '2160p',
    '1080': '1080p',
    '1920': '1080p',
    '720': '720p',
    '1280': '720p',
    '480': '480p',
    '640': '480p',
}

# ISO 639-1 → OpenSubtitles legacy 3-letter language ids
OPENSUBTITLES_LANGUAGES = {
    # European languages
    'en': 'eng',
    'ro': 'rum',
    'fr': 'fre',
    'es': 'spa',
    'de': 'ger',
    'it': 'ita',
    'pt': 'por',
    'nl': 'dut',
    'pl': 'pol',
    'ru': 'rus',
    'el': 'gre',
    'tr': 'tur',
    'sv': 'swe',
    'no': 'nor',
    'da': 'dan',
    'fi': 'fin',
    'cs': 'cze',
    'hu': 'hun',
    'bg': 'bul',
    'hr': 'hrv',
    'sr': 'scc',
    'sk': 'slo',
    'sl': 'slv',
    'uk': 'ukr',
    # Asian languages
    'ar': 'ara',
    'zh': 'chi',
    'ja': 'jpn',
    'ko': 'kor',
    'hi': 'hin',
    'th': 'tha',
    'vi': 'vie',
    'id': 'ind',
    # Other common languages
    'he': 'heb',
    'fa': 'per',
    'bn': 'ben',
}
