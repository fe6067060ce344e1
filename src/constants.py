"""All magic values live here; no inline literals anywhere else."""
import re

# Azure Computer Vision
VISION_DESCRIBE_PATH = "vision/v2.0/describe"
VISION_OCR_PATH = "vision/v2.0/ocr"
VISION_KEY_HEADER = "Ocp-Apim-Subscription-Key"
DEFAULT_DESCRIBE_LANGUAGE = "en"
DEFAULT_OCR_LANGUAGE = "unk"
DEFAULT_MAX_CANDIDATES = 1

# LLM vision backends
CLAUDE_VISION_MODEL = "claude-opus-4-6"
OPENAI_VISION_MODEL = "gpt-4o"
LLM_MAX_TOKENS = 2048
LLM_DESCRIBE_PROMPT = (
    "Describe this image. Reply with JSON only, no prose: "
    '{"captions": [{"text": "<caption>", "confidence": <0..1>}], "tags": ["<tag>", ...]}. '
    "Give at most %d caption(s), in language '%s', best first."
)
LLM_OCR_PROMPT = (
    "Transcribe all text visible in this image. Reply with JSON only, no prose: "
    '{"language": "<ISO 639-1 code>", "regions": [{"lines": [{"words": ["<word>", ...]}]}]}. '
    'Use "regions": [] when there is no text.'
)

# HTTP content types / headers
CONTENT_TYPE_OCTET_STREAM = "application/octet-stream"

# Image sources, as reported to telemetry
IMAGE_SOURCE_FILE = "file"
IMAGE_SOURCE_INLINE = "inline"
IMAGE_SOURCE_URL = "url"

# A bare image URL in the message text; anything else is not an image link
IMAGE_URL_PATTERN = re.compile(
    r"https?://[^\s<>\"']+?\.(?:jpe?g|png|gif|bmp|tiff?|webp)"
    r"(?:\?[^\s<>\"']*)?(?=$|[\s<>\"',;!)]|\.(?!\w))",
    re.IGNORECASE,
)

# Conversation types
CONVERSATION_PERSONAL = "personal"
CONVERSATION_GROUP = "group"

# Invokes
INVOKE_FILE_CONSENT = "fileConsent/invoke"
INVOKE_UNKNOWN = "unknown"
CONSENT_ACCEPT = "accept"
CONSENT_DECLINE = "decline"
FILE_INFO_TYPE_TXT = "txt"

# Telegram
# callback_data is capped at 64 bytes by the Bot API
CALLBACK_CONSENT_PREFIX = "fc"
CALLBACK_ACCEPT = "a"
CALLBACK_DECLINE = "d"
CALLBACK_SEPARATOR = ":"
BUTTON_ACCEPT = "Send file"
BUTTON_DECLINE = "No thanks"
BUTTON_OPEN_FILE = "Open file"
RESULT_ID_BYTES = 12

# Storage
STORAGE_MEMORY = "memory"
STORAGE_NULL = "null"
STORAGE_FILE = "file"
DEFAULT_STORAGE_PATH = ".conversation_state.json"
STAGE_KEY = "ocr_result"

# Bot modes
BOT_MODE_OCR = "ocr"
BOT_MODE_CAPTION = "caption"

# Telemetry
TELEMETRY_LOGGER = "telemetry"
EVENT_SCENARIO_START = "ScenarioStart"
EVENT_SCENARIO_STOP = "ScenarioStop"
EVENT_USER_ACTIVITY = "UserActivity"
EVENT_BOT_ACTIVITY = "BotActivity"
SCENARIO_CAPTION = "caption"
SCENARIO_OCR = "ocr"
SCENARIO_OCR_SEND = "ocr_send"
SCENARIO_UNRECOGNIZED_INPUT = "unrecognizedInput"

# Log messages
MSG_BOT_STARTING = "Starting %s bot…"
MSG_CONNECTED = "Telegram bot connected"
MSG_BLOCKED_CHAT = "Blocked update from chat_id: %s"
MSG_VISION_BACKEND = "Vision backend: %s"

# User-facing messages
MSG_IMAGE_CAPTION_HELP = "Send me an image, or a link to one, and I'll tell you what I see."
MSG_IMAGE_CAPTION_HELP_PASTE = (
    "Paste an image, or a link to one, and mention me and I'll tell you what I see."
)
MSG_IMAGE_CAPTION_RESPONSE = "I think it's %s."
MSG_IMAGE_NO_CAPTION_RESPONSE = "I'm not sure what that is ¯\\_(ツ)_/¯"
MSG_OCR_HELP = "Send me an image, or a link to one, and I'll read the text in it."
MSG_OCR_HELP_PASTE = "Paste an image, or a link to one, and mention me and I'll read the text in it."
MSG_OCR_TEXT_FOUND = "I found text in %s."
MSG_OCR_NO_TEXT_FOUND = "I couldn't find any text in that image."
MSG_OCR_FILE_NAME = "recognized-text.txt"
MSG_OCR_FILE_DESCRIPTION = "Text recognized in your image"
MSG_OCR_FILE_CONSENT = "%s (%d bytes)\n%s. Do you want it as a file?"
MSG_OCR_UPLOAD_DECLINED = "OK, I won't send the file."
MSG_OCR_RESULT_EXPIRED = "That result has expired. Send the image again to get a new one."
MSG_OCR_UPLOAD_ERROR = "Sorry, I couldn't upload the file: %s"
MSG_OCR_FILE_READY = "Your file is ready: %s"
MSG_ANALYSIS_ERROR = "Sorry, I couldn't analyze that image: %s"
MSG_IMAGE_NOT_CONFIGURED = "Image analysis is not supported in this setup."
MSG_UNKNOWN_INVOKE = "Unknown invoke type: %s"
MSG_NO_UPLOAD_DESTINATION = "no upload destination"

# ISO 639-1 codes returned by the OCR service → display names
LANGUAGE_NAMES = {
    "af": "Afrikaans",
    "ar": "Arabic",
    "bg": "Bulgarian",
    "bn": "Bengali",
    "ca": "Catalan",
    "cs": "Czech",
    "cy": "Welsh",
    "da": "Danish",
    "de": "German",
    "el": "Greek",
    "en": "English",
    "es": "Spanish",
    "et": "Estonian",
    "fa": "Persian",
    "fi": "Finnish",
    "fr": "French",
    "ga": "Irish",
    "he": "Hebrew",
    "hi": "Hindi",
    "hr": "Croatian",
    "hu": "Hungarian",
    "id": "Indonesian",
    "is": "Icelandic",
    "it": "Italian",
    "ja": "Japanese",
    "ko": "Korean",
    "lt": "Lithuanian",
    "lv": "Latvian",
    "ms": "Malay",
    "nb": "Norwegian",
    "nl": "Dutch",
    "no": "Norwegian",
    "pl": "Polish",
    "pt": "Portuguese",
    "ro": "Romanian",
    "ru": "Russian",
    "sk": "Slovak",
    "sl": "Slovenian",
    "sr": "Serbian",
    "sr-Cyrl": "Serbian (Cyrillic)",
    "sr-Latn": "Serbian (Latin)",
    "sv": "Swedish",
    "sw": "Swahili",
    "ta": "Tamil",
    "th": "Thai",
    "tr": "Turkish",
    "uk": "Ukrainian",
    "ur": "Urdu",
    "vi": "Vietnamese",
    "zh": "Chinese",
    "zh-Hans": "Chinese (Simplified)",
    "zh-Hant": "Chinese (Traditional)",
}
