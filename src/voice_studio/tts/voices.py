"""Prebuilt voice and target-language catalogue."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional


@dataclass(frozen=True)
class VoiceInfo:
    name: str
    gender: str
    character: str


@dataclass(frozen=True)
class LanguageInfo:
    code: str
    name: str


PREBUILT_VOICES: List[VoiceInfo] = [
    VoiceInfo("Puck", "male", "event host, energetic"),
    VoiceInfo("Charon", "male", "news anchor, authoritative"),
    VoiceInfo("Fenrir", "male", "late-night storyteller, warm"),
    VoiceInfo("Aoede", "female", "presenter, confident"),
    VoiceInfo("Kore", "female", "customer care, calm"),
    VoiceInfo("Zephyr", "female", "children's stories, gentle"),
    VoiceInfo("Leda", "female", "premium advertising, refined"),
    VoiceInfo("Orus", "male", "speaker/sales, confident"),
    VoiceInfo("Achernar", "female", "counselling, soft"),
    VoiceInfo("Achird", "male", "tour guide, friendly"),
    VoiceInfo("Algenib", "male", "action/drama, gravelly"),
    VoiceInfo("Algieba", "male", "tech review, smooth"),
    VoiceInfo("Alnilam", "male", "fitness coach, firm"),
    VoiceInfo("Autonoe", "female", "food review, bright"),
    VoiceInfo("Callirrhoe", "female", "lifestyle vlog, relaxed"),
    VoiceInfo("Despina", "female", "podcast host, fluent"),
    VoiceInfo("Enceladus", "male", "horror/ASMR, whispery"),
    VoiceInfo("Erinome", "female", "call centre, clear"),
    VoiceInfo("Gacrux", "female", "history documentary, mature"),
    VoiceInfo("Iapetus", "male", "technical tutorial, articulate"),
    VoiceInfo("Laomedeia", "female", "cheerleader, lively"),
    VoiceInfo("Pulcherrima", "female", "executive, decisive"),
    VoiceInfo("Rasalgethi", "male", "science professor, knowledgeable"),
    VoiceInfo("Sadachbia", "male", "game commentator, vivid"),
    VoiceInfo("Sadaltager", "male", "finance expert, informed"),
    VoiceInfo("Schedar", "male", "public announcements, even"),
    VoiceInfo("Sulafat", "female", "healing radio, warm"),
    VoiceInfo("Umbriel", "male", "confidant, easygoing"),
    VoiceInfo("Vindemiatrix", "female", "meditation/yoga, gentle"),
    VoiceInfo("Zubenelgenubi", "male", "street interview, casual"),
]

SUPPORTED_LANGUAGES: List[LanguageInfo] = [
    LanguageInfo("vi", "Vietnamese"),
    LanguageInfo("en", "English"),
    LanguageInfo("ja", "Japanese"),
    LanguageInfo("ko", "Korean"),
    LanguageInfo("zh", "Chinese"),
    LanguageInfo("fr", "French"),
    LanguageInfo("es", "Spanish"),
    LanguageInfo("de", "German"),
    LanguageInfo("ru", "Russian"),
]

# Sample sentence for voice previews
PREVIEW_TEXT = "Về nhà uống thử rượu gạo nấu kỹ để cảm nhận đủ vị"

VOICE_NAMES = frozenset(v.name for v in PREBUILT_VOICES)
_LANGUAGES: Dict[str, LanguageInfo] = {lang.code: lang for lang in SUPPORTED_LANGUAGES}


def language_name(code: str) -> str:
    """English name of a language code; unknown codes are returned as-is."""
    lang = _LANGUAGES.get(code)
    return lang.name if lang else code


def find_language(code: str) -> Optional[LanguageInfo]:
    return _LANGUAGES.get(code)
