"""Localized user-facing messages (English and Turkish).

Usage: from corio_client.translations import t; t("errors.network", "tr")
"""

from typing import Optional

from corio_client import config
from corio_client.errors import CorioClientError, UploadFailed

MESSAGES = {
    "en": {
        "errors.generic": "Something went wrong. Please try again.",
        "errors.validation": "Please check the entered information: {detail}",
        "errors.network": "Could not reach the server. Check your connection and try again.",
        "errors.timeout": "The server took too long to respond. Please try again.",
        "errors.server": "The server rejected the request: {detail}",
        "errors.patient_creation_failed": "Patient information could not be saved.",
        "errors.upload_failed": "Image {number} could not be uploaded.",
        "errors.no_images_uploaded": "No images were uploaded. Please add at least one photo.",
        "errors.analysis_timeout": "The analysis is taking longer than expected. Please try again.",
        "errors.analysis_failed": "The analysis could not be completed.",
        "errors.invalid_snapshot_order": "The earlier record must be selected as the previous record.",
        "errors.snapshot_not_in_tracking": "The selected record does not belong to this lesion.",
        "risk.low": "Low Risk",
        "risk.moderate": "Moderate Risk",
        "risk.elevated": "Elevated Risk",
        "risk.high": "Urgent",
        "risk.unknown": "Unknown Risk",
        "progression.stable": "Stable",
        "progression.improved": "Improved",
        "progression.worsened": "Worsened",
        "progression.significant_change": "Significant Change",
        "progression.unknown": "Unknown",
        "tracking.urgent_prompt": "This comparison shows concerning changes. Mark this lesion as urgent?",
    },
    "tr": {
        "errors.generic": "Bir şeyler ters gitti. Lütfen tekrar deneyin.",
        "errors.validation": "Lütfen girilen bilgileri kontrol edin: {detail}",
        "errors.network": "Sunucuya ulaşılamadı. Bağlantınızı kontrol edip tekrar deneyin.",
        "errors.timeout": "Sunucu çok geç yanıt verdi. Lütfen tekrar deneyin.",
        "errors.server": "Sunucu isteği reddetti: {detail}",
        "errors.patient_creation_failed": "Hasta bilgileri kaydedilemedi.",
        "errors.upload_failed": "{number}. görsel yüklenemedi.",
        "errors.no_images_uploaded": "Hiç görsel yüklenmedi. Lütfen en az bir fotoğraf ekleyin.",
        "errors.analysis_timeout": "Analiz beklenenden uzun sürüyor. Lütfen tekrar deneyin.",
        "errors.analysis_failed": "Analiz tamamlanamadı.",
        "errors.invalid_snapshot_order": "Önceki kayıt olarak daha eski kayıt seçilmelidir.",
        "errors.snapshot_not_in_tracking": "Seçilen kayıt bu lezyona ait değil.",
        "risk.low": "Düşük Risk",
        "risk.moderate": "Orta Risk",
        "risk.elevated": "Yüksek Risk",
        "risk.high": "Acil",
        "risk.unknown": "Bilinmeyen Risk",
        "progression.stable": "Stabil",
        "progression.improved": "İyileşme",
        "progression.worsened": "Kötüleşme",
        "progression.significant_change": "Önemli Değişim",
        "progression.unknown": "Bilinmiyor",
        "tracking.urgent_prompt": "Bu karşılaştırma endişe verici değişiklikler gösteriyor. Lezyon acil olarak işaretlensin mi?",
    },
}


def resolve_language(language: Optional[str]) -> str:
    """Return a supported language code, falling back to the configured default."""
    if language in config.SUPPORTED_LANGUAGES:
        return language
    return config.DEFAULT_LANGUAGE


def t(key: str, language: Optional[str] = None, **kwargs) -> str:
    """Translate a key with optional format arguments.

    Falls back: requested language -> English -> raw key.
    """
    lang = resolve_language(language)
    text = MESSAGES[lang].get(key) or MESSAGES["en"].get(key) or key
    if kwargs:
        try:
            return text.format(**kwargs)
        except (KeyError, IndexError, ValueError):
            return text
    return text


def error_message(error: CorioClientError, language: Optional[str] = None) -> str:
    """Human-readable, localized message for a client error."""
    if isinstance(error, UploadFailed):
        return t(error.message_key, language, number=error.image_index + 1)
    return t(error.message_key, language, detail=str(error))


def _category_label(prefix: str, value, language: Optional[str]) -> str:
    """Known categories are translated; anything else the server sent is shown as-is."""
    value = getattr(value, "value", value)
    if value is None or value == "":
        return t(f"{prefix}.unknown", language)
    key = f"{prefix}.{value}"
    return t(key, language) if key in MESSAGES["en"] else str(value)


def risk_label(level, language: Optional[str] = None) -> str:
    return _category_label("risk", level, language)


def progression_label(progression, language: Optional[str] = None) -> str:
    return _category_label("progression", progression, language)
