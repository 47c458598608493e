"""Supported response languages and the user-facing error texts."""

from __future__ import annotations

from dataclasses import dataclass

from landmark_guide.exceptions import ErrorKind


@dataclass(frozen=True)
class Language:
    code: str
    name: str
    native: str
    speech_tag: str


LANGUAGES: dict[str, Language] = {
    lang.code: lang
    for lang in (
        Language("ar", "Arabic", "العربية", "ar-SA"),
        Language("en", "English", "English", "en-US"),
        Language("fr", "French", "Français", "fr-FR"),
        Language("tr", "Turkish", "Türkçe", "tr-TR"),
        Language("de", "German", "Deutsch", "de-DE"),
        Language("it", "Italian", "Italiano", "it-IT"),
    )
}

FALLBACK_LOCALE = "ar"


def resolve(locale: str | None, default: str = FALLBACK_LOCALE) -> Language:
    """Return the language for a code, falling back to the default one."""
    code = (locale or "").strip().lower()
    if code in LANGUAGES:
        return LANGUAGES[code]
    return LANGUAGES.get(default, LANGUAGES[FALLBACK_LOCALE])


# Keyed by message id; "unrecognized" is shown for uncertain answers without a message.
MESSAGES: dict[str, dict[str, str]] = {
    "ar": {
        "camera": "يرجى تفعيل صلاحية الكاميرا للاستمرار.",
        "unrecognized": "عذراً، لم أتمكن من التعرف على هذا المعلم بدقة.",
        "connection": "حدث خطأ أثناء الاتصال بسجلات التاريخ.",
        "cancelled": "تم إلغاء الطلب.",
        "invalid_image": "تعذر قراءة الصورة المرفوعة.",
    },
    "en": {
        "camera": "Please enable camera permissions to continue.",
        "unrecognized": "Sorry, I couldn't recognize this landmark accurately.",
        "connection": "Error connecting to historical records.",
        "cancelled": "The request was cancelled.",
        "invalid_image": "The uploaded file is not a readable image.",
    },
    "fr": {
        "camera": "Veuillez activer les permissions de la caméra.",
        "unrecognized": "Désolé, je n'ai pas pu reconnaître ce monument.",
        "connection": "Erreur de connexion aux archives historiques.",
        "cancelled": "La demande a été annulée.",
        "invalid_image": "Le fichier envoyé n'est pas une image lisible.",
    },
    "tr": {
        "camera": "Devam etmek için lütfen kamera izinlerini açın.",
        "unrecognized": "Üzgünüm, bu yeri tam olarak tanıyamadım.",
        "connection": "Tarih kayıtlarına bağlanırken hata oluştu.",
        "cancelled": "İstek iptal edildi.",
        "invalid_image": "Yüklenen dosya okunabilir bir görüntü değil.",
    },
    "de": {
        "camera": "Bitte Kamera-Berechtigungen aktivieren.",
        "unrecognized": "Entschuldigung, ich konnte dieses Denkmal nicht erkennen.",
        "connection": "Fehler beim Verbinden mit historischen Aufzeichnungen.",
        "cancelled": "Die Anfrage wurde abgebrochen.",
        "invalid_image": "Die hochgeladene Datei ist kein lesbares Bild.",
    },
    "it": {
        "camera": "Abilita i permessi della fotocamera.",
        "unrecognized": "Spiacente, non ho riconosciuto questo monumento.",
        "connection": "Errore di connessione ai record storici.",
        "cancelled": "La richiesta è stata annullata.",
        "invalid_image": "Il file caricato non è un'immagine leggibile.",
    },
}

_KIND_TO_MESSAGE = {
    ErrorKind.DEVICE_UNAVAILABLE: "camera",
    ErrorKind.TRANSPORT: "connection",
    ErrorKind.MALFORMED: "connection",
    ErrorKind.TIMEOUT: "connection",
    ErrorKind.CANCELLED: "cancelled",
    ErrorKind.INVALID_IMAGE: "invalid_image",
}


def message(message_id: str, locale: str | None) -> str:
    table = MESSAGES.get(resolve(locale).code, MESSAGES["en"])
    return table.get(message_id) or MESSAGES["en"][message_id]


def error_message(kind: ErrorKind, locale: str | None) -> str:
    """User-visible text for an error kind; malformed answers read like transport errors."""
    return message(_KIND_TO_MESSAGE.get(kind, "connection"), locale)
