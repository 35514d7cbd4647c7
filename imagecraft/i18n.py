"""
Interface strings in Arabic and English.

A LanguageContext is built once per request and handed to whatever needs to
produce user-facing text; nothing reads the language from global state.
"""

from dataclasses import dataclass

LANGUAGES = ("ar", "en")
DEFAULT_LANGUAGE = "ar"

TRANSLATIONS = {
    "ar": {
        "site.title": "ARABISH IMAGE CRAFT",
        "site.subtitle": "اكتب وصفك بالعربية وسنترجمه. اختر صورة واحدة أو حتى 8 صور بأساليب مختلفة في آنٍ واحد.",
        "toast.empty": "من فضلك اكتب وصفًا للصورة.",
        "toast.error": "حدث خطأ أثناء التوليد. حاول مرة أخرى.",
        "toast.video.creating": "جارٍ إنشاء فيديو",
        "toast.video.success": "تم إنشاء الفيديو وتحميله.",
        "toast.video.error": "تعذر إنشاء الفيديو في هذا المتصفح.",
        "toast.share.success": "تم نسخ رابط الصورة",
        "toast.share.error": "تعذر مشاركة الصورة",
        "toast.download.warning": "تنبيه",
        "toast.download.fallback": "تعذر تجهيز الصورة، سيتم تحميل الأصل.",
        "toast.image.error": "خطأ",
        "toast.image.load.error": "تعذر تحميل الصورة الآن. أعد المحاولة بعد ثوانٍ.",
        "toast.styles.limit": "يمكنك اختيار حتى {max} أنماط فقط.",
        "toast.done": "تم",
        "history.title": "المحفوظات",
        "history.empty": "لا توجد صور محفوظة بعد",
        "pwa.chrome": 'في متصفح Chrome: اضغط على القائمة (⋮) ← "تثبيت التطبيق"',
        "pwa.safari": 'في متصفح Safari: اضغط على زر المشاركة ← "إضافة إلى الشاشة الرئيسية"',
        "pwa.firefox": 'في متصفح Firefox: اضغط على القائمة ← "تثبيت"',
        "pwa.other": "يمكنك تثبيت التطبيق من قائمة المتصفح",
    },
    "en": {
        "site.title": "ARABISH IMAGE CRAFT",
        "site.subtitle": "Write your description in Arabic and we'll translate it. Choose one image or up to 8 images with different styles at once.",
        "toast.empty": "Please write an image description.",
        "toast.error": "An error occurred during generation. Try again.",
        "toast.video.creating": "Creating video",
        "toast.video.success": "Video created and downloaded.",
        "toast.video.error": "Could not create video in this browser.",
        "toast.share.success": "Image link copied",
        "toast.share.error": "Could not share image",
        "toast.download.warning": "Warning",
        "toast.download.fallback": "Could not process image, downloading original.",
        "toast.image.error": "Error",
        "toast.image.load.error": "Could not load image now. Try again in few seconds.",
        "toast.styles.limit": "You can select up to {max} styles only.",
        "toast.done": "Done",
        "history.title": "History",
        "history.empty": "No saved images yet",
        "pwa.chrome": 'In Chrome: open the menu (⋮) → "Install app"',
        "pwa.safari": 'In Safari: tap Share → "Add to Home Screen"',
        "pwa.firefox": 'In Firefox: open the menu → "Install"',
        "pwa.other": "You can install the app from your browser menu",
    },
}


@dataclass(frozen=True)
class LanguageContext:
    language: str = DEFAULT_LANGUAGE

    @property
    def direction(self) -> str:
        return "rtl" if self.language == "ar" else "ltr"

    def t(self, key: str, **params) -> str:
        """Look a key up in the active language, then Arabic, then return the key."""
        text = TRANSLATIONS.get(self.language, {}).get(key) or TRANSLATIONS["ar"].get(key) or key
        return text.format(**params) if params else text


def resolve_language(explicit: str | None = None, accept_language: str | None = None) -> LanguageContext:
    """Pick the request language from ``?lang=`` first, then Accept-Language."""
    if explicit and explicit.lower() in LANGUAGES:
        return LanguageContext(explicit.lower())
    if accept_language:
        for part in accept_language.split(","):
            code = part.split(";")[0].strip().lower()[:2]
            if code in LANGUAGES:
                return LanguageContext(code)
    return LanguageContext(DEFAULT_LANGUAGE)
