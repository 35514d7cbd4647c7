"""
Style presets
=============

Each style contributes a fixed English suffix to the translated prompt.

Usage:
    from imagecraft.styles import StyleSelection, get_style

    selection = StyleSelection(mode="multiple")
    selection.toggle("anime")
    styles = selection.resolve()
"""

from dataclasses import dataclass, field
from types import MappingProxyType

from imagecraft.i18n import LanguageContext

SINGLE = "single"
MULTIPLE = "multiple"
SELECTION_MODES = (SINGLE, MULTIPLE)

DEFAULT_MAX_MULTI = 8


@dataclass(frozen=True)
class Style:
    id: str
    ar_name: str
    en_name: str
    en_suffix: str
    description: str

    def label(self, language: str) -> str:
        return self.ar_name if language == "ar" else self.en_name


# ---------------------------------------------------------------------------
# Style presets
# ---------------------------------------------------------------------------

STYLES: tuple[Style, ...] = (
    Style("realistic", "واقعي", "Realistic",
          "realistic, photorealistic, high quality",
          "واقعية عالية تشبه التصوير الحقيقي."),
    Style("anime", "أنمي", "Anime",
          "anime style, manga, japanese animation",
          "أسلوب رسوم ياباني بملامح حادة وتلوين مسطح."),
    Style("3d", "ثلاثي الأبعاد", "3D",
          "3D render, octane render, highly detailed",
          "مظهر مجسم بإضاءة وظلال واقعية كالريندر."),
    Style("ultra-realistic", "واقعي فائق", "Ultra Realistic",
          "hyperrealistic, ultra-detailed, professional photography, 8k",
          "تفاصيل بالغة الدقة وإضاءة احترافية."),
    Style("abstract", "فن التجريد", "Abstract Art",
          "abstract art, geometric shapes, bold colors",
          "أشكال وألوان بلا تمثيل مباشر، تعبير بصري حر."),
    Style("comic", "أسلوب الكوميك", "Comic Style",
          "comic style, inked lines, halftone shading",
          "خطوط حبرية ونقاط هالف تون كصفحات القصص المصورة."),
    Style("pop-art", "البوب آرت", "Pop Art",
          "pop art, bold outlines, ben-day dots, vibrant colors",
          "ألوان صاخبة وخطوط واضحة بروح آندي وارهول."),
    Style("pencil", "رسم بالقلم الرصاص", "Pencil Sketch",
          "pencil sketch, graphite drawing, cross-hatching",
          "محاكاة الرسم بالرصاص مع تظليل وتحبير خفيف."),
    Style("oil", "تأثير الزيت على اللوحة", "Oil Painting",
          "oil painting, brush strokes, canvas texture",
          "ضربات فرشاة ولمس قماش كلوحة زيتية."),
    Style("bw-photo", "فوتوغرافيا أبيض وأسود", "Black & White",
          "black and white photography, monochrome, high contrast, film grain",
          "أبيض وأسود بتباين ولمسة فوتوغرافية كلاسيكية."),
    Style("neon", "تأثير الألوان النيون", "Neon Colors",
          "neon colors, glowing lights, cyberpunk",
          "أضواء متوهجة وألوان نيون لجو سايبربنك."),
    Style("cinematic", "السينمائي", "Cinematic Look",
          "cinematic look, dramatic lighting, color grading, anamorphic bokeh",
          "دراما لونية وعمق مجال قريب من الأفلام."),
    Style("cartoon", "الرسوم الكرتونية", "Cartoon Style",
          "cartoon style, simple shapes, flat shading",
          "أشكال بسيطة وتلوين مسطح كأفلام كرتون."),
    Style("expressive-realism", "الواقعي التعبيري", "Expressive Realism",
          "expressive realism, dynamic brushwork, emotional lighting",
          "مزج واقعية مع تعبيرية وحركة وإحساس."),
    Style("surrealism", "الفن السريالي", "Surrealism",
          "surrealism, dreamlike, impossible scenes, Salvador Dali style",
          "مشاهد خيالية تحاكي أحلامًا وأفكارًا غير ممكنة."),
)

STYLES_BY_ID = MappingProxyType({s.id: s for s in STYLES})
DEFAULT_STYLE = STYLES[0]


def get_style(style_id: str) -> Style | None:
    return STYLES_BY_ID.get(style_id)


@dataclass
class StyleSelection:
    """The styles a user has picked, in either single or multi-select mode."""

    mode: str = SINGLE
    selected_ids: list[str] = field(default_factory=lambda: [DEFAULT_STYLE.id])
    max_multi: int = DEFAULT_MAX_MULTI

    def __post_init__(self):
        if self.mode not in SELECTION_MODES:
            raise ValueError(f"Invalid selection mode '{self.mode}'. Must be one of: {SELECTION_MODES}")
        # Unknown ids and duplicates are dropped, order is kept
        seen = []
        for style_id in self.selected_ids:
            if style_id in STYLES_BY_ID and style_id not in seen:
                seen.append(style_id)
        self.selected_ids = seen[: self.max_multi]

    def toggle(self, style_id: str, lang: LanguageContext | None = None) -> str | None:
        """
        Toggle one style.

        Returns None when the selection changed, or a user-facing warning when
        the addition was rejected because the multi-select cap is reached.
        """
        if style_id not in STYLES_BY_ID:
            raise ValueError(f"Unknown style '{style_id}'")

        if self.mode == SINGLE:
            self.selected_ids = [style_id]
            return None

        if style_id in self.selected_ids:
            self.selected_ids = [s for s in self.selected_ids if s != style_id]
            return None

        if len(self.selected_ids) >= self.max_multi:
            return (lang or LanguageContext()).t("toast.styles.limit", max=self.max_multi)

        self.selected_ids = self.selected_ids + [style_id]
        return None

    def resolve(self) -> list[Style]:
        """Styles to generate for: the first pick in single mode, up to 8 otherwise."""
        if self.mode == MULTIPLE:
            ids = self.selected_ids or [DEFAULT_STYLE.id]
        else:
            ids = self.selected_ids[:1] or [DEFAULT_STYLE.id]
        return [get_style(i) for i in ids[:DEFAULT_MAX_MULTI]]
