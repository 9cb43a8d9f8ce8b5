"""
Visual style catalog.

Each style maps to a fixed prompt prefix. The set is closed: styles are
chosen from this catalog, never defined at runtime.
"""
from enum import Enum
from typing import Dict, List


class ImageStyle(str, Enum):
    """Available visual styles for storyboard images."""
    REALISTIC = "realistic"
    CUTE = "cute"
    WEBTOON = "webtoon"
    FLAT_VECTOR = "flat_vector"
    CINEMATIC = "cinematic"
    ANIMATION_3D = "animation_3d"
    CYBERPUNK = "cyberpunk"
    RETRO_90S = "retro_90s"
    WATERCOLOR = "watercolor"
    SKETCH = "sketch"
    THICK_LINE_ANIME = "thick_line_anime"
    SEMI_REALISTIC_WEBTOON = "semi_realistic_webtoon"


STYLE_LABELS: Dict[ImageStyle, str] = {
    ImageStyle.REALISTIC: "Photorealistic",
    ImageStyle.CUTE: "Cute / Chibi (face focus)",
    ImageStyle.WEBTOON: "K-Webtoon",
    ImageStyle.FLAT_VECTOR: "Flat Vector",
    ImageStyle.CINEMATIC: "Cinema",
    ImageStyle.ANIMATION_3D: "3D Animation",
    ImageStyle.CYBERPUNK: "Neon Cyberpunk",
    ImageStyle.RETRO_90S: "90s Retro",
    ImageStyle.WATERCOLOR: "Watercolor",
    ImageStyle.SKETCH: "Pencil Sketch",
    ImageStyle.THICK_LINE_ANIME: "Thick Line Anime",
    ImageStyle.SEMI_REALISTIC_WEBTOON: "Semi-Realistic Webtoon",
}

STYLE_PROMPTS: Dict[ImageStyle, str] = {
    ImageStyle.REALISTIC: (
        "Photorealistic cinematic photography, high detail, 8k, professional lighting, "
        "natural textures, lifelike features."
    ),
    ImageStyle.CUTE: (
        "Chibi style art, adorable aesthetic, very large expressive eyes, big head, cute facial "
        "expressions, vibrant colors, soft lighting, 3D render feel."
    ),
    ImageStyle.WEBTOON: (
        "Modern Korean webtoon manhwa style, clean line art, digital cel shading, trendy "
        "character design, bright and sharp colors."
    ),
    ImageStyle.FLAT_VECTOR: (
        "Minimalist flat vector illustration, 2D graphic design, bold solid colors, clean "
        "geometric shapes, modern startup aesthetic."
    ),
    ImageStyle.CINEMATIC: (
        "Cinematic movie still, 35mm lens, dramatic lighting, moody atmosphere, depth of field, "
        "high-end film grain, epic composition."
    ),
    ImageStyle.ANIMATION_3D: (
        "3D animation style, Pixar and Disney inspired, high quality 3D render, subsurface "
        "scattering, soft professional studio lighting, expressive character faces."
    ),
    ImageStyle.CYBERPUNK: (
        "Cyberpunk aesthetic, neon lights, futuristic city background, vibrant purple and blue "
        "tones, high tech details, dark moody atmosphere."
    ),
    ImageStyle.RETRO_90S: (
        "90s retro anime style, VHS aesthetic, slight film grain, nostalgic colors, classic "
        "hand-drawn look, lo-fi vibe."
    ),
    ImageStyle.WATERCOLOR: (
        "Ethereal watercolor painting, soft pigment bleeding, artistic brush strokes, delicate "
        "textures, dreamlike atmosphere, pastel color palette."
    ),
    ImageStyle.SKETCH: (
        "Professional pencil sketch, charcoal textures, detailed line work, artistic shading, "
        "hand-drawn on paper texture, minimalist but expressive."
    ),
    ImageStyle.THICK_LINE_ANIME: (
        "Modern anime illustration with extremely thick bold black outlines, prominent line art "
        "with at least 1mm visual thickness, high contrast cel shading, flat vibrant colors, "
        "sharp edges, pop art influence."
    ),
    ImageStyle.SEMI_REALISTIC_WEBTOON: (
        "High-end semi-realistic Korean webtoon style, detailed facial features with natural "
        "proportions, soft realistic lighting, clean refined line art, professional digital "
        "painting with subtle gradients, cinematic atmosphere, blend of 3D-like depth and 2D "
        "aesthetic."
    ),
}

GLOBAL_CONSTRAINTS = (
    "Strictly use modern Korean faces and modern casual clothing. "
    "DO NOT use Hanbok or traditional Korean clothes unless specifically mentioned as a wedding "
    "or funeral. DO NOT include any Korean text or characters in the image unless specifically "
    "required by the script. Aspect ratio is 16:9."
)

# Full quality is reserved for the photorealistic style
PROFILE_SPEED_HINT = (
    " [SYSTEM_OPTIMIZATION: Generate in low-resolution 0.25K quality, simplified draft "
    "rendering for maximum speed]"
)
SCENE_SPEED_HINT = (
    " [SPEED_PRIORITY: Generate at 0.25K low resolution, simplified textures, fastest "
    "processing mode]"
)


def parse_style(value: str) -> ImageStyle:
    """
    Resolve a style from its value or enum name.

    Raises:
        ValueError: if the style is not in the catalog
    """
    try:
        return ImageStyle(value)
    except ValueError:
        pass
    try:
        return ImageStyle[value.upper()]
    except KeyError:
        raise ValueError(f"Unknown style: {value}") from None


def uses_full_quality(style: ImageStyle) -> bool:
    return style == ImageStyle.REALISTIC


def list_styles() -> List[Dict[str, str]]:
    """Catalog entries for display."""
    return [
        {"value": style.value, "label": STYLE_LABELS[style], "prompt": STYLE_PROMPTS[style]}
        for style in ImageStyle
    ]
