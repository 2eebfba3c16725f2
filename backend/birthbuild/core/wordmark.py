"""Deterministic SVG wordmark for the site header"""

from birthbuild.utils.sanitization import escape_html


def generate_wordmark(business_name: str, font_family: str, primary_colour: str, style: str) -> str:
    """
    Render the business name as an accessible inline SVG.

    Args:
        business_name: Text of the wordmark (escaped before embedding)
        font_family: Heading font used for the text
        primary_colour: Fill colour (hex)
        style: modern | classic | minimal

    Returns:
        Single-line SVG markup
    """
    escaped = escape_html(business_name).replace('"', "&quot;")
    width = max(200, len(business_name) * 16 + 40)
    height = 60 if style == "classic" else 48
    font_weight = "300" if style == "minimal" else "600"
    font_size = "24" if style == "minimal" else "28"
    letter_spacing = {"modern": "0.5", "minimal": "2"}.get(style, "0")
    text_y = "30" if style == "classic" else "32"
    font = escape_html(font_family).replace('"', "&quot;")

    divider = ""
    if style == "classic":
        divider = (
            f'<line x1="{_num(width * 0.3)}" y1="46" x2="{_num(width * 0.7)}" y2="46" '
            f'stroke="{primary_colour}" stroke-width="1" opacity="0.6" />'
        )

    return (
        f'<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 {width} {height}" role="img" '
        f'aria-labelledby="wordmark-title" width="{width}" height="{height}">'
        f'<title id="wordmark-title">{escaped}</title>'
        f'<text x="50%" y="{text_y}" text-anchor="middle" font-family="\'{font}\', sans-serif" '
        f'font-size="{font_size}" font-weight="{font_weight}" letter-spacing="{letter_spacing}" '
        f'fill="{primary_colour}">{escaped}</text>{divider}</svg>'
    )


def _num(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else f"{value:g}"
