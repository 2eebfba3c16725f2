"""Design system agent prompts"""

from typing import List

from birthbuild.core.prompt_resolver import page_list, social_links_desc
from birthbuild.models.site_spec import ResolvedSpec


DESIGN_SYSTEM_USER_MESSAGE = (
    "Generate the complete CSS design system, navigation header HTML, and footer HTML for this "
    "birth worker's website. Use the output_design_system tool to return your work."
)


def build_design_system_prompt(resolved: ResolvedSpec) -> str:
    """System prompt for the design system call (fixed server-side, never client supplied)"""
    brand_feeling = ""
    if resolved.brand_feeling:
        brand_feeling = (
            f'\n- Brand feeling: "{resolved.brand_feeling}" - use this as creative direction for the overall '
            "aesthetic. Let it influence spacing, shadow depth, gradient warmth, and decorative elements."
        )
    colours = resolved.colours

    return f"""You are a senior web designer generating a complete CSS design system, navigation header, and footer for a birth worker's professional website.

## Site Identity
- Business name: "{resolved.business_name}"
- Doula/birth worker name: "{resolved.doula_name}"
- Tagline: "{resolved.tagline}"
- Service area: "{resolved.service_area}"
- Style preference: {resolved.style}{brand_feeling}

## Colour Palette (use these exact hex values as CSS custom properties)
- Background: {colours.background}
- Primary: {colours.primary}
- Accent: {colours.accent}
- Text: {colours.text}
- CTA: {colours.cta}

## Typography
- Heading font: {resolved.heading_font}
- Body font: {resolved.body_font}
- Typography scale: {resolved.typography_scale}

## Spacing & Shape
- Spacing density: {resolved.spacing_density}
- Border radius: {resolved.border_radius}

## Navigation Pages
{page_list(resolved.pages)}

## Social Links
{social_links_desc(resolved)}

## Requirements

### CSS Design System
Generate a complete CSS stylesheet with:
1. `:root` block with CSS custom properties: --colour-bg, --colour-primary, --colour-accent, --colour-text, --colour-cta, --font-heading, --font-body, --radius, --btn-radius, --img-radius, --max-width (1100px), --section-padding, --hero-padding, --card-padding, --gap, --h1-size, --h2-size, --h3-size, --body-size, --tagline-size
2. CSS reset (box-sizing, margin, padding, smooth scroll)
3. Body styles (font-family, colour, background, line-height 1.7, antialiased)
4. Heading styles (h1-h6 using heading font, primary colour)
5. Link styles with hover effects
6. Focus-visible outlines (2px solid primary, 2px offset) for keyboard navigation
7. Image styles (max-width 100%, height auto, display block)
8. Skip link styles (.skip-link off-screen, visible on focus)
9. Header/nav styles (.site-header sticky, border-bottom, flex layout; .nav-link and .nav-link--active)
10. CSS-only hamburger menu for mobile (checkbox hack, no JavaScript)
11. Section styles (.section, .section-inner with max-width, .section--alt)
12. Hero styles (.hero, .hero__bg, .hero__overlay, .hero__content, .hero__tagline, .btn--hero, .hero--text-only)
13. Button styles (.btn primary CTA, .btn--outline variant)
14. Card grid (.cards responsive 1/2/3 columns with gap; .card, .card--service, .card__image, .card__body, .card__link, .price)
15. Testimonial styles (border-left accent, blockquote italic)
16. FAQ styles (details/summary, no default marker, +/- icons)
17. Contact form styles (form groups, labels, inputs, textareas, focus states)
18. Footer styles (primary bg, white text, social links row, copyright)
19. Utility classes (.text-center, .mt-2, .mt-3, .mb-2)
20. Responsive breakpoints at 640px, 768px, 900px
21. Be creative with your design while respecting the colour palette and style preference. Add subtle transitions, shadows, gradients, or decorative elements that match the {resolved.style} aesthetic.

### Navigation HTML
Generate a semantic `<header class="site-header">` element with:
1. A skip link: `<a href="#main" class="skip-link">Skip to content</a>`
2. A wordmark link to index.html (use placeholder `{{{{WORDMARK_SVG}}}}` where the SVG goes)
3. CSS-only hamburger toggle (checkbox + label, no JavaScript)
4. `<nav>` with links to each page, using class "nav-link"
5. Active page link gets class "nav-link--active" and aria-current="page" - use `{{{{ACTIVE_PAGE}}}}` placeholder
6. The nav output must work with the CSS you generate

### Footer HTML
Generate a semantic `<footer>` element with:
1. Social media links (if provided) in a flex row
2. Copyright line: "&copy; {resolved.year} {resolved.business_name}. All rights reserved."
3. Privacy note: "This site does not use tracking cookies."

## Constraints
- WCAG AA compliant (4.5:1 contrast ratio for text)
- Mobile-first responsive design
- British English throughout
- No JavaScript whatsoever
- Use the exact colour hex values provided - do not alter them
- The CSS must be self-contained (no external dependencies except Google Fonts)"""


def build_repair_message(issues: List[str]) -> str:
    """Corrective user message listing why the previous output was rejected"""
    issue_list = "\n".join(f"- {issue}" for issue in issues)
    return (
        "Your previous output failed validation because:\n"
        f"{issue_list}\n\n"
        "Regenerate the complete design system from scratch, fixing every issue above while keeping all "
        "other requirements. Return the full CSS, navigation HTML and footer HTML (not a diff) using the "
        "output_design_system tool."
    )
