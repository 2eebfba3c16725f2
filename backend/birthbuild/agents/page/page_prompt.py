"""Page agent prompts"""

from typing import List

from birthbuild.core.config import settings
from birthbuild.core.prompt_resolver import (
    section_list,
    services_desc,
    testimonials_desc,
    photos_desc,
)
from birthbuild.models.checkpoint import DesignSystem
from birthbuild.models.site_spec import SiteSpec, ResolvedSpec


CSP_META = (
    "<meta http-equiv=\"Content-Security-Policy\" content=\"default-src 'none'; "
    "style-src 'unsafe-inline' https://fonts.googleapis.com; font-src https://fonts.gstatic.com; "
    "img-src 'self' https://*.supabase.co data:; form-action 'self'; base-uri 'none'; "
    "frame-ancestors 'none'\">"
)


def _site_url(spec: SiteSpec) -> str:
    return f"https://{spec.subdomain_slug or 'example'}.{settings.site_domain}"


def _home_block(spec: SiteSpec) -> str:
    business_name = spec.business_name or "My Site"
    service_area = spec.service_area or ""
    keyword = spec.primary_keyword or "Doula"
    h1 = f"{business_name} — {keyword} in {service_area}" if service_area else business_name
    optional = [
        f'    "email": "{spec.email}",' if spec.email else "",
        f'    "telephone": "{spec.phone}",' if spec.phone else "",
        f'    "areaServed": "{service_area}",' if service_area else "",
        f'    "address": {{"@type": "PostalAddress", "addressLocality": "{spec.primary_location}"}},'
        if spec.primary_location else "",
        f'    "hasCredential": [{{"@type":"EducationalOccupationalCredential","credentialCategory":"Professional Training",'
        f'"recognizedBy":{{"@type":"Organization","name":"{spec.training_provider}"}}}}],'
        if spec.training_provider else "",
        f'    "founder": {{"@type": "Person", "name": "{spec.doula_name}"}},' if spec.doula_name else "",
    ]
    optional_lines = "\n".join(line for line in optional if line)
    return f"""## Home Page Requirements
- Hero section: MUST use full-width background image with text overlay. Use the hero photo as an <img> with object-fit:cover positioned absolutely. Add gradient overlay div for readability. h1 + tagline + CTA in white on top. Use .hero, .hero__bg, .hero__overlay, .hero__content, .hero__tagline, .btn--hero classes. If no hero photo is available, use a text-only hero with .hero--text-only class and brand colours.
- **Entity-rich h1**: Use "{h1}" as the h1 text.
- **Answer paragraph**: After the tagline, add a <p class="hero__answer"> with: "{spec.doula_name or business_name} provides [service names] in {service_area}."
- Services overview showing the first 3 services as cards. Each card MUST include a relevant image at the top if photos are available. Use .card--service wrapper with .card__image div (img inside) and .card__body div for text. Use .card__link for enquiry links. Fall back to plain .card if no images.
- Featured testimonial (first one, if available)
- About preview with a brief teaser linking to about.html
- Final CTA section encouraging visitors to get in touch
- **Full LocalBusiness + Person JSON-LD** in a <script type="application/ld+json"> block:
  ```json
  {{
    "@context": "https://schema.org",
    "@type": ["LocalBusiness", "HealthAndBeautyBusiness"],
    "name": "{business_name}",
    "description": "{spec.tagline or ''}",
    "url": "{_site_url(spec)}",
{optional_lines}
    "makesOffer": [for each service: {{"@type":"Offer","itemOffered":{{"@type":"Service","name":"...","description":"..."}},"price":"...","priceCurrency":"GBP"}}],
    "sameAs": [social link URLs if any]
  }}
  ```"""


def _about_block(spec: SiteSpec) -> str:
    name = spec.doula_name or spec.business_name or "My Site"
    place = spec.primary_location or spec.service_area
    extras: List[str] = []
    if spec.bio_previous_career:
        extras.append(f"- Reference their previous career: {spec.bio_previous_career}")
    if spec.bio_origin_story:
        extras.append(f"- Weave in their origin story: {spec.bio_origin_story}")
    if spec.additional_training:
        extras.append(f"- Mention additional qualifications: {', '.join(spec.additional_training)}")
    if spec.client_perception:
        extras.append(f"- Include what clients say about them: {spec.client_perception}")
    if spec.signature_story:
        extras.append(f"- If space allows, reference this personal story: {spec.signature_story}")
    if spec.training_year:
        extras.append(f"- Training year: {spec.training_year}")
    qualifications = "- Qualifications section"
    if spec.doula_uk:
        qualifications += " (mention Doula UK membership)"
    if spec.training_provider:
        qualifications += f" (trained with: {spec.training_provider})"
    if extras:
        qualifications += "\n" + "\n".join(extras)
    return f"""## About Page Requirements
- **Entity-rich h1**: "About {name}{f' | {place}' if place else ''}"
- Bio section with the birth worker's biography. Start with an answer-first opening sentence.
- Philosophy section with their approach statement
{qualifications}
- CTA section encouraging visitors to get in touch
- If a headshot photo is available, display it prominently
- **Person + Credential JSON-LD** in a <script type="application/ld+json"> block with @type Person, name, and hasCredential array listing training provider, Doula UK (if applicable), and additional training."""


def _services_block(spec: SiteSpec) -> str:
    business_name = spec.business_name or "My Site"
    area = f" in {spec.service_area}" if spec.service_area else ""
    return f"""## Services Page Requirements
- **Entity-rich h1**: "Services | {business_name}{area}"
- The first content section must use: <section class="section"><div class="section-inner">...</div></section>
- Service cards section must include:
  - a grid wrapper using .cards (preferred), .grid, or .services-grid
  - one card per service using .card (or .card card--service when an image is used)
  - title, description, and <span class="price"> for each service
  - at least one CTA using .btn or .btn--outline
- CTA section encouraging visitors to book/enquire and using design-system button classes
- Do NOT invent alternative component class names. Use existing design-system classes only.
- **Service schema JSON-LD** in a <script type="application/ld+json"> block with @graph containing an array of Service objects, each with name, description, provider (LocalBusiness with name "{business_name}"), and areaServed."""


def _contact_block(spec: SiteSpec) -> str:
    business_name = spec.business_name or "My Site"
    area = f" | {spec.service_area}" if spec.service_area else ""
    info = []
    if spec.email:
        info.append(f"  - Email: {spec.email}")
    if spec.phone:
        info.append(f"  - Phone: {spec.phone}")
    if spec.booking_url:
        info.append(f"  - Booking link: {spec.booking_url}")
    info.append(f"  - Service area: {spec.service_area or ''}")
    info_lines = "\n".join(info)
    return f"""## Contact Page Requirements
- **Entity-rich h1**: "Contact {business_name}{area}"
- Contact form using Netlify Forms (add data-netlify="true" and name="contact" attributes to the <form>)
  - Fields: Name (required), Email (required), Phone (optional), Message (required, textarea)
  - Submit button
- Contact info section with:
{info_lines}"""


def _testimonials_block(spec: SiteSpec) -> str:
    return f"""## Testimonials Page Requirements
- **Entity-rich h1**: "Client Reviews | {spec.business_name or 'My Site'}"
- All testimonials displayed as styled blockquotes with attribution
- CTA section encouraging visitors to get in touch
- **Review + AggregateRating JSON-LD** in a <script type="application/ld+json"> block with @type LocalBusiness, aggregateRating (ratingValue 5, reviewCount {len(spec.testimonials)}), and a review array with each testimonial as a Review object (reviewBody, author Person, ratingValue 5)."""


def _faq_block(spec: SiteSpec) -> str:
    return f"""## FAQ Page Requirements
- **Entity-rich h1**: "FAQ | {spec.business_name or 'My Site'}"
- FAQ items using <details>/<summary> elements for accessible expand/collapse
- Generate 4-6 relevant FAQs about doula/birth worker services if none are specified in the content
- CTA section encouraging visitors to get in touch
- **FAQPage JSON-LD** in a <script type="application/ld+json"> block with @type FAQPage and mainEntity array of Question objects, each with name and acceptedAnswer (Answer with text)."""


PAGE_BLOCKS = {
    "home": _home_block,
    "about": _about_block,
    "services": _services_block,
    "contact": _contact_block,
    "testimonials": _testimonials_block,
    "faq": _faq_block,
}


def build_page_specific_block(page: str, spec: SiteSpec) -> str:
    builder = PAGE_BLOCKS.get(page)
    return builder(spec) if builder else ""


def build_page_prompt(page: str, spec: SiteSpec, resolved: ResolvedSpec) -> str:
    """System prompt for one page (fixed server-side, never client supplied)"""
    return f"""You are a senior web designer generating a single HTML page for a birth worker's professional website.

## Site Identity
- Business name: "{resolved.business_name}"
- Doula/birth worker name: "{resolved.doula_name}"
- Tagline: "{resolved.tagline}"
- Service area: "{resolved.service_area}"
- Primary keyword for SEO: "{spec.primary_keyword or ''}"

## Content
Bio: {spec.bio or "Not provided"}
Philosophy: {spec.philosophy or "Not provided"}

### Services
{services_desc(spec)}

### Testimonials
{testimonials_desc(spec)}

## Photos
{photos_desc(spec)}

## Design System CSS (already generated - inline this in <style>)
The CSS design system has already been generated. You MUST inline it exactly in the <style> tag of your page.

## Navigation HTML (already generated - use verbatim)
The navigation header has been generated. Insert it verbatim after <body>.

## Footer HTML (already generated - use verbatim)
The footer has been generated. Insert it verbatim before </body>.

{build_page_specific_block(page, spec)}

## Section Markers
Wrap each content section in HTML comment markers:
{section_list(page)}

These markers enable deterministic editing later. Every section of content within <main> must be wrapped.

## Output Format
Generate a complete `<!DOCTYPE html>` page with:
1. `<html lang="en-GB">`
2. `<head>` with:
   - charset utf-8, viewport meta
   - Content-Security-Policy meta tag: `{CSP_META}`
   - SEO title and description (unique to this page)
   - Open Graph and Twitter Card meta tags
   - Google Fonts `<link>` (preconnect + stylesheet) for {resolved.heading_font} and {resolved.body_font}
   - `<style>` block containing the complete design system CSS
3. `<body>` with:
   - The navigation HTML exactly as given
   - `<main id="main">` containing all page sections with markers
   - The footer HTML exactly as given
4. If photos are available, insert `<img>` tags with the provided URLs, alt text, and `loading="lazy"`

## Constraints
- Semantic HTML5 with proper landmark roles
- WCAG AA accessible (labels, alt text, focus styles, contrast)
- British English throughout (colour, organisation, labour, specialise, centre, programme)
- No medical claims or language that could be construed as medical advice
- No JavaScript (JSON-LD structured data blocks only)
- Mobile-first responsive (the CSS handles this)
- Creative, professional, and warm - make this site stand out"""


def build_page_user_message(page: str, design_system: DesignSystem) -> str:
    """User message embedding the design system, with nav/footer placeholders resolved for `page`"""
    return f"""Generate the {page} page. Here is the design system to use:

### CSS (inline in <style>):
```css
{design_system.css}
```

### Navigation HTML (insert after <body>):
```html
{design_system.render_nav(page)}
```

### Footer HTML (insert before </body>):
```html
{design_system.render_footer(page)}
```

Use the output_page tool to return the complete HTML page."""


def build_page_repair_message(page: str, design_system: DesignSystem, issues: List[str]) -> str:
    issue_list = "\n".join(f"- {issue}" for issue in issues)
    return (
        f"Your previous output for the {page} page failed validation because:\n"
        f"{issue_list}\n\n"
        "Regenerate the complete page from scratch, fixing every issue above and keeping all other "
        "requirements.\n\n"
        + build_page_user_message(page, design_system)
    )
