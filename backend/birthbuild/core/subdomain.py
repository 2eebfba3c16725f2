"""Subdomain normalisation, validation and collision-avoiding allocation"""

import re
import random
import string
import logging
from typing import Optional

from birthbuild.core.spec_store import SpecStore
from birthbuild.models.errors import ApplicationError, ErrorCode
from birthbuild.models.site_spec import SiteSpec

logger = logging.getLogger(__name__)

SUBDOMAIN_RE = re.compile(r"^[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?$")
MAX_SLUG_LENGTH = 63
MAX_CANDIDATES = 8
SUFFIX_LENGTH = 4
SUFFIX_ALPHABET = string.ascii_lowercase + string.digits

RESERVED_SLUGS = frozenset({
    "www", "api", "app", "admin", "mail", "ftp", "cdn", "assets", "static", "birthbuild",
})


def normalise_slug(value: str) -> str:
    """Lowercase, collapse non-alphanumeric runs into hyphens, trim hyphens, cap at 63"""
    slug = re.sub(r"[^a-z0-9]+", "-", (value or "").strip().lower())
    slug = slug.strip("-")[:MAX_SLUG_LENGTH]
    return slug.rstrip("-")


def is_valid_slug(slug: str) -> bool:
    return bool(SUBDOMAIN_RE.match(slug or ""))


def is_reserved(slug: str) -> bool:
    return slug in RESERVED_SLUGS


def random_suffix(length: int = SUFFIX_LENGTH, rng: Optional[random.Random] = None) -> str:
    chooser = rng or random.SystemRandom()
    return "".join(chooser.choice(SUFFIX_ALPHABET) for _ in range(length))


def with_suffix(base: str, suffix: str) -> str:
    # Keep room for "-xxxx" inside the 63-character limit
    trimmed = base[:MAX_SLUG_LENGTH - len(suffix) - 1].rstrip("-")
    return f"{trimmed}-{suffix}" if trimmed else suffix


class SubdomainResolver:
    """Resolves the slug a site is deployed under"""

    def __init__(self, spec_store: SpecStore, rng: Optional[random.Random] = None):
        self.spec_store = spec_store
        self.rng = rng

    async def resolve(self, spec: SiteSpec) -> str:
        """
        Return the slug to deploy under.

        A slug already on the spec is validated and returned as-is, never
        substituted. Without one, a slug is derived from the doula's name.

        Raises:
            ApplicationError: SUBDOMAIN_INVALID, SUBDOMAIN_RESERVED, SUBDOMAIN_TAKEN
                or SUBDOMAIN_ALLOCATION_FAILED
        """
        if spec.subdomain_slug and spec.subdomain_slug.strip():
            return await self.validate_chosen(spec.subdomain_slug, spec.id)
        return await self.allocate(spec)

    async def validate_chosen(self, requested: str, site_spec_id: str) -> str:
        slug = normalise_slug(requested)

        if not is_valid_slug(slug):
            raise ApplicationError(
                code=ErrorCode.SUBDOMAIN_INVALID,
                message="That web address isn't valid. Use letters, numbers and hyphens only.",
                hint="Addresses must start and end with a letter or number and be at most 63 characters.",
                site_spec_id=site_spec_id,
            )

        # Checked before any store query
        if is_reserved(slug):
            logger.info(f"[SUBDOMAIN] Rejected reserved slug '{slug}' for {site_spec_id}")
            raise ApplicationError(
                code=ErrorCode.SUBDOMAIN_RESERVED,
                message=f"'{slug}' is reserved. Please choose a different web address.",
                site_spec_id=site_spec_id,
            )

        if await self.spec_store.slug_taken(slug, exclude_site_spec_id=site_spec_id):
            logger.info(f"[SUBDOMAIN] Slug '{slug}' already taken (requested by {site_spec_id})")
            raise ApplicationError(
                code=ErrorCode.SUBDOMAIN_TAKEN,
                message=f"'{slug}' is already taken. Please choose a different web address.",
                site_spec_id=site_spec_id,
            )

        return slug

    async def allocate(self, spec: SiteSpec) -> str:
        base = (
            normalise_slug(spec.doula_name or "")
            or normalise_slug(spec.business_name or "")
            or f"site-{random_suffix(rng=self.rng)}"
        )

        for attempt in range(MAX_CANDIDATES):
            candidate = base if attempt == 0 else with_suffix(base, random_suffix(rng=self.rng))
            if not is_valid_slug(candidate) or is_reserved(candidate):
                continue
            if await self.spec_store.slug_taken(candidate, exclude_site_spec_id=spec.id):
                continue
            logger.info(f"[SUBDOMAIN] Allocated '{candidate}' for {spec.id} (attempt {attempt + 1})")
            return candidate

        logger.error(f"[SUBDOMAIN] Exhausted {MAX_CANDIDATES} candidates for base '{base}' ({spec.id})")
        raise ApplicationError(
            code=ErrorCode.SUBDOMAIN_ALLOCATION_FAILED,
            message="We couldn't find a free web address for your site. Please choose one yourself.",
            retryable=True,
            site_spec_id=spec.id,
        )
