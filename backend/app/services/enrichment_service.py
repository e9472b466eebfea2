"""AI-backed lookup of HOA / management contact details for one community."""

from dataclasses import asdict, dataclass, fields

import structlog

from app.clients.gemini import GeminiClient
from app.config import settings
from app.services.errors import LookupFailure, LookupRejectedError, TransientLookupError
from app.services.response_parser import parse_lookup_response
from app.utils.us_address import (
    clean_text,
    normalize_county,
    normalize_email,
    normalize_state,
    normalize_zip,
    slugify,
)

logger = structlog.get_logger()

PROMPT_TEMPLATE = """\
You are a real estate research assistant. Find detailed HOA or property management \
contact information for the residential community "{name}" located in or near "{location}".

Search for:
1. Management company name
2. Decision maker (Property Manager, HOA President, Community Manager, etc.)
3. Contact email address
4. Phone number
5. Full address (street, city, county, state, zip code)

Return the information as a JSON object with this exact structure:
{{
  "management_company": "Company Name",
  "decision_maker_name": "Full Name",
  "email": "email@example.com",
  "phone": "phone number",
  "street_address": "street address",
  "city": "city name",
  "county": "county name only (no 'County' word)",
  "state": "full state name (e.g., Florida, not FL)",
  "zip_code": "zip code"
}}

IMPORTANT RULES:
1. For state: Use full state name (e.g., "Florida", "California", "Texas")
2. For county: Use only the county name without the word "County" (e.g., "Palm Beach", not "Palm Beach County")
3. If any field cannot be confidently determined, omit it from the JSON. Never invent placeholder values.
4. Ensure email addresses are valid format
5. Include area codes for phone numbers
6. Return only the JSON object, no other text
"""

CONTACT_FIELDS = ("management_company", "decision_maker_name", "email", "phone")


@dataclass
class EnrichmentResult:
    """Lookup result. Every field is optional; an all-None result is valid."""

    management_company: str | None = None
    decision_maker_name: str | None = None
    email: str | None = None
    phone: str | None = None
    street_address: str | None = None
    city: str | None = None
    county: str | None = None
    state: str | None = None
    zip_code: str | None = None

    @classmethod
    def from_raw(cls, raw: dict) -> "EnrichmentResult":
        return cls(
            management_company=clean_text(raw.get("management_company")),
            decision_maker_name=clean_text(raw.get("decision_maker_name")),
            email=normalize_email(raw.get("email")),
            phone=clean_text(raw.get("phone")),
            street_address=clean_text(raw.get("street_address")),
            city=clean_text(raw.get("city")),
            county=normalize_county(raw.get("county")),
            state=normalize_state(raw.get("state")),
            zip_code=normalize_zip(raw.get("zip_code")),
        )

    def populated_fields(self) -> list[str]:
        return [f.name for f in fields(self) if getattr(self, f.name) is not None]

    @property
    def is_empty(self) -> bool:
        return not self.populated_fields()

    @property
    def has_useful_data(self) -> bool:
        """Any contact field present. Used for logging only, never as a write gate."""
        return any(getattr(self, name) for name in CONTACT_FIELDS)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class EnrichmentFailure:
    """Lookup gave up on an entity."""

    entity_name: str
    reason: str
    attempts: int
    transient: bool


def build_prompt(entity_name: str, context_location: str) -> str:
    return PROMPT_TEMPLATE.format(name=entity_name, location=context_location)


class EnrichmentService:
    """Looks up one entity through Gemini and parses the answer.

    Never raises for lookup problems: retries exhausted or a rejected request
    come back as an EnrichmentFailure. No persistence side effects.
    """

    def __init__(
        self,
        client: GeminiClient | None = None,
        fallback_email_template: str | None = None,
    ):
        self.client = client or GeminiClient()
        self.fallback_email_template = (
            settings.enrichment_fallback_email_template
            if fallback_email_template is None
            else fallback_email_template
        )

    @property
    def is_available(self) -> bool:
        return self.client.is_available

    async def enrich(
        self, entity_name: str, context_location: str
    ) -> EnrichmentResult | EnrichmentFailure:
        prompt = build_prompt(entity_name, context_location)

        try:
            text = await self.client.generate_text(prompt)
        except TransientLookupError as e:
            logger.warning(
                "Lookup retries exhausted",
                entity=entity_name,
                attempts=self.client.max_attempts,
                error=str(e),
            )
            return EnrichmentFailure(
                entity_name=entity_name,
                reason=str(e),
                attempts=self.client.max_attempts,
                transient=True,
            )
        except LookupRejectedError as e:
            logger.warning("Lookup rejected", entity=entity_name, error=str(e))
            return EnrichmentFailure(
                entity_name=entity_name, reason=str(e), attempts=1, transient=False
            )
        except LookupFailure as e:
            return EnrichmentFailure(
                entity_name=entity_name, reason=str(e), attempts=1, transient=False
            )
        except Exception as e:
            logger.error("Lookup failed unexpectedly", entity=entity_name, error=repr(e))
            return EnrichmentFailure(
                entity_name=entity_name, reason=repr(e), attempts=1, transient=False
            )

        try:
            raw = parse_lookup_response(text)
            if not raw and text.strip():
                logger.info("Lookup response not parseable", entity=entity_name, preview=text[:200])
            result = EnrichmentResult.from_raw(raw)
            self._apply_fallbacks(entity_name, result)
        except Exception as e:
            logger.error("Lookup response handling failed", entity=entity_name, error=repr(e))
            return EnrichmentFailure(
                entity_name=entity_name, reason=repr(e), attempts=1, transient=False
            )

        logger.info(
            "Entity enriched",
            entity=entity_name,
            fields=result.populated_fields(),
            useful=result.has_useful_data,
        )
        return result

    def _apply_fallbacks(self, entity_name: str, result: EnrichmentResult) -> None:
        if result.email or not self.fallback_email_template:
            return
        slug = slugify(entity_name)
        if not slug:
            return
        result.email = self.fallback_email_template.format(slug=slug)
        logger.info("Synthesized fallback email", entity=entity_name, email=result.email)

    async def close(self):
        await self.client.close()
