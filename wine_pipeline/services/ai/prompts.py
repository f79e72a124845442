"""Prompt templates for wine extraction and enrichment."""

from wine_pipeline.core.schema import WineRecord

PROMPT_VERSION = "2.0"


EXTRACTION_SYSTEM_PROMPT = """You are a sommelier's assistant that reads one line of a restaurant wine list and returns the wine it describes as JSON.

CRITICAL RULES:
1. NEVER invent information that is not present or clearly implied by the line
2. Use null for any field you cannot determine
3. vintage is a four digit year as a string, "NV" for non-vintage wines, or null
4. wine_type is one of "red", "white", "rosé", "sparkling", "dessert" or null
5. If the line does not describe a wine (a heading, a price list note, a section title), return {"wine_name": null}

Output ONLY valid JSON. No additional text or explanation."""


EXTRACTION_PROMPT_TEMPLATE = """Extract the wine described by this wine list line.

LINE:
{line}

You MUST use EXACTLY this JSON structure:

{{
  "producer": "string - winery/producer/house" or null,
  "wine_name": "string - wine or cuvée name" or null,
  "vintage": "YYYY" | "NV" | null,
  "varietal": "string - grape variety or blend" or null,
  "region": "string" or null,
  "country": "string" or null,
  "appellation": "string - AOC/DOC/AVA" or null,
  "wine_type": "red" | "white" | "rosé" | "sparkling" | "dessert" | null,
  "wine_style": "string" or null,
  "price": number or null,
  "by_the_glass": true | false
}}

Output ONLY the JSON object, no markdown code blocks or additional text."""


RESEARCH_SYSTEM_PROMPT = """You are a master sommelier writing reference tasting profiles for a restaurant wine program.

Write in rich, specific, professional language. Describe the wine as it typically shows for its producer, appellation and vintage. Every text field must be a complete paragraph, not a list of keywords.

Output ONLY valid JSON matching the requested structure. No additional text or explanation."""


RESEARCH_PROMPT_TEMPLATE = """Write a comprehensive tasting profile for this wine.

WINE:
{wine_description}

Length requirements (characters):
- tasting_notes: at least {tasting_min}
- flavor_notes, aroma_notes, body_description: at least {core_min} each
- what_makes_special: at least {special_min}, covering the producer's history, the site and why this bottling matters

You MUST use EXACTLY this JSON structure:

{{
  "tasting_notes": "string",
  "flavor_notes": "string",
  "aroma_notes": "string",
  "body_description": "string",
  "texture": "string",
  "balance": "string",
  "tannin_level": "string - e.g. low, medium, high, firm",
  "acidity": "string - e.g. low, medium, high",
  "finish_length": "string - e.g. short, medium, long",
  "food_pairing": "string",
  "serving_temp": "string - e.g. 16-18°C (61-64°F)",
  "aging_potential": "string",
  "blend_description": "string",
  "what_makes_special": "string",
  "wine_rating": number (80-100) or null,
  "wine_type": "red" | "white" | "rosé" | "sparkling" | "dessert" | null,
  "region": "string" or null
}}

Output ONLY the JSON object, no markdown code blocks or additional text."""


EDUCATIONAL_PROMPT_TEMPLATE = """Write a short educational note about this wine for restaurant guests.

WINE:
{wine_description}

Describe the grape, the region and the style guests can generally expect. Do not claim to have tasted this specific bottle.

You MUST use EXACTLY this JSON structure:

{{
  "tasting_notes": "string - two or three sentences on the expected style",
  "food_pairing": "string",
  "serving_temp": "string",
  "aging_potential": "string" or null,
  "what_makes_special": "string - one or two sentences on the region or grape"
}}

Output ONLY the JSON object, no markdown code blocks or additional text."""


REPAIR_PROMPT_TEMPLATE = """The following JSON is invalid and needs to be repaired.

INVALID JSON:
{invalid_json}

ERROR MESSAGE:
{error_message}

Please fix the JSON to make it valid. Common issues include:
- Missing or extra commas
- Unquoted strings
- Trailing commas in arrays/objects
- Missing closing brackets

Output ONLY the corrected JSON, no explanation."""


def describe_wine(record: WineRecord) -> str:
    """Render the known descriptive fields of a wine, one per line."""
    fields = [
        ("Producer", record.producer),
        ("Wine", record.wine_name),
        ("Vintage", record.vintage),
        ("Varietal", record.varietal),
        ("Appellation", record.appellation),
        ("Region", record.region),
        ("Country", record.country),
        ("Type", record.wine_type.value if record.wine_type else None),
    ]
    return "\n".join(f"- {label}: {value}" for label, value in fields if value)


def build_extraction_prompt(line: str) -> str:
    """
    Build the extraction prompt for one wine list line.

    Args:
        line: The raw line.

    Returns:
        The formatted prompt string.
    """
    return EXTRACTION_PROMPT_TEMPLATE.format(line=line)


def build_research_prompt(
    record: WineRecord,
    tasting_min: int = 750,
    core_min: int = 625,
    special_min: int = 350,
) -> str:
    """
    Build the research prompt asking for a full tasting profile.

    Args:
        record: The wine to research.
        tasting_min: Requested minimum length of tasting_notes.
        core_min: Requested minimum length of the other core fields.
        special_min: Requested minimum length of what_makes_special.

    Returns:
        The formatted prompt string.
    """
    return RESEARCH_PROMPT_TEMPLATE.format(
        wine_description=describe_wine(record),
        tasting_min=tasting_min,
        core_min=core_min,
        special_min=special_min,
    )


def build_educational_prompt(record: WineRecord) -> str:
    """Build the short educational note prompt."""
    return EDUCATIONAL_PROMPT_TEMPLATE.format(wine_description=describe_wine(record))


def build_repair_prompt(invalid_json: str, error_message: str) -> str:
    """
    Build the JSON repair prompt.

    Args:
        invalid_json: The malformed JSON string.
        error_message: The error from the JSON parser.

    Returns:
        The formatted repair prompt.
    """
    return REPAIR_PROMPT_TEMPLATE.format(
        invalid_json=invalid_json,
        error_message=error_message,
    )
