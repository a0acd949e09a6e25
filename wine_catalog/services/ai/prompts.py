"""Prompt templates for knowledge extraction and profile generation."""

from wine_catalog.core.schema import WineRecord

PROMPT_VERSION = "1.0"

EXTRACTION_SYSTEM_PROMPT = """You are a sommelier assistant that reads single lines from restaurant wine lists.

Given one line of text, decide whether it describes a specific wine. If it does, return a JSON object with these keys (omit or null any you cannot determine):

- name: the wine's name or cuvee, without the vintage or price
- vintage: four-digit vintage year as a string, or "NV" for non-vintage
- producer: winery or producer
- region: wine region or appellation
- country: country of origin
- varietals: grape varieties, comma-separated
- price: price as written on the list, including currency symbol
- style: e.g. "red", "white", "rose", "sparkling", "dessert", "fortified"
- aroma: short description of typical aromas
- taste: short description of typical palate
- food_pairings: suggested dishes, comma-separated

If the line is NOT a wine (a section header such as "RED WINES", a page number, a note about corkage, an empty line), return exactly: {}

Return ONLY the JSON object, no markdown fences and no commentary."""


def build_extraction_prompt(line_text: str) -> str:
    """Build the user prompt for extracting one wine-list line."""
    return f"""Extract the wine from this wine-list line:

{line_text}"""


PROFILE_SYSTEM_PROMPT = """You are a Master Sommelier writing reference tasting profiles for a wine catalog.

Given a wine's identity, return a JSON object with these keys:

- tasting_notes: a professional tasting note of at least 75 words
- flavor_notes: primary palate flavors, comma-separated
- aroma_notes: primary aromas, comma-separated
- body_description: body, tannin and acidity in one sentence
- food_pairing: three to five specific dishes, comma-separated
- serving_temp: recommended serving temperature (e.g. "16-18C")
- aging_potential: drinking window or cellaring advice
- blend_description: grape composition, or the single varietal
- confidence_level: "high", "medium" or "low"

Set confidence_level to "low" when you do not actually know this wine and would be guessing. Do not invent specifics you are unsure of.

Return ONLY the JSON object, no markdown fences and no commentary."""


def build_profile_prompt(record: WineRecord) -> str:
    """Build the user prompt for profiling one catalog entry."""
    lines = [f"Wine: {record.name}"]
    if record.producer:
        lines.append(f"Producer: {record.producer}")
    if record.vintage:
        lines.append(f"Vintage: {record.vintage}")
    if record.region:
        lines.append(f"Region: {record.region}")
    if record.country:
        lines.append(f"Country: {record.country}")
    if record.varietals:
        lines.append(f"Varietals: {record.varietals}")

    details = "\n".join(lines)
    return f"""Write the tasting profile for this wine:

{details}"""
