"""
Knowledge Base Profiles
=======================

Deterministic tasting profiles built from grape and region archetypes.
A wine whose varietal, name or appellation names a known archetype
(e.g. "Barolo" -> Nebbiolo) gets a profile without any external call.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from wine_pipeline.core.enums import WineType
from wine_pipeline.core.schema import EnrichmentProfile, WineRecord


@dataclass(frozen=True)
class WineArchetype:
    """Typical structure and character of a grape or classic region."""

    name: str
    keywords: tuple[str, ...]
    wine_type: WineType
    region: str
    body: str
    tannin: str
    acidity: str
    finish: str
    flavors: tuple[str, ...]
    aromas: tuple[str, ...]
    texture: str
    food: tuple[str, ...]
    serving_temp: str
    aging: str
    blend: str
    heritage: str

    def matches(self, text: str) -> bool:
        return any(re.search(rf"\b{re.escape(kw)}\b", text) for kw in self.keywords)


# Checked in order; the first archetype with a keyword hit wins
ARCHETYPES: tuple[WineArchetype, ...] = (
    WineArchetype(
        name="Nebbiolo",
        keywords=("nebbiolo", "barolo", "barbaresco", "roero", "gattinara", "piedmont", "piemonte"),
        wine_type=WineType.RED,
        region="Piemonte",
        body="full",
        tannin="high, firm",
        acidity="high",
        finish="long",
        flavors=("dark cherry", "plum", "rose petal", "leather", "tar", "tobacco", "truffle", "dried herbs"),
        aromas=("rose", "violet", "cherry", "leather", "tar", "earth", "spices"),
        texture="grippy, structured tannins that soften into a silky, powerful frame with age",
        food=("braised beef", "game", "aged cheeses", "truffle risotto", "lamb", "wild boar"),
        serving_temp="16-18°C (61-64°F)",
        aging="15-25 years from vintage",
        blend="100% Nebbiolo",
        heritage=(
            "Nebbiolo from the Langhe hills of Piedmont is one of the great noble grapes of "
            "Italy. Late ripening on calcareous marl slopes, it gives wines of pale colour but "
            "formidable tannin and acidity, long aged in large Slavonian oak botti. Barolo and "
            "Barbaresco are benchmarks of terroir expression, with single vineyards (crus) "
            "prized like the grand crus of Burgundy."
        ),
    ),
    WineArchetype(
        name="Sangiovese",
        keywords=("sangiovese", "chianti", "brunello", "montalcino", "montepulciano", "tuscany", "toscana"),
        wine_type=WineType.RED,
        region="Toscana",
        body="medium to full",
        tannin="medium to high",
        acidity="high",
        finish="medium to long",
        flavors=("sour cherry", "red plum", "dried herbs", "tomato leaf", "balsamic", "leather"),
        aromas=("cherry", "violet", "oregano", "tea leaf", "earth"),
        texture="firm and savoury with dusty tannins",
        food=("bistecca alla fiorentina", "tomato-based pasta", "roast pork", "pecorino", "wild mushrooms"),
        serving_temp="16-18°C (61-64°F)",
        aging="10-20 years from vintage",
        blend="Sangiovese, sometimes with Canaiolo or Colorino",
        heritage=(
            "Sangiovese is the backbone of Tuscany, from the hills of Chianti Classico to the "
            "warmer slopes of Montalcino. Its bright acidity and savoury cherry fruit make it "
            "one of the most food-friendly red wines in the world."
        ),
    ),
    WineArchetype(
        name="Champagne",
        keywords=("champagne", "blanc de blancs", "blanc de noirs", "franciacorta", "cremant", "crémant"),
        wine_type=WineType.SPARKLING,
        region="Champagne",
        body="light to medium",
        tannin="none",
        acidity="high",
        finish="long",
        flavors=("green apple", "lemon", "brioche", "toasted almond", "white peach"),
        aromas=("citrus blossom", "fresh bread", "chalk", "pear"),
        texture="fine, persistent mousse over a creamy palate",
        food=("oysters", "caviar", "fried chicken", "sushi", "aged Comté"),
        serving_temp="6-8°C (43-46°F)",
        aging="5-15 years for vintage cuvées",
        blend="Chardonnay, Pinot Noir and Pinot Meunier",
        heritage=(
            "Traditional-method sparkling wine gains its complexity from a second fermentation "
            "in bottle and long ageing on the lees. The chalk soils and cool climate of "
            "Champagne give wines of tension and finesse."
        ),
    ),
    WineArchetype(
        name="Pinot Noir",
        keywords=("pinot noir", "burgundy", "bourgogne", "cote de nuits", "côte de nuits", "gevrey", "volnay"),
        wine_type=WineType.RED,
        region="Bourgogne",
        body="light to medium",
        tannin="low to medium",
        acidity="medium to high",
        finish="medium to long",
        flavors=("red cherry", "raspberry", "cranberry", "forest floor", "mushroom", "clove"),
        aromas=("strawberry", "violet", "earth", "sous-bois", "spice"),
        texture="silky and supple",
        food=("roast duck", "salmon", "mushroom dishes", "coq au vin", "soft cheeses"),
        serving_temp="14-16°C (57-61°F)",
        aging="8-15 years from vintage",
        blend="100% Pinot Noir",
        heritage=(
            "Pinot Noir is famously transparent to its site. In Burgundy, centuries of monastic "
            "observation mapped the Côte d'Or into a mosaic of climats whose differences "
            "the grape renders with remarkable clarity."
        ),
    ),
    WineArchetype(
        name="Cabernet Sauvignon",
        keywords=("cabernet sauvignon", "cabernet", "bordeaux", "medoc", "médoc", "pauillac", "margaux", "napa"),
        wine_type=WineType.RED,
        region="Bordeaux",
        body="full",
        tannin="high",
        acidity="medium to high",
        finish="long",
        flavors=("blackcurrant", "black cherry", "cedar", "graphite", "tobacco", "dark chocolate"),
        aromas=("cassis", "mint", "cedar", "pencil shavings", "violet"),
        texture="firm, fine-grained tannins with a dense core",
        food=("grilled ribeye", "lamb chops", "venison", "hard aged cheeses"),
        serving_temp="16-18°C (61-64°F)",
        aging="10-25 years from vintage",
        blend="Cabernet Sauvignon, often with Merlot and Cabernet Franc",
        heritage=(
            "Cabernet Sauvignon built the reputation of the Left Bank of Bordeaux, where gravel "
            "soils drain well and ripen the thick-skinned grape. Its structure and longevity "
            "made it the model for great reds from Napa to Coonawarra."
        ),
    ),
    WineArchetype(
        name="Tempranillo",
        keywords=("tempranillo", "rioja", "ribera del duero", "tinto fino"),
        wine_type=WineType.RED,
        region="Rioja",
        body="medium to full",
        tannin="medium to high",
        acidity="medium",
        finish="medium to long",
        flavors=("red plum", "dried fig", "vanilla", "dill", "leather", "tobacco"),
        aromas=("cherry", "coconut", "vanilla", "cedar", "dried leaves"),
        texture="smooth and rounded from long barrel ageing",
        food=("roast lamb", "chorizo", "jamón ibérico", "manchego"),
        serving_temp="16-18°C (61-64°F)",
        aging="10-20 years for Reserva and Gran Reserva",
        blend="Tempranillo, often with Garnacha, Graciano or Mazuelo",
        heritage=(
            "Tempranillo is Spain's signature red grape. Rioja's tradition of extended ageing "
            "in American oak gives its Reserva and Gran Reserva wines their mellow, "
            "vanilla-scented complexity."
        ),
    ),
    WineArchetype(
        name="Chardonnay",
        keywords=("chardonnay", "chablis", "meursault", "puligny", "montrachet", "pouilly-fuisse"),
        wine_type=WineType.WHITE,
        region="Bourgogne",
        body="medium to full",
        tannin="none",
        acidity="medium to high",
        finish="medium to long",
        flavors=("yellow apple", "lemon curd", "pear", "hazelnut", "butter", "flint"),
        aromas=("citrus", "white flowers", "toasted oak", "wet stone"),
        texture="creamy and round, with a mineral line in cooler sites",
        food=("lobster", "roast chicken", "scallops", "creamy pasta", "soft cheeses"),
        serving_temp="8-12°C (46-54°F)",
        aging="5-15 years from vintage",
        blend="100% Chardonnay",
        heritage=(
            "Chardonnay reaches its most complete expression in Burgundy, from the steely "
            "Kimmeridgian limestone of Chablis to the rich, nutty whites of Meursault and "
            "Puligny-Montrachet."
        ),
    ),
)


def _archetype_text(record: WineRecord) -> str:
    parts = (record.varietal, record.wine_name, record.appellation, record.region, record.producer)
    return " ".join(p for p in parts if p).lower()


def match_archetype(record: WineRecord) -> WineArchetype | None:
    """
    Find the archetype named by a wine's varietal, name, appellation or region.

    Args:
        record: The wine to classify

    Returns:
        The first matching archetype, or None
    """
    text = _archetype_text(record)
    if not text:
        return None
    for archetype in ARCHETYPES:
        if archetype.matches(text):
            return archetype
    return None


def build_knowledge_profile(record: WineRecord, archetype: WineArchetype) -> EnrichmentProfile:
    """
    Compose a tasting profile from an archetype.

    Args:
        record: The wine being enriched
        archetype: The matched archetype

    Returns:
        EnrichmentProfile with every text field populated
    """
    label = record.display_name or record.wine_name
    vintage_note = (
        f"The {record.vintage} vintage" if record.vintage and record.vintage != "NV"
        else "This bottling"
    )
    flavors = ", ".join(archetype.flavors)
    aromas = ", ".join(archetype.aromas)

    return EnrichmentProfile(
        tasting_notes=(
            f"{label} shows the classic character of {archetype.name}: {flavors}. "
            f"The palate is {archetype.body}-bodied with {archetype.tannin} tannins and "
            f"{archetype.acidity} acidity, leading to a {archetype.finish} finish. "
            f"{vintage_note} is best appreciated with time in the glass."
        ),
        flavor_notes=f"Expect {flavors}.",
        aroma_notes=f"The nose offers {aromas}.",
        body_description=(
            f"{archetype.body.capitalize()} body, typical of {archetype.name} from {archetype.region}."
        ),
        texture=archetype.texture.capitalize() + ".",
        balance=(
            f"{archetype.acidity.capitalize()} acidity balances the fruit and "
            f"{archetype.tannin} tannins."
        ),
        tannin_level=archetype.tannin,
        acidity=archetype.acidity,
        finish_length=archetype.finish,
        food_pairing=", ".join(archetype.food).capitalize() + ".",
        serving_temp=archetype.serving_temp,
        aging_potential=archetype.aging,
        blend_description=archetype.blend,
        what_makes_special=archetype.heritage,
        wine_type=archetype.wine_type,
        region=archetype.region,
    )
