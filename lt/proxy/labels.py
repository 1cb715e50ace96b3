"""Normalization of supplement-label search responses.

The label API has answered searches in several envelopes over time. The shape is resolved once, here, and the rest
of the code only ever sees ``LabelProduct`` values.
"""

import re
from dataclasses import dataclass
from enum import Enum

_MG = re.compile(r"(\d+(?:\.\d+)?)\s*mg", re.IGNORECASE)
_MCG = re.compile(r"(\d+(?:\.\d+)?)\s*mcg", re.IGNORECASE)


@dataclass(frozen=True)
class LabelProduct:
    dsld_id: str
    product_name: str
    brand_name: str = ""
    default_dosage_mg: int | None = None
    image_url: str | None = None
    ingredient_count: int = 0

    @property
    def is_multi_ingredient(self):
        return self.ingredient_count > 1


class SearchShape(Enum):
    PRODUCTS = "products"   # {"products": [...]}
    HITS = "hits"           # {"hits": [...]}, entries wrapped in "_source"
    LABELS = "labels"       # {"labels": [...]}
    LIST = "list"           # [...]
    UNKNOWN = "unknown"


def detect_shape(data):
    if isinstance(data, list):
        return SearchShape.LIST
    if isinstance(data, dict):
        for shape in (SearchShape.PRODUCTS, SearchShape.HITS, SearchShape.LABELS):
            if isinstance(data.get(shape.value), list):
                return shape
    return SearchShape.UNKNOWN


_ENTRIES = {
    SearchShape.PRODUCTS: lambda data: data["products"],
    SearchShape.HITS: lambda data: data["hits"],
    SearchShape.LABELS: lambda data: data["labels"],
    SearchShape.LIST: lambda data: data,
    SearchShape.UNKNOWN: lambda data: [],
}


def normalize_label_search(data):
    """Turn any known search envelope into a list of LabelProduct. Unusable entries are skipped."""
    shape = detect_shape(data)
    products = []
    for entry in _ENTRIES[shape](data):
        product = normalize_label(entry)
        if product is not None:
            products.append(product)
    return products


def _first(source, *names):
    for name in names:
        value = source.get(name)
        if value not in (None, ""):
            return value
    return None


def normalize_label(entry):
    """One search hit or label detail document, with or without a ``_source`` wrapper."""
    if not isinstance(entry, dict):
        return None
    source = entry.get("_source") if isinstance(entry.get("_source"), dict) else entry

    dsld_id = _first(entry, "_id") or _first(source, "dsldId", "dsld_id", "id")
    name = _first(source, "fullName", "productName", "product_name", "name")
    if dsld_id is None or not isinstance(name, str):
        return None

    ingredients = _ingredient_doses(source)
    image_url = _first(source, "imageUrl", "image_url", "productImage", "product_image", "image")
    return LabelProduct(
        dsld_id=str(dsld_id),
        product_name=name,
        brand_name=str(_first(source, "brandName", "brand_name") or ""),
        default_dosage_mg=_dosage_mg(source, name, ingredients),
        image_url=image_url if isinstance(image_url, str) else None,
        ingredient_count=len(ingredients),
    )


# mg amounts per ingredient row; mcg converted to mg.
def _ingredient_doses(source):
    doses = []
    rows = source.get("ingredientRows")
    if not isinstance(rows, list):
        return doses
    for row in rows:
        if not isinstance(row, dict) or not isinstance(row.get("quantity"), list):
            continue
        for quantity in row["quantity"]:
            text = str(quantity.get("quantity") if isinstance(quantity, dict) else quantity)
            mg = _MG.search(text)
            if mg:
                doses.append(float(mg.group(1)))
            mcg = _MCG.search(text)
            if mcg:
                doses.append(float(mcg.group(1)) / 1000)
    return doses


# Explicit dose, then the ingredient total, then a "500mg" in the product name, then an mg serving size.
def _dosage_mg(source, name, ingredients):
    explicit = _first(source, "defaultDosageMg", "default_dosage_mg")
    if isinstance(explicit, (int, float)) and not isinstance(explicit, bool) and explicit > 0:
        return round(explicit)
    if ingredients:
        total = round(sum(ingredients))
        if total > 0:
            return total
    match = _MG.search(name)
    if match:
        return round(float(match.group(1)))
    servings = source.get("servingSizes")
    if isinstance(servings, list) and servings and isinstance(servings[0], dict):
        text = str(servings[0].get("minQuantity", "")).lower()
        if "mg" in text and "capsule" not in text:
            match = re.search(r"(\d+)\s*mg", text)
            if match:
                return int(match.group(1))
    return None
