from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Category:
    id: str
    name: str
    subcategories: tuple[str, ...]


CATEGORIES: dict[str, Category] = {
    category.id: category
    for category in (
        Category(
            "apparel",
            "Apparel",
            ("T-Shirt", "Tank Top", "Hoodie", "Sweatshirt", "Jacket", "Crop Top", "Apron", "Scarf", "Jersey"),
        ),
        Category("accessories", "Accessories", ("Tote Bag", "Cap", "Phone Cover", "Gaming Pad", "Beanie")),
        Category("home", "Home & Living", ("Can", "Mug", "Cushion", "Frame", "Coaster")),
        Category(
            "print",
            "Print",
            (
                "Business Card",
                "Book",
                "ID Card",
                "Sticker",
                "Poster",
                "Flyer",
                "Greeting Card",
                "Billboard",
                "Magazine",
                "Brochure",
                "Lanyard",
                "Banner",
                "Canvas",
                "Notebook",
            ),
        ),
        Category("packaging", "Packaging", ("Box", "Tube", "Dropper Bottle", "Pouch", "Cosmetic", "Bottle")),
        Category("tech", "Tech", ("IPhone", "Lap Top", "IPad", "Macbook", "Phone")),
        Category("jewelry", "Jewelry", ("Ring", "Necklace", "Earring")),
    )
}


def category_ids() -> list[str]:
    return list(CATEGORIES)


def subcategories(category_id: str) -> list[str]:
    category = CATEGORIES.get(category_id)
    return list(category.subcategories) if category is not None else []


def is_valid_category(category_id: str) -> bool:
    return category_id in CATEGORIES


def is_valid_subcategory(category_id: str, subcategory: str) -> bool:
    return subcategory in subcategories(category_id)
