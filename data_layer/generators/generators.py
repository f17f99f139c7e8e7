"""Demo data generator.

8 boutiques, 6 categories, 48 articles, one stock row per boutique x article.

Imbalances built in on purpose:
- some articles overstocked in one boutique while short in another
- whole categories drifting into rupture or overstock
- a few articles without category / sub-category
- one stock row with inverted thresholds (min > max)
"""
import json
import os
import random
from typing import Dict, List


# --- CONSTANTS ---

SHOPS = [
    ("shop_paris", "Boutique Paris", "12 rue de Rivoli, 75001 Paris"),
    ("shop_lyon", "Boutique Lyon", "5 place Bellecour, 69002 Lyon"),
    ("shop_marseille", "Boutique Marseille", "30 La Canebière, 13001 Marseille"),
    ("shop_nice", "Boutique Nice", "8 avenue Jean Médecin, 06000 Nice"),
    ("shop_lille", "Boutique Lille", "2 rue Neuve, 59000 Lille"),
    ("shop_bordeaux", "Boutique Bordeaux", "40 rue Sainte-Catherine, 33000 Bordeaux"),
    ("shop_toulouse", "Boutique Toulouse", "1 place du Capitole, 31000 Toulouse"),
    ("shop_rennes", "Boutique Rennes", None),
]

ARTICLES: Dict[str, Dict[str, List[str]]] = {
    "Hauts": {
        "T-shirts": ["T-shirt Coton Bleu", "T-shirt Col V Blanc", "T-shirt Rayé Marine"],
        "Chemises": ["Chemise Lin Beige", "Chemise Oxford Bleue", "Chemise Flanelle"],
        "Pulls": ["Pull Laine Mérinos", "Sweat Capuche Gris"],
    },
    "Bas": {
        "Jeans": ["Jean Slim Noir", "Jean Droit Brut", "Jean Mom Délavé"],
        "Pantalons": ["Chino Beige", "Pantalon Lin", "Jogging Molleton"],
        "Jupes": ["Jupe Plissée", "Jupe Jean"],
    },
    "Robes": {
        "Été": ["Robe Été Fleurie", "Robe Longue Bohème", "Robe Portefeuille"],
        "Soirée": ["Robe Cocktail Noire", "Robe Satin"],
        "Casual": ["Robe Pull", "Robe Chemise", "Robe T-shirt"],
    },
    "Chaussures": {
        "Sport": ["Chaussures de Sport", "Baskets Toile", "Running Légère"],
        "Ville": ["Derbies Cuir", "Mocassins", "Bottines Daim"],
        "Été": ["Sandales Cuir", "Espadrilles"],
    },
    "Accessoires": {
        "Maroquinerie": ["Sac Cabas", "Ceinture Cuir", "Portefeuille"],
        "Textile": ["Écharpe Laine", "Bonnet Côtelé", "Foulard Soie"],
        "Bijoux": ["Bracelet Argent", "Collier Perles"],
    },
    "Manteaux": {
        "Hiver": ["Doudoune Légère", "Manteau Laine", "Parka Capuche"],
        "Mi-saison": ["Trench Classique", "Veste Jean", "Blouson Cuir"],
        "Pluie": ["Imperméable", "Coupe-vent"],
    },
}

BRANDS = ["Maison Azur", "Atelier Nord", "Rive Gauche", "Sud Style"]

# Categories pushed towards rupture / overstock
RUPTURE_PRONE = {"Robes"}
OVERSTOCK_PRONE = {"Manteaux"}


# --- GENERATION FUNCTIONS ---

def generate_shops() -> List[dict]:
    shops = []
    for shop_id, name, address in SHOPS:
        shop = {"id": shop_id, "name": name}
        if address:
            shop["address"] = address
        shops.append(shop)
    return shops


def generate_articles() -> List[dict]:
    """One article per label; every 12th article has no category."""
    articles = []
    counter = 1
    for category, sub_categories in ARTICLES.items():
        for sub_category, labels in sub_categories.items():
            for label in labels:
                article = {
                    "id": f"art_{counter:03d}",
                    "code": f"ART-{counter:04d}",
                    "label": label,
                    "brand": BRANDS[counter % len(BRANDS)],
                }
                if counter % 12 != 0:
                    article["category"] = category
                    article["sub_category"] = sub_category
                articles.append(article)
                counter += 1
    return articles


def generate_stock(shops: List[dict], articles: List[dict]) -> List[dict]:
    """One stock row per boutique x article with deliberate imbalances."""
    categories = {a["id"]: a.get("category") for a in articles}
    stock = []
    counter = 1
    for shop in shops:
        for article in articles:
            min_stock = random.randint(5, 30)
            max_stock = min_stock + random.randint(20, 60)
            category = categories[article["id"]]

            roll = random.random()
            if category in RUPTURE_PRONE and roll < 0.4:
                current = random.randint(0, max(0, min_stock - 1))
            elif category in OVERSTOCK_PRONE and roll < 0.4:
                current = max_stock + random.randint(1, 80)
            elif roll < 0.1:
                current = random.randint(0, max(0, min_stock - 1))
            elif roll < 0.2:
                current = max_stock + random.randint(1, 50)
            else:
                current = random.randint(min_stock, max_stock)

            stock.append({
                "id": f"stk_{counter:05d}",
                "shop_id": shop["id"],
                "article_id": article["id"],
                "current": current,
                "min": min_stock,
                "max": max_stock,
            })
            counter += 1

    # A single corrupt row: thresholds inverted
    if stock:
        stock[-1]["min"], stock[-1]["max"] = stock[-1]["max"] + 1, stock[-1]["min"]
    return stock


def save_json(data, filepath: str):
    os.makedirs(os.path.dirname(filepath), exist_ok=True)
    with open(filepath, "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)
    print(f"  ✓  {filepath} ({len(data)} records)")


def generate_all(output_dir: str = "data_layer/data", seed: int = 42, write: bool = True) -> dict:
    """Generate (and optionally write) the demo dataset; same seed, same data."""
    random.seed(seed)

    shops = generate_shops()
    articles = generate_articles()
    stock = generate_stock(shops, articles)

    if write:
        print(f"\n🏗️  Generating demo data (seed={seed})\n")
        save_json(shops, f"{output_dir}/shops.json")
        save_json(articles, f"{output_dir}/articles.json")
        save_json(stock, f"{output_dir}/stock.json")
        print(f"\n✅ {len(shops)} boutiques, {len(articles)} articles, {len(stock)} stock rows")

    return {"shops": shops, "articles": articles, "stock": stock}


if __name__ == "__main__":
    generate_all()
