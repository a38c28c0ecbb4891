"""Demonstration dataset loaded into hosted deployments that have no data yet.

Generates invoices spread over the last 90 days for a fixed roster of
roofing contractors, mixing the vendor's own references with competitor
membranes and insulation. Pass a ``seed`` for a reproducible dataset.
"""

from __future__ import annotations

import random
from datetime import date, timedelta

from domain.models import (
    Client,
    CompetitorInfo,
    Distributor,
    Invoice,
    InvoiceStatus,
    Product,
    ProductType,
    VerificationDetails,
)
from domain.validation import POTENTIAL_MARKUP

CLIENTS = [
    ("Art Actif SAS", "Strasbourg", "67000", "Grand Est"),
    ("Toitures Modernes SARL", "Lyon", "69000", "Auvergne-Rhône-Alpes"),
    ("Bâtiment Pro 2000", "Marseille", "13000", "Provence-Alpes-Côte d'Azur"),
    ("Construction Excellence SAS", "Toulouse", "31000", "Occitanie"),
    ("U-Therm Isolation", "Nantes", "44000", "Pays de la Loire"),
    ("Étanchéité Plus", "Bordeaux", "33000", "Nouvelle-Aquitaine"),
    ("Couverture Moderne", "Lille", "59000", "Hauts-de-France"),
    ("Bâtisseurs Alsaciens", "Mulhouse", "68100", "Grand Est"),
    ("Toitures du Sud", "Nice", "06000", "Provence-Alpes-Côte d'Azur"),
    ("Isolation Expert", "Rennes", "35000", "Bretagne"),
]

DISTRIBUTORS = [
    ("Point.P", "Agence Centre"),
    ("Gedimat", "Agence Nord"),
    ("BigMat", "Agence Sud"),
]

VENDOR_PRODUCTS = [
    ("SOPRALENE FLAM 180", 85.50),
    ("SOPRASEAL STICK 1100T", 125.00),
    ("ELASTOPHENE FLAM 25", 88.00),
    ("ALSAN FLASHING", 125.00),
    ("SOPRASTAR FLAM", 95.75),
    ("COLPHENE 1500", 92.25),
    ("SOPRAFIX BASE", 75.50),
    ("SOPRALAST 50 TV ALU", 110.50),
    ("SOPRASOLIN", 55.25),
    ("PAVATEX ISOLANT", 45.00),
]

COMPETITOR_PRODUCTS = [
    ("IKO ARMOURBASE STICK", 78.50, "IKO", "Membrane"),
    ("FIRESTONE RUBBERGARD EPDM", 95.00, "FIRESTONE", "EPDM"),
    ("TREMCO POWERply BASE", 82.00, "TREMCO", "Membrane"),
    ("GAF LIBERTY BASE", 88.75, "GAF", "Membrane"),
    ("ROCKWOOL HARDROCK", 38.50, "ROCKWOOL", "Isolation"),
    ("SIPLAST PARAFOR", 91.20, "SIPLAST", "Membrane"),
    ("AXTER HYRENE 25", 86.40, "AXTER", "Membrane"),
    ("DERBIGUM SP4", 79.90, "DERBIGUM", "Membrane"),
]

STREETS = ["rue de la République", "avenue Victor Hugo", "boulevard Jean Jaurès",
           "rue du Général de Gaulle"]


def _line(rng, designation, unit_price, quantity_range, product_type, brand, category=None):
    quantity = rng.randint(*quantity_range)
    return Product(
        reference=f"REF-{designation.split()[0][:4]}-{int(round(unit_price * 100))}",
        designation=designation,
        quantity=quantity,
        unit_price=unit_price,
        total_price=round(quantity * unit_price, 2),
        type=product_type,
        brand=brand,
        competitor=CompetitorInfo(brand=brand, category=category) if category else None,
        verification_details=VerificationDetails(confidence=round(rng.uniform(0.8, 1.0), 2)),
    )


def generate_demo_invoices(count: int = 50, seed: int | None = None,
                           today: date | None = None) -> list[Invoice]:
    """Build *count* demonstration invoices, newest first."""
    rng = random.Random(seed)
    today = today or date.today()
    invoices = []

    for i in range(count):
        name, city, postal_code, region = rng.choice(CLIENTS)
        distributor, agency = rng.choice(DISTRIBUTORS)
        invoice_date = today - timedelta(days=rng.randrange(90))

        has_competitor = rng.random() > 0.4
        product_count = rng.randint(3, 7)
        vendor_count = int(product_count * 0.4) if has_competitor else product_count

        products = [
            _line(rng, designation, price, (5, 24), ProductType.SOPREMA, "SOPREMA")
            for designation, price in (rng.choice(VENDOR_PRODUCTS) for _ in range(vendor_count))
        ]
        if has_competitor:
            products.extend(
                _line(rng, designation, price, (3, 17), ProductType.COMPETITOR, brand, category)
                for designation, price, brand, category in (
                    rng.choice(COMPETITOR_PRODUCTS) for _ in range(product_count - vendor_count)
                )
            )

        amount = round(sum(p.total_price for p in products), 2)
        street = f"{rng.randint(1, 999)} {rng.choice(STREETS)}"
        invoices.append(Invoice(
            id=f"DEMO-{i + 1:03d}",
            number=f"FA-{invoice_date.year}-{1000 + i:04d}",
            date=invoice_date.isoformat(),
            client=Client(
                name=name,
                full_name=name,
                address=f"{street}, {postal_code} {city}",
            ),
            distributor=Distributor(name=distributor, agency=agency),
            amount=amount,
            potential=round(amount * POTENTIAL_MARKUP, 2),
            products=products,
            status=InvoiceStatus.ANALYZED,
            region=region,
        ))

    invoices.sort(key=lambda inv: inv.date, reverse=True)
    return invoices
