"""Regional operator sets used by the synthetic fallback generator."""

# (name, IATA code)
AIRLINES: list[tuple[str, str]] = [
    ("IndiGo", "6E"),
    ("Air India", "AI"),
    ("SpiceJet", "SG"),
    ("Vistara", "UK"),
    ("Akasa Air", "QP"),
    ("Air India Express", "IX"),
]

# (train name, number prefix)
TRAINS: list[tuple[str, str]] = [
    ("Rajdhani Express", "124"),
    ("Shatabdi Express", "120"),
    ("Duronto Express", "122"),
    ("Vande Bharat Express", "224"),
    ("Garib Rath Express", "129"),
    ("Jan Shatabdi Express", "120"),
    ("Humsafar Express", "223"),
    ("Tejas Express", "825"),
    ("Superfast Mail", "126"),
]

BUS_OPERATORS: list[str] = [
    "VRL Travels",
    "SRS Travels",
    "Orange Tours and Travels",
    "KSRTC Airavat",
    "Neeta Travels",
    "Paulo Travels",
    "IntrCity SmartBus",
    "Zingbus",
    "Sharma Transports",
]

BUS_TYPES: list[tuple[str, float]] = [
    ("Volvo Multi-Axle AC Sleeper (2+1)", 1.5),
    ("AC Sleeper (2+1)", 1.3),
    ("Volvo AC Semi Sleeper (2+2)", 1.15),
    ("Non-AC Sleeper (2+1)", 0.9),
    ("Non-AC Seater (2+2)", 0.7),
]

# (brand, tier multiplier)
HOTEL_BRANDS: list[tuple[str, float]] = [
    ("OYO Townhouse", 0.5),
    ("FabHotel", 0.55),
    ("Treebo Trend", 0.6),
    ("Ginger", 0.7),
    ("Lemon Tree", 0.9),
    ("Radisson", 1.3),
    ("Novotel", 1.4),
    ("ITC Fortune", 1.2),
    ("Taj", 2.2),
    ("The Oberoi", 2.6),
]

HOTEL_AREAS: list[str] = [
    "City Centre", "Railway Station Area", "Airport Road", "Old Town",
    "Business District", "Lakeside", "Mall Road", "Beach Road",
]
