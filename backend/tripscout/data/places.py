"""Static place data — stop words, known cities, and IATA fallbacks."""

# Words stripped from free-text place descriptions before lookup
STOP_WORDS: frozenset[str] = frozenset({
    # sightseeing
    "visit", "explore", "enjoy", "see", "tour", "trip", "view", "panoramic", "climb",
    "temple", "hill", "fort", "palace", "garden", "lake", "river", "bridge", "beach",
    "park", "museum", "monument", "market", "mall", "shopping", "spot", "place",
    # transport / lodging
    "station", "airport", "bus", "train", "hotel", "restaurant", "stand", "terminal",
    "junction", "depot",
    # address parts
    "road", "street", "avenue", "lane", "drive", "boulevard", "circle", "way", "state",
    "district", "pin", "pincode", "postal", "code", "area", "locality", "colony", "nagar",
    "layout", "extension", "main", "cross", "near", "opposite", "opp", "behind", "beside",
    "next", "center", "centre", "city", "town",
    # filler
    "the", "and", "from", "for", "with", "then", "also", "some", "around", "into", "our",
    "your", "this", "that", "there", "here", "go", "to", "up", "of", "in", "at", "on",
})

# Known cities, lower-case. Two-word entries are matched before one-word ones.
KNOWN_CITIES: dict[str, str] = {
    "new delhi": "New Delhi", "navi mumbai": "Navi Mumbai",
    "mumbai": "Mumbai", "bombay": "Mumbai", "delhi": "Delhi", "bangalore": "Bangalore",
    "bengaluru": "Bangalore", "hyderabad": "Hyderabad", "chennai": "Chennai",
    "madras": "Chennai", "kolkata": "Kolkata", "calcutta": "Kolkata", "pune": "Pune",
    "ahmedabad": "Ahmedabad", "jaipur": "Jaipur", "surat": "Surat", "lucknow": "Lucknow",
    "kanpur": "Kanpur", "nagpur": "Nagpur", "indore": "Indore", "bhopal": "Bhopal",
    "visakhapatnam": "Visakhapatnam", "patna": "Patna", "vadodara": "Vadodara",
    "ludhiana": "Ludhiana", "agra": "Agra", "nashik": "Nashik", "rajkot": "Rajkot",
    "varanasi": "Varanasi", "srinagar": "Srinagar", "amritsar": "Amritsar",
    "ranchi": "Ranchi", "coimbatore": "Coimbatore", "vijayawada": "Vijayawada",
    "jodhpur": "Jodhpur", "madurai": "Madurai", "raipur": "Raipur", "guwahati": "Guwahati",
    "chandigarh": "Chandigarh", "mysore": "Mysore", "mysuru": "Mysore", "kochi": "Kochi",
    "cochin": "Kochi", "thiruvananthapuram": "Thiruvananthapuram",
    "trivandrum": "Thiruvananthapuram", "bhubaneswar": "Bhubaneswar",
    "dehradun": "Dehradun", "goa": "Goa", "udaipur": "Udaipur", "mangalore": "Mangalore",
    "shimla": "Shimla", "manali": "Manali", "rishikesh": "Rishikesh",
}

# City → primary airport, used when live location lookup yields nothing
CITY_IATA: dict[str, str] = {
    "Bangalore": "BLR", "Mumbai": "BOM", "Navi Mumbai": "BOM", "Delhi": "DEL",
    "New Delhi": "DEL", "Chennai": "MAA", "Kolkata": "CCU", "Hyderabad": "HYD",
    "Pune": "PNQ", "Ahmedabad": "AMD", "Jaipur": "JAI", "Lucknow": "LKO",
    "Varanasi": "VNS", "Goa": "GOI", "Kochi": "COK", "Thiruvananthapuram": "TRV",
    "Surat": "STV", "Bhopal": "BHO", "Indore": "IDR", "Vadodara": "BDQ", "Nagpur": "NAG",
    "Patna": "PAT", "Chandigarh": "IXC", "Amritsar": "ATQ", "Udaipur": "UDR",
    "Jodhpur": "JDH", "Raipur": "RPR", "Bhubaneswar": "BBI", "Visakhapatnam": "VTZ",
    "Mysore": "MYQ", "Mangalore": "IXE", "Srinagar": "SXR", "Guwahati": "GAU",
    "Coimbatore": "CJB", "Madurai": "IXM", "Ranchi": "IXR", "Dehradun": "DED",
}
