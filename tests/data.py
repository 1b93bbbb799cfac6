"""Shared test data."""

DEFAULT_PASSWORD = "secret123"

MOVIE_DATA = {
    "title": "Toofan",
    "poster": "/media/movies/toofan.jpg",
    "genre": ["Action", "Thriller"],
    "duration": 140,
    "rating": 8.2,
    "release_date": "2024-06-17",
    "description": "A gangster rises in the underworld.",
    "director": "Raihan Rafi",
    "cast_members": ["Shakib Khan", "Chanchal Chowdhury"],
    "language": "Bengali",
}

CONCERT_DATA = {
    "title": "Winter Fest",
    "artist": "Shironamhin",
    "poster": "/media/concerts/winter.jpg",
    "genre": "Rock",
    "date": "2025-01-20",
    "time": "18:00",
    "description": "Open air rock night.",
}

# vip is tiny so it can be sold out in tests
CONCERT_SECTIONS = {
    "vip": {"price": 4000, "capacity": 2},
    "front": {"price": 2500, "capacity": 50},
    "middle": {"price": 1500, "capacity": 50},
    "back": {"price": 800, "capacity": 100},
}

MATCH_DATA = {
    "home_team": "Abahani Limited",
    "away_team": "Mohammedan SC",
    "stadium": "Bangabandhu National Stadium",
    "league": "Bangladesh Premier League",
    "date": "2025-01-10",
    "time": "16:00",
}

MATCH_SECTIONS = [
    {"name": "VIP Box", "price": 2500, "capacity": 3, "color": "#f59e0b"},
    {"name": "North Gallery", "price": 300, "capacity": 100},
]

# 3 rows x 4 seats: A/B super, C deluxe
SHOWTIME_PRICES = {"normal": 300, "deluxe": 500, "super": 700}
