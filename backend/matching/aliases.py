"""
Curated team-name aliases.

Keys are display names as stored by the source-side ``team_statistics`` table;
values are the acceptable SofaScore display names, most likely first.
"""
from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

AliasTable = Mapping[str, tuple[str, ...]]

TEAM_NAME_ALIASES: AliasTable = MappingProxyType({
    # Premier League
    "Newcastle": ("Newcastle United",),
    "Tottenham": ("Tottenham Hotspur",),
    "West Ham": ("West Ham United",),
    "Wolves": ("Wolverhampton Wanderers", "Wolverhampton"),
    "Brighton": ("Brighton & Hove Albion", "Brighton and Hove Albion"),
    "Leeds": ("Leeds United",),
    "Burnley": ("Burnley FC",),
    "Sunderland": ("Sunderland AFC",),
    # Bundesliga
    "Bayern München": ("Bayern Munich", "FC Bayern München", "Bayern München"),
    "Borussia Mönchengladbach": ("Borussia Mönchengladbach", "Borussia Monchengladbach"),
    "FSV Mainz 05": ("1. FSV Mainz 05", "Mainz 05", "Mainz"),
    "Union Berlin": ("1. FC Union Berlin", "Union Berlin"),
    "1. FC Heidenheim": ("FC Heidenheim 1846", "FC Heidenheim", "1. FC Heidenheim 1846"),
    "1. FC Köln": ("1. FC Köln", "FC Köln"),
    "Hamburger SV": ("Hamburger SV", "HSV"),
    # La Liga
    "Barcelona": ("FC Barcelona", "Barcelona"),
    "Athletic Club": ("Athletic Club", "Athletic Bilbao"),
    "Atletico Madrid": ("Atlético de Madrid", "Atlético Madrid", "Club Atletico de Madrid"),
    "Oviedo": ("Real Oviedo",),
    "Levante": ("Levante UD",),
    "Elche": ("Elche CF",),
    # Serie A
    "Inter": ("Inter", "Internazionale", "FC Internazionale Milano"),
    "Verona": ("Hellas Verona",),
    "Cremonese": ("US Cremonese",),
    "Sassuolo": ("US Sassuolo",),
    "Pisa": ("AC Pisa 1909", "Pisa Sporting Club"),
    "Como": ("Como 1907",),
    # Ligue 1
    "Paris Saint Germain": ("Paris Saint-Germain", "PSG"),
    "Marseille": ("Olympique de Marseille", "Olympique Marseille"),
    "Lyon": ("Olympique Lyonnais", "Olympique Lyon"),
    "Lens": ("RC Lens",),
    "Lille": ("LOSC Lille", "Lille OSC"),
    "Rennes": ("Stade Rennais FC", "Stade Rennais"),
    "Strasbourg": ("RC Strasbourg Alsace", "RC Strasbourg"),
    "Nantes": ("FC Nantes",),
    "Auxerre": ("AJ Auxerre",),
    "Angers": ("Angers SCO",),
    "Le Havre": ("Le Havre AC",),
    "Monaco": ("AS Monaco",),
    "Nice": ("OGC Nice",),
    "Toulouse": ("Toulouse FC",),
    "Stade Brestois 29": ("Stade Brestois 29", "Brest"),
    "Lorient": ("FC Lorient",),
    "Metz": ("FC Metz",),
    "Paris FC": ("Paris FC",),
    "Montpellier": ("Montpellier HSC",),
})
