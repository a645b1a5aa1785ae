"""Shared catalog fixtures, in the tarkov.dev response shape."""

from __future__ import annotations

import copy

import pytest

from tarkov.models import Catalog
from tracker.graph import build_graph

STASH_ID = "5d484fc0654e76006657e0ab"

CATALOG_DATA = {
    "hideoutStations": [
        {
            "id": STASH_ID,
            "name": "Stash",
            "normalizedName": "stash",
            "levels": [
                {
                    "id": "stash-1",
                    "level": 1,
                    "constructionTime": 0,
                    "stationLevelRequirements": [],
                    "itemRequirements": [
                        {"id": "stash-1-part", "item": {"id": "roubles", "name": "Roubles"}, "count": 100}
                    ],
                },
                {
                    "id": "stash-2",
                    "level": 2,
                    "constructionTime": 0,
                    "stationLevelRequirements": [],
                    "itemRequirements": [
                        {"id": "stash-2-part", "item": {"id": "roubles", "name": "Roubles"}, "count": 200}
                    ],
                },
            ],
        },
        {
            "id": "gen",
            "name": "Generator",
            "normalizedName": "generator",
            "levels": [
                {
                    "id": "gen-1",
                    "level": 1,
                    "constructionTime": 100,
                    "stationLevelRequirements": [],
                    "itemRequirements": [
                        {"id": "gen-1-part", "item": {"id": "spark", "name": "Spark plug"}, "count": 2}
                    ],
                },
                {
                    "id": "gen-2",
                    "level": 2,
                    "constructionTime": 200,
                    "stationLevelRequirements": [{"id": "r1", "station": {"id": "gen"}, "level": 1}],
                    "itemRequirements": [
                        {"id": "gen-2-part", "item": {"id": "spark", "name": "Spark plug"}, "quantity": 3}
                    ],
                },
            ],
        },
        {
            "id": "med",
            "name": "Medstation",
            "normalizedName": "medstation",
            "levels": [
                {
                    "id": "med-1",
                    "level": 1,
                    "constructionTime": 50,
                    "stationLevelRequirements": [{"id": "r2", "station": {"id": "gen"}, "level": 2}],
                    "itemRequirements": [
                        {"id": "med-1-part", "item": {"id": "bandage", "name": "Bandage"}, "count": 1}
                    ],
                },
            ],
        },
    ],
    "tasks": [
        {
            "id": "t1",
            "name": "Debut",
            "trader": {"name": "Prapor"},
            "minPlayerLevel": 1,
            "factionName": "Any",
            "objectives": [
                {"id": "o1a", "type": "shoot", "description": "Kill scavs", "count": 5},
                {"id": "o1b", "type": "giveItem", "description": "Hand over shotguns", "count": 2},
            ],
            "taskRequirements": [],
            "failConditions": [],
        },
        {
            "id": "t2",
            "name": "Search Mission",
            "trader": {"name": "Prapor"},
            "minPlayerLevel": 2,
            "factionName": "Any",
            "objectives": [{"id": "o2", "type": "visit", "description": "Find the convoy"}],
            "taskRequirements": [{"task": {"id": "t1"}, "status": ["complete"]}],
            "failConditions": [],
        },
        {
            "id": "t3",
            "name": "Polikhim Hobo",
            "trader": {"name": "Prapor"},
            "minPlayerLevel": 3,
            "factionName": "Any",
            "objectives": [],
            "taskRequirements": [{"task": {"id": "t2"}, "status": ["complete"]}],
            "failConditions": [],
        },
        {
            "id": "t4",
            "name": "Chemical Part 4",
            "trader": {"name": "Skier"},
            "factionName": "Any",
            "objectives": [],
            "taskRequirements": [{"task": {"id": "t1"}, "status": ["complete"]}],
            "failConditions": [{"id": "f1", "type": "taskStatus", "task": {"id": "t5"}, "status": ["complete"]}],
        },
        {
            "id": "t5",
            "name": "Out of Curiosity",
            "trader": {"name": "Prapor"},
            "factionName": "Any",
            "objectives": [],
            "taskRequirements": [{"task": {"id": "t1"}, "status": ["complete"]}],
            "failConditions": [{"id": "f2", "type": "taskStatus", "task": {"id": "t4"}, "status": ["complete"]}],
        },
        {
            "id": "t6",
            "name": "Bear Only",
            "trader": {"name": "Mechanic"},
            "factionName": "BEAR",
            "objectives": [],
            "taskRequirements": [],
            "failConditions": [],
        },
        {
            "id": "t7",
            "name": "After Bear Only",
            "trader": {"name": "Mechanic"},
            "factionName": "Any",
            "objectives": [],
            "taskRequirements": [{"task": {"id": "t6"}, "status": ["complete"]}],
            "failConditions": [],
        },
    ],
}


@pytest.fixture
def catalog_data():
    return copy.deepcopy(CATALOG_DATA)


@pytest.fixture
def catalog(catalog_data):
    return Catalog.from_api(catalog_data)


@pytest.fixture
def graph(catalog):
    return build_graph(catalog)
