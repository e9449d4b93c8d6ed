import pytest
from fastapi.testclient import TestClient

from campaign_server.card_utils.card import PlayingCard
from campaign_server.card_utils.pack import Pack, PackCardEntry
from campaign_server.utils import db_access


# Isolate every test on a throwaway SQLite file
@pytest.fixture(autouse=True)
def temp_db(tmp_path, monkeypatch):
    monkeypatch.setattr(db_access, "DB_PATH", tmp_path / "db" / "campaigns.db")
    db_access.init_db()
    yield tmp_path


@pytest.fixture
def client():
    from campaign_server.server import app
    return TestClient(app)


@pytest.fixture
def campaign_id():
    return db_access.create_campaign("Curse of Strahd")


@pytest.fixture
def sample_cards():
    return [
        PlayingCard(id="sun", name="Sunsword", rarity=1, type="Weapon", category="Relic",
                    description="A blade of pure sunlight.", usage=-1, tags=["Attack", "Radiant"]),
        PlayingCard(id="tome", name="Tome of Strahd", rarity=2, type="Item", category="Relic",
                    description="Écrit par le comte.", usage=1),
        PlayingCard(id="potion", name="Potion of Healing", rarity=4, type="Consumable",
                    description="Restores hit points.", usage=1, tags=["Healing"]),
        PlayingCard(id="ring", name="Ring of Warmth", rarity=3, type="Item",
                    description="Keeps the cold away.", usage=3),
    ]


@pytest.fixture
def seeded_campaign(campaign_id, sample_cards):
    for card in sample_cards:
        db_access.upsert_card(campaign_id, card)
    return campaign_id


@pytest.fixture
def sample_pack():
    return Pack(
        id="barovia",
        name="Barovian Booster",
        price=10,
        cards_per_pack=3,
        picks_per_pack=1,
        card_pool=[
            PackCardEntry(card_id="sun"),
            PackCardEntry(card_id="potion", weight=6),
        ],
    )
