"""Weighted pack-content draw."""
import random

import pytest
from pydantic import ValidationError

from campaign_server.card_utils.card import PlayingCard
from campaign_server.card_utils.pack import (
    Pack,
    PackCardEntry,
    build_card_pool,
    generate_pack_contents,
    pick_random_card,
)
from campaign_server.errors import EmptyPoolError


@pytest.fixture
def catalog():
    return [
        PlayingCard(id="A", name="Alpha", rarity=1),
        PlayingCard(id="B", name="Beta", rarity=4),
        PlayingCard(id="C", name="Gamma", rarity=2),
    ]


@pytest.fixture
def two_card_pack():
    # A weighs 1 (its rarity), B weighs 3 (explicit): A owns [0, 1), B owns [1, 4)
    return Pack(
        name="Two",
        cards_per_pack=1,
        card_pool=[PackCardEntry(card_id="A"), PackCardEntry(card_id="B", weight=3)],
    )


def test_pool_uses_explicit_weight_else_rarity(two_card_pack, catalog):
    assert build_card_pool(two_card_pack, catalog) == [("A", 1), ("B", 3)]


@pytest.mark.parametrize("fraction, expected", [
    (0, "A"),
    (0.24, "A"),
    (0.25, "B"),
    (0.3, "B"),
    (0.75, "B"),
])
def test_preset_fraction_lands_in_cumulative_interval(two_card_pack, catalog, fraction, expected):
    assert generate_pack_contents(two_card_pack, catalog, preset_random=fraction) == [expected]


def test_preset_zero_always_picks_first_entry(catalog):
    pack = Pack(name="Three", cards_per_pack=4, card_pool=[
        PackCardEntry(card_id="C"), PackCardEntry(card_id="A"), PackCardEntry(card_id="B"),
    ])
    assert generate_pack_contents(pack, catalog, preset_random=0) == ["C"] * 4


def test_preset_near_one_picks_last_entry(two_card_pack, catalog):
    assert generate_pack_contents(two_card_pack, catalog, preset_random=0.999999) == ["B"]


def test_preset_wraps_modulo_one(two_card_pack, catalog):
    assert generate_pack_contents(two_card_pack, catalog, preset_random=1.3) == ["B"]
    assert generate_pack_contents(two_card_pack, catalog, preset_random=1.0) == ["A"]


def test_draw_returns_exactly_cards_per_pack_ids(catalog):
    pack = Pack(name="Big", cards_per_pack=7, card_pool=[
        PackCardEntry(card_id="A"), PackCardEntry(card_id="B"),
    ])
    drawn = generate_pack_contents(pack, catalog)
    assert len(drawn) == 7
    assert set(drawn) <= {"A", "B"}


def test_draws_are_with_replacement(catalog):
    pack = Pack(name="Solo", cards_per_pack=3, card_pool=[PackCardEntry(card_id="A")])
    assert generate_pack_contents(pack, catalog) == ["A", "A", "A"]


def test_dangling_pool_entry_is_excluded_from_pool_and_weight(catalog):
    pack = Pack(name="Ghostly", cards_per_pack=1, card_pool=[
        PackCardEntry(card_id="A"),
        PackCardEntry(card_id="ghost", weight=100),
        PackCardEntry(card_id="B", weight=3),
    ])
    assert build_card_pool(pack, catalog) == [("A", 1), ("B", 3)]
    # 0.3 * 4 = 1.2 lands in B; had the ghost counted, it would have won
    assert generate_pack_contents(pack, catalog, preset_random=0.3) == ["B"]


def test_empty_pool_raises(catalog):
    pack = Pack(name="Empty", cards_per_pack=2)
    with pytest.raises(EmptyPoolError):
        generate_pack_contents(pack, catalog)


def test_pool_of_only_missing_cards_raises(catalog):
    pack = Pack(name="Ghosts", card_pool=[PackCardEntry(card_id="ghost")])
    with pytest.raises(ValueError):
        generate_pack_contents(pack, catalog)


def test_zero_total_weight_raises():
    # stored documents skip validation, so a zero rarity can still reach a draw
    cards = [PlayingCard.model_construct(id="Z", name="Zero", rarity=0)]
    pack = Pack(name="Nothing", card_pool=[PackCardEntry(card_id="Z")])
    with pytest.raises(EmptyPoolError):
        generate_pack_contents(pack, cards)


@pytest.mark.parametrize("rarity", [0, -5])
def test_rarity_below_one_is_rejected(rarity):
    with pytest.raises(ValidationError):
        PlayingCard(name="Cursed", rarity=rarity)


def test_cards_per_pack_below_one_is_rejected(catalog):
    with pytest.raises(ValidationError):
        Pack(name="Bad", cards_per_pack=0)

    unvalidated = Pack.model_construct(name="Bad", cards_per_pack=0, card_pool=[PackCardEntry(card_id="A")])
    with pytest.raises(ValueError):
        generate_pack_contents(unvalidated, catalog)


def test_non_positive_pool_weight_is_rejected():
    with pytest.raises(ValidationError):
        PackCardEntry(card_id="A", weight=0)


def test_picks_are_clamped_to_draws():
    pack = Pack(name="Greedy", cards_per_pack=2, picks_per_pack=5)
    assert pack.picks_per_pack == 2


def test_pack_reads_persisted_field_names():
    pack = Pack.model_validate({
        "id": "p1",
        "name": "Stored",
        "price": 5,
        "cardsPerPack": 3,
        "picksPerPack": 2,
        "cardPool": [{"cardId": "A"}, {"cardId": "B", "weight": 2}],
    })
    assert pack.cards_per_pack == 3
    assert pack.card_ids() == ["A", "B"]
    assert pack.to_document()["cardPool"] == [{"cardId": "A"}, {"cardId": "B", "weight": 2}]


def test_draw_frequencies_follow_weights(two_card_pack, catalog):
    random.seed(1234)
    pack = two_card_pack.model_copy(update={"cards_per_pack": 4000})
    drawn = generate_pack_contents(pack, catalog)
    share_of_b = drawn.count("B") / len(drawn)
    assert 0.7 < share_of_b < 0.8


class TestPickRandomCard:

    def test_filters_by_rarity(self, catalog):
        card = pick_random_card(catalog, rarity=4)
        assert card.id == "B"

    def test_preset_zero_picks_first_candidate(self, catalog):
        assert pick_random_card(catalog, preset_random=0).id == "A"

    def test_weights_by_rarity_value(self, catalog):
        # weights 1, 4, 2 -> B owns [1, 5) of 7
        assert pick_random_card(catalog, preset_random=0.5).id == "B"

    def test_no_matching_rarity_raises(self, catalog):
        with pytest.raises(EmptyPoolError):
            pick_random_card(catalog, rarity=3)
