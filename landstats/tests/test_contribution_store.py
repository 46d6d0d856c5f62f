"""Tests for persistence, lazy reads and leaderboards."""

import asyncio
from datetime import date
from decimal import Decimal

from landstats.contribution_store import EXISTS_FOR_DATE_SQL
from landstats.models import Contribution, Land

DAY = date(2024, 1, 10)


def land_with(land_id, owner, *entries):
    return Land(
        id=land_id,
        owner=owner,
        last_updated=DAY,
        contributions=[
            Contribution(
                land_id=land_id,
                kingdom_id=kid,
                kingdom_name=name,
                continent=1,
                total_points=Decimal(total),
            )
            for kid, name, total in entries
        ],
    )


def test_save_then_exists(store):
    async def run():
        assert not await store.exists_for_date("1", DAY)
        await store.save(land_with("1", "o", ("k1", "A", "10")), DAY)
        return await store.exists_for_date("1", DAY), await store.exists_for_date("1", date(2024, 1, 11))

    assert asyncio.run(run()) == (True, False)


def test_save_stamps_rows_with_day(store, db):
    asyncio.run(store.save(land_with("1", "o", ("k1", "A", "10"), ("k2", "B", "2")), DAY))

    rows = db.tables["contribution"]
    assert len(rows) == 2
    assert {r["contribution_date"] for r in rows} == {DAY}
    assert {r["land_id"] for r in rows} == {"1"}


def test_resave_refreshes_owner(store):
    async def run():
        await store.save(land_with("1", "first"), DAY)
        await store.save(land_with("1", "second"), date(2024, 1, 11))
        return await store.owner_of("1")

    assert asyncio.run(run()) == "second"


def test_get_day_is_idempotent(store, db, fetcher):
    async def run():
        first = await store.get_day("5", DAY)
        second = await store.get_day("5", DAY)
        return first, second

    first, second = asyncio.run(run())

    assert fetcher.calls == [("5", DAY, DAY)]
    assert len(db.tables["contribution"]) == 1
    assert first == second
    assert second.owner == "owner-x"
    assert second.contributions[0].total_points == Decimal("10.000000")
    assert second.contributions[0].date == DAY


def test_get_day_reads_stored_data_without_fetch(store, fetcher):
    async def run():
        await store.save(land_with("9", "stored", ("k1", "A", "3")), DAY)
        return await store.get_day("9", DAY)

    land = asyncio.run(run())
    assert fetcher.calls == []
    assert land.owner == "stored"
    assert [c.kingdom_id for c in land.contributions] == ["k1"]


def test_get_range_fetches_whole_window_when_empty(store, db, fetcher):
    start, end = date(2024, 1, 1), date(2024, 1, 3)
    land = asyncio.run(store.get_range("4", start, end))

    assert fetcher.calls == [("4", start, end)]
    assert {r["contribution_date"] for r in db.tables["contribution"]} == {start}
    assert len(land.contributions) == 1


def test_get_range_existence_check_is_coarse(store, fetcher):
    async def run():
        await store.save(land_with("4", "o", ("k1", "A", "1")), date(2024, 1, 2))
        return await store.get_range("4", date(2024, 1, 1), date(2024, 1, 5))

    land = asyncio.run(run())
    assert fetcher.calls == []
    assert len(land.contributions) == 1


def test_contribution_leaderboard_sums_per_kingdom(store):
    async def run():
        await store.save(land_with("1", "o1", ("A", "Alpha", "10"), ("B", "Beta", "20")), DAY)
        await store.save(land_with("2", "o2", ("A", "Alpha", "5")), DAY)
        return await store.contribution_leaderboard(DAY)

    board = asyncio.run(run())
    assert [(k.kingdom_id, k.total_points) for k in board] == [
        ("B", Decimal("20")),
        ("A", Decimal("15")),
    ]


def test_contribution_leaderboard_is_capped(store):
    async def run():
        entries = [(f"k{i}", f"K{i}", str(i)) for i in range(15)]
        await store.save(land_with("1", "o", *entries), DAY)
        return await store.contribution_leaderboard(DAY)

    board = asyncio.run(run())
    assert len(board) == 10
    assert board[0].kingdom_id == "k14"
    totals = [k.total_points for k in board]
    assert totals == sorted(totals, reverse=True)


def test_land_leaderboard_resolves_owners(store):
    async def run():
        await store.save(land_with("1", "alice", ("A", "Alpha", "10")), DAY)
        await store.save(land_with("2", None, ("A", "Alpha", "30"), ("B", "Beta", "1")), DAY)
        await store.save(land_with("3", "carol", ("C", "Gamma", "99")), date(2024, 1, 9))
        return await store.land_leaderboard(DAY)

    board = asyncio.run(run())
    assert [(l.land_id, l.owner, l.total_points) for l in board] == [
        ("2", None, Decimal("31")),
        ("1", "alice", Decimal("10")),
    ]


def test_empty_leaderboards(store):
    async def run():
        return await store.contribution_leaderboard(DAY), await store.land_leaderboard(DAY)

    assert asyncio.run(run()) == ([], [])


def test_queries_bind_identifiers_as_parameters(store, db):
    hostile = "1' OR '1'='1"
    asyncio.run(store.exists_for_date(hostile, DAY))

    sql, params = db.queries[-1]
    assert sql == EXISTS_FOR_DATE_SQL
    assert hostile not in sql
    assert params == {"land_id": hostile, "day": DAY}
