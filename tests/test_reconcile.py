"""Tests for the reconciliation engine against the fake backend."""

import asyncio
from decimal import Decimal

import pendulum
import pytest

from nestegg.gateway.errors import NetworkError
from nestegg.model.entity_kind import EntityKind
from nestegg.model.sync_state import SyncState
from nestegg.template.goal import get_goal_template
from nestegg.template.ledger_entry import get_deposit_template


def store_deposit(app, amount, **fields):
    deposit = get_deposit_template()
    deposit["amount"] = Decimal(amount)
    deposit.update(fields)
    app.store.write_history([*app.store.read_history(), deposit])
    return deposit


def store_goal(app, name, current="0", **fields):
    goal = get_goal_template()
    goal["name"] = name
    goal["target_amount"] = Decimal("1000")
    goal["current_amount"] = Decimal(current)
    goal.update(fields)
    app.store.write_goals([*app.store.read_goals(), goal])
    return goal


def stored(app, local_id):
    return next(
        record
        for record in [*app.store.read_history(), *app.store.read_goals()]
        if record["local_id"] == local_id
    )


class TestPush:
    """Pushing unsynced records."""

    def test_create_assigns_remote_id(self, run_app, backend):
        async def scenario(app):
            deposit = store_deposit(app, "25.00", notes="Payday")
            result = await app.engine.push(EntityKind.DEPOSIT)
            return result, stored(app, deposit["local_id"])

        result, deposit = run_app(scenario)

        assert result == {"synced": 1, "pending": 0, "failed": 0}
        assert deposit["sync_state"] is SyncState.SYNCED
        assert deposit["remote_id"] == 1
        assert backend.records["savings-entries"][1]["amount_saved"] == "25.00"
        assert backend.records["savings-entries"][1]["s_user_id"] == 7

    def test_one_failure_does_not_block_the_rest(self, run_app, backend):
        backend.fail("POST", "/savings-entries")

        async def scenario(app):
            first = store_deposit(app, "10.00")
            second = store_deposit(app, "20.00")
            result = await app.engine.push(EntityKind.DEPOSIT)
            return result, stored(app, first["local_id"]), stored(app, second["local_id"])

        result, first, second = run_app(scenario)

        assert result == {"synced": 1, "pending": 1, "failed": 0}
        assert first["sync_state"] is SyncState.UNSYNCED
        assert first["remote_id"] is None
        assert second["sync_state"] is SyncState.SYNCED

    def test_rejection_marks_failed_and_is_not_retried(self, run_app, backend):
        backend.fail("POST", "/savings-goals", status=422)

        async def scenario(app):
            goal = store_goal(app, "Rent")
            first = await app.engine.push(EntityKind.GOAL)
            second = await app.engine.push(EntityKind.GOAL)
            return first, second, stored(app, goal["local_id"])

        first, second, goal = run_app(scenario)

        assert first == {"synced": 0, "pending": 0, "failed": 1}
        assert second == {"synced": 0, "pending": 0, "failed": 0}
        assert goal["sync_state"] is SyncState.FAILED
        assert goal["sync_error"] == "Injected failure"
        assert backend.count("POST", "/savings-goals") == 1

    def test_expired_token_keeps_record_pending(self, run_app, backend):
        backend.token = "rotated"

        async def scenario(app):
            deposit = store_deposit(app, "10.00")
            await app.engine.push(EntityKind.DEPOSIT)
            return stored(app, deposit["local_id"])

        assert run_app(scenario)["sync_state"] is SyncState.UNSYNCED

    def test_update_of_vanished_record_recreates_it(self, run_app, backend):
        async def scenario(app):
            deposit = store_deposit(app, "10.00", remote_id=99)
            await app.engine.push(EntityKind.DEPOSIT)
            return stored(app, deposit["local_id"])

        deposit = run_app(scenario)

        assert deposit["sync_state"] is SyncState.SYNCED
        assert deposit["remote_id"] == 1
        assert backend.count("PUT", "/savings-entries/99") == 1
        assert list(backend.records["savings-entries"]) == [1]

    def test_record_deleted_during_create_is_removed_remotely(self, run_app, backend):
        async def scenario(app):
            store_deposit(app, "10.00")
            backend.hooks[("POST", "/savings-entries")] = lambda: (
                app.store.write_history([])
            )
            await app.engine.push(EntityKind.DEPOSIT)
            return app.store.read_history()

        assert run_app(scenario) == []
        assert backend.records["savings-entries"] == {}
        assert backend.count("DELETE", "/savings-entries/1") == 1

    def test_edit_during_push_stays_unsynced(self, run_app, backend):
        async def scenario(app):
            deposit = store_deposit(app, "10.00")

            def edit():
                history = app.store.read_history()
                history[0]["notes"] = "edited meanwhile"
                history[0]["updated_at"] = history[0]["updated_at"].add(seconds=5)
                app.store.write_history(history)

            backend.hooks[("POST", "/savings-entries")] = edit
            await app.engine.push(EntityKind.DEPOSIT)
            return stored(app, deposit["local_id"])

        deposit = run_app(scenario)

        assert deposit["remote_id"] == 1
        assert deposit["notes"] == "edited meanwhile"
        assert deposit["sync_state"] is SyncState.UNSYNCED

    def test_concurrent_pushes_of_one_record_create_once(self, run_app, backend):
        async def scenario(app):
            deposit = store_deposit(app, "25.00")
            results = await asyncio.gather(
                app.engine.push_record(EntityKind.DEPOSIT, deposit["local_id"]),
                app.engine.push_record(EntityKind.DEPOSIT, deposit["local_id"]),
            )
            return results, stored(app, deposit["local_id"])

        results, deposit = run_app(scenario)

        assert results == [True, False]
        assert backend.count("POST", "/savings-entries") == 1
        assert deposit["remote_id"] == 1
        assert deposit["sync_state"] is SyncState.SYNCED

    def test_create_linked_meanwhile_removes_the_extra_copy(self, run_app, backend):
        backend.add_remote("savings-entries", amount_saved="25.00")

        async def scenario(app):
            deposit = store_deposit(app, "25.00")

            def link():
                history = app.store.read_history()
                history[0]["remote_id"] = 1
                app.store.write_history(history)

            backend.hooks[("POST", "/savings-entries")] = link
            await app.engine.push(EntityKind.DEPOSIT)
            return stored(app, deposit["local_id"])

        deposit = run_app(scenario)

        assert deposit["remote_id"] == 1
        assert backend.count("DELETE", "/savings-entries/2") == 1
        assert list(backend.records["savings-entries"]) == [1]


class TestPull:
    """Merging the remote set into the store."""

    def test_remote_only_records_are_added(self, run_app, backend):
        backend.add_remote("savings-entries", amount_saved="40", notes="Gift")

        async def scenario(app):
            result = await app.engine.pull(EntityKind.DEPOSIT)
            return result, app.store.read_history()

        result, history = run_app(scenario)

        assert result["added"] == 1
        (deposit,) = history
        assert deposit["remote_id"] == 1
        assert deposit["amount"] == Decimal("40.00")
        assert deposit["sync_state"] is SyncState.SYNCED

    def test_lost_create_response_does_not_duplicate(self, run_app, backend):
        backend.fail("POST", "/savings-entries", after_commit=True)

        async def scenario(app):
            deposit = store_deposit(app, "25.00")
            pushed, pulled = await app.engine.sync_kind(EntityKind.DEPOSIT)
            return pushed, pulled, app.store.read_history(), deposit

        pushed, pulled, history, deposit = run_app(scenario)

        assert pushed["pending"] == 1
        assert pulled == {"added": 0, "updated": 0, "matched": 1, "pruned": 0}
        (linked,) = history
        assert linked["local_id"] == deposit["local_id"]
        assert linked["remote_id"] == 1
        assert linked["sync_state"] is SyncState.SYNCED
        assert len(backend.records["savings-entries"]) == 1

    def test_backdated_entry_keeps_its_date(self, run_app, backend):
        entered = pendulum.now("UTC").subtract(days=3)

        async def scenario(app):
            deposit = await app.ledger.add_deposit(Decimal("25"), occurred_at=entered)
            await app.scheduler.perform_sync()
            after_first_pass = stored(app, deposit["local_id"])

            backend.records["savings-entries"][1]["amount_saved"] = "30.00"
            await app.scheduler.perform_sync()
            return after_first_pass, stored(app, deposit["local_id"])

        after_first_pass, after_remote_edit = run_app(scenario)

        assert after_first_pass["occurred_at"] == entered
        assert after_first_pass["remote_created_at"] is not None
        assert after_first_pass["sync_state"] is SyncState.SYNCED
        assert after_remote_edit["amount"] == Decimal("30.00")
        assert after_remote_edit["occurred_at"] == entered

    def test_unsynced_goal_keeps_local_amount(self, run_app, backend):
        backend.add_remote("savings-goals", name="Rent", current_amount="100")

        async def scenario(app):
            store_goal(app, "Rent", current="120")
            await app.engine.pull(EntityKind.GOAL)
            return app.store.read_goals()

        (goal,) = run_app(scenario)

        assert goal["current_amount"] == Decimal("120")
        assert goal["sync_state"] is SyncState.UNSYNCED
        assert goal["remote_id"] == 1

    def test_synced_goal_takes_remote_amount(self, run_app, backend):
        backend.add_remote("savings-goals", name="Rent", current_amount="100")

        async def scenario(app):
            store_goal(app, "Rent", current="120", remote_id=1, sync_state=SyncState.SYNCED)
            result = await app.engine.pull(EntityKind.GOAL)
            return result, app.store.read_goals()

        result, (goal,) = run_app(scenario)

        assert result["updated"] == 1
        assert goal["current_amount"] == Decimal("100")
        assert goal["sync_state"] is SyncState.SYNCED

    def test_records_missing_remotely_are_kept_by_default(self, run_app):
        async def scenario(app):
            store_deposit(app, "10.00", remote_id=50, sync_state=SyncState.SYNCED)
            result = await app.engine.pull(EntityKind.DEPOSIT)
            return result, app.store.read_history()

        result, history = run_app(scenario)

        assert result["pruned"] == 0
        assert len(history) == 1

    def test_prune_removes_only_synced_records(self, run_app):
        async def scenario(app):
            store_deposit(app, "10.00", remote_id=50, sync_state=SyncState.SYNCED)
            pending = store_deposit(app, "20.00", remote_id=51)
            result = await app.engine.pull(EntityKind.DEPOSIT)
            return result, app.store.read_history(), pending

        result, history, pending = run_app(scenario, prune_remote_deletions=True)

        assert result["pruned"] == 1
        assert [entry["local_id"] for entry in history] == [pending["local_id"]]

    def test_pull_keeps_a_single_primary(self, run_app, backend):
        backend.add_remote(
            "savings-goals", name="Car", target_amount="500", is_primary=True
        )

        async def scenario(app):
            store_goal(app, "Rent", is_primary=True)
            await app.engine.pull(EntityKind.GOAL)
            return app.store.read_goals()

        goals = run_app(scenario)

        assert [goal["name"] for goal in goals if goal["is_primary"]] == ["Rent"]

    def test_list_failure_leaves_store_untouched(self, run_app, backend):
        backend.fail("GET", "/savings-entries")

        async def scenario(app):
            deposit = store_deposit(app, "10.00")
            with pytest.raises(NetworkError):
                await app.engine.pull(EntityKind.DEPOSIT)
            return app.store.read_history(), deposit

        history, deposit = run_app(scenario)

        assert [entry["local_id"] for entry in history] == [deposit["local_id"]]


class TestInterleaving:
    """User writes arriving while a pass is running."""

    def test_deposit_during_pass_is_not_duplicated(self, run_app, backend):
        async def scenario(app):
            await asyncio.gather(
                app.ledger.add_deposit(Decimal("25")),
                app.scheduler.perform_sync(),
            )
            await app.scheduler.perform_sync()
            return app.store.read_history(), app.ledger.get_total_savings()

        history, total = run_app(scenario)

        (deposit,) = history
        assert deposit["remote_id"] == 1
        assert deposit["sync_state"] is SyncState.SYNCED
        assert list(backend.records["savings-entries"]) == [1]
        assert total == Decimal("25")

    def test_withdrawal_during_pass_is_not_duplicated(self, run_app, backend):
        backend.add_remote("savings-entries", amount_saved="40.00")

        async def scenario(app):
            await app.engine.pull(EntityKind.DEPOSIT)
            await asyncio.gather(
                app.scheduler.perform_sync(),
                app.ledger.add_withdrawal(Decimal("10"), reason="Bus fare"),
            )
            await app.scheduler.perform_sync()
            return app.store.read_history()

        history = run_app(scenario)

        withdrawals = [
            entry for entry in history if entry["entry_type"] == "withdrawal"
        ]
        assert len(withdrawals) == 1
        assert withdrawals[0]["sync_state"] is SyncState.SYNCED
        assert len(backend.records["withdrawal-entries"]) == 1


class TestCounts:
    def test_pending_and_failed(self, run_app):
        async def scenario(app):
            store_deposit(app, "10.00")
            store_deposit(app, "20.00", sync_state=SyncState.FAILED)
            store_goal(app, "Rent")
            return app.engine.count_pending(), app.engine.count_failed()

        assert run_app(scenario) == (2, 1)
