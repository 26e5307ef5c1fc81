"""Tests for the sync run that follows signing in."""

import asyncio
from decimal import Decimal

from nestegg.model.sync_state import SyncState
from nestegg.template.goal import get_goal_template
from nestegg.template.ledger_entry import get_deposit_template

from conftest import TOKEN, make_user


def add_offline_rent_goal(app):
    goal = get_goal_template()
    goal["name"] = "Rent"
    goal["target_amount"] = Decimal("1000")
    goal["is_primary"] = True
    deposit = get_deposit_template()
    deposit["amount"] = Decimal("25.00")
    app.store.write_goals([goal])
    app.store.write_history([deposit])


class TestSignInSync:
    """The one-shot pipeline and its published progress."""

    def test_offline_work_reaches_the_server(self, run_app, backend):
        async def scenario(app):
            add_offline_rent_goal(app)
            progress = []
            app.sign_in.status.subscribe(lambda status: progress.append(status["progress"]))
            status = await app.sign_in.run()
            return status, progress, app.store.read_goals(), app.store.read_history()

        status, progress, (rent,), (deposit,) = run_app(scenario)

        assert status["completed"] is True
        assert status["error"] is None
        assert status["current_step"] == "Synchronization completed successfully"
        assert [value for value in progress if value] == sorted(
            value for value in progress if value
        )
        assert {10, 40, 50, 70, 90, 100} <= set(progress)

        assert rent["current_amount"] == Decimal("25.00")
        assert rent["sync_state"] is SyncState.SYNCED
        assert deposit["sync_state"] is SyncState.SYNCED
        (remote_goal,) = backend.records["savings-goals"].values()
        assert remote_goal["name"] == "Rent"
        assert remote_goal["current_amount"] == "25.00"
        assert remote_goal["is_primary"] is True
        assert len(backend.records["savings-entries"]) == 1

    def test_pass_triggered_during_sign_in_sync_is_dropped(self, run_app, backend):
        async def scenario(app):
            add_offline_rent_goal(app)
            status, ran = await asyncio.gather(
                app.sign_in.run(), app.scheduler.perform_sync()
            )
            await app.scheduler.perform_sync()
            return status, ran, app.store.read_history(), app.store.read_goals()

        status, ran, history, goals = run_app(scenario)

        assert status["completed"] is True
        assert ran is False
        assert len(history) == 1
        assert len(goals) == 1
        assert len(backend.records["savings-entries"]) == 1
        assert len(backend.records["savings-goals"]) == 1
        assert backend.count("POST", "/savings-entries") == 1

    def test_sign_in_sync_waits_for_a_running_pass(self, run_app, backend):
        async def scenario(app):
            add_offline_rent_goal(app)
            ran, status = await asyncio.gather(
                app.scheduler.perform_sync(), app.sign_in.run()
            )
            return ran, status, app.store.read_history(), app.scheduler.is_syncing

        ran, status, history, is_syncing = run_app(scenario)

        assert ran is True
        assert status["completed"] is True
        assert len(history) == 1
        assert is_syncing is False
        assert len(backend.records["savings-entries"]) == 1
        assert backend.count("POST", "/savings-entries") == 1

    def test_offline_completes_immediately(self, run_app, backend):
        async def scenario(app):
            return await app.sign_in.run()

        status = run_app(scenario, is_online=False)

        assert status["completed"] is True
        assert status["progress"] == 100
        assert backend.requests == []

    def test_signed_out_completes_immediately(self, run_app, backend):
        async def scenario(app):
            return await app.sign_in.run()

        assert run_app(scenario, signed_in=False)["completed"] is True
        assert backend.requests == []

    def test_failure_is_reported_not_raised(self, run_app, backend):
        backend.fail("GET", "/user/profile", status=500)

        async def scenario(app):
            return await app.sign_in.run()

        status = run_app(scenario)

        assert status["completed"] is False
        assert status["is_loading"] is False
        assert status["progress"] == 0
        assert status["current_step"] == "Synchronization failed"
        assert status["error"] == "Injected failure"

    def test_runs_once_per_session(self, run_app, backend):
        async def scenario(app):
            await app.sign_in.run()
            after_first = len(backend.requests)
            await app.sign_in.run()
            after_second = len(backend.requests)
            await app.sign_in.run(force=True)
            return after_first, after_second, len(backend.requests)

        after_first, after_second, after_forced = run_app(scenario)

        assert after_first == after_second
        assert after_forced > after_second

    def test_profile_is_merged(self, run_app, backend):
        backend.user.update(
            {"name": "Ama Mensah", "net_income": "3100.00", "theme": "maroon"}
        )

        async def scenario(app):
            await app.sign_in.run()
            return (
                app.session.current_user,
                app.store.read_net_income(),
                app.store.read_settings(),
            )

        user, net_income, settings = run_app(scenario)

        assert user["name"] == "Ama Mensah"
        assert user["net_income"] == Decimal("3100.00")
        assert net_income == Decimal("3100.00")
        assert settings["theme"] == "maroon"

    def test_local_net_income_is_pushed(self, run_app, backend):
        async def scenario(app):
            app.store.write_net_income(Decimal("2800"))
            await app.sign_in.run()
            return app.store.read_net_income()

        assert run_app(scenario) == Decimal("2800")
        assert backend.user["net_income"] == "2800.00"


class TestLogin:
    """Signing in moves the guest ledger into the user's namespace."""

    def test_guest_records_are_adopted(self, run_app, backend):
        async def scenario(app):
            app.store.write_history([get_deposit_template()])
            await app.login(TOKEN, make_user())
            return app.store.namespace_path, app.store.read_history()

        namespace_path, history = run_app(scenario, signed_in=False)

        assert namespace_path.name == "7"
        assert len(history) == 1
        assert backend.requests == []

    def test_profile_is_fetched_without_a_user(self, run_app, backend):
        async def scenario(app):
            user = await app.login(TOKEN)
            return user, app.session.is_authenticated

        user, is_authenticated = run_app(scenario, signed_in=False)

        assert user["id"] == 7
        assert is_authenticated is True
        assert backend.requests == [("GET", "/user/profile")]

    def test_taken_goal_names_are_dropped(self, run_app):
        async def scenario(app):
            taken = get_goal_template()
            taken["name"] = "Rent"
            taken["current_amount"] = Decimal("1")
            app.store.write_goals([taken])
            await app.login(TOKEN, make_user())
            app.logout()
            guest = get_goal_template()
            guest["name"] = "Rent"
            other = get_goal_template()
            other["name"] = "Car"
            app.store.write_goals([guest, other])
            await app.login(TOKEN, make_user())
            return app.store.read_goals()

        goals = run_app(scenario, signed_in=False)

        assert [(goal["name"], goal["current_amount"]) for goal in goals] == [
            ("Rent", Decimal("1")),
            ("Car", Decimal("0")),
        ]
