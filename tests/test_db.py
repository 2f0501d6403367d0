"""
Tests for SQLite persistence of the club state
"""

import auth
import utils
from club import Club
from models import Category, ClubState, Sport


class TestInitDb:
    def test_creates_owner_and_empty_club(self, temp_db):
        temp_db.init_db(auth.hash_password("owner123", rounds=4))
        state = temp_db.load_club_state()
        assert state == ClubState(owner="owner")
        assert temp_db.list_accounts() == ["owner"]

    def test_init_twice_keeps_state(self, temp_db):
        temp_db.init_db(auth.hash_password("owner123", rounds=4))
        state = temp_db.load_club_state()
        state.staff.add("clerk")
        temp_db.save_club_state(state)

        temp_db.init_db(auth.hash_password("other", rounds=4))
        assert temp_db.load_club_state().staff == {"clerk"}
        assert temp_db.list_accounts() == ["owner"]

    def test_load_before_init(self, temp_db):
        temp_db._create_tables()
        assert temp_db.load_club_state() is None


class TestClubStatePersistence:
    def test_round_trip_through_club(self, temp_db, clock):
        temp_db.init_db(auth.hash_password("owner123", rounds=4))
        club = Club(temp_db.load_club_state(), clock=clock, on_change=temp_db.save_club_state)
        club.register_member("owner", 320, "Bo", 3)
        club.register_member("owner", 63, "Daisy", 2, 6)
        club.settle_payment("owner", 63, 3000)
        club.update_discount_amount("owner", 250)
        club.add_staff("owner", "clerk")
        club.toggle_enforcement("owner")
        clock.advance(utils.days(30))
        club.run_billing_cycle("owner")

        reloaded = temp_db.load_club_state()
        assert reloaded == club.state
        assert reloaded.members[1].activity == Sport.TENNIS
        assert reloaded.members[0].category == Category.C
        assert reloaded.payments[1].settlement_date == club.state.payments[1].settlement_date
        assert reloaded.policy_enforced is False
        assert reloaded.last_billing_date == clock.now

    def test_ledger_order_survives_resave(self, temp_db, clock):
        temp_db.init_db(auth.hash_password("owner123", rounds=4))
        club = Club(temp_db.load_club_state(), clock=clock, on_change=temp_db.save_club_state)
        for member_id in (5, 1, 3):
            club.register_member("owner", member_id, f"m{member_id}", 1)
        club.settle_payment("owner", 1, 5000)

        reloaded = temp_db.load_club_state()
        assert [p.member_id for p in reloaded.payments] == [5, 1, 3]
        assert [m.member_id for m in reloaded.members] == [5, 1, 3]


class TestSharedClub:
    def test_writes_from_two_callers_survive(self, temp_db, clock):
        temp_db.init_db(auth.hash_password("owner123", rounds=4))
        shared = Club(temp_db.load_club_state(), clock=clock, on_change=temp_db.save_club_state)
        shared.add_staff("owner", "clerk")

        # two sessions, one club
        shared.register_member("owner", 1, "First", 1)
        shared.register_member("clerk", 2, "Second", 3)
        shared.settle_payment("owner", 1, 5000)

        stored = temp_db.load_club_state()
        assert [m.member_id for m in stored.members] == [1, 2]
        assert stored.payments[0].is_settled
        assert stored.payments[1].is_pending
