import pytest

from auth import Principal
from conftest import ALICE, BOB, CAROL, HR, OTHER_HR
from database import USERS
from errors import Forbidden, InvalidInput, NotFound
from schemas import AddToTeamRequest, ProfileUpdateRequest, UserCreateRequest


def test_register_is_idempotent(team, store):
    payload = UserCreateRequest(email="dave@mail.com", name="Dave", photo="dave.png")
    first = team.register(payload)
    assert first["insertedId"]
    assert team.register(payload) == {"message": "user exists", "insertedId": None}
    assert store.count_documents(USERS, {"email": "dave@mail.com"}) == 1
    assert team.get_role("dave@mail.com") == {"role": "employee"}
    assert team.get_role("nobody@mail.com") == {"role": None}


def test_profile_is_self_only(team):
    assert team.get_profile(ALICE, "alice@acme.com")["name"] == "Alice"
    with pytest.raises(Forbidden):
        team.get_profile(BOB, "alice@acme.com")


def test_update_profile_accepts_image_alias(team, store):
    result = team.update_profile(ALICE, "alice@acme.com", ProfileUpdateRequest(name="Alice B", image="a.png"))
    assert result["modifiedCount"] == 1
    user = store.find_one(USERS, {"email": "alice@acme.com"})
    assert (user["name"], user["photo"]) == ("Alice B", "a.png")

    with pytest.raises(InvalidInput):
        team.update_profile(ALICE, "alice@acme.com", ProfileUpdateRequest())
    with pytest.raises(Forbidden):
        team.update_profile(BOB, "alice@acme.com", ProfileUpdateRequest(name="Hacked"))


def test_add_and_remove_team_members(team, store):
    carol = store.find_one(USERS, {"email": "carol@mail.com"})
    assert [u["email"] for u in team.list_unaffiliated(HR)] == ["carol@mail.com"]

    result = team.add_to_team(HR, AddToTeamRequest(employee_ids=[str(carol["_id"])]))
    assert result["modifiedCount"] == 1
    carol = store.find_one(USERS, {"_id": carol["_id"]})
    assert carol["hrEmail"] == "hr@acme.com"
    assert carol["companyName"] == "Acme"
    assert carol["joinedDate"] is not None
    assert team.team_count(HR, "hr@acme.com") == {"count": 3}
    assert sorted(u["email"] for u in team.list_employees(HR, "hr@acme.com")) == [
        "alice@acme.com", "bob@acme.com", "carol@mail.com",
    ]

    # Already claimed, another HR cannot take her
    taken = team.add_to_team(OTHER_HR, AddToTeamRequest(employee_ids=[str(carol["_id"])], company_name="Globex"))
    assert taken["modifiedCount"] == 0

    with pytest.raises(NotFound):
        team.remove_from_team(OTHER_HR, str(carol["_id"]))
    team.remove_from_team(HR, str(carol["_id"]))
    carol = store.find_one(USERS, {"_id": carol["_id"]})
    assert "hrEmail" not in carol and "companyName" not in carol and "joinedDate" not in carol


def test_team_management_is_hr_only(team, store):
    carol = store.find_one(USERS, {"email": "carol@mail.com"})
    with pytest.raises(Forbidden):
        team.add_to_team(ALICE, AddToTeamRequest(employee_ids=[str(carol["_id"])]))
    with pytest.raises(Forbidden):
        team.list_unaffiliated(ALICE)
    with pytest.raises(Forbidden):
        team.remove_from_team(ALICE, "5f0000000000000000000000")
    with pytest.raises(Forbidden):
        team.team_count(OTHER_HR, "hr@acme.com")


def test_my_team(team):
    assert sorted(u["email"] for u in team.my_team(ALICE, "alice@acme.com")) == ["alice@acme.com", "bob@acme.com"]
    assert team.my_team(CAROL, "carol@mail.com") == []
    with pytest.raises(Forbidden):
        team.my_team(Principal(email="bob@acme.com"), "alice@acme.com")


def test_registered_company_carries_over_to_team(team, store):
    team.register(UserCreateRequest(
        email="boss@initech.com", name="Bill", role="hr", company_name="Initech", company_logo="i.png",
    ))
    boss = store.find_one(USERS, {"email": "boss@initech.com"})
    assert (boss["companyName"], boss["companyLogo"]) == ("Initech", "i.png")

    carol = store.find_one(USERS, {"email": "carol@mail.com"})
    team.add_to_team(Principal(email="boss@initech.com"), AddToTeamRequest(employee_ids=[str(carol["_id"])]))
    carol = store.find_one(USERS, {"_id": carol["_id"]})
    assert carol["hrEmail"] == "boss@initech.com"
    assert (carol["companyName"], carol["companyLogo"]) == ("Initech", "i.png")
